"""Tests for the morphic-analyze command line."""

import json
import logging

import numpy as np
import pytest

from morphic.cli import build_parser, main
from morphic.pipeline import MorphicPipeline


@pytest.fixture(autouse=True)
def isolated_cache(tmp_path, monkeypatch):
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    monkeypatch.setattr(MorphicPipeline, "_get_cache_dir", lambda self: cache_dir)


@pytest.fixture(autouse=True)
def restore_logging():
    # main() installs a stderr handler and stops propagation, which hides
    # records from caplog in later tests
    logger = logging.getLogger("morphic")
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["song.wav"])

        assert args.fps == 60
        assert args.format == "json"
        assert args.beat is True
        assert args.viscosity == 0.5
        assert args.decay == 0.94

    def test_no_beat(self):
        assert build_parser().parse_args(["song.wav", "--no-beat"]).beat is False


class TestMain:
    def test_missing_input(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.wav")]) == 1
        assert "no such audio file" in capsys.readouterr().err

    def test_writes_default_output(self, temp_audio_file, capsys):
        assert main([str(temp_audio_file), "--fps", "30"]) == 0

        output = temp_audio_file.with_name("test_audio_morphic.json")
        assert output.exists()
        out = capsys.readouterr().out
        assert "Tempo:    120.0 BPM" in out
        assert "Frames:   120 @ 30 fps" in out

    def test_numpy_output(self, temp_audio_file, tmp_path):
        output = tmp_path / "uniforms.npz"

        assert main([str(temp_audio_file), "-q", "--format", "numpy", "-o", str(output), "--fps", "30"]) == 0
        assert np.load(output)["beat"].shape == (120,)

    def test_quiet(self, temp_audio_file, tmp_path, capsys):
        main([str(temp_audio_file), "-q", "-o", str(tmp_path / "m.json"), "--fps", "30"])

        assert capsys.readouterr().out == ""

    def test_summary(self, temp_audio_file, tmp_path, capsys):
        main([str(temp_audio_file), "-q", "--summary", "-o", str(tmp_path / "m.json"), "--fps", "30"])

        out = capsys.readouterr().out
        assert "Manifest Summary" in out
        assert "Frame 60:" in out

    def test_analysis_only(self, temp_audio_file, capsys):
        assert main([str(temp_audio_file), "--analysis-only"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["tempo"] == pytest.approx(120.0)
        assert set(data) == {"tempo", "energy", "spectral_centroid", "rms"}

    def test_invalid_setting(self, temp_audio_file, capsys):
        assert main([str(temp_audio_file), "--intensity", "9"]) == 1
        assert "global_intensity" in capsys.readouterr().err

    def test_undecodable_input(self, tmp_path, capsys):
        bogus = tmp_path / "bogus.wav"
        bogus.write_bytes(b"not audio at all")

        assert main([str(bogus), "-q", "--no-cache"]) == 1
        assert "Error" in capsys.readouterr().err
