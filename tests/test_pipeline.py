"""Tests for the MorphicPipeline module."""

import json

import numpy as np
import pytest

from morphic.core.analyzer import AudioFileAnalysis
from morphic.core.integrator import EnvironmentSettings, MorphicSettings, UniformTimeline
from morphic.errors import ConfigurationError, DecodeError
from morphic.pipeline import MorphicPipeline


@pytest.fixture(autouse=True)
def isolated_cache(tmp_path, monkeypatch):
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    monkeypatch.setattr(MorphicPipeline, "_get_cache_dir", lambda self: cache_dir)
    return cache_dir


class TestMorphicPipeline:
    """Tests for the complete pipeline."""

    def test_decode_step(self, temp_audio_file, sample_rate):
        """decode() should return mono samples and the file's rate."""
        y, sr = MorphicPipeline().decode(temp_audio_file)

        assert y.ndim == 1
        assert sr == sample_rate

    def test_analyze_step(self, temp_audio_file):
        """analyze() should return AudioFileAnalysis."""
        pipeline = MorphicPipeline()
        result = pipeline.analyze(*pipeline.decode(temp_audio_file))

        assert isinstance(result, AudioFileAnalysis)

    def test_replay_step(self, click_track):
        """replay() should produce one frame per 1/fps seconds."""
        y, sr = click_track
        pipeline = MorphicPipeline(target_fps=30, viewport=(320, 240))
        timeline = pipeline.replay(y, sr, pipeline.analyze(y, sr))

        assert isinstance(timeline, UniformTimeline)
        assert timeline.n_frames == 120
        assert timeline.duration == pytest.approx(4.0)
        np.testing.assert_allclose(timeline.frame_times[:3], [0.0, 1 / 30, 2 / 30])
        assert timeline.frames[0].resolution == (320, 240)

    def test_replay_time_never_decreases(self, click_track):
        y, sr = click_track
        pipeline = MorphicPipeline(target_fps=30)
        times = pipeline.replay(y, sr, pipeline.analyze(y, sr)).column("time")

        assert np.all(np.diff(times) >= 0.0)
        assert times[-1] > 0.0

    def test_replay_carries_tempo_pulse(self, click_track):
        """Mid-beat frames at 120 BPM carry the full pulse times amplitude."""
        y, sr = click_track
        pipeline = MorphicPipeline(target_fps=60)
        beat = pipeline.replay(y, sr, pipeline.analyze(y, sr)).column("beat")

        # Frame 15 sits at 0.25s, halfway through the first beat
        assert beat[15] == pytest.approx(0.5)
        assert np.all((beat >= 0.0) & (beat <= 0.5 + 1e-9))

    def test_silent_buffer_holds_time(self, sample_rate):
        """A silent file never advances synthetic time."""
        y = np.zeros(sample_rate * 2, dtype=np.float32)
        analysis = AudioFileAnalysis(tempo=120.0, energy=0.0, spectral_centroid=0.0, rms=0.0)
        timeline = MorphicPipeline(target_fps=30).replay(y, sample_rate, analysis)

        assert np.all(timeline.column("time") == 0.0)
        assert np.all(timeline.column("volume") == 0.0)

    def test_viscosity_changes_time(self, click_track):
        y, sr = click_track
        thin = MorphicPipeline(
            target_fps=30,
            settings=MorphicSettings(environment=EnvironmentSettings(viscosity=0.1)),
        )
        thick = MorphicPipeline(
            target_fps=30,
            settings=MorphicSettings(environment=EnvironmentSettings(viscosity=0.9)),
        )
        analysis = thin.analyze(y, sr)

        assert thin.replay(y, sr, analysis).column("time")[-1] > thick.replay(y, sr, analysis).column("time")[-1]

    def test_process_full_pipeline(self, temp_audio_file):
        """process() should run complete pipeline."""
        result = MorphicPipeline(target_fps=30).process(temp_audio_file)

        assert "manifest" in result
        assert result["bpm"] == pytest.approx(120.0)
        assert result["duration"] == pytest.approx(4.0)
        assert result["n_frames"] == 120
        assert result["fps"] == 30

    def test_process_with_json_output(self, temp_audio_file, tmp_path):
        """process() should write JSON when output_path provided."""
        output_path = tmp_path / "output.json"
        result = MorphicPipeline(target_fps=30).process(temp_audio_file, output_path=output_path)

        assert result["output_path"] == str(output_path)
        with open(output_path) as f:
            loaded = json.load(f)
        assert loaded["metadata"]["n_frames"] == 120

    def test_process_with_numpy_output(self, temp_audio_file, tmp_path):
        """process() should write NPZ when format=numpy."""
        output_path = tmp_path / "output.npz"
        MorphicPipeline(target_fps=30).process(temp_audio_file, output_path=output_path, format="numpy")

        data = np.load(output_path)
        assert data["volume"].shape == (120,)
        assert float(data["tempo"]) == pytest.approx(120.0)

    def test_process_to_manifest(self, temp_audio_file):
        """process_to_manifest() should return manifest dict."""
        manifest = MorphicPipeline(target_fps=30).process_to_manifest(temp_audio_file)

        assert "metadata" in manifest
        assert len(manifest["frames"]) == 120

    def test_missing_file(self, tmp_path):
        with pytest.raises(DecodeError):
            MorphicPipeline().process(tmp_path / "missing.wav")

    def test_invalid_settings(self):
        with pytest.raises(ConfigurationError):
            MorphicPipeline(settings=MorphicSettings(environment=EnvironmentSettings(viscosity=5.0)))
