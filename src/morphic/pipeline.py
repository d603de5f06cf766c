"""
Offline file-session pipeline.

Replays a whole audio file through the real-time chain at a fixed frame
rate and collects the uniform frames a renderer would have received,
so file sessions can be rendered or inspected without a live loop.
"""

import hashlib
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Union

import numpy as np

from morphic.core.analyzer import AudioFileAnalysis, FileAnalyzer
from morphic.core.integrator import MorphicSettings, UniformTimeline
from morphic.core.polisher import EnvelopeParams, TemporalSmoother
from morphic.core.voice import VoiceEngine
from morphic.io.exporter import ManifestExporter
from morphic.providers import BufferSnapshotProvider
from morphic.session import MorphicSession

logger = logging.getLogger(__name__)


class MorphicPipeline:
    """
    Audio-file-to-manifest pipeline.

    Combines decoding, offline analysis, frame-by-frame replay through a
    MorphicSession and export into a single interface.
    """

    # Bump when replay, smoothing or mapping changes so stale cached
    # manifests stop matching
    ANALYSIS_VERSION = "1.0"

    def __init__(
        self,
        target_fps: int = 60,
        sample_rate: int | None = None,
        settings: MorphicSettings | None = None,
        envelope: EnvelopeParams | None = None,
        viewport: tuple[int, int] = (1920, 1080),
    ):
        """
        Initialize the pipeline.

        Args:
            target_fps: Frames per second of the rendered timeline.
            sample_rate: Decode sample rate (None keeps the file's rate).
            settings: Beat, environment and visual settings.
            envelope: Smoother time constants.
            viewport: Renderer size recorded in every frame.
        """
        self.target_fps = target_fps or 60
        self.sample_rate = sample_rate
        self.settings = settings or MorphicSettings()
        self.settings.validate()
        self.envelope = envelope or EnvelopeParams()
        self.viewport = viewport

        self.analyzer = FileAnalyzer()
        self.exporter = ManifestExporter()

    # ---------- Cache ----------

    def _get_cache_dir(self) -> Path:
        """Directory holding cached JSON manifests."""
        path = Path.home() / ".cache" / "morphic" / "manifests"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _cache_key(self, audio_path: Path) -> str:
        """Content digest of the file combined with a digest of every replay option."""
        content = hashlib.sha256()
        with open(audio_path, "rb") as f:
            while chunk := f.read(65536):
                content.update(chunk)

        options = json.dumps(
            {
                "version": self.ANALYSIS_VERSION,
                "fps": self.target_fps,
                "sr": self.sample_rate,
                "settings": self.settings.to_dict(),
                "envelope": [self.envelope.attack_ms, self.envelope.release_ms],
                "viewport": list(self.viewport),
            },
            sort_keys=True,
        )
        return f"{content.hexdigest()}_{hashlib.md5(options.encode('utf-8')).hexdigest()}"

    def _cache_file(self, audio_path: Path) -> Path:
        return self._get_cache_dir() / f"manifest_{self._cache_key(audio_path)}.json"

    def _load_cached(self, audio_path: Path) -> dict[str, Any] | None:
        try:
            cache_file = self._cache_file(audio_path)
            if not cache_file.exists():
                return None
            manifest = json.loads(cache_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable manifest cache: %s", e)
            return None
        logger.info("Manifest cache hit: %s", cache_file)
        return manifest

    def _save_cached(self, audio_path: Path, manifest: dict[str, Any]) -> None:
        try:
            self._cache_file(audio_path).write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write manifest cache: %s", e)

    def clear_cache(self):
        """Delete every cached manifest."""
        path = self._get_cache_dir()
        if path.exists():
            shutil.rmtree(path)
            path.mkdir(parents=True, exist_ok=True)

    # ---------- Phases ----------

    def decode(self, audio_path: Union[str, Path]) -> tuple[np.ndarray, int]:
        """
        Phase A: Decode the file to mono samples.

        Raises:
            DecodeError: The file is missing or undecodable.
        """
        return self.analyzer.load_audio(audio_path, sr=self.sample_rate)

    def analyze(self, y: np.ndarray, sr: int) -> AudioFileAnalysis:
        """Phase B: Whole-file tempo, energy and brightness."""
        return self.analyzer.analyze(y, sr)

    def replay(self, y: np.ndarray, sr: int, analysis: AudioFileAnalysis) -> UniformTimeline:
        """
        Phase C: Step the buffer through a fresh session frame by frame.

        Args:
            y: Mono samples.
            sr: Sample rate.
            analysis: Offline analysis of the same buffer.

        Returns:
            UniformTimeline with one frame per 1/target_fps seconds.
        """
        duration = len(y) / sr
        n_frames = max(1, int(duration * self.target_fps))
        frame_times = np.arange(n_frames) / self.target_fps

        engine = VoiceEngine(smoother=TemporalSmoother(envelope=self.envelope, fps=self.target_fps))
        session = MorphicSession(settings=self.settings, engine=engine, viewport=self.viewport)
        provider = BufferSnapshotProvider(y, sr, realtime=False)
        session.attach_file(provider, analysis)

        frames = []
        for t in frame_times:
            provider.seek(float(t))
            frames.append(session.frame(now=float(t)))
        session.close()

        return UniformTimeline(
            frames=frames,
            frame_times=frame_times,
            fps=self.target_fps,
            duration=duration,
        )

    def export(
        self,
        timeline: UniformTimeline,
        analysis: AudioFileAnalysis,
        output_path: Union[str, Path],
        format: str = "json",
    ) -> Path:
        """
        Phase D: Write the timeline as a JSON manifest or NumPy archive.

        Args:
            format: "json" or "numpy".
        """
        if format == "numpy":
            return self.exporter.export_numpy(timeline, analysis, output_path)
        return self.exporter.export_json(timeline, analysis, output_path)

    # ---------- Entry points ----------

    def _summarize(self, manifest: dict[str, Any]) -> dict[str, Any]:
        meta = manifest.get("metadata", {})
        return {
            "manifest": manifest,
            "bpm": meta.get("bpm", 0.0),
            "duration": meta.get("duration", 0.0),
            "n_frames": meta.get("n_frames", 0),
            "fps": self.target_fps,
        }

    def process(
        self,
        audio_path: Union[str, Path],
        output_path: Union[str, Path] | None = None,
        format: str = "json",
        use_cache: bool = True,
    ) -> dict[str, Any]:
        """
        Decode, analyze, replay and export one file.

        A cached manifest short-circuits the work unless NumPy output is
        requested, since the cache only holds JSON.

        Args:
            audio_path: Input audio file.
            output_path: Where to write the manifest; None skips writing.
            format: "json" or "numpy".
            use_cache: Read and write the manifest cache.

        Returns:
            Dict with the manifest plus bpm, duration, n_frames, fps and,
            when written, output_path.
        """
        audio_path = Path(audio_path)

        if use_cache and format == "json":
            cached = self._load_cached(audio_path)
            if cached is not None:
                result = self._summarize(cached)
                if output_path:
                    Path(output_path).write_text(json.dumps(cached, indent=2), encoding="utf-8")
                    result["output_path"] = str(output_path)
                return result

        y, sr = self.decode(audio_path)
        analysis = self.analyze(y, sr)
        timeline = self.replay(y, sr, analysis)
        manifest = self.exporter.to_dict(timeline, analysis)
        logger.info(
            "Replayed %s: %d frames at %d fps, %.1f BPM",
            audio_path.name,
            timeline.n_frames,
            self.target_fps,
            analysis.tempo,
        )

        if use_cache:
            self._save_cached(audio_path, manifest)

        result = self._summarize(manifest)
        result["bpm"] = analysis.tempo
        result["duration"] = timeline.duration

        if output_path:
            result["output_path"] = str(self.export(timeline, analysis, output_path, format))

        return result

    def process_to_manifest(self, audio_path: Union[str, Path]) -> dict[str, Any]:
        """Process audio and return the manifest dictionary directly."""
        return self.process(audio_path)["manifest"]
