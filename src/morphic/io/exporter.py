"""
Manifest serialization module.

Exports offline-rendered uniform timelines to JSON or NumPy archives
aligned to the target FPS, for renderers that replay a file session.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import numpy as np

from morphic.core.analyzer import AudioFileAnalysis
from morphic.core.integrator import UniformFrame, UniformTimeline

SCALAR_UNIFORMS = (
    "time",
    "volume",
    "pitch",
    "bass",
    "mid",
    "treble",
    "beat",
    "turbulence",
    "viscosity",
    "flow",
    "color_shift",
    "fidelity",
)


@dataclass
class ManifestMetadata:
    """Metadata header for the uniform manifest."""

    bpm: float
    duration: float
    fps: int
    n_frames: int
    resolution: tuple[int, int]
    schema_version: str = "1.0"


class ManifestExporter:
    """
    Exports uniform timelines to manifest format.

    Each frame carries its real timestamp, the synthetic (locked) time and
    every scalar uniform.
    """

    def __init__(self, precision: int = 4):
        """
        Initialize the exporter.

        Args:
            precision: Decimal places for floating point values.
        """
        self.precision = precision

    def _round(self, value: float) -> float:
        """Round to configured precision."""
        return round(float(value), self.precision)

    def _build_frame(self, index: int, real_time: float, frame: UniformFrame) -> dict[str, Any]:
        data: dict[str, Any] = {
            "frame_index": index,
            "real_time": self._round(real_time),
        }
        for name in SCALAR_UNIFORMS:
            data[name] = self._round(getattr(frame, name))
        return data

    def build_manifest(
        self,
        timeline: UniformTimeline,
        analysis: AudioFileAnalysis,
    ) -> dict[str, Any]:
        """
        Build the complete manifest dictionary.

        Args:
            timeline: Rendered uniform frames.
            analysis: Offline analysis of the source file.

        Returns:
            Complete manifest dictionary ready for serialization.
        """
        resolution = timeline.frames[0].resolution if timeline.frames else (0, 0)
        metadata = ManifestMetadata(
            bpm=self._round(analysis.tempo),
            duration=self._round(timeline.duration),
            fps=timeline.fps,
            n_frames=timeline.n_frames,
            resolution=resolution,
        )

        frames = [
            self._build_frame(i, timeline.frame_times[i], frame)
            for i, frame in enumerate(timeline.frames)
        ]

        return {
            "metadata": {
                "bpm": metadata.bpm,
                "duration": metadata.duration,
                "fps": metadata.fps,
                "n_frames": metadata.n_frames,
                "resolution": list(metadata.resolution),
                "schema_version": metadata.schema_version,
            },
            "analysis": {k: self._round(v) for k, v in analysis.to_dict().items()},
            "frames": frames,
        }

    def export_json(
        self,
        timeline: UniformTimeline,
        analysis: AudioFileAnalysis,
        output_path: Union[str, Path],
        indent: int = 2,
    ) -> Path:
        """
        Export manifest to JSON file.

        Returns:
            Path to written file.
        """
        manifest = self.build_manifest(timeline, analysis)
        output_path = Path(output_path)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=indent)

        return output_path

    def export_numpy(
        self,
        timeline: UniformTimeline,
        analysis: AudioFileAnalysis,
        output_path: Union[str, Path],
    ) -> Path:
        """
        Export uniforms as a NumPy .npz archive, one array per uniform.

        Returns:
            Path to written file.
        """
        output_path = Path(output_path)
        columns = {name: timeline.column(name) for name in SCALAR_UNIFORMS}

        np.savez_compressed(
            output_path,
            frame_times=timeline.frame_times,
            fps=timeline.fps,
            n_frames=timeline.n_frames,
            tempo=analysis.tempo,
            energy=analysis.energy,
            spectral_centroid=analysis.spectral_centroid,
            rms=analysis.rms,
            **columns,
        )

        return output_path

    def to_dict(
        self,
        timeline: UniformTimeline,
        analysis: AudioFileAnalysis,
    ) -> dict[str, Any]:
        """Return manifest as dictionary (for in-memory use)."""
        return self.build_manifest(timeline, analysis)
