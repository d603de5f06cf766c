"""
Morphic time integration and uniform mapping.

Owns the synthetic animation clock handed to the renderer and maps the
per-frame VoiceState plus visual settings into the final uniform vector.
The clock freezes during silence (the topological lock) so the rendered
form holds its last shape instead of drifting with no audio behind it.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Any

import numpy as np

from morphic.core.beat import BeatSettings
from morphic.core.voice import VoiceState
from morphic.errors import ConfigurationError


def _check_range(name: str, value: float, low: float, high: float | None = None) -> None:
    if value < low or (high is not None and value > high):
        bound = f"[{low}, {high}]" if high is not None else f">= {low}"
        raise ConfigurationError(f"{name} must be {bound}", field=name, value=value)


@dataclass
class EnvironmentSettings:
    """Medium the form moves through."""

    turbulence: float = 0.2  # 0-1
    viscosity: float = 0.5  # 0-1, higher slows synthetic time
    flow: float = 0.1  # >= 0

    def validate(self) -> None:
        _check_range("turbulence", self.turbulence, 0.0, 1.0)
        _check_range("viscosity", self.viscosity, 0.0, 1.0)
        _check_range("flow", self.flow, 0.0)


@dataclass
class VisualSettings:
    """Output styling scalars."""

    color_shift: float = 0.0  # 0-1
    fidelity: float = 1.0  # >= 0
    global_intensity: float = 1.0  # 0.1-3

    def validate(self) -> None:
        _check_range("color_shift", self.color_shift, 0.0, 1.0)
        _check_range("fidelity", self.fidelity, 0.0)
        _check_range("global_intensity", self.global_intensity, 0.1, 3.0)


@dataclass
class MorphicSettings:
    """Complete per-frame configuration supplied by the host."""

    beat: BeatSettings = field(default_factory=BeatSettings)
    environment: EnvironmentSettings = field(default_factory=EnvironmentSettings)
    visual: VisualSettings = field(default_factory=VisualSettings)

    def validate(self) -> None:
        self.beat.validate()
        self.environment.validate()
        self.visual.validate()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MorphicSettings":
        """
        Build settings from a nested dict, ignoring unknown keys.

        Missing sections and fields keep their defaults.
        """
        def build(section_cls, section: dict[str, Any] | None):
            names = {f.name for f in fields(section_cls)}
            return section_cls(**{k: v for k, v in (section or {}).items() if k in names})

        settings = cls(
            beat=build(BeatSettings, data.get("beat")),
            environment=build(EnvironmentSettings, data.get("environment")),
            visual=build(VisualSettings, data.get("visual")),
        )
        settings.validate()
        return settings

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class MorphicClock:
    """
    Synthetic animation clock with a silence lock.

    Advances by ``dt / (viscosity + epsilon)`` on non-silent frames and
    holds its value exactly on silent ones.
    """

    VISCOSITY_EPSILON = 1e-3

    def __init__(self, start: float = 0.0):
        self.time = start
        self._last_now: float | None = None

    @classmethod
    def time_scale(cls, viscosity: float) -> float:
        return 1.0 / (viscosity + cls.VISCOSITY_EPSILON)

    def reset(self, start: float = 0.0) -> None:
        self.time = start
        self._last_now = None

    def advance(self, state: VoiceState, now: float, viscosity: float) -> float:
        """
        Advance the clock for one frame.

        Args:
            state: The VoiceState governing this frame.
            now: Real frame timestamp in seconds.
            viscosity: Environment viscosity in [0, 1].

        Returns:
            The synthetic time after this frame.
        """
        dt = 0.0 if self._last_now is None else max(0.0, now - self._last_now)
        # Track real time even while locked so unlocking does not jump
        self._last_now = now

        if state.silence:
            return self.time

        self.time += dt * self.time_scale(viscosity)
        return self.time


@dataclass(frozen=True)
class UniformFrame:
    """Everything the renderer receives for one frame."""

    time: float
    resolution: tuple[int, int]
    volume: float
    pitch: float
    bass: float
    mid: float
    treble: float
    beat: float
    turbulence: float
    viscosity: float
    flow: float
    color_shift: float
    fidelity: float

    def as_uniforms(self) -> dict[str, Any]:
        """Shader uniform names mapped to values."""
        return {
            "uTime": self.time,
            "uResolution": self.resolution,
            "uVolume": self.volume,
            "uPitch": self.pitch,
            "uBass": self.bass,
            "uMid": self.mid,
            "uTreble": self.treble,
            "uBeat": self.beat,
            "uTurbulence": self.turbulence,
            "uViscosity": self.viscosity,
            "uFlow": self.flow,
            "uColorShift": self.color_shift,
            "uFidelity": self.fidelity,
        }

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["resolution"] = list(self.resolution)
        return data


class UniformMapper:
    """Scales a VoiceState by the visual settings and adds pass-through scalars."""

    def map(
        self,
        state: VoiceState,
        clock_time: float,
        viewport: tuple[int, int],
        settings: MorphicSettings,
    ) -> UniformFrame:
        """
        Build the uniform frame.

        Audio channels are multiplied by ``global_intensity``; the beat pulse
        is additionally multiplied by the beat amplitude.
        """
        gain = settings.visual.global_intensity
        env = settings.environment

        return UniformFrame(
            time=clock_time,
            resolution=(int(viewport[0]), int(viewport[1])),
            volume=state.volume * gain,
            pitch=state.pitch * gain,
            bass=state.bass * gain,
            mid=state.mid * gain,
            treble=state.treble * gain,
            beat=state.beat_intensity * gain * settings.beat.amplitude,
            turbulence=env.turbulence,
            viscosity=env.viscosity,
            flow=env.flow,
            color_shift=settings.visual.color_shift,
            fidelity=settings.visual.fidelity,
        )


@dataclass
class UniformTimeline:
    """Uniform frames rendered offline for a whole file at a fixed rate."""

    frames: list[UniformFrame]
    frame_times: np.ndarray
    fps: int
    duration: float

    @property
    def n_frames(self) -> int:
        return len(self.frames)

    def column(self, name: str) -> np.ndarray:
        """One scalar uniform across all frames, e.g. ``column("beat")``."""
        return np.array([getattr(f, name) for f in self.frames], dtype=np.float64)
