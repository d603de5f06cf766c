"""
Asymmetric temporal smoothing module.

Applies a fast-rise / slow-fall exponential smoother to raw spectral
measures so the visuals react immediately to onsets but settle gradually
instead of snapping back.
"""

import math
from dataclasses import dataclass, replace

from morphic.core.spectrum import SpectralFeatures
from morphic.errors import ConfigurationError

REFERENCE_FPS = 60
REFERENCE_ACCUMULATE_RATE = 0.04
REFERENCE_DECAY_RATE = 0.02


def rate_to_ms(rate: float, fps: float = REFERENCE_FPS) -> float:
    """
    Convert a fixed per-frame smoothing rate to a time constant.

    Args:
        rate: Per-frame rate in (0, 1]. A rate of 1.0 is an instant jump.
        fps: Frame rate the rate was tuned at.

    Returns:
        Time constant in milliseconds (0.0 for an instant jump).
    """
    if not 0.0 < rate <= 1.0:
        raise ConfigurationError("Smoothing rate must be in (0, 1]", field="rate", value=rate)
    if rate == 1.0:
        return 0.0
    return -1000.0 / (fps * math.log(1.0 - rate))


def ms_to_rate(ms: float, dt: float) -> float:
    """Per-update rate ``1 - exp(-dt / tau)`` for a time constant in ms."""
    if dt <= 0.0:
        return 0.0
    if ms <= 0.0:
        return 1.0
    return 1.0 - math.exp(-dt * 1000.0 / ms)


@dataclass
class EnvelopeParams:
    """
    Accumulate/decay time constants in milliseconds.

    The defaults reproduce per-frame rates of 0.04 (rise) and 0.02 (fall)
    at 60 fps, and stay visually identical at other frame rates.
    """

    attack_ms: float = rate_to_ms(REFERENCE_ACCUMULATE_RATE)  # ~408ms
    release_ms: float = rate_to_ms(REFERENCE_DECAY_RATE)  # ~825ms

    @classmethod
    def from_rates(
        cls,
        accumulate: float,
        decay: float,
        fps: float = REFERENCE_FPS,
    ) -> "EnvelopeParams":
        """Build params from fixed per-frame rates tuned at ``fps``."""
        return cls(attack_ms=rate_to_ms(accumulate, fps), release_ms=rate_to_ms(decay, fps))

    def validate(self) -> None:
        if self.attack_ms < 0.0 or self.release_ms < 0.0:
            raise ConfigurationError(
                "Envelope time constants must be non-negative",
                field="attack_ms/release_ms",
                value=(self.attack_ms, self.release_ms),
            )
        # A shorter time constant gives the larger rate
        if self.attack_ms >= self.release_ms:
            raise ConfigurationError(
                "Accumulate rate must be faster than decay rate",
                field="attack_ms",
                value=self.attack_ms,
            )

    def accumulate_rate(self, dt: float) -> float:
        return ms_to_rate(self.attack_ms, dt)

    def decay_rate(self, dt: float) -> float:
        return ms_to_rate(self.release_ms, dt)


@dataclass
class SmootherState:
    """Current smoothed value per channel."""

    volume: float = 0.0
    bass: float = 0.0
    mid: float = 0.0
    treble: float = 0.0
    pitch: float = 0.0


class TemporalSmoother:
    """
    Per-channel asymmetric exponential smoother.

    Each update moves ``current`` toward ``target`` by
    ``(target - current) * rate``, using the accumulate rate while rising
    and the slower decay rate while falling.
    """

    def __init__(
        self,
        envelope: EnvelopeParams | None = None,
        fps: int = REFERENCE_FPS,
    ):
        """
        Initialize the smoother.

        Args:
            envelope: Accumulate/decay time constants (default: 0.04/0.02 per frame at 60 fps).
            fps: Nominal frame rate, used when an update has no explicit dt.
        """
        self.envelope = envelope or EnvelopeParams()
        self.envelope.validate()
        self.fps = fps or REFERENCE_FPS
        self._state = SmootherState()

    @property
    def state(self) -> SmootherState:
        """Copy of the current channel values."""
        return replace(self._state)

    def reset(self) -> None:
        """Zero all channels. Only done at session start."""
        self._state = SmootherState()

    def _default_dt(self, dt: float | None) -> float:
        return 1.0 / self.fps if dt is None else max(0.0, dt)

    def smooth(self, current: float, target: float, dt: float | None = None) -> float:
        """
        Advance one channel value toward its target.

        Args:
            current: Present smoothed value.
            target: Raw measurement for this frame.
            dt: Seconds since the previous update (default: one nominal frame).

        Returns:
            The new smoothed value.
        """
        dt = self._default_dt(dt)
        if target > current:
            rate = self.envelope.accumulate_rate(dt)
        else:
            rate = self.envelope.decay_rate(dt)
        return current + (target - current) * rate

    def update(self, features: SpectralFeatures, dt: float | None = None) -> SmootherState:
        """
        Smooth all five channels from one frame's raw features.

        Returns:
            Copy of the updated state.
        """
        s = self._state
        s.volume = self.smooth(s.volume, features.raw_volume, dt)
        s.bass = self.smooth(s.bass, features.raw_bass, dt)
        s.mid = self.smooth(s.mid, features.raw_mid, dt)
        s.treble = self.smooth(s.treble, features.raw_treble, dt)
        s.pitch = self.smooth(s.pitch, features.raw_pitch, dt)
        return self.state

