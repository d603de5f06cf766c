"""
Voice state aggregation.

Composes the spectral analyzer, temporal smoother and beat detector into
one immutable VoiceState per frame, the record consumed by the uniform
mapper and synthesized by the file and remote sources.
"""

import logging
import threading
import time
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable

import numpy as np

from morphic.core.beat import BeatDetector, BeatSettings
from morphic.core.polisher import TemporalSmoother
from morphic.core.spectrum import SpectralAnalyzer, SpectralFeatures
from morphic.errors import (
    DeviceUnavailable,
    InvalidSnapshot,
    PermissionDenied,
    ProviderError,
)

logger = logging.getLogger(__name__)

SILENCE_EPSILON = 0.005


def _unit(value: float) -> float:
    return float(np.clip(value, 0.0, 1.0))


@dataclass(frozen=True)
class VoiceState:
    """Per-frame audio drive. Numeric fields are always in [0.0, 1.0]."""

    volume: float = 0.0
    pitch: float = 0.0
    bass: float = 0.0
    mid: float = 0.0
    treble: float = 0.0
    silence: bool = True
    beat_intensity: float = 0.0

    @classmethod
    def silent(cls) -> "VoiceState":
        """Rest state used when no audio source is attached."""
        return cls()

    def clipped(self) -> "VoiceState":
        """Copy with every numeric field clamped to [0, 1]."""
        return replace(
            self,
            volume=_unit(self.volume),
            pitch=_unit(self.pitch),
            bass=_unit(self.bass),
            mid=_unit(self.mid),
            treble=_unit(self.treble),
            beat_intensity=_unit(self.beat_intensity),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class VoiceEngine:
    """
    Per-session aggregator of the real-time analysis chain.

    Reads one snapshot from the attached provider each frame and publishes
    a VoiceState. Without a provider it returns the silent rest state; a bad
    snapshot keeps the previous state so the renderer does not glitch.
    """

    def __init__(
        self,
        analyzer: SpectralAnalyzer | None = None,
        smoother: TemporalSmoother | None = None,
        detector: BeatDetector | None = None,
        persist_beat_state: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the engine.

        Args:
            analyzer: Spectral analyzer (default: SpectralAnalyzer()).
            smoother: Temporal smoother (default: 0.04/0.02 per frame at 60 fps).
            detector: Beat detector (default: 200ms refractory period).
            persist_beat_state: Keep beat detector memory across provider swaps.
            clock: Monotonic time source in seconds.
        """
        self.analyzer = analyzer or SpectralAnalyzer()
        self.smoother = smoother or TemporalSmoother()
        self.detector = detector or BeatDetector(clock=clock)
        self.persist_beat_state = persist_beat_state
        self.clock = clock

        self._lock = threading.RLock()
        self._provider = None
        self._last_state = VoiceState.silent()
        self._last_frame_time: float | None = None
        self._degraded = False

    @property
    def provider(self):
        return self._provider

    @property
    def attached(self) -> bool:
        return self._provider is not None

    @property
    def last_state(self) -> VoiceState:
        return self._last_state

    def attach(self, provider) -> None:
        """
        Stop any current provider and start ``provider`` in its place.

        Raises:
            DeviceUnavailable: The source could not be opened.
            PermissionDenied: Access to the source was refused.
        """
        with self._lock:
            self._detach_locked()
            try:
                provider.start()
            except ProviderError:
                raise
            except PermissionError as e:
                raise PermissionDenied("Access to audio source denied", details=str(e)) from e
            except (OSError, RuntimeError) as e:
                raise DeviceUnavailable("Audio source unavailable", details=str(e)) from e

            self._provider = provider
            self._last_frame_time = None
            if not self.persist_beat_state:
                self.detector.reset()
            logger.info("Attached snapshot provider %s", type(provider).__name__)

    def detach(self) -> None:
        """Stop and release the current provider, if any."""
        with self._lock:
            self._detach_locked()

    def _detach_locked(self) -> None:
        provider = self._provider
        if provider is None:
            return
        self._provider = None
        try:
            provider.stop()
        except (OSError, RuntimeError, ProviderError) as e:
            logger.warning("Provider %s failed to stop cleanly: %s", type(provider).__name__, e)
        logger.info("Detached snapshot provider %s", type(provider).__name__)

    def reset(self) -> None:
        """Clear smoothing and beat memory, as at session start."""
        with self._lock:
            self.smoother.reset()
            self.detector.reset()
            self._last_state = VoiceState.silent()
            self._last_frame_time = None

    def _note_recovered(self) -> None:
        if self._degraded:
            logger.info("Snapshot provider recovered")
            self._degraded = False

    def _note_degraded(self, error: Exception) -> None:
        if not self._degraded:
            logger.warning("Skipping frame, keeping last voice state: %s", error)
            self._degraded = True
        else:
            logger.debug("Still skipping frames: %s", error)

    def compose(
        self,
        features: SpectralFeatures,
        settings: BeatSettings,
        now: float,
        dt: float | None = None,
    ) -> VoiceState:
        """
        Build the VoiceState for one frame of raw features.

        Args:
            features: Raw features from the spectral analyzer.
            settings: Beat settings in effect for this frame.
            now: Frame timestamp in seconds.
            dt: Seconds since the previous frame (default: one nominal frame).
        """
        # Beat first: it is the step that can reject the settings
        beat = self.detector.update(features.raw_bass, settings, now)
        smoothed = self.smoother.update(features, dt)

        state = VoiceState(
            volume=smoothed.volume,
            pitch=smoothed.pitch,
            bass=smoothed.bass,
            mid=smoothed.mid,
            treble=smoothed.treble,
            silence=features.raw_volume < SILENCE_EPSILON,
            beat_intensity=beat,
        ).clipped()
        self._last_state = state
        return state

    def read_state(self, settings: BeatSettings, now: float | None = None) -> VoiceState:
        """
        Produce this frame's VoiceState from the attached provider.

        Args:
            settings: Beat settings in effect for this frame.
            now: Frame timestamp in seconds (default: the engine clock).

        Returns:
            The new state, the previous state if the snapshot was unusable,
            or the silent state if no provider is attached.

        Raises:
            ConfigurationError: If ``settings`` is out of range. No engine
                state is touched in that case.
        """
        with self._lock:
            provider = self._provider
            if provider is None:
                return VoiceState.silent()

            settings.validate()
            now = self.clock() if now is None else now
            try:
                features = self.analyzer.analyze(provider.read())
            except (InvalidSnapshot, ProviderError) as e:
                self._note_degraded(e)
                return self._last_state
            self._note_recovered()

            dt = None if self._last_frame_time is None else now - self._last_frame_time
            self._last_frame_time = now
            return self.compose(features, settings, now, dt)
