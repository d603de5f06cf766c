"""
Bass-onset beat detection.

Fires a pulse when the raw bass energy jumps by more than a
sensitivity-scaled threshold, then lets the pulse decay every frame.
"""

import logging
import math
import time
from dataclasses import dataclass, replace
from typing import Callable

from morphic.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class BeatSettings:
    """
    Beat detection options.

    enabled: Gates detection; when off the pulse is forced to 0.
    amplitude: Output multiplier for the pulse, applied by the uniform mapper.
    sensitivity: Divides the onset threshold, so higher means easier triggering.
    decay: Per-frame multiplicative decay of the pulse, in [0, 1].
    """

    enabled: bool = False
    amplitude: float = 0.5
    sensitivity: float = 1.0
    decay: float = 0.94

    def validate(self) -> None:
        if self.sensitivity <= 0.0:
            raise ConfigurationError("sensitivity must be positive", field="sensitivity", value=self.sensitivity)
        if not 0.0 <= self.decay <= 1.0:
            raise ConfigurationError("decay must be in [0, 1]", field="decay", value=self.decay)
        if self.amplitude < 0.0:
            raise ConfigurationError("amplitude must be non-negative", field="amplitude", value=self.amplitude)


@dataclass
class BeatDetectorState:
    """Detector memory carried between frames."""

    last_bass_energy: float = 0.0
    last_onset_timestamp: float = -math.inf
    current_intensity: float = 0.0


class BeatDetector:
    """
    Stateful onset detector over the raw bass band.

    An onset fires when ``raw_bass - last_bass_energy > BASE_THRESHOLD / sensitivity``
    and more than ``refractory_s`` has passed since the last onset. With the
    default base threshold, sensitivity 1.0 needs a jump above 0.4 and
    sensitivity 2.0 only needs a jump above 0.2.
    """

    BASE_THRESHOLD = 0.4
    REFRACTORY_S = 0.2

    def __init__(
        self,
        refractory_s: float = REFRACTORY_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the detector.

        Args:
            refractory_s: Minimum seconds between two onsets.
            clock: Monotonic time source in seconds, used when update() gets no ``now``.
        """
        self.refractory_s = refractory_s
        self.clock = clock
        self._state = BeatDetectorState()

    @property
    def state(self) -> BeatDetectorState:
        return replace(self._state)

    @property
    def intensity(self) -> float:
        return self._state.current_intensity

    def reset(self) -> None:
        self._state = BeatDetectorState()

    def threshold(self, settings: BeatSettings) -> float:
        """Energy jump required to trigger at the given sensitivity."""
        return self.BASE_THRESHOLD / settings.sensitivity

    def update(
        self,
        raw_bass: float,
        settings: BeatSettings,
        now: float | None = None,
    ) -> float:
        """
        Run one detection step.

        Args:
            raw_bass: Unsmoothed bass-band energy for this frame.
            settings: Current beat settings.
            now: Frame timestamp in seconds (default: the detector clock).

        Returns:
            The pulse intensity for this frame.
        """
        s = self._state
        if not settings.enabled:
            s.current_intensity = 0.0
            s.last_bass_energy = raw_bass
            return 0.0

        now = self.clock() if now is None else now
        energy_diff = raw_bass - s.last_bass_energy

        if energy_diff > self.threshold(settings) and now - s.last_onset_timestamp > self.refractory_s:
            s.current_intensity = 1.0
            s.last_onset_timestamp = now
            logger.debug("Onset at %.3fs (bass jump %.3f)", now, energy_diff)

        # Decay runs every frame, after any trigger
        s.current_intensity *= settings.decay
        s.last_bass_energy = raw_bass
        return s.current_intensity
