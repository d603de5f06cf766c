"""
Frequency snapshot providers.

A provider hands the VoiceEngine one normalized magnitude snapshot per
frame. Device capture lives outside this package; the providers here
cover scripted snapshots and playback of decoded PCM buffers.
"""

import logging
import time
from typing import Callable, Iterable, Protocol, runtime_checkable

import numpy as np
from scipy import signal as scipy_signal

from morphic.errors import DeviceUnavailable, ProviderError

logger = logging.getLogger(__name__)


@runtime_checkable
class SnapshotProvider(Protocol):
    """Interface the VoiceEngine reads from. N must stay fixed per session."""

    n_bins: int

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def read(self) -> np.ndarray: ...


class StaticSnapshotProvider:
    """
    Serves a scripted sequence of snapshots.

    Each read() returns the next snapshot; at the end the sequence either
    loops or keeps returning the last one.
    """

    def __init__(self, snapshots: Iterable, loop: bool = False):
        frames = [np.asarray(s, dtype=np.float64) for s in snapshots]
        if not frames:
            raise ValueError("StaticSnapshotProvider needs at least one snapshot")
        self._frames = frames
        self.loop = loop
        self.n_bins = frames[0].size
        self._index = 0
        self._running = False

    @classmethod
    def constant(cls, snapshot) -> "StaticSnapshotProvider":
        return cls([snapshot])

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        self._index = 0
        self._running = True

    def stop(self) -> None:
        self._running = False

    def read(self) -> np.ndarray:
        if not self._running:
            raise ProviderError("Provider is not started")

        frame = self._frames[self._index]
        if self._index + 1 < len(self._frames):
            self._index += 1
        elif self.loop:
            self._index = 0
        return frame


class BufferSnapshotProvider:
    """
    Analyser-style snapshots from a decoded mono buffer under playback.

    Each read() windows the ``fft_size`` samples ending at the playback
    position (Blackman window), averages the magnitudes with the previous
    read by ``smoothing_time_constant``, converts to dB and maps
    ``[min_db, max_db]`` onto [0, 1]. This matches the byte frequency data
    of a browser AnalyserNode with default settings.
    """

    def __init__(
        self,
        samples: np.ndarray,
        sample_rate: int,
        fft_size: int = 1024,
        smoothing_time_constant: float = 0.85,
        min_db: float = -100.0,
        max_db: float = -30.0,
        quantize: bool = True,
        realtime: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the provider.

        Args:
            samples: Decoded mono samples.
            sample_rate: Sample rate in Hz.
            fft_size: Analysis window length; the snapshot has fft_size // 2 bins.
            smoothing_time_constant: Weight of the previous magnitudes, in [0, 1).
            min_db: Level mapped to 0.0.
            max_db: Level mapped to 1.0.
            quantize: Round values down to 1/255 steps like byte frequency data.
            realtime: Advance the playback position with the clock; when False
                the position only moves through seek().
            clock: Monotonic time source in seconds.
        """
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError("fft_size must be a power of two >= 32")
        if not 0.0 <= smoothing_time_constant < 1.0:
            raise ValueError("smoothing_time_constant must be in [0, 1)")
        if max_db <= min_db:
            raise ValueError("max_db must be greater than min_db")

        self.samples = np.asarray(samples, dtype=np.float64).reshape(-1)
        self.sample_rate = sample_rate
        self.fft_size = fft_size
        self.n_bins = fft_size // 2
        self.smoothing_time_constant = smoothing_time_constant
        self.min_db = min_db
        self.max_db = max_db
        self.quantize = quantize
        self.realtime = realtime
        self.clock = clock

        self._window = scipy_signal.get_window("blackman", fft_size)
        self._previous = np.zeros(self.n_bins)
        self._offset_s = 0.0
        self._started_at = 0.0
        self._running = False

    @property
    def duration(self) -> float:
        return self.samples.size / self.sample_rate if self.sample_rate else 0.0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def position(self) -> float:
        """Playback position in seconds, capped at the buffer end."""
        pos = self._offset_s
        if self._running and self.realtime:
            pos += self.clock() - self._started_at
        return min(max(pos, 0.0), self.duration)

    @property
    def finished(self) -> bool:
        return self.position >= self.duration

    def start(self) -> None:
        if self.samples.size == 0 or not self.sample_rate or self.sample_rate <= 0:
            raise DeviceUnavailable("Buffer has no playable audio")
        self._previous = np.zeros(self.n_bins)
        self._started_at = self.clock()
        self._running = True
        logger.debug("Buffer playback started at %.3fs of %.3fs", self._offset_s, self.duration)

    def stop(self) -> None:
        self._offset_s = self.position
        self._running = False

    def seek(self, position_s: float) -> None:
        self._offset_s = max(0.0, position_s)
        self._started_at = self.clock()

    def _frame_at(self, position_s: float) -> np.ndarray:
        end = int(round(position_s * self.sample_rate))
        start = end - self.fft_size
        frame = np.zeros(self.fft_size)
        src = self.samples[max(start, 0):end]
        if src.size:
            frame[self.fft_size - src.size:] = src
        return frame

    def read(self) -> np.ndarray:
        if not self._running:
            raise ProviderError("Provider is not started")

        frame = self._frame_at(self.position)
        spectrum = np.abs(np.fft.rfft(frame * self._window))[: self.n_bins] / self.fft_size

        tau = self.smoothing_time_constant
        smoothed = tau * self._previous + (1.0 - tau) * spectrum
        self._previous = smoothed

        with np.errstate(divide="ignore"):
            db = 20.0 * np.log10(smoothed)
        scaled = np.clip((db - self.min_db) / (self.max_db - self.min_db), 0.0, 1.0)

        if self.quantize:
            scaled = np.floor(scaled * 255.0) / 255.0
        return scaled
