"""
Offline analysis of complete audio buffers.

Estimates a tempo, a loudness proxy and a brightness proxy for a whole
decoded file. Runs once per file, independent of the real-time chain.
"""

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Union

import librosa
import numpy as np

from morphic.errors import DecodeError, EmptyBuffer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioFileAnalysis:
    """
    Whole-file analysis result.

    ``spectral_centroid`` is a zero-crossing brightness proxy in [0, 1],
    not a true spectral centroid; ``brightness_proxy`` is the honest alias.
    """

    tempo: float
    energy: float
    spectral_centroid: float
    rms: float

    @property
    def brightness_proxy(self) -> float:
        return self.spectral_centroid

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class FileAnalyzer:
    """
    Tempo, energy and brightness estimator for decoded mono buffers.

    The analyzer holds no state between calls, so one instance can be
    shared by worker threads.
    """

    # Empirical scale mapping typical program RMS into [0, 1]
    ENERGY_SCALE = 5.0
    PEAK_RMS_RATIO = 1.5
    # Plausible beat periods, 40-200 BPM
    MIN_INTERVAL_S = 0.3
    MAX_INTERVAL_S = 1.5
    FOLD_LOW_BPM = 70.0
    FOLD_HIGH_BPM = 180.0
    DEFAULT_TEMPO = 120.0
    CROSSING_SCALE = 10.0

    def __init__(self, window_size: int = 1024):
        """
        Initialize the analyzer.

        Args:
            window_size: Samples per peak-picking window.
        """
        self.window_size = window_size

    def _prepare(self, samples, sample_rate: int) -> np.ndarray:
        if sample_rate is None or sample_rate <= 0:
            raise DecodeError(f"Invalid sample rate: {sample_rate}")

        y = np.asarray(samples, dtype=np.float64)
        # (channels, samples) as returned by librosa; use the first channel
        if y.ndim == 2:
            y = y[0]
        elif y.ndim != 1:
            raise DecodeError(f"Expected a 1-D or 2-D buffer, got shape {y.shape}")

        if y.size == 0:
            raise EmptyBuffer("Decoded buffer has no samples")
        if not np.all(np.isfinite(y)):
            raise DecodeError("Decoded buffer contains non-finite samples")
        return y

    def compute_rms(self, y: np.ndarray) -> float:
        return float(np.sqrt(np.mean(y * y)))

    def compute_energy(self, rms: float) -> float:
        return min(1.0, rms * self.ENERGY_SCALE)

    def find_peaks(self, y: np.ndarray, sample_rate: int, rms: float) -> np.ndarray:
        """
        Return start times (seconds) of windows whose peak exceeds 1.5x RMS.

        Windows start at 0 and step by ``window_size``; the last window may
        be shorter.
        """
        n_windows = int(np.ceil(y.size / self.window_size))
        padded = np.zeros(n_windows * self.window_size, dtype=np.float64)
        padded[: y.size] = np.abs(y)
        window_max = padded.reshape(n_windows, self.window_size).max(axis=1)

        starts = np.arange(n_windows) * self.window_size
        return starts[window_max > rms * self.PEAK_RMS_RATIO] / sample_rate

    def fold_tempo(self, tempo: float) -> float:
        """Fold octave errors into the 70-180 BPM range."""
        while tempo < self.FOLD_LOW_BPM:
            tempo *= 2.0
        while tempo > self.FOLD_HIGH_BPM:
            tempo /= 2.0
        return tempo

    def estimate_tempo(self, peak_times: np.ndarray) -> float:
        """
        Estimate BPM from peak times.

        Falls back to 120 BPM with fewer than two peaks or no interval
        inside the plausible beat range.
        """
        if len(peak_times) < 2:
            return self.DEFAULT_TEMPO

        intervals = np.diff(peak_times)
        # Both ends exclusive: a period of exactly 0.3s or 1.5s is rejected
        intervals = intervals[(intervals > self.MIN_INTERVAL_S) & (intervals < self.MAX_INTERVAL_S)]
        if intervals.size == 0:
            return self.DEFAULT_TEMPO

        return self.fold_tempo(60.0 / float(np.mean(intervals)))

    def count_zero_crossings(self, y: np.ndarray) -> int:
        prev, cur = y[:-1], y[1:]
        rising = (cur > 0) & (prev <= 0)
        falling = (cur < 0) & (prev >= 0)
        return int(np.count_nonzero(rising | falling))

    def analyze(self, samples, sample_rate: int) -> AudioFileAnalysis:
        """
        Analyze a complete decoded buffer.

        Args:
            samples: Mono samples (or channels x samples; channel 0 is used).
            sample_rate: Sample rate in Hz.

        Returns:
            AudioFileAnalysis for the buffer.

        Raises:
            EmptyBuffer: If the buffer has no samples.
            DecodeError: If the buffer or sample rate is unusable.
        """
        y = self._prepare(samples, sample_rate)

        rms = self.compute_rms(y)
        peaks = self.find_peaks(y, sample_rate, rms)
        tempo = self.estimate_tempo(peaks)
        crossings = self.count_zero_crossings(y)

        result = AudioFileAnalysis(
            tempo=tempo,
            energy=self.compute_energy(rms),
            spectral_centroid=min(1.0, crossings / y.size * self.CROSSING_SCALE),
            rms=rms,
        )
        logger.debug(
            "Analyzed %d samples: %.1f BPM, energy %.3f, %d peaks",
            y.size,
            result.tempo,
            result.energy,
            len(peaks),
        )
        return result

    def load_audio(
        self,
        audio_path: Union[str, Path],
        sr: int | None = None,
    ) -> tuple[np.ndarray, int]:
        """
        Decode an audio file to mono.

        Args:
            audio_path: Path to audio file (wav, mp3, flac).
            sr: Target sample rate. None preserves the original.

        Raises:
            DecodeError: If the file is missing or cannot be decoded.
        """
        path = Path(audio_path)
        if not path.exists():
            raise DecodeError("Audio file not found", file_path=str(path))
        try:
            y, sr_out = librosa.load(path, sr=sr, mono=True)
        except Exception as e:
            raise DecodeError(f"Could not decode audio: {e}", file_path=str(path)) from e
        return y, int(sr_out)

    def analyze_file(self, audio_path: Union[str, Path], sr: int | None = None) -> AudioFileAnalysis:
        """Decode a file and analyze it in one step."""
        y, sr_out = self.load_audio(audio_path, sr=sr)
        return self.analyze(y, sr_out)
