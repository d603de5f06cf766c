"""
Per-frame spectral feature extraction.

Turns one frequency-magnitude snapshot into raw (unsmoothed) band energies
and a peak-bin pitch estimate. Bands are split by bin position, not by
absolute frequency.
"""

from dataclasses import dataclass

import numpy as np

from morphic.errors import InvalidSnapshot


@dataclass(frozen=True)
class SpectralFeatures:
    """Raw energy measures for a single snapshot, all in [0.0, 1.0]."""

    raw_volume: float
    raw_bass: float
    raw_mid: float
    raw_treble: float
    raw_pitch: float
    peak_bin_index: int
    n_bins: int


class SpectralAnalyzer:
    """
    Stateless band-energy extractor.

    Bass covers the first 10% of bins, mid the next 30% (10%-40%),
    and treble the remainder.
    """

    BASS_END = 0.1
    MID_END = 0.4

    def band_edges(self, n_bins: int) -> tuple[int, int]:
        """
        Return the (bass_end, mid_end) bin indices for a snapshot length.

        Args:
            n_bins: Number of bins in the snapshot.

        Returns:
            Exclusive end indices of the bass and mid bands.
        """
        return int(np.floor(n_bins * self.BASS_END)), int(np.floor(n_bins * self.MID_END))

    def validate(self, snapshot) -> np.ndarray:
        """Coerce a snapshot to a clipped 1-D float array or raise InvalidSnapshot."""
        try:
            values = np.asarray(snapshot, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidSnapshot("Snapshot is not numeric", details=str(e)) from e

        if values.ndim != 1:
            raise InvalidSnapshot("Snapshot must be one-dimensional", details={"shape": values.shape})
        if values.size == 0:
            raise InvalidSnapshot("Snapshot is empty")
        if not np.all(np.isfinite(values)):
            raise InvalidSnapshot("Snapshot contains non-finite values")

        return np.clip(values, 0.0, 1.0)

    @staticmethod
    def _band_mean(values: np.ndarray) -> float:
        # Very short snapshots can leave a band with no bins
        if values.size == 0:
            return 0.0
        return float(np.mean(values))

    def analyze(self, snapshot) -> SpectralFeatures:
        """
        Extract raw features from one snapshot.

        Args:
            snapshot: Sequence of N magnitudes normalized to [0, 1].

        Returns:
            SpectralFeatures for the frame.

        Raises:
            InvalidSnapshot: If the snapshot is empty or malformed.
        """
        values = self.validate(snapshot)
        n_bins = values.size
        bass_end, mid_end = self.band_edges(n_bins)

        peak = int(np.argmax(values))

        return SpectralFeatures(
            raw_volume=float(np.mean(values)),
            raw_bass=self._band_mean(values[:bass_end]),
            raw_mid=self._band_mean(values[bass_end:mid_end]),
            raw_treble=self._band_mean(values[mid_end:]),
            raw_pitch=peak / n_bins,
            peak_bin_index=peak,
            n_bins=n_bins,
        )
