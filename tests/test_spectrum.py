"""Tests for the SpectralAnalyzer module."""

import numpy as np
import pytest

from conftest import make_snapshot
from morphic.core.spectrum import SpectralAnalyzer, SpectralFeatures
from morphic.errors import InvalidSnapshot


class TestSpectralAnalyzer:
    """Tests for per-frame band extraction."""

    def test_analyze_returns_spectral_features(self):
        """analyze() should return SpectralFeatures."""
        result = SpectralAnalyzer().analyze(make_snapshot(100, 0.5))

        assert isinstance(result, SpectralFeatures)
        assert result.n_bins == 100

    def test_single_full_scale_bin(self):
        """One full-scale bin at index 15 of a 100-bin snapshot."""
        result = SpectralAnalyzer().analyze(make_snapshot(100, b15=1.0))

        assert result.raw_volume == pytest.approx(0.01)
        # Band edges are 10 and 40, so bin 15 sits in the mid band
        assert result.raw_bass == 0.0
        assert result.raw_mid == pytest.approx(1.0 / 30)
        assert result.raw_treble == 0.0
        assert result.peak_bin_index == 15
        assert result.raw_pitch == pytest.approx(0.15)

    def test_bass_band_mean_divides_by_band_size(self):
        """Band means use the band's own bin count, not N."""
        result = SpectralAnalyzer().analyze(make_snapshot(100, b5=1.0))

        assert result.raw_bass == pytest.approx(0.1)
        assert result.raw_volume == pytest.approx(0.01)

    def test_band_edges(self):
        """Bass is the first 10%, mid runs to 40%."""
        analyzer = SpectralAnalyzer()

        assert analyzer.band_edges(100) == (10, 40)
        assert analyzer.band_edges(512) == (51, 204)

    def test_band_partition(self):
        """Distinct levels per band come back as the band means."""
        snap = np.concatenate([np.full(10, 0.9), np.full(30, 0.5), np.full(60, 0.1)])
        result = SpectralAnalyzer().analyze(snap)

        assert result.raw_bass == pytest.approx(0.9)
        assert result.raw_mid == pytest.approx(0.5)
        assert result.raw_treble == pytest.approx(0.1)
        assert result.raw_volume == pytest.approx((9.0 + 15.0 + 6.0) / 100)

    def test_peak_uses_first_maximum(self):
        """Ties resolve to the lowest bin index."""
        result = SpectralAnalyzer().analyze(make_snapshot(50, b20=0.8, b30=0.8))

        assert result.peak_bin_index == 20
        assert result.raw_pitch == pytest.approx(0.4)

    def test_tiny_snapshot_has_empty_bands(self):
        """A 3-bin snapshot has no bass bins; the empty band reads 0."""
        result = SpectralAnalyzer().analyze([1.0, 1.0, 1.0])

        assert result.raw_bass == 0.0
        assert result.raw_mid == pytest.approx(1.0)
        assert result.raw_treble == pytest.approx(1.0)

    def test_values_clipped_to_unit_range(self):
        """Out-of-range magnitudes are clipped before averaging."""
        result = SpectralAnalyzer().analyze(make_snapshot(10, 2.0))

        assert result.raw_volume == pytest.approx(1.0)

    def test_all_outputs_in_unit_range(self):
        """Every raw measure lies in [0, 1] for random snapshots."""
        rng = np.random.default_rng(7)
        analyzer = SpectralAnalyzer()

        for _ in range(50):
            result = analyzer.analyze(rng.random(rng.integers(1, 600)))
            for value in (
                result.raw_volume,
                result.raw_bass,
                result.raw_mid,
                result.raw_treble,
                result.raw_pitch,
            ):
                assert 0.0 <= value <= 1.0

    @pytest.mark.parametrize(
        "snapshot",
        [
            [],
            np.zeros((4, 4)),
            [0.1, float("nan")],
            [0.1, float("inf")],
            ["a", "b"],
        ],
    )
    def test_invalid_snapshots(self, snapshot):
        """Empty or malformed snapshots raise InvalidSnapshot."""
        with pytest.raises(InvalidSnapshot):
            SpectralAnalyzer().analyze(snapshot)
