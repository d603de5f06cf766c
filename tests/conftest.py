"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

# Sample rate whose 1024-sample windows line up with 0.25s and 1.2s periods
TEST_SR = 20480


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


def make_click_track(
    sample_rate: int,
    interval_s: float,
    duration_s: float,
    amplitude: float = 1.0,
) -> np.ndarray:
    """Single-sample impulses every ``interval_s`` seconds, silence between."""
    y = np.zeros(int(sample_rate * duration_s), dtype=np.float32)
    step = int(round(sample_rate * interval_s))
    y[::step] = amplitude
    return y


def make_snapshot(n_bins: int = 100, level: float = 0.0, **bins: float) -> np.ndarray:
    """Flat snapshot at ``level``; keyword ``b<index>=value`` overrides single bins."""
    snap = np.full(n_bins, level, dtype=np.float64)
    for key, value in bins.items():
        snap[int(key[1:])] = value
    return snap


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_rate() -> int:
    """Default sample rate for tests."""
    return TEST_SR


@pytest.fixture
def pure_sine(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Generate a 2 second 440Hz sine wave (A4 note).

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    duration = 2.0
    t = np.linspace(0, duration, int(sample_rate * duration), endpoint=False)
    y = 0.5 * np.sin(2 * np.pi * 440.0 * t)
    return y.astype(np.float32), sample_rate


@pytest.fixture
def click_track(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Generate a click track with decaying 10ms clicks at 120 BPM over a low hum.

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    duration = 4.0
    samples_per_beat = int(sample_rate * 60 / 120)
    total_samples = int(sample_rate * duration)

    t = np.arange(total_samples) / sample_rate
    y = (0.02 * np.sin(2 * np.pi * 55.0 * t)).astype(np.float32)

    click_duration = int(sample_rate * 0.01)
    for beat_start in range(0, total_samples, samples_per_beat):
        click_end = min(beat_start + click_duration, total_samples)
        decay = np.exp(-np.linspace(0, 5, click_end - beat_start))
        y[beat_start:click_end] += 0.8 * decay

    return y, sample_rate


@pytest.fixture
def white_noise(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Generate reproducible white noise.

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    rng = np.random.default_rng(42)
    y = rng.standard_normal(int(sample_rate * 2.0)).astype(np.float32) * 0.3
    return y, sample_rate


@pytest.fixture
def temp_audio_file(tmp_path, click_track):
    """Write the click track to a temporary WAV file."""
    import soundfile as sf

    y, sr = click_track
    audio_path = tmp_path / "test_audio.wav"
    sf.write(audio_path, y, sr)
    return audio_path
