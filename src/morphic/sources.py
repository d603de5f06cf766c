"""
Alternate VoiceState producers.

Remote playback services report track-level features (energy,
danceability, tempo, progress) instead of audio. These helpers synthesize
VoiceState records from such metadata, and modulate a live file-playback
state with the file's offline analysis.
"""

from dataclasses import dataclass, replace
from typing import Any

from morphic.core.analyzer import AudioFileAnalysis
from morphic.core.voice import VoiceState

DEFAULT_TEMPO = 120.0


def beat_pulse(position_ms: float, tempo: float) -> float:
    """
    Phase-locked pulse for a playback position.

    Peaks at 1.0 halfway through each beat and falls to 0.0 at the beat
    boundaries with a steep ``x**4`` shape.

    Args:
        position_ms: Playback position in milliseconds.
        tempo: Beats per minute (non-positive values fall back to 120).

    Returns:
        Pulse value in [0, 1].
    """
    if tempo <= 0:
        tempo = DEFAULT_TEMPO
    beat_ms = 60000.0 / tempo
    phase = (position_ms % beat_ms) / beat_ms
    return max(0.0, 1.0 - abs(phase - 0.5) * 2.0) ** 4


@dataclass(frozen=True)
class TrackFeatures:
    """Track metadata reported by a remote playback service."""

    name: str = ""
    artist: str = ""
    energy: float = 0.7
    danceability: float = 0.6
    tempo: float = DEFAULT_TEMPO
    progress_ms: float = 0.0
    duration_ms: float = 0.0
    is_playing: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackFeatures":
        """
        Parse a currently-playing payload.

        Accepts either a flat dict of the fields above or the nested
        ``{"item": {...}, "progress_ms": ..., "is_playing": ...}`` shape,
        with optional ``audio_features`` carrying energy/danceability/tempo.
        """
        item = data.get("item") or {}
        artists = item.get("artists") or []
        features = data.get("audio_features") or data

        return cls(
            name=item.get("name", data.get("name", "")),
            artist=artists[0].get("name", "") if artists else data.get("artist", ""),
            energy=float(features.get("energy", cls.energy)),
            danceability=float(features.get("danceability", cls.danceability)),
            tempo=float(features.get("tempo", cls.tempo) or DEFAULT_TEMPO),
            progress_ms=float(data.get("progress_ms") or 0.0),
            duration_ms=float(item.get("duration_ms", data.get("duration_ms", 0.0)) or 0.0),
            is_playing=bool(data.get("is_playing", False)),
        )


class RemoteTrackSource:
    """Synthesizes VoiceState records from remote track metadata."""

    def voice_state(self, track: TrackFeatures, position_ms: float | None = None) -> VoiceState:
        """
        Map track features to a VoiceState.

        Args:
            track: Latest reported track features.
            position_ms: Playback position to phase the pulse against
                (default: the reported progress).
        """
        playing = track.is_playing
        position = track.progress_ms if position_ms is None else position_ms
        return VoiceState(
            volume=track.energy if playing else 0.0,
            pitch=track.danceability,
            bass=track.energy * 0.9,
            mid=track.energy * 0.6,
            treble=track.danceability * 0.4,
            silence=not playing,
            beat_intensity=beat_pulse(position, track.tempo) if playing else 0.0,
        ).clipped()


class FileSessionModulator:
    """Blends a file's offline analysis into the live playback state."""

    def modulate(
        self,
        base: VoiceState,
        analysis: AudioFileAnalysis,
        position_s: float,
    ) -> VoiceState:
        """
        Scale volume by file energy, pitch by brightness, and add a tempo pulse.

        Args:
            base: State measured from the playing file.
            analysis: Offline analysis of the same file.
            position_s: Playback position in seconds.
        """
        pulse = beat_pulse(position_s * 1000.0, analysis.tempo)
        return replace(
            base,
            volume=base.volume * (0.5 + analysis.energy * 0.5),
            pitch=base.pitch * (0.7 + analysis.brightness_proxy * 0.3),
            beat_intensity=max(base.beat_intensity, pulse),
        ).clipped()
