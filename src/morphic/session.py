"""
Per-session context and frame loop.

A MorphicSession owns every piece of mutable real-time state (smoother,
beat detector, synthetic clock) for one visual session and turns each
frame into a UniformFrame. FrameLoop drives a callback at a fixed rate
with an explicit start/stop lifecycle.
"""

import logging
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Union

from morphic.core.analyzer import AudioFileAnalysis, FileAnalyzer
from morphic.core.integrator import MorphicClock, MorphicSettings, UniformFrame, UniformMapper
from morphic.core.voice import VoiceEngine, VoiceState
from morphic.providers import BufferSnapshotProvider
from morphic.sources import FileSessionModulator, RemoteTrackSource, TrackFeatures

logger = logging.getLogger(__name__)

FrameCallback = Callable[[float], None]


class SourceKind(str, Enum):
    """Where the session's audio drive comes from."""

    VOICE = "voice"
    FILE = "file"
    REMOTE = "remote"


class MorphicSession:
    """
    Explicit context for one audio-reactive visual session.

    Only one source is active at a time. Switching sources stops the old
    provider and attaches the new one under the session lock, so a frame
    never sees a half-swapped source.
    """

    def __init__(
        self,
        settings: MorphicSettings | None = None,
        engine: VoiceEngine | None = None,
        persist_beat_state: bool = True,
        viewport: tuple[int, int] = (1920, 1080),
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the session.

        Args:
            settings: Beat, environment and visual settings (default: MorphicSettings()).
            engine: Voice engine (default: a new VoiceEngine).
            persist_beat_state: Keep beat detector memory across source switches.
                Ignored when ``engine`` is given.
            viewport: Renderer size in pixels, used when frame() gets none.
            clock: Monotonic time source in seconds.
        """
        self.settings = settings or MorphicSettings()
        self.settings.validate()
        self.engine = engine or VoiceEngine(persist_beat_state=persist_beat_state, clock=clock)
        self.viewport = viewport
        self.clock = clock

        self.morphic_clock = MorphicClock()
        self.mapper = UniformMapper()
        self.remote = RemoteTrackSource()
        self.modulator = FileSessionModulator()
        self.file_analyzer = FileAnalyzer()

        self.source = SourceKind.VOICE
        self.file_analysis: AudioFileAnalysis | None = None
        self._file_provider: BufferSnapshotProvider | None = None
        self._track: TrackFeatures | None = None
        self._track_received_at = 0.0

        self._lock = threading.RLock()
        self._last_state = VoiceState.silent()
        self._last_frame: UniformFrame | None = None

    @property
    def last_state(self) -> VoiceState:
        return self._last_state

    @property
    def last_frame(self) -> UniformFrame | None:
        return self._last_frame

    def update_settings(self, settings: MorphicSettings) -> None:
        """Replace settings; takes effect from the next frame."""
        settings.validate()
        with self._lock:
            self.settings = settings

    # ---------- Sources ----------

    def _clear_source(self) -> None:
        # Cleared before attaching so a failed start leaves no stale source
        self.source = SourceKind.VOICE
        self.file_analysis = None
        self._file_provider = None
        self._track = None

    def attach_voice(self, provider) -> None:
        """
        Use a live snapshot provider (microphone or any device capture).

        Raises:
            DeviceUnavailable: The source could not be opened.
            PermissionDenied: Access to the source was refused.
        """
        with self._lock:
            self._clear_source()
            self.engine.attach(provider)

    def attach_file(
        self,
        provider: BufferSnapshotProvider,
        analysis: AudioFileAnalysis | None = None,
    ) -> None:
        """
        Play a decoded buffer, optionally modulated by its offline analysis.

        Raises:
            DeviceUnavailable: The buffer has no playable audio.
        """
        with self._lock:
            self._clear_source()
            self.engine.attach(provider)
            self.source = SourceKind.FILE
            self.file_analysis = analysis
            self._file_provider = provider

    def load_file(self, audio_path: Union[str, Path], realtime: bool = True) -> AudioFileAnalysis:
        """
        Decode, analyze and start playing an audio file.

        Raises:
            DecodeError: The file could not be decoded.
            EmptyBuffer: The file has no samples.
        """
        y, sr = self.file_analyzer.load_audio(audio_path)
        analysis = self.file_analyzer.analyze(y, sr)
        provider = BufferSnapshotProvider(y, sr, realtime=realtime, clock=self.clock)
        self.attach_file(provider, analysis)
        logger.info("Loaded %s: %.1f BPM, energy %.2f", audio_path, analysis.tempo, analysis.energy)
        return analysis

    def attach_remote(self, track: TrackFeatures | None = None) -> None:
        """Drive the session from remote track metadata instead of audio."""
        with self._lock:
            self.engine.detach()
            self._clear_source()
            self.source = SourceKind.REMOTE
            if track is not None:
                self.update_track(track)

    def update_track(self, track: TrackFeatures, now: float | None = None) -> None:
        """Store the latest polled track features."""
        with self._lock:
            self._track = track
            self._track_received_at = self.clock() if now is None else now

    def detach(self) -> None:
        """Stop the active source; frames fall back to the silent rest state."""
        with self._lock:
            self.engine.detach()
            self._clear_source()

    # ---------- Frames ----------

    def _remote_state(self, now: float) -> VoiceState:
        track = self._track
        if track is None:
            return VoiceState.silent()
        # Extrapolate playback between polls
        position = track.progress_ms
        if track.is_playing:
            position += (now - self._track_received_at) * 1000.0
        return self.remote.voice_state(track, position_ms=position)

    def voice_state(self, now: float) -> VoiceState:
        """VoiceState for the active source at ``now``."""
        if self.source is SourceKind.REMOTE:
            return self._remote_state(now)

        base = self.engine.read_state(self.settings.beat, now)
        if (
            self.source is SourceKind.FILE
            and self.engine.attached
            and self.file_analysis is not None
            and self._file_provider is not None
        ):
            return self.modulator.modulate(base, self.file_analysis, self._file_provider.position)
        return base

    def frame(
        self,
        now: float | None = None,
        viewport: tuple[int, int] | None = None,
    ) -> UniformFrame:
        """
        Run one frame: read the source, advance the clock, map uniforms.

        Errors are contained here; the previous frame is returned and the
        condition logged.

        Args:
            now: Frame timestamp in seconds (default: the session clock).
            viewport: Renderer size in pixels (default: the session viewport).
        """
        with self._lock:
            now = self.clock() if now is None else now
            viewport = viewport or self.viewport
            try:
                state = self.voice_state(now)
                clock_time = self.morphic_clock.advance(state, now, self.settings.environment.viscosity)
                frame = self.mapper.map(state, clock_time, viewport, self.settings)
            except Exception:
                logger.exception("Frame failed, reusing last good frame")
                if self._last_frame is None:
                    self._last_frame = self.mapper.map(
                        self._last_state, self.morphic_clock.time, viewport, self.settings
                    )
                return self._last_frame

            self._last_state = state
            self._last_frame = frame
            return frame

    def reset(self) -> None:
        """Return all real-time state to session start."""
        with self._lock:
            self.engine.reset()
            self.morphic_clock.reset()
            self._last_state = VoiceState.silent()
            self._last_frame = None

    def close(self) -> None:
        self.detach()


class FrameLoop:
    """
    Fixed-rate callback scheduler with an explicit lifecycle.

    ``start(callback)`` runs the callback ``fps`` times per second on a
    dedicated thread, or, with ``threaded=False``, only when the host calls
    ``tick()``. After ``stop()`` returns the callback is never invoked again.
    """

    def __init__(self, fps: int = 60, clock: Callable[[], float] = time.monotonic):
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.fps = fps
        self.clock = clock

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._callback: FrameCallback | None = None
        self.frames_run = 0

    @property
    def running(self) -> bool:
        return self._callback is not None and not self._stop_event.is_set()

    def start(self, callback: FrameCallback, threaded: bool = True) -> None:
        """
        Begin invoking ``callback(now)`` once per frame.

        Raises:
            RuntimeError: If the loop is already running.
        """
        with self._lock:
            if self.running:
                raise RuntimeError("FrameLoop is already running")
            self._stop_event = threading.Event()
            self._callback = callback
            self.frames_run = 0
            if threaded:
                self._thread = threading.Thread(target=self._run, name="MorphicFrameLoop", daemon=True)
                self._thread.start()

    def stop(self) -> None:
        """Stop the loop and release the scheduler thread. Safe inside the callback."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        with self._lock:
            self._callback = None
            self._thread = None

    def tick(self, now: float | None = None) -> bool:
        """
        Invoke the callback once, synchronously.

        Returns:
            True if the callback ran, False if the loop is stopped.
        """
        with self._lock:
            callback = self._callback
            if callback is None or self._stop_event.is_set():
                return False
            try:
                callback(self.clock() if now is None else now)
            except Exception:
                logger.exception("Frame callback raised")
            self.frames_run += 1
            return True

    def _run(self) -> None:
        period = 1.0 / self.fps
        next_time = self.clock()
        while not self._stop_event.is_set():
            self.tick()
            next_time += period
            delay = next_time - self.clock()
            if delay < 0:
                # Running behind; drop the missed frames rather than bursting
                next_time = self.clock()
                delay = 0.0
            self._stop_event.wait(delay)
