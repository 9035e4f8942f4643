"""Playback controller - Stopped/Playing/Paused state machine over the audio backend."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import gi
gi.require_version("GLib", "2.0")
from gi.repository import GLib

from synchron.events import EventBus
from synchron.exceptions import DecodeError, SynchronError
from synchron.gst_backend import PlaybackHandle
from synchron.library import Library
from synchron.logging import get_logger
from synchron.queue_engine import LoopMode, QueueEngine
from synchron.track import Track

logger = get_logger(__name__)


class PlaybackState(Enum):
    """State machine for playback operations."""

    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


# Position polling interval (milliseconds)
PROGRESS_UPDATE_INTERVAL = 500
DEFAULT_VOLUME = 1.0


@dataclass
class PlaybackStatus:
    state: PlaybackState
    elapsed: float
    duration: float
    track: Optional[Track]
    volume: float
    loop: LoopMode
    shuffle: bool

    @property
    def progress(self) -> float:
        return self.elapsed / self.duration if self.duration > 0 else 0.0

    def position_line(self) -> str:
        return f"{int(self.elapsed)}s / {int(self.duration)}s ({self.progress * 100:.2f}%)"

    def format(self) -> str:
        lines = [self.position_line(), f"State: {self.state.value}"]
        if self.track is not None:
            lines.append(self.track.metadata())
        lines.append(f"Loop: {self.loop.value}  Shuffle: {'on' if self.shuffle else 'off'}"
                     f"  Volume: {self.volume:g}")
        return "\n".join(lines)


class PlaybackController:
    """Drives the audio backend from QueueEngine decisions; publishes state events.

    Every load, stop and context change bumps an epoch. A track-end
    notification only advances the queue when it carries the handle of the
    current load and no newer epoch has started since; anything else is a
    leftover from playback that has already been superseded.
    """

    def __init__(
        self,
        engine: QueueEngine,
        library: Library,
        backend,
        event_bus: Optional[EventBus] = None,
        volume: float = DEFAULT_VOLUME,
        volume_step: float = 0.3,
        seek_step: float = 5.0,
    ):
        self._engine = engine
        self._library = library
        self._backend = backend
        self._events = event_bus

        self._state = PlaybackState.STOPPED
        self._handle: Optional[PlaybackHandle] = None
        self._handle_epoch = 0
        self._epoch = 0
        self._position: float = 0.0
        self._duration: float = 0.0
        self._volume: float = max(0.0, volume)
        self._muted_volume: Optional[float] = None
        self._volume_step = volume_step
        self._seek_step = seek_step
        self._poll_id: Optional[int] = None

        backend.on_track_end = self.handle_track_end
        backend.on_error = self.handle_backend_error
        engine.on_current_removed = self._on_current_removed
        backend.set_volume(None, self._volume)

    def _publish(self, event: str, data=None) -> None:
        if self._events is not None:
            self._events.publish(event, data)

    def _current_track(self) -> Optional[Track]:
        current = self._engine.current
        return self._library.lookup(current) if current is not None else None

    def _set_state(self, state: PlaybackState) -> None:
        if self._state != state:
            self._state = state
            logger.debug("Playback state -> %s", state.value)
            self._publish(
                EventBus.PLAYBACK_STATE_CHANGED,
                {"state": state.value, "track": self._current_track()},
            )

    def _set_volume(self, volume: float) -> None:
        volume = max(0.0, volume)
        if abs(self._volume - volume) > 1e-9:
            self._volume = volume
            self._backend.set_volume(self._handle, volume)
            self._publish(EventBus.VOLUME_CHANGED, {"volume": volume})

    def _release(self) -> None:
        self._epoch += 1
        if self._handle is not None:
            self._backend.stop(self._handle)
            self._handle = None
        self._position = 0.0

    def _load_and_play(self, track_id: int) -> Track:
        track = self._library.get(track_id)
        self._release()
        try:
            handle = self._backend.load(track.path)
            self._handle = handle
            self._handle_epoch = self._epoch
            self._backend.set_volume(handle, self._volume)
            self._backend.play(handle)
        except DecodeError:
            logger.error("Could not play track %d: %s", track.id, track.path)
            self._release()
            self._set_state(PlaybackState.STOPPED)
            raise

        self._duration = track.duration or self._backend.duration(handle)
        logger.info("Playing track %d: %s", track.id, track.path)
        self._publish(EventBus.TRACK_CHANGED, {"track": track})
        self._set_state(PlaybackState.PLAYING)
        return track

    # Properties ------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def muted(self) -> bool:
        return self._muted_volume is not None

    @property
    def epoch(self) -> int:
        return self._epoch

    def get_position(self) -> float:
        if self._handle is not None and self._state != PlaybackState.STOPPED:
            self._position = self._backend.position(self._handle)
        return self._position

    def get_duration(self) -> float:
        if self._state == PlaybackState.STOPPED:
            track = self._current_track()
            return track.duration if track else 0.0
        if not self._duration and self._handle is not None:
            self._duration = self._backend.duration(self._handle)
        return self._duration

    def get_status(self) -> PlaybackStatus:
        return PlaybackStatus(
            state=self._state,
            elapsed=self.get_position(),
            duration=self.get_duration(),
            track=self._current_track(),
            volume=self._volume,
            loop=self._engine.loop,
            shuffle=self._engine.shuffle,
        )

    # Transport -------------------------------------------------------------

    def start(self) -> Track:
        """Play the track under the queue cursor from the beginning."""
        return self._load_and_play(self._engine.load_current())

    def play(self) -> None:
        if self._state == PlaybackState.PLAYING:
            return
        if self._state == PlaybackState.PAUSED and self._handle is not None:
            self._backend.play(self._handle)
            self._set_state(PlaybackState.PLAYING)
            return
        if self._current_track() is not None:
            self._load_and_play(self._engine.current)
        else:
            self.start()

    def pause(self) -> None:
        if self._state == PlaybackState.PLAYING:
            self._position = self.get_position()
            self._backend.pause(self._handle)
            self._set_state(PlaybackState.PAUSED)

    def toggle(self) -> None:
        if self._state == PlaybackState.PLAYING:
            self.pause()
        else:
            self.play()

    def stop(self) -> None:
        """Stop output and rewind; the current track stays selected."""
        self._release()
        self._set_state(PlaybackState.STOPPED)

    def _on_current_removed(self) -> None:
        self.stop()
        self._publish(EventBus.TRACK_CHANGED, {"track": None})

    def skip_next(self) -> Optional[Track]:
        """Play whatever the queue engine picks next; stop at the end of the queue."""
        track_id = self._engine.next()
        if track_id is None:
            self.stop()
            return None
        return self._load_and_play(track_id)

    def skip_previous(self) -> Track:
        return self._load_and_play(self._engine.previous())

    def invalidate(self) -> None:
        """Mark any pending track-end notification as stale."""
        self._epoch += 1

    # Backend notifications -------------------------------------------------

    def _is_live(self, handle: PlaybackHandle) -> bool:
        return handle is not None and handle == self._handle and self._handle_epoch == self._epoch

    def handle_track_end(self, handle: PlaybackHandle) -> None:
        """Advance the queue after a track finished on its own."""
        if handle is None or handle != self._handle:
            logger.debug("Ignoring track end for superseded handle %s", handle)
            return
        if not self._is_live(handle):
            logger.debug("Context changed during playback; stopping after track end")
            self.stop()
            return

        try:
            self.skip_next()
        except SynchronError as e:
            logger.warning("Could not continue playback: %s", e)
            self.stop()

    def handle_backend_error(self, handle: PlaybackHandle, message: str) -> None:
        if handle != self._handle:
            return
        logger.error("Backend error, stopping: %s", message)
        self.stop()

    # Seeking ---------------------------------------------------------------

    def set_position(self, seconds: float) -> float:
        """Jump to an absolute position, clamped to the track bounds."""
        if self._handle is None or self._state == PlaybackState.STOPPED:
            return 0.0
        duration = self.get_duration()
        position = max(0.0, min(float(seconds), duration)) if duration > 0 else max(0.0, float(seconds))
        self._backend.seek(self._handle, position)
        self._position = position
        self._publish(EventBus.PLAYBACK_SEEKED, {"position": position})
        return position

    def seek(self, delta_seconds: float) -> float:
        return self.set_position(self.get_position() + delta_seconds)

    def seek_forward(self) -> float:
        return self.seek(self._seek_step)

    def seek_backward(self) -> float:
        return self.seek(-self._seek_step)

    # Volume ----------------------------------------------------------------

    def set_volume(self, volume: float) -> None:
        """Set the linear volume; negative values clamp to 0, there is no upper bound."""
        self._muted_volume = None
        self._set_volume(volume)

    def volume_up(self) -> float:
        self.set_volume(round(self._volume + self._volume_step, 6))
        return self._volume

    def volume_down(self) -> float:
        self.set_volume(round(self._volume - self._volume_step, 6))
        return self._volume

    def reset_volume(self) -> float:
        self.set_volume(DEFAULT_VOLUME)
        return self._volume

    def toggle_mute(self) -> bool:
        """Mute, or restore the volume from before muting. Returns the muted flag."""
        if self._muted_volume is not None:
            restored = self._muted_volume
            self._muted_volume = None
            self._set_volume(restored)
            return False
        previous = self._volume
        self._set_volume(0.0)
        self._muted_volume = previous
        return True

    # Polling ---------------------------------------------------------------

    def poll_progress(self) -> bool:
        """Publish the playing position (GLib timeout callback)."""
        if self._state == PlaybackState.PLAYING:
            self._publish(
                EventBus.PLAYBACK_PROGRESS,
                {"position": self.get_position(), "duration": self.get_duration()},
            )
        return True

    def start_polling(self) -> None:
        if self._poll_id is None:
            self._poll_id = GLib.timeout_add(PROGRESS_UPDATE_INTERVAL, self.poll_progress)

    def cleanup(self) -> None:
        if self._poll_id is not None:
            GLib.source_remove(self._poll_id)
            self._poll_id = None
        self._release()
        self._state = PlaybackState.STOPPED
        self._backend.cleanup()
