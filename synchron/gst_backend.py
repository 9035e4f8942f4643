"""GStreamer playbin audio backend.

Every ``load`` returns a fresh ``PlaybackHandle``. Callers pass the handle
back to every control call so that calls and end-of-stream notifications
for a previously loaded file can be told apart from the current one.
"""

import itertools
import os
from dataclasses import dataclass, field
from typing import Callable, Optional

import gi
gi.require_version('Gst', '1.0')
from gi.repository import Gst

from synchron.exceptions import DecodeError
from synchron.logging import get_logger

logger = get_logger(__name__)


# GStreamer playbin flags
GST_FLAG_AUDIO = 0x02
GST_FLAG_SOFT_VOLUME = 0x10

# playbin rejects volumes above this
MAX_PLAYBIN_VOLUME = 10.0

_handle_serials = itertools.count(1)


@dataclass(frozen=True)
class PlaybackHandle:
    path: str
    serial: int = field(default_factory=lambda: next(_handle_serials))


class GstBackend:
    """Plays audio files through a single ``playbin`` element.

    Bus messages are delivered on the GLib main loop, which is also the
    player's control thread, so ``on_track_end`` and ``on_error`` run
    serialized with command handling.
    """

    def __init__(self):
        if not Gst.is_initialized():
            Gst.init(None)

        self.playbin: Optional[Gst.Element] = None
        self._handle: Optional[PlaybackHandle] = None
        self._volume: float = 1.0

        # Callbacks
        self.on_track_end: Optional[Callable[[PlaybackHandle], None]] = None
        self.on_error: Optional[Callable[[PlaybackHandle, str], None]] = None

        self._setup_pipeline()

    def _setup_pipeline(self):
        """Set up the GStreamer playbin pipeline."""
        self.playbin = Gst.ElementFactory.make("playbin", "playbin")
        if not self.playbin:
            raise RuntimeError("Failed to create GStreamer playbin")

        audio_sink = Gst.ElementFactory.make("autoaudiosink", "audiosink")
        if audio_sink:
            self.playbin.set_property("audio-sink", audio_sink)
        try:
            self.playbin.set_property("flags", GST_FLAG_AUDIO | GST_FLAG_SOFT_VOLUME)
        except (AttributeError, TypeError):
            pass
        self.playbin.set_property("volume", self._volume)

        bus = self.playbin.get_bus()
        bus.add_signal_watch()
        bus.connect("message", self._on_message)

    def _is_current(self, handle: Optional[PlaybackHandle]) -> bool:
        return handle is not None and handle == self._handle

    def _on_message(self, bus: Gst.Bus, message: Gst.Message) -> bool:
        """
        Handle GStreamer bus messages.

        Args:
            bus: GStreamer message bus
            message: GStreamer message

        Returns:
            True to continue receiving messages
        """
        msg_type = message.type
        handle = self._handle

        if msg_type == Gst.MessageType.ERROR:
            err, debug = message.parse_error()
            logger.error("Playback error: %s", err.message)
            if debug:
                logger.debug("GStreamer debug: %s", debug)
            self._log_codec_help(err.message, debug or "")
            self.playbin.set_state(Gst.State.NULL)
            if handle is not None and self.on_error:
                self.on_error(handle, err.message)

        elif msg_type == Gst.MessageType.EOS:
            logger.debug("End of stream: %s", handle.path if handle else None)
            if handle is not None and self.on_track_end:
                self.on_track_end(handle)

        return True

    def _log_codec_help(self, error: str, debug: str) -> None:
        """Log hints for missing codecs."""
        combined = (error + debug).lower()

        if 'flac' in combined:
            logger.warning("Missing FLAC support: install gst-plugins-good")
        elif 'mp3' in combined or 'mpeg' in combined:
            logger.warning("Missing MP3 support: install gst-plugins-good or gst-libav")
        elif 'missing' in combined or 'decoder' in combined:
            logger.warning("Missing codec: install gst-plugins-good and gst-plugins-bad")

    def load(self, path: str) -> PlaybackHandle:
        """
        Load a file, leaving the pipeline paused at the start.

        Raises:
            DecodeError: The file is missing or GStreamer cannot open it
        """
        if not path or not os.path.isfile(path):
            raise DecodeError(f"File not found: {path}")

        self.playbin.set_state(Gst.State.NULL)
        self._handle = None

        self.playbin.set_property("uri", "file://" + os.path.abspath(path))
        ret = self.playbin.set_state(Gst.State.PAUSED)
        if ret == Gst.StateChangeReturn.FAILURE:
            self.playbin.set_state(Gst.State.NULL)
            raise DecodeError(f"Cannot decode: {path}")

        self._handle = PlaybackHandle(path)
        logger.debug("Loaded %s as handle %d", path, self._handle.serial)
        return self._handle

    def play(self, handle: PlaybackHandle) -> None:
        if not self._is_current(handle):
            logger.debug("Ignoring play for stale handle %s", handle)
            return
        ret = self.playbin.set_state(Gst.State.PLAYING)
        if ret == Gst.StateChangeReturn.FAILURE:
            raise DecodeError(f"Cannot play: {handle.path}")

    def pause(self, handle: PlaybackHandle) -> None:
        if self._is_current(handle):
            self.playbin.set_state(Gst.State.PAUSED)

    def stop(self, handle: PlaybackHandle) -> None:
        if self._is_current(handle):
            self.playbin.set_state(Gst.State.NULL)
            self._handle = None

    def seek(self, handle: PlaybackHandle, seconds: float) -> None:
        if not self._is_current(handle):
            return
        success = self.playbin.seek_simple(
            Gst.Format.TIME,
            Gst.SeekFlags.FLUSH | Gst.SeekFlags.KEY_UNIT,
            int(max(0.0, seconds) * Gst.SECOND)
        )
        if not success:
            logger.warning("Seek failed for position %.2fs", seconds)

    def set_volume(self, handle: Optional[PlaybackHandle], volume: float) -> None:
        """Set the linear volume; applies to later loads as well."""
        self._volume = max(0.0, volume)
        self.playbin.set_property("volume", min(self._volume, MAX_PLAYBIN_VOLUME))

    def position(self, handle: PlaybackHandle) -> float:
        """Current position in seconds (0 when unknown)."""
        if not self._is_current(handle):
            return 0.0
        success, position = self.playbin.query_position(Gst.Format.TIME)
        return position / Gst.SECOND if success and position >= 0 else 0.0

    def duration(self, handle: PlaybackHandle) -> float:
        """Track duration in seconds (0 when unknown)."""
        if not self._is_current(handle):
            return 0.0
        success, duration = self.playbin.query_duration(Gst.Format.TIME)
        return duration / Gst.SECOND if success and duration > 0 else 0.0

    def cleanup(self) -> None:
        """Stop playback and release the pipeline."""
        if self.playbin:
            try:
                bus = self.playbin.get_bus()
                if bus:
                    bus.remove_signal_watch()
            except (AttributeError, RuntimeError):
                pass
            self.playbin.set_state(Gst.State.NULL)
            self.playbin = None
        self._handle = None
