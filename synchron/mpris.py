"""MPRIS2 (Media Player Remote Interfacing Specification) D-Bus interface.

Media keys and desktop widgets control the player through this service.
Incoming calls are forwarded to the player's public operations; outgoing
property changes are driven by the event bus.
"""

from typing import Any, Callable, Dict, List, Optional

import dbus
import dbus.service
from dbus.mainloop.glib import DBusGMainLoop

from synchron.events import EventBus
from synchron.exceptions import SynchronError
from synchron.logging import get_logger
from synchron.queue_engine import LoopMode
from synchron.track import Track

logger = get_logger(__name__)


# MPRIS2 interfaces
MPRIS2_BUS_NAME = 'org.mpris.MediaPlayer2.synchron'
MPRIS2_OBJECT_PATH = '/org/mpris/MediaPlayer2'
MPRIS2_ROOT_INTERFACE = 'org.mpris.MediaPlayer2'
MPRIS2_PLAYER_INTERFACE = 'org.mpris.MediaPlayer2.Player'
MPRIS2_TRACK_PATH = '/org/mpris/MediaPlayer2/Track'
NO_TRACK_PATH = '/org/mpris/MediaPlayer2/TrackList/NoTrack'

LOOP_STATUS = {
    LoopMode.OFF: 'None',
    LoopMode.TRACK: 'Track',
    LoopMode.PLAYLIST: 'Playlist',
}
PLAYBACK_STATUS = {
    'playing': 'Playing',
    'paused': 'Paused',
    'stopped': 'Stopped',
}


def _invoke(callback: Optional[Callable], *args) -> None:
    """Run a control callback; player errors are logged, not sent back over D-Bus."""
    if callback is None:
        return
    try:
        callback(*args)
    except SynchronError as e:
        logger.warning("MPRIS2: Command failed: %s", e)


class MPRIS2Root(dbus.service.Object):
    """MPRIS2 root interface (org.mpris.MediaPlayer2)."""

    def __init__(self, bus, object_path):
        super().__init__(bus, object_path)
        self.on_quit: Optional[Callable[[], None]] = None

    @dbus.service.method(MPRIS2_ROOT_INTERFACE, in_signature='', out_signature='')
    def Quit(self):
        """Quit the application."""
        logger.info("MPRIS2: Quit requested")
        _invoke(self.on_quit)

    @dbus.service.method(MPRIS2_ROOT_INTERFACE, in_signature='', out_signature='')
    def Raise(self):
        """No window to raise."""
        logger.debug("MPRIS2: Raise requested")

    def _root_properties(self) -> Dict[str, Any]:
        return {
            'CanQuit': True,
            'CanRaise': False,
            'HasTrackList': False,
            'Identity': 'synchron',
            'SupportedUriSchemes': dbus.Array(['file'], signature='s'),
            'SupportedMimeTypes': dbus.Array([
                'audio/mpeg', 'audio/flac', 'audio/ogg', 'audio/mp4',
                'audio/x-wav', 'audio/x-ms-wma',
            ], signature='s'),
        }


class MPRIS2Player(MPRIS2Root):
    """Root and Player interfaces on the single MPRIS object."""

    def __init__(self, bus, object_path):
        super().__init__(bus, object_path)
        self._playback_status = 'Stopped'
        self._loop_status = 'None'
        self._shuffle = False
        self._metadata: Dict[str, Any] = {}
        self._volume = 1.0

        # Callbacks to control playback
        self.on_play: Optional[Callable[[], None]] = None
        self.on_pause: Optional[Callable[[], None]] = None
        self.on_play_pause: Optional[Callable[[], None]] = None
        self.on_stop: Optional[Callable[[], None]] = None
        self.on_next: Optional[Callable[[], None]] = None
        self.on_previous: Optional[Callable[[], None]] = None
        self.on_seek: Optional[Callable[[float], None]] = None
        self.on_set_position: Optional[Callable[[float], None]] = None
        self.on_set_volume: Optional[Callable[[float], None]] = None
        self.on_set_loop: Optional[Callable[[LoopMode], None]] = None
        self.on_set_shuffle: Optional[Callable[[bool], None]] = None
        self.on_open_uri: Optional[Callable[[str], None]] = None
        self.position_provider: Optional[Callable[[], float]] = None

    # Methods ---------------------------------------------------------------

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='', out_signature='')
    def Next(self):
        logger.info("MPRIS2: Next requested")
        _invoke(self.on_next)

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='', out_signature='')
    def Previous(self):
        logger.info("MPRIS2: Previous requested")
        _invoke(self.on_previous)

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='', out_signature='')
    def Pause(self):
        logger.info("MPRIS2: Pause requested")
        _invoke(self.on_pause)

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='', out_signature='')
    def PlayPause(self):
        logger.info("MPRIS2: PlayPause requested")
        _invoke(self.on_play_pause)

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='', out_signature='')
    def Stop(self):
        logger.info("MPRIS2: Stop requested")
        _invoke(self.on_stop)

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='', out_signature='')
    def Play(self):
        logger.info("MPRIS2: Play requested")
        _invoke(self.on_play)

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='x', out_signature='')
    def Seek(self, offset: int):
        """Seek forward or backward by offset microseconds."""
        logger.debug("MPRIS2: Seek requested: %d microseconds", offset)
        _invoke(self.on_seek, offset / 1_000_000.0)

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='ox', out_signature='')
    def SetPosition(self, track_id: str, position: int):
        """Set position in microseconds; ignored unless track_id is the current track."""
        logger.debug("MPRIS2: SetPosition requested: track_id=%s, position=%d", track_id, position)
        if str(track_id) != str(self._metadata.get('mpris:trackid', NO_TRACK_PATH)):
            return
        _invoke(self.on_set_position, position / 1_000_000.0)

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='s', out_signature='')
    def OpenUri(self, uri: str):
        logger.info("MPRIS2: OpenUri requested: %s", uri)
        _invoke(self.on_open_uri, str(uri))

    @dbus.service.signal(MPRIS2_PLAYER_INTERFACE, signature='x')
    def Seeked(self, position: int):
        """Signal emitted after an explicit position change."""
        pass

    # Properties ------------------------------------------------------------

    def _position_us(self) -> int:
        position = self.position_provider() if self.position_provider else 0.0
        return int(position * 1_000_000)

    def _player_properties(self) -> Dict[str, Any]:
        return {
            'PlaybackStatus': self._playback_status,
            'LoopStatus': self._loop_status,
            'Shuffle': dbus.Boolean(self._shuffle),
            'Rate': dbus.Double(1.0),
            'MinimumRate': dbus.Double(1.0),
            'MaximumRate': dbus.Double(1.0),
            'Metadata': dbus.Dictionary(self._metadata, signature='sv'),
            'Volume': dbus.Double(self._volume),
            'Position': dbus.Int64(self._position_us()),
            'CanGoNext': True,
            'CanGoPrevious': True,
            'CanPlay': True,
            'CanPause': True,
            'CanSeek': True,
            'CanControl': True,
        }

    def _properties(self, interface: str) -> Dict[str, Any]:
        if interface == MPRIS2_ROOT_INTERFACE:
            return self._root_properties()
        if interface == MPRIS2_PLAYER_INTERFACE:
            return self._player_properties()
        raise dbus.exceptions.DBusException(
            f"Unknown interface: {interface}",
            name='org.freedesktop.DBus.Error.UnknownInterface',
        )

    @dbus.service.method(dbus.PROPERTIES_IFACE, in_signature='ss', out_signature='v')
    def Get(self, interface: str, prop: str):
        properties = self._properties(interface)
        if prop not in properties:
            raise dbus.exceptions.DBusException(
                f"Unknown property: {prop}",
                name='org.freedesktop.DBus.Error.UnknownProperty',
            )
        return properties[prop]

    @dbus.service.method(dbus.PROPERTIES_IFACE, in_signature='s', out_signature='a{sv}')
    def GetAll(self, interface: str):
        return self._properties(interface)

    @dbus.service.method(dbus.PROPERTIES_IFACE, in_signature='ssv', out_signature='')
    def Set(self, interface: str, prop: str, value):
        logger.debug("MPRIS2: Set %s.%s = %s", interface, prop, value)
        if interface != MPRIS2_PLAYER_INTERFACE:
            raise dbus.exceptions.DBusException(
                f"Property {prop} is read-only",
                name='org.freedesktop.DBus.Error.PropertyReadOnly',
            )
        if prop == 'Volume':
            _invoke(self.on_set_volume, max(0.0, float(value)))
        elif prop == 'Shuffle':
            _invoke(self.on_set_shuffle, bool(value))
        elif prop == 'LoopStatus':
            modes = {status: mode for mode, status in LOOP_STATUS.items()}
            if str(value) not in modes:
                raise dbus.exceptions.DBusException(
                    f"Invalid LoopStatus: {value}",
                    name='org.freedesktop.DBus.Error.InvalidArgs',
                )
            _invoke(self.on_set_loop, modes[str(value)])
        else:
            raise dbus.exceptions.DBusException(
                f"Property {prop} is read-only",
                name='org.freedesktop.DBus.Error.PropertyReadOnly',
            )

    @dbus.service.signal(dbus.PROPERTIES_IFACE, signature='sa{sv}as')
    def PropertiesChanged(self, interface: str, changed: Dict[str, Any], invalidated: List[str]):
        """Signal emitted when properties change."""
        pass

    def _changed(self, name: str, value: Any) -> None:
        self.PropertiesChanged(MPRIS2_PLAYER_INTERFACE, {name: value}, [])

    # Updates from the player -----------------------------------------------

    def update_playback_status(self, state: str) -> None:
        status = PLAYBACK_STATUS.get(state, 'Stopped')
        if status != self._playback_status:
            self._playback_status = status
            self._changed('PlaybackStatus', status)

    def update_loop_status(self, mode: LoopMode) -> None:
        status = LOOP_STATUS[mode]
        if status != self._loop_status:
            self._loop_status = status
            self._changed('LoopStatus', status)

    def update_shuffle(self, enabled: bool) -> None:
        if enabled != self._shuffle:
            self._shuffle = enabled
            self._changed('Shuffle', dbus.Boolean(enabled))

    def update_volume(self, volume: float) -> None:
        if abs(self._volume - volume) > 1e-9:
            self._volume = volume
            self._changed('Volume', dbus.Double(volume))

    def update_metadata(self, track: Optional[Track]) -> None:
        metadata = build_metadata(track)
        if metadata != self._metadata:
            self._metadata = metadata
            self._changed('Metadata', dbus.Dictionary(metadata, signature='sv'))

    def emit_seeked(self, position: float) -> None:
        self.Seeked(dbus.Int64(int(position * 1_000_000)))


def build_metadata(track: Optional[Track]) -> Dict[str, Any]:
    """MPRIS metadata map for a track (empty when nothing is selected)."""
    if track is None:
        return {}
    metadata: Dict[str, Any] = {
        'mpris:trackid': dbus.ObjectPath(f"{MPRIS2_TRACK_PATH}/{track.id}"),
        'xesam:url': track.uri,
        'xesam:title': track.title,
        'xesam:album': track.album,
        'xesam:artist': dbus.Array([track.artist], signature='s'),
    }
    if track.duration:
        metadata['mpris:length'] = dbus.Int64(int(track.duration * 1_000_000))
    if track.year:
        metadata['xesam:contentCreated'] = f"{track.year:04d}"
    return metadata


class MPRIS2Manager:
    """Registers the MPRIS service and keeps it in sync with the player."""

    def __init__(self, event_bus: EventBus):
        DBusGMainLoop(set_as_default=True)
        self.bus = dbus.SessionBus()
        self.player: Optional[MPRIS2Player] = None
        self._events = event_bus
        self._name_id: Optional[int] = None

        try:
            self._name_id = self.bus.request_name(
                MPRIS2_BUS_NAME,
                dbus.bus.NAME_FLAG_REPLACE_EXISTING
            )
            if self._name_id == dbus.bus.REQUEST_NAME_REPLY_PRIMARY_OWNER:
                logger.info("MPRIS2: Acquired bus name %s", MPRIS2_BUS_NAME)
                self.player = MPRIS2Player(self.bus, MPRIS2_OBJECT_PATH)
                self._subscribe()
            else:
                logger.warning("MPRIS2: Could not acquire bus name (may already be in use)")
        except dbus.exceptions.DBusException as e:
            logger.error("MPRIS2: Failed to register: %s", e, exc_info=True)

    def _subscribe(self) -> None:
        self._events.subscribe(EventBus.PLAYBACK_STATE_CHANGED, self._on_state_changed)
        self._events.subscribe(EventBus.TRACK_CHANGED, self._on_track_changed)
        self._events.subscribe(EventBus.VOLUME_CHANGED, self._on_volume_changed)
        self._events.subscribe(EventBus.LOOP_MODE_CHANGED, self._on_loop_mode_changed)
        self._events.subscribe(EventBus.SHUFFLE_CHANGED, self._on_shuffle_changed)
        self._events.subscribe(EventBus.PLAYBACK_SEEKED, self._on_seeked)

    def _on_state_changed(self, data: Dict[str, Any]) -> None:
        self.player.update_playback_status(data["state"])
        if data["state"] == "stopped" and data.get("track") is None:
            self.player.update_metadata(None)

    def _on_track_changed(self, data: Dict[str, Any]) -> None:
        self.player.update_metadata(data.get("track"))

    def _on_volume_changed(self, data: Dict[str, Any]) -> None:
        self.player.update_volume(data["volume"])

    def _on_loop_mode_changed(self, data: Dict[str, Any]) -> None:
        self.player.update_loop_status(data["mode"])

    def _on_shuffle_changed(self, data: Dict[str, Any]) -> None:
        self.player.update_shuffle(data["enabled"])

    def _on_seeked(self, data: Dict[str, Any]) -> None:
        self.player.emit_seeked(data["position"])

    def attach(self, player, on_quit: Optional[Callable[[], None]] = None) -> None:
        """Forward MPRIS calls to a ``Player`` and publish its initial state."""
        if not self.player:
            return
        controller = player.controller
        engine = player.engine
        self.player.on_play = controller.play
        self.player.on_pause = controller.pause
        self.player.on_play_pause = controller.toggle
        self.player.on_stop = controller.stop
        self.player.on_next = controller.skip_next
        self.player.on_previous = controller.skip_previous
        self.player.on_seek = controller.seek
        self.player.on_set_position = controller.set_position
        self.player.on_set_volume = controller.set_volume
        self.player.on_set_loop = engine.set_loop
        self.player.on_set_shuffle = engine.set_shuffle
        self.player.on_open_uri = player.open
        self.player.position_provider = controller.get_position
        self.player.on_quit = on_quit

        status = controller.get_status()
        self.player.update_playback_status(status.state.value)
        self.player.update_loop_status(status.loop)
        self.player.update_shuffle(status.shuffle)
        self.player.update_volume(status.volume)
        self.player.update_metadata(status.track)

    def cleanup(self):
        """Release the bus name."""
        try:
            if self._name_id:
                self.bus.release_name(MPRIS2_BUS_NAME)
            logger.info("MPRIS2: Cleaned up")
        except dbus.exceptions.DBusException as e:
            logger.error("MPRIS2: Error during cleanup: %s", e, exc_info=True)
