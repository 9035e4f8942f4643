"""Pytest configuration and fixtures."""

import os
import random
import shutil
import string
import sys
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Keep config, database and logs out of the real home directory
_XDG_ROOT = Path(tempfile.mkdtemp(prefix='synchron-tests-'))
os.environ['XDG_CONFIG_HOME'] = str(_XDG_ROOT / 'config')
os.environ['XDG_DATA_HOME'] = str(_XDG_ROOT / 'data')

# Mock GStreamer before imports
sys.modules['gi'] = MagicMock()
sys.modules['gi.repository'] = MagicMock()
sys.modules['gi.repository.Gst'] = MagicMock()
sys.modules['gi.repository.GLib'] = MagicMock()


# Mock D-Bus before imports; service objects need a real base class and
# pass-through decorators so MPRIS classes stay testable
class _ServiceObject:
    def __init__(self, *args, **kwargs):
        pass


class _DBusException(Exception):
    def __init__(self, message='', name=None):
        super().__init__(message)
        self.name = name

    def get_dbus_name(self):
        return self.name


def _passthrough(*args, **kwargs):
    return lambda func: func


dbus_mock = MagicMock()
dbus_mock.service.Object = _ServiceObject
dbus_mock.service.method = _passthrough
dbus_mock.service.signal = _passthrough
dbus_mock.exceptions.DBusException = _DBusException
dbus_mock.Boolean = bool
dbus_mock.Double = float
dbus_mock.Int64 = int
dbus_mock.ObjectPath = str
dbus_mock.Array = lambda values, signature=None: list(values)
dbus_mock.Dictionary = lambda values, signature=None: dict(values)
sys.modules['dbus'] = dbus_mock
sys.modules['dbus.service'] = dbus_mock.service
sys.modules['dbus.exceptions'] = dbus_mock.exceptions
sys.modules['dbus.mainloop'] = dbus_mock.mainloop
sys.modules['dbus.mainloop.glib'] = dbus_mock.mainloop.glib

from synchron.database import Database, Snapshot  # noqa: E402
from synchron.events import EventBus  # noqa: E402
from synchron.exceptions import DecodeError  # noqa: E402
from synchron.gst_backend import PlaybackHandle  # noqa: E402
from synchron.library import Library  # noqa: E402
from synchron.playback_controller import PlaybackController  # noqa: E402
from synchron.player import Player  # noqa: E402
from synchron.queue_engine import QueueEngine  # noqa: E402
from synchron.tags import TagBundle  # noqa: E402
from synchron.track import Track  # noqa: E402


class FakeBackend:
    """Audio backend that records calls instead of producing sound."""

    def __init__(self):
        self.calls = []
        self.fail_paths = set()
        self.current = None
        self.volume = None
        self.position_value = 0.0
        self.duration_value = 0.0
        self.on_track_end = None
        self.on_error = None

    def load(self, path):
        self.calls.append(('load', path))
        if path in self.fail_paths:
            raise DecodeError(f"Cannot decode: {path}")
        self.current = PlaybackHandle(path)
        return self.current

    def play(self, handle):
        self.calls.append(('play', handle.path))

    def pause(self, handle):
        self.calls.append(('pause', handle.path))

    def stop(self, handle):
        self.calls.append(('stop', handle.path))
        if handle == self.current:
            self.current = None

    def seek(self, handle, seconds):
        self.calls.append(('seek', seconds))
        self.position_value = seconds

    def set_volume(self, handle, volume):
        self.volume = volume

    def position(self, handle):
        return self.position_value

    def duration(self, handle):
        return self.duration_value

    def loaded(self):
        return [arg for name, arg in self.calls if name == 'load']

    def cleanup(self):
        self.calls.append(('cleanup', None))

    def finish(self):
        """Report the current track as played to the end."""
        self.on_track_end(self.current)


def fake_tag_reader(path):
    return TagBundle(title=Path(path).stem)


def make_tracks(count):
    """Tracks 1..count titled A, B, C... with three-minute durations."""
    tracks = {}
    for track_id in range(1, count + 1):
        letter = string.ascii_uppercase[track_id - 1]
        tags = TagBundle(title=letter, album='Album', artist='Artist', year=2000 + track_id)
        tracks[track_id] = Track(track_id, f'/music/{letter.lower()}.mp3', tags, 180.0)
    return tracks


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def mock_config(monkeypatch, temp_dir):
    """Configuration rooted in a temporary directory."""
    from synchron.config import Config

    monkeypatch.setenv('XDG_CONFIG_HOME', str(temp_dir / 'config'))
    monkeypatch.setenv('XDG_DATA_HOME', str(temp_dir / 'data'))
    Config.reset()
    yield Config.get_instance()
    Config.reset()


@pytest.fixture
def audio_files(temp_dir):
    """Three empty files with audio extensions."""
    paths = []
    for name in ('first.mp3', 'second.flac', 'third.ogg'):
        path = temp_dir / name
        path.touch()
        paths.append(str(path))
    return paths


@pytest.fixture
def make_library():
    """Factory for a library pre-filled with ``count`` tracks."""
    def factory(count=3, **kwargs):
        kwargs.setdefault('tag_reader', fake_tag_reader)
        kwargs.setdefault('tag_writer', MagicMock())
        kwargs.setdefault('duration_reader', lambda path: 0.0)
        return Library(make_tracks(count), **kwargs)
    return factory


@pytest.fixture
def library(make_library):
    """Library with tracks {1: A, 2: B, 3: C}."""
    return make_library(3)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def recorded(event_bus):
    """Subscribe to event names and collect (name, data) pairs."""
    seen = []

    def watch(*names):
        for name in names:
            event_bus.subscribe(name, lambda data, name=name: seen.append((name, data)))
        return seen
    return watch


@pytest.fixture
def engine(library, event_bus):
    return QueueEngine(library, event_bus, rng=random.Random(1234))


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def controller(engine, library, backend, event_bus):
    library.on_tracks_removed = engine.reconcile_on_library_change
    return PlaybackController(engine, library, backend, event_bus)


@pytest.fixture
def player(temp_dir, backend, event_bus):
    """Player over three tracks, persisting to a temporary database."""
    database = Database(temp_dir / 'database.json')
    snapshot = Snapshot(make_tracks(3), 4, {})
    return Player(
        database, backend, snapshot, event_bus, rng=random.Random(1234),
        tag_reader=fake_tag_reader, tag_writer=MagicMock(),
        duration_reader=lambda path: 0.0,
    )
