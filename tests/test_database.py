"""Tests for database persistence."""

import json

import pytest

from synchron.database import Database, Snapshot
from synchron.exceptions import PersistenceError
from synchron.tags import TagBundle
from synchron.track import Track


class TestDatabase:
    """Test Database class."""

    def test_missing_file_creates_empty_database(self, temp_dir):
        path = temp_dir / 'sub' / 'database.json'
        snapshot = Database(path).load()
        assert snapshot.tracks == {}
        assert snapshot.next_id == 1
        assert json.loads(path.read_text())['version'] == 1

    def test_write_and_load(self, temp_dir):
        database = Database(temp_dir / 'database.json')
        tracks = {5: Track(5, '/music/e.mp3', TagBundle('E', 'Album', 'Artist', 1990), 42.0)}
        database.write(Snapshot(tracks, 9, {"Mix": [5, 5, 7]}))

        loaded = database.load()
        assert loaded.next_id == 9
        assert loaded.playlists == {"Mix": [5, 5, 7]}
        assert loaded.tracks[5].format() == '/music/e.mp3 | E | Album | Artist | 1990'
        assert not (temp_dir / 'database.tmp').exists()

    def test_file_layout(self, temp_dir):
        database = Database(temp_dir / 'database.json')
        database.write(Snapshot({2: Track(2, '/music/b.mp3')}, 3, {}))
        data = json.loads((temp_dir / 'database.json').read_text())
        assert data['tracks']['2']['path'] == '/music/b.mp3'
        assert data['tracks']['2']['title'] == '[unknown]'
        assert data['playlists'] == {}

    def test_invalid_json(self, temp_dir):
        path = temp_dir / 'database.json'
        path.write_text('{"tracks": ')
        with pytest.raises(PersistenceError):
            Database(path).load()

    @pytest.mark.parametrize("content", [
        '[1, 2, 3]',
        '{"tracks": [1, 2]}',
        '{"tracks": {"x": {"path": "/a.mp3"}}}',
        '{"tracks": {"1": {"title": "no path"}}}',
        '{"playlists": {"Mix": ["one"]}}',
        '{"version": 2}',
    ])
    def test_malformed_content(self, temp_dir, content):
        path = temp_dir / 'database.json'
        path.write_text(content)
        with pytest.raises(PersistenceError):
            Database(path).load()

    def test_write_failure(self, temp_dir):
        blocker = temp_dir / 'file'
        blocker.touch()
        with pytest.raises(PersistenceError):
            Database(blocker / 'database.json').write(Snapshot())
