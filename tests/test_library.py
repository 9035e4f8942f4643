"""Tests for the track library and track model."""

from unittest.mock import MagicMock

import pytest

from synchron.exceptions import InvalidPath, TagError, UnknownTrack
from synchron.library import Library
from synchron.tags import TagBundle
from synchron.track import Track


@pytest.fixture
def empty_library(make_library):
    return make_library(0, duration_reader=lambda path: 12.5)


class TestLibrary:
    """Test Library class."""

    def test_add_assigns_increasing_ids(self, empty_library, audio_files):
        first = empty_library.add(audio_files[0])
        second = empty_library.add(audio_files[1])
        assert (first.id, second.id) == (1, 2)
        assert first.title == 'first'
        assert first.duration == 12.5

    def test_ids_never_reused(self, empty_library, audio_files):
        first = empty_library.add(audio_files[0])
        empty_library.add(audio_files[1])
        empty_library.remove([first.id])
        assert empty_library.add(audio_files[2]).id == 3
        assert empty_library.ids() == [2, 3]

    def test_add_existing_path_returns_track(self, empty_library, audio_files):
        callback = MagicMock()
        empty_library.on_tracks_added = callback
        first = empty_library.add(audio_files[0])
        again = empty_library.add('file://' + audio_files[0])
        assert again is first
        callback.assert_called_once_with([first.id])

    def test_add_invalid_path(self, empty_library, temp_dir):
        with pytest.raises(InvalidPath):
            empty_library.add(str(temp_dir / 'missing.mp3'))
        notes = temp_dir / 'notes.txt'
        notes.touch()
        with pytest.raises(InvalidPath):
            empty_library.add(str(notes))
        assert len(empty_library) == 0

    def test_next_id_from_snapshot(self, library):
        assert library.next_id == 4
        assert Library(next_id=10).next_id == 10

    def test_remove_unknown_leaves_library_untouched(self, library):
        with pytest.raises(UnknownTrack):
            library.remove([1, 99])
        assert library.ids() == [1, 2, 3]

    def test_remove_reports_ids(self, library):
        callback = MagicMock()
        library.on_tracks_removed = callback
        assert library.remove([3, 1, 3]) == [3, 1]
        callback.assert_called_once_with([3, 1])
        assert 1 not in library
        assert library.lookup(1) is None

    def test_get_unknown(self, library):
        with pytest.raises(UnknownTrack):
            library.get(42)

    def test_update_tag(self, library):
        callback = MagicMock()
        library.on_track_updated = callback
        track = library.update_tag(2, 'title', 'New Title')
        assert track.title == 'New Title'
        library._write_tag.assert_called_once_with('/music/b.mp3', 'title', 'New Title')
        callback.assert_called_once_with(track)

    def test_update_tag_failure_keeps_old_tags(self, make_library):
        writer = MagicMock(side_effect=TagError("read-only file"))
        library = make_library(tag_writer=writer)
        with pytest.raises(TagError):
            library.update_tag(1, 'artist', 'Somebody')
        assert library.get(1).artist == 'Artist'

    def test_refresh_tags(self, library):
        track = library.refresh_tags(1)
        assert track.title == 'a'

    def test_search(self, library):
        assert [track.id for track in library.search('c')] == [3]
        assert len(library.search('artist')) == 3
        assert library.search('nothing') == []


class TestTrack:
    """Test Track formatting and serialization."""

    def test_format(self):
        track = Track(7, '/music/song.mp3', TagBundle('Song', 'Record', 'Band', 1999))
        assert track.format() == '/music/song.mp3 | Song | Record | Band | 1999'

    def test_format_defaults(self):
        track = Track(1, '/music/x.mp3')
        assert track.format() == '/music/x.mp3 | [unknown] | [unknown] | [unknown] | [unknown]'

    def test_metadata(self):
        track = Track(1, '/music/x.mp3', TagBundle(title='T', artist='A'))
        assert track.metadata().splitlines()[:2] == ['Title: T', 'Artist: A']

    def test_dict_round_trip(self):
        track = Track(3, '/music/c.mp3', TagBundle('C', 'Album', 'Artist', 2003), 90.0)
        restored = Track.from_dict(3, track.to_dict())
        assert restored.path == track.path
        assert restored.tags == track.tags
        assert restored.duration == 90.0
