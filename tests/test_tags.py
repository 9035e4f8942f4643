"""Tests for tag reading and writing."""

import pytest
from unittest.mock import MagicMock

from mutagen import MutagenError

from synchron import tags
from synchron.exceptions import TagError
from synchron.tags import UNKNOWN, TagBundle, parse_year, read_duration, read_tags, write_tag


class FakeAudioFile(dict):
    """Stand-in for a mutagen easy file: a dict of value lists."""

    def __init__(self, values=None, length=0.0, has_tags=True):
        super().__init__(values or {})
        self.tags = self if has_tags else None
        self.info = MagicMock(length=length)
        self.saved = False

    def add_tags(self):
        self.tags = self

    def save(self):
        self.saved = True


@pytest.fixture
def audio_file(monkeypatch):
    """Patch mutagen.File to return a fake file."""
    fake = FakeAudioFile({'title': ['Song'], 'artist': ['Band'], 'date': ['1999-03-01']}, 123.4)
    monkeypatch.setattr(tags, 'File', lambda path, easy=False: fake)
    return fake


class TestParseYear:
    """Test year parsing."""

    @pytest.mark.parametrize("value,expected", [
        (2004, 2004),
        ("2004", 2004),
        ("2004-05-11", 2004),
        ("", 0),
        (None, 0),
        ("unknown", 0),
        (-5, 0),
    ])
    def test_values(self, value, expected):
        assert parse_year(value) == expected


class TestTagBundle:
    """Test TagBundle class."""

    def test_defaults(self):
        bundle = TagBundle()
        assert bundle.title == UNKNOWN
        assert bundle.year_text() == UNKNOWN

    def test_set(self):
        bundle = TagBundle()
        bundle.set('year', '1987')
        bundle.set('album', '')
        assert bundle.year == 1987
        assert bundle.album == UNKNOWN

    def test_set_unknown_field(self):
        with pytest.raises(TagError):
            TagBundle().set('genre', 'Jazz')

    def test_from_dict_fills_gaps(self):
        bundle = TagBundle.from_dict({'title': 'T', 'year': '2010'})
        assert bundle == TagBundle('T', UNKNOWN, UNKNOWN, 2010)


class TestReadTags:
    """Test reading tags through mutagen."""

    def test_read(self, audio_file):
        bundle = read_tags('/music/song.mp3')
        assert bundle == TagBundle('Song', UNKNOWN, 'Band', 1999)

    def test_duration(self, audio_file):
        assert read_duration('/music/song.mp3') == 123.4

    def test_unsupported_file(self, monkeypatch):
        monkeypatch.setattr(tags, 'File', lambda path, easy=False: None)
        assert read_tags('/music/song.xyz') == TagBundle()
        assert read_duration('/music/song.xyz') == 0.0

    def test_unreadable_file(self, monkeypatch):
        def broken(path, easy=False):
            raise MutagenError("bad header")
        monkeypatch.setattr(tags, 'File', broken)
        assert read_tags('/music/song.mp3') == TagBundle()


class TestWriteTag:
    """Test writing tags through mutagen."""

    def test_write(self, audio_file):
        write_tag('/music/song.mp3', 'album', 'Record')
        assert audio_file['album'] == ['Record']
        assert audio_file.saved

    def test_write_year_uses_date_key(self, audio_file):
        write_tag('/music/song.mp3', 'year', '2001')
        assert audio_file['date'] == ['2001']

    def test_write_adds_missing_tags(self, monkeypatch):
        fake = FakeAudioFile(has_tags=False)
        monkeypatch.setattr(tags, 'File', lambda path, easy=False: fake)
        write_tag('/music/song.ogg', 'title', 'New')
        assert fake.tags is fake
        assert fake['title'] == ['New']

    def test_write_unknown_field(self, audio_file):
        with pytest.raises(TagError):
            write_tag('/music/song.mp3', 'genre', 'Jazz')

    def test_write_unsupported(self, monkeypatch):
        monkeypatch.setattr(tags, 'File', lambda path, easy=False: None)
        with pytest.raises(TagError):
            write_tag('/music/song.xyz', 'title', 'New')

    def test_save_failure(self, audio_file):
        audio_file.save = MagicMock(side_effect=OSError("read-only"))
        with pytest.raises(TagError):
            write_tag('/music/song.mp3', 'title', 'New')
