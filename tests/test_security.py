"""Tests for security validators."""

import pytest
from pathlib import Path
from synchron.exceptions import InvalidPath
from synchron.security import MAX_PLAYLIST_NAME, SecurityValidator


class TestSecurityValidator:
    """Test SecurityValidator class."""

    def test_validate_path_valid(self, temp_dir):
        """Test validating a valid path."""
        test_file = temp_dir / 'test.mp3'
        test_file.touch()

        result = SecurityValidator.validate_path(str(test_file), base_path=temp_dir)
        assert result == test_file.resolve()

    def test_validate_file_uri(self, temp_dir):
        """Test that file:// URIs resolve like plain paths."""
        test_file = temp_dir / 'test.flac'
        test_file.touch()

        result = SecurityValidator.validate_path('file://' + str(test_file))
        assert result == test_file.resolve()

    def test_validate_path_traversal(self, temp_dir):
        """Test path traversal detection."""
        malicious_path = str(temp_dir / '../../etc/passwd')
        with pytest.raises(InvalidPath):
            SecurityValidator.validate_path(malicious_path, base_path=temp_dir)

    def test_validate_path_missing(self, temp_dir):
        """Test that missing files are rejected."""
        with pytest.raises(InvalidPath):
            SecurityValidator.validate_path(str(temp_dir / 'missing.mp3'))

    def test_validate_path_directory(self, temp_dir):
        """Test that directories are rejected."""
        folder = temp_dir / 'album.mp3'
        folder.mkdir()
        with pytest.raises(InvalidPath):
            SecurityValidator.validate_path(str(folder))

    def test_validate_path_not_audio(self, temp_dir):
        """Test that non-audio files are rejected."""
        script = temp_dir / 'run.sh'
        script.touch()
        with pytest.raises(InvalidPath):
            SecurityValidator.validate_path(str(script))

    @pytest.mark.parametrize("value", ['', 'song\x00.mp3'])
    def test_validate_path_malformed(self, value):
        """Test empty and NUL-containing paths."""
        with pytest.raises(InvalidPath):
            SecurityValidator.validate_path(value)

    def test_strip_uri(self):
        """Test stripping the file:// prefix."""
        assert SecurityValidator.strip_uri('file:///music/a.mp3') == '/music/a.mp3'
        assert SecurityValidator.strip_uri('/music/a.mp3') == '/music/a.mp3'

    def test_validate_file_extension(self):
        """Test file extension validation."""
        assert SecurityValidator.validate_file_extension('test.mp3') is True
        assert SecurityValidator.validate_file_extension('TEST.FLAC') is True
        assert SecurityValidator.validate_file_extension('test.exe') is False
        assert SecurityValidator.validate_file_extension(str(Path('test.m3u'))) is False

    def test_sanitize_playlist_name(self):
        """Test playlist name sanitization."""
        assert SecurityValidator.sanitize_playlist_name('My Playlist') == 'My Playlist'
        assert SecurityValidator.sanitize_playlist_name('  Rock/Pop\\Mix ') == 'RockPopMix'
        assert SecurityValidator.sanitize_playlist_name('tab\there') == 'tabhere'
        assert SecurityValidator.sanitize_playlist_name('') is None
        assert SecurityValidator.sanitize_playlist_name(' / ') is None

    def test_sanitize_playlist_name_truncates(self):
        """Test long playlist names are cut down."""
        result = SecurityValidator.sanitize_playlist_name('x' * 500)
        assert len(result) == MAX_PLAYLIST_NAME
