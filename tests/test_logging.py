"""Tests for log handler setup."""

import logging

import pytest

from synchron.logging import DEBUG_ENV, LOG_FILE_NAME, LinuxLogger, get_logger, resolve_level


@pytest.fixture(autouse=True)
def clean_logger(monkeypatch):
    monkeypatch.delenv(DEBUG_ENV, raising=False)
    yield
    LinuxLogger.shutdown()
    logging.getLogger("synchron").setLevel(logging.NOTSET)


def read_log(log_dir):
    for handler in logging.getLogger("synchron").handlers:
        handler.flush()
    return (log_dir / LOG_FILE_NAME).read_text()


class TestGetLogger:
    """Test module logger names."""

    def test_module_names_are_not_doubled(self):
        assert get_logger("synchron.player").name == "synchron.player"

    def test_short_names_become_children(self):
        assert get_logger("player").name == "synchron.player"

    def test_application_logger(self):
        assert get_logger().name == "synchron"


class TestLinuxLogger:
    """Test LinuxLogger handler installation."""

    def test_writes_to_configured_directory(self, temp_dir):
        """Test that module loggers created before setup reach the file."""
        logger = get_logger("synchron.player")
        LinuxLogger(temp_dir / 'logs')
        logger.info("Playing track %d: %s", 1, '/music/a.mp3')
        assert "[INFO] synchron.player: Playing track 1: /music/a.mp3" in read_log(temp_dir / 'logs')

    def test_reconfigure_replaces_handlers(self, temp_dir):
        """Test that a second setup moves the log instead of being ignored."""
        LinuxLogger(temp_dir / 'first')
        installed = LinuxLogger(temp_dir / 'second')
        assert len(installed.handlers) == 2
        get_logger("synchron.database").warning("Saved library")
        assert "Saved library" in read_log(temp_dir / 'second')
        assert "Saved library" not in read_log(temp_dir / 'first')

    def test_console_shows_warnings_only(self, temp_dir, capsys):
        LinuxLogger(temp_dir)
        logger = get_logger("synchron.playback_controller")
        logger.info("Playback state -> playing")
        logger.warning("Could not continue playback: track 2")
        assert capsys.readouterr().err == "synchron: WARNING: Could not continue playback: track 2\n"

    def test_configured_level(self, temp_dir):
        """Test that records below the configured level are dropped."""
        LinuxLogger(temp_dir, level="warning")
        logger = get_logger("synchron.library")
        logger.info("Added track 4")
        logger.error("Tag write failed for track 4")
        contents = read_log(temp_dir)
        assert "Added track 4" not in contents
        assert "Tag write failed for track 4" in contents

    def test_set_level(self, temp_dir):
        LinuxLogger(temp_dir)
        LinuxLogger.set_level("debug")
        assert logging.getLogger("synchron").level == logging.DEBUG

    def test_shutdown_detaches_handlers(self, temp_dir):
        LinuxLogger(temp_dir)
        LinuxLogger.shutdown()
        assert logging.getLogger("synchron").handlers == []


class TestResolveLevel:
    """Test level name handling."""

    def test_default_is_info(self):
        assert resolve_level(None) == logging.INFO

    def test_names_are_case_insensitive(self):
        assert resolve_level(" Warning ") == logging.WARNING

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            resolve_level("chatty")

    def test_debug_environment_wins(self, monkeypatch):
        monkeypatch.setenv(DEBUG_ENV, "1")
        assert resolve_level("error") == logging.DEBUG
