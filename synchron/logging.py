"""Logging for the player.

Modules take their logger from ``get_logger`` at import time; those loggers
are plain children of the ``synchron`` logger and write nothing until the
entry point installs the handlers with ``LinuxLogger``. The log file lives in
the configured log directory, and warnings are echoed on stderr in the same
``synchron: ...`` shape the entry point uses for fatal errors, so they read
cleanly above the command prompt.
"""

# ============================================================================
# Standard Library Imports (alphabetical)
# ============================================================================
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import List, Optional, Union

# ============================================================================
# Third-Party Imports (alphabetical, with version requirements)
# ============================================================================
# None

# ============================================================================
# Local Imports (grouped by package, alphabetical)
# ============================================================================
# None

LOGGER_NAME = "synchron"
LOG_FILE_NAME = "synchron.log"
DEBUG_ENV = "SYNCHRON_DEBUG"

# Level names accepted in the [logging] section of config.ini
LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
CONSOLE_FORMAT = LOGGER_NAME + ": %(levelname)s: %(message)s"


def resolve_level(level: Union[str, int, None]) -> int:
    """
    Turn a configured level into a logging level.

    ``SYNCHRON_DEBUG`` in the environment wins over any configured value.

    Raises:
        ValueError: Unknown level name
    """
    if os.getenv(DEBUG_ENV):
        return logging.DEBUG
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    try:
        return LEVELS[level.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown log level {level!r}") from None


class LinuxLogger:
    """
    Installs the file and console handlers on the ``synchron`` logger.

    Constructing it again replaces the handlers, so a later call with a
    different directory or level takes effect instead of being ignored.
    """

    _instance: Optional["LinuxLogger"] = None

    def __init__(self, log_dir: Path, level: Union[str, int, None] = None,
                 max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5):
        self.logger = logging.getLogger(LOGGER_NAME)
        self.log_file = Path(log_dir) / LOG_FILE_NAME
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()
        self.logger.setLevel(resolve_level(level))

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        self.logger.addHandler(console_handler)

        file_handler = logging.handlers.RotatingFileHandler(
            self.log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        self.logger.addHandler(file_handler)

        LinuxLogger._instance = self

    @property
    def handlers(self) -> List[logging.Handler]:
        return list(self.logger.handlers)

    @classmethod
    def set_level(cls, level: Union[str, int]) -> None:
        """Change the level of the application logger at runtime."""
        logging.getLogger(LOGGER_NAME).setLevel(resolve_level(level))

    @classmethod
    def shutdown(cls) -> None:
        """Flush and detach the installed handlers."""
        if cls._instance is None:
            return
        logger = cls._instance.logger
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        cls._instance = None


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Get the application logger, or a child of it for ``name``."""
    root = logging.getLogger(LOGGER_NAME)
    if name == LOGGER_NAME:
        return root
    if name.startswith(LOGGER_NAME + "."):
        name = name[len(LOGGER_NAME) + 1:]
    return root.getChild(name)
