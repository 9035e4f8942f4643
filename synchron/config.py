"""Configuration management using XDG Base Directory Specification.

Settings live in ``$XDG_CONFIG_HOME/synchron/config.ini``; the library
database and logs live under ``$XDG_DATA_HOME/synchron``.
"""

import configparser
import os
from pathlib import Path
from typing import Optional

from synchron.exceptions import ConfigurationError

APP_NAME = 'synchron'

LOOP_MODES = ('off', 'track', 'playlist')
LOG_LEVELS = ('debug', 'info', 'warning', 'error')


class Config:
    """
    Configuration manager using XDG Base Directory Specification.

    Follows Linux standards:
    - Config: ~/.config/synchron/ (or XDG_CONFIG_HOME)
    - Data: ~/.local/share/synchron/ (or XDG_DATA_HOME)
    """

    _instance: Optional['Config'] = None

    def __init__(self) -> None:
        if Config._instance is not None:
            return

        self.config_home = Path(os.getenv('XDG_CONFIG_HOME', Path.home() / '.config'))
        self.data_home = Path(os.getenv('XDG_DATA_HOME', Path.home() / '.local' / 'share'))

        self.config_dir = self.config_home / APP_NAME
        self.data_dir = self.data_home / APP_NAME

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self.config_file = self.config_dir / 'config.ini'
        self.config = configparser.ConfigParser()

        self._load_config()

        Config._instance = self

    @classmethod
    def get_instance(cls) -> 'Config':
        """Get the singleton config instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton so the next access re-reads the environment."""
        cls._instance = None

    def _load_config(self) -> None:
        """Load configuration from file or create defaults."""
        if self.config_file.exists():
            try:
                self.config.read(self.config_file)
            except configparser.Error as e:
                raise ConfigurationError(f"Invalid config file {self.config_file}: {e}") from e
        else:
            self._create_default_config()

    def _create_default_config(self) -> None:
        """Create default configuration with sensible defaults."""
        self.config['interface'] = {
            'prompt': '"> "',
        }

        self.config['playback'] = {
            'volume': '1.0',
            'volume_step': '0.3',
            'seek_step': '5',
            'loop': 'off',
            'shuffle': 'false',
        }

        self.config['library'] = {
            'database_file': str(self.data_dir / 'database.json'),
        }

        self.config['mpris'] = {
            'enabled': 'true',
        }

        self.config['logging'] = {
            'level': 'info',
        }

        self.save()

    def save(self) -> None:
        """Write current configuration state to the config file."""
        try:
            with open(self.config_file, 'w') as f:
                self.config.write(f)
        except OSError as e:
            from synchron.logging import get_logger
            logger = get_logger(__name__)
            logger.error("Failed to save config: %s", e, exc_info=True)

    def get(self, section: str, key: str, fallback: Optional[str] = None) -> Optional[str]:
        """Get a configuration value."""
        return self.config.get(section, key, fallback=fallback)

    def set(self, section: str, key: str, value: str) -> None:
        """
        Set a configuration value.

        Args:
            section: Configuration section name
            key: Configuration key name
            value: Value to set (will be converted to string)
        """
        if section not in self.config:
            self.config.add_section(section)
        self.config.set(section, key, str(value))
        self.save()

    def get_bool(self, section: str, key: str, fallback: bool = False) -> bool:
        """Get a boolean configuration value."""
        try:
            return self.config.getboolean(section, key, fallback=fallback)
        except ValueError as e:
            raise ConfigurationError(f"[{section}] {key}: {e}") from e

    def get_int(self, section: str, key: str, fallback: int = 0) -> int:
        """Get an integer configuration value."""
        try:
            return self.config.getint(section, key, fallback=fallback)
        except ValueError as e:
            raise ConfigurationError(f"[{section}] {key}: {e}") from e

    def get_float(self, section: str, key: str, fallback: float = 0.0) -> float:
        """Get a float configuration value."""
        try:
            return self.config.getfloat(section, key, fallback=fallback)
        except ValueError as e:
            raise ConfigurationError(f"[{section}] {key}: {e}") from e

    def get_path(self, section: str, key: str, fallback: Optional[Path] = None) -> Optional[Path]:
        """Get a path configuration value."""
        value = self.get(section, key)
        if value:
            return Path(value).expanduser()
        return fallback

    # Convenience properties
    @property
    def prompt(self) -> str:
        """Command prompt; surrounding quotes keep trailing spaces in the INI file."""
        value = self.get('interface', 'prompt', '"> "')
        if len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
            value = value[1:-1]
        return value

    @property
    def database_file(self) -> Path:
        """Get library database path."""
        return self.get_path('library', 'database_file', self.data_dir / 'database.json')

    @property
    def volume(self) -> float:
        return max(0.0, self.get_float('playback', 'volume', 1.0))

    @property
    def volume_step(self) -> float:
        return self.get_float('playback', 'volume_step', 0.3)

    @property
    def seek_step(self) -> int:
        return self.get_int('playback', 'seek_step', 5)

    @property
    def loop_mode(self) -> str:
        mode = (self.get('playback', 'loop', 'off') or 'off').strip().lower()
        if mode not in LOOP_MODES:
            raise ConfigurationError(f"[playback] loop must be one of {', '.join(LOOP_MODES)}")
        return mode

    @property
    def shuffle(self) -> bool:
        return self.get_bool('playback', 'shuffle', False)

    @property
    def mpris_enabled(self) -> bool:
        return self.get_bool('mpris', 'enabled', True)

    @property
    def log_level(self) -> str:
        level = (self.get('logging', 'level', 'info') or 'info').strip().lower()
        if level not in LOG_LEVELS:
            raise ConfigurationError(f"[logging] level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @property
    def log_dir(self) -> Path:
        """Get log directory."""
        log_dir = self.data_dir / 'logs'
        log_dir.mkdir(parents=True, exist_ok=True)
        return log_dir


def get_config() -> Config:
    """Get the configuration instance."""
    return Config.get_instance()
