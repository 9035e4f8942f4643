"""Path validation and input sanitization for user-supplied values."""

# ============================================================================
# Standard Library Imports (alphabetical)
# ============================================================================
from pathlib import Path
from typing import Optional

# ============================================================================
# Third-Party Imports (alphabetical, with version requirements)
# ============================================================================
# None

# ============================================================================
# Local Imports (grouped by package, alphabetical)
# ============================================================================
from synchron.exceptions import InvalidPath
from synchron.logging import get_logger

logger = get_logger(__name__)

FILE_URI_PREFIX = "file://"

MAX_PLAYLIST_NAME = 100


class SecurityValidator:
    """Validation for file paths, URIs and playlist names."""

    ALLOWED_EXTENSIONS = {
        ".mp3",
        ".m4a",
        ".aac",
        ".ogg",
        ".oga",
        ".opus",
        ".flac",
        ".wav",
        ".aiff",
        ".ape",
        ".wma",
    }

    @staticmethod
    def strip_uri(file_path: str) -> str:
        """Unify ``file://`` URIs and plain paths."""
        if file_path.startswith(FILE_URI_PREFIX):
            return file_path[len(FILE_URI_PREFIX):]
        return file_path

    @staticmethod
    def validate_path(file_path: str, base_path: Optional[Path] = None) -> Path:
        """
        Resolve a user-supplied audio file path.

        Args:
            file_path: Path or file:// URI, ``~`` is expanded
            base_path: Optional directory the file must live under

        Returns:
            Resolved absolute path

        Raises:
            InvalidPath: Empty, missing, not a regular file, outside
                base_path, or with an extension that is not audio
        """
        if not file_path or "\x00" in file_path:
            raise InvalidPath("Empty or malformed file path")

        raw = SecurityValidator.strip_uri(file_path.strip())
        try:
            path = Path(raw).expanduser().resolve()
        except (OSError, RuntimeError, ValueError) as e:
            raise InvalidPath(f"Invalid path: {file_path} ({e})") from e

        if base_path is not None:
            try:
                path.relative_to(Path(base_path).resolve())
            except ValueError:
                logger.warning("Security: Path outside base directory: %s", file_path)
                raise InvalidPath(f"Path outside {base_path}: {file_path}")

        if not path.exists():
            raise InvalidPath(f"File not found: {path}")
        if not path.is_file():
            raise InvalidPath(f"Not a regular file: {path}")
        if not SecurityValidator.validate_file_extension(str(path)):
            raise InvalidPath(f"Not an audio file: {path}")

        return path

    @staticmethod
    def validate_file_extension(file_path: str) -> bool:
        """Check the extension against the audio allow-list."""
        ext = Path(file_path).suffix.lower()
        if ext not in SecurityValidator.ALLOWED_EXTENSIONS:
            logger.warning("Security: Disallowed file extension: %s", ext)
            return False
        return True

    @staticmethod
    def sanitize_playlist_name(name: str) -> Optional[str]:
        """
        Sanitize a playlist name.

        Removes path separators and control characters, trims whitespace and
        truncates to a sane length.

        Returns:
            Sanitized name, or None if nothing usable remains
        """
        if not name:
            return None

        sanitized = name.replace("/", "").replace("\\", "").replace("\x00", "")
        sanitized = "".join(c for c in sanitized if ord(c) >= 32)
        sanitized = sanitized.strip()[:MAX_PLAYLIST_NAME]

        return sanitized or None
