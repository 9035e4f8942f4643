"""Tag reading and writing for audio files using mutagen.

Tags are accessed through mutagen's "easy" interface so the same field names
(title, album, artist, date) work for ID3, Vorbis comments and MP4 atoms.
"""

from typing import Dict, Optional, Any

from mutagen import File, MutagenError

from synchron.exceptions import TagError
from synchron.logging import get_logger

logger = get_logger(__name__)

UNKNOWN = "[unknown]"

# Editable fields mapped to their mutagen easy-interface keys
TAG_FIELDS = {
    'title': 'title',
    'album': 'album',
    'artist': 'artist',
    'year': 'date',
}


class TagBundle:
    """Title, album, artist and year of a track."""

    def __init__(self, title: str = UNKNOWN, album: str = UNKNOWN,
                 artist: str = UNKNOWN, year: int = 0):
        self.title = title
        self.album = album
        self.artist = artist
        self.year = year

    def __eq__(self, other) -> bool:
        if not isinstance(other, TagBundle):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (f"TagBundle(title={self.title!r}, album={self.album!r}, "
                f"artist={self.artist!r}, year={self.year!r})")

    def set(self, field: str, value: str) -> None:
        """Set a field from its textual form."""
        if field not in TAG_FIELDS:
            raise TagError(f"Unknown tag field: {field}")
        if field == 'year':
            setattr(self, field, parse_year(value))
        else:
            setattr(self, field, value or UNKNOWN)

    def year_text(self) -> str:
        return str(self.year) if self.year else UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'album': self.album,
            'artist': self.artist,
            'year': self.year,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TagBundle':
        return cls(
            title=data.get('title') or UNKNOWN,
            album=data.get('album') or UNKNOWN,
            artist=data.get('artist') or UNKNOWN,
            year=parse_year(data.get('year')),
        )


def parse_year(value) -> int:
    """Extract a year from values such as 2004, "2004" or "2004-05-11"."""
    if value is None:
        return 0
    if isinstance(value, int):
        return max(0, value)
    text = str(value).strip()[:4]
    try:
        return max(0, int(text))
    except ValueError:
        return 0


def _first(audio_file, key: str) -> Optional[str]:
    """Return the first non-empty value stored under an easy key."""
    try:
        values = audio_file.get(key)
    except (KeyError, ValueError, TypeError):
        return None
    if not values:
        return None
    if isinstance(values, (list, tuple)):
        values = values[0]
    text = str(values).strip()
    return text or None


def _open(path: str):
    try:
        return File(path, easy=True)
    except (MutagenError, OSError) as e:
        raise TagError(f"Cannot read tags from {path}: {e}") from e


def read_tags(path: str) -> TagBundle:
    """
    Read the tag bundle of an audio file.

    Files without tags, or that mutagen cannot parse, yield a default
    bundle rather than an error so they can still join the library.
    """
    try:
        audio_file = _open(path)
    except TagError as e:
        logger.warning("%s", e)
        return TagBundle()
    if audio_file is None:
        logger.debug("No tag support for %s", path)
        return TagBundle()

    return TagBundle(
        title=_first(audio_file, 'title') or UNKNOWN,
        album=_first(audio_file, 'album') or UNKNOWN,
        artist=_first(audio_file, 'artist') or UNKNOWN,
        year=parse_year(_first(audio_file, 'date')),
    )


def read_duration(path: str) -> float:
    """Stream length in seconds, 0.0 when unknown."""
    try:
        audio_file = _open(path)
    except TagError:
        return 0.0
    if audio_file is None:
        return 0.0
    info = getattr(audio_file, 'info', None)
    return float(getattr(info, 'length', 0.0) or 0.0)


def write_tag(path: str, field: str, value: str) -> None:
    """
    Write a single tag field to an audio file.

    Args:
        path: Audio file path
        field: One of title, album, artist, year
        value: New textual value

    Raises:
        TagError: Unknown field, unsupported file or failed save
    """
    key = TAG_FIELDS.get(field)
    if key is None:
        raise TagError(f"Unknown tag field: {field}")

    audio_file = _open(path)
    if audio_file is None:
        raise TagError(f"Unsupported file format: {path}")

    try:
        if audio_file.tags is None:
            audio_file.add_tags()
        audio_file[key] = [str(value)]
        audio_file.save()
    except (MutagenError, OSError, KeyError, ValueError) as e:
        raise TagError(f"Cannot write {field} to {path}: {e}") from e

    logger.info("Wrote %s=%r to %s", field, value, path)
