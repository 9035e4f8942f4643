"""Track model: a stable library identifier, a file path and its tags."""

from pathlib import Path
from typing import Any, Dict, Optional

from synchron.tags import TagBundle


class Track:
    """A single library entry.

    Identity (id and path) is fixed once the track joins the library; the
    tag bundle is edited in place.
    """

    def __init__(self, track_id: int, path: str, tags: Optional[TagBundle] = None,
                 duration: float = 0.0):
        self._id = track_id
        self._path = path
        self.tags = tags if tags is not None else TagBundle()
        self.duration = duration

    @property
    def id(self) -> int:
        return self._id

    @property
    def path(self) -> str:
        return self._path

    @property
    def uri(self) -> str:
        return Path(self._path).resolve().as_uri()

    @property
    def title(self) -> str:
        return self.tags.title

    @property
    def album(self) -> str:
        return self.tags.album

    @property
    def artist(self) -> str:
        return self.tags.artist

    @property
    def year(self) -> int:
        return self.tags.year

    def __repr__(self) -> str:
        return f"Track({self._id}, {self._path!r}, {self.tags!r})"

    def format(self) -> str:
        """One-line listing: ``path | title | album | artist | year``."""
        return " | ".join([
            self._path,
            self.tags.title,
            self.tags.album,
            self.tags.artist,
            self.tags.year_text(),
        ])

    def metadata(self) -> str:
        return (
            f"Title: {self.tags.title}\n"
            f"Artist: {self.tags.artist}\n"
            f"Album: {self.tags.album}\n"
            f"Year: {self.tags.year_text()}"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {'path': self._path, 'duration': self.duration}
        data.update(self.tags.to_dict())
        return data

    @classmethod
    def from_dict(cls, track_id: int, data: Dict[str, Any]) -> 'Track':
        return cls(
            track_id,
            data['path'],
            TagBundle.from_dict(data),
            float(data.get('duration') or 0.0),
        )
