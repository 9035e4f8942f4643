"""JSON persistence for the library and playlists."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from synchron.exceptions import PersistenceError
from synchron.logging import get_logger
from synchron.track import Track

logger = get_logger(__name__)

FORMAT_VERSION = 1


@dataclass
class Snapshot:
    """Everything stored in the database file."""

    tracks: Dict[int, Track] = field(default_factory=dict)
    next_id: int = 1
    playlists: Dict[str, List[int]] = field(default_factory=dict)


class Database:
    """Reads and writes ``database.json``.

    The file is replaced atomically on every save, so a crash mid-write
    leaves the previous version intact.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Snapshot:
        """
        Load the database, creating an empty one if the file does not exist.

        Raises:
            PersistenceError: The file exists but is unreadable or malformed
        """
        if not self._path.exists():
            logger.info("No database at %s, creating an empty one", self._path)
            snapshot = Snapshot()
            self.write(snapshot)
            return snapshot

        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read database {self._path}: {e}") from e

        snapshot = self._parse(data)
        logger.info("Loaded %d tracks and %d playlists from %s",
                    len(snapshot.tracks), len(snapshot.playlists), self._path)
        return snapshot

    def _parse(self, data: Any) -> Snapshot:
        if not isinstance(data, dict):
            raise PersistenceError(f"Malformed database {self._path}: not an object")
        version = data.get('version', FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise PersistenceError(f"Unsupported database version: {version}")

        try:
            tracks = {
                int(key): Track.from_dict(int(key), value)
                for key, value in data.get('tracks', {}).items()
            }
            playlists = {
                str(name): [int(track_id) for track_id in entries]
                for name, entries in data.get('playlists', {}).items()
            }
            next_id = int(data.get('next_id', 1))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed database {self._path}: {e}") from e

        return Snapshot(tracks, next_id, playlists)

    def write(self, snapshot: Snapshot) -> None:
        """
        Write the database atomically.

        Raises:
            PersistenceError: The file could not be written
        """
        data = {
            'version': FORMAT_VERSION,
            'next_id': snapshot.next_id,
            'tracks': {
                str(track_id): track.to_dict()
                for track_id, track in sorted(snapshot.tracks.items())
            },
            'playlists': {name: list(entries) for name, entries in snapshot.playlists.items()},
        }

        temp_file = self._path.with_suffix('.tmp')
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_file.replace(self._path)
        except OSError as e:
            logger.error("Error saving database %s: %s", self._path, e)
            raise PersistenceError(f"Cannot write database {self._path}: {e}") from e
