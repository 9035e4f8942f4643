"""Track library: the authoritative id -> Track mapping."""

from typing import Callable, Dict, Iterable, List, Optional

from synchron.exceptions import TagError, UnknownTrack
from synchron.logging import get_logger
from synchron.security import SecurityValidator
from synchron.tags import TagBundle, read_duration, read_tags, write_tag
from synchron.track import Track

logger = get_logger(__name__)


class Library:
    """Manages known tracks.

    Identifiers are handed out from a monotonically increasing counter and
    are never reused, so removing a track never renumbers the others.
    Mutations report through ``on_tracks_added`` / ``on_tracks_removed`` /
    ``on_track_updated`` synchronously, before the mutating call returns.
    """

    def __init__(self, tracks: Optional[Dict[int, Track]] = None, next_id: int = 1,
                 tag_reader: Callable[[str], TagBundle] = read_tags,
                 tag_writer: Callable[[str, str, str], None] = write_tag,
                 duration_reader: Callable[[str], float] = read_duration):
        self._tracks: Dict[int, Track] = dict(tracks or {})
        self._next_id = max([next_id] + [track_id + 1 for track_id in self._tracks])
        self._read_tags = tag_reader
        self._write_tag = tag_writer
        self._read_duration = duration_reader

        self.on_tracks_added: Optional[Callable[[List[int]], None]] = None
        self.on_tracks_removed: Optional[Callable[[List[int]], None]] = None
        self.on_track_updated: Optional[Callable[[Track], None]] = None

    def __contains__(self, track_id) -> bool:
        return track_id in self._tracks

    def __len__(self) -> int:
        return len(self._tracks)

    @property
    def next_id(self) -> int:
        return self._next_id

    def ids(self) -> List[int]:
        """All identifiers in insertion (ascending) order."""
        return sorted(self._tracks)

    def tracks(self) -> List[Track]:
        return [self._tracks[track_id] for track_id in self.ids()]

    def get(self, track_id: int) -> Track:
        """Get a track, raising UnknownTrack when absent."""
        try:
            return self._tracks[track_id]
        except KeyError:
            raise UnknownTrack(track_id) from None

    def lookup(self, track_id: int) -> Optional[Track]:
        """Get a track or None; dangling references use this."""
        return self._tracks.get(track_id)

    def find_by_path(self, path: str) -> Optional[Track]:
        target = SecurityValidator.strip_uri(path)
        for track in self._tracks.values():
            if track.path == target:
                return track
        return None

    def add(self, path: str) -> Track:
        """
        Add an audio file to the library.

        Args:
            path: File path or file:// URI

        Returns:
            The new track, or the existing one if the file is already known

        Raises:
            InvalidPath: The file is missing or not an audio file
        """
        resolved = str(SecurityValidator.validate_path(path))
        existing = self.find_by_path(resolved)
        if existing is not None:
            return existing

        track = Track(self._next_id, resolved, self._read_tags(resolved),
                      self._read_duration(resolved))
        self._tracks[track.id] = track
        self._next_id += 1
        logger.info("Added track %d: %s", track.id, resolved)

        if self.on_tracks_added:
            self.on_tracks_added([track.id])
        return track

    def remove(self, track_ids: Iterable[int]) -> List[int]:
        """
        Remove tracks by id.

        All ids are checked first so a bad id leaves the library untouched.

        Returns:
            The removed ids, in the order given (duplicates collapsed)

        Raises:
            UnknownTrack: Any id is not in the library
        """
        removed: List[int] = []
        for track_id in track_ids:
            if track_id not in self._tracks:
                raise UnknownTrack(track_id)
            if track_id not in removed:
                removed.append(track_id)

        for track_id in removed:
            del self._tracks[track_id]
        if removed:
            logger.info("Removed tracks %s", removed)
            if self.on_tracks_removed:
                self.on_tracks_removed(removed)
        return removed

    def update_tag(self, track_id: int, field: str, value: str) -> Track:
        """
        Write a tag to the file and mirror it on the library entry.

        Raises:
            UnknownTrack: No such track
            TagError: The write failed; the entry keeps its previous tags
        """
        track = self.get(track_id)
        try:
            self._write_tag(track.path, field, value)
        except TagError:
            logger.warning("Tag write failed for track %d (%s)", track_id, field)
            raise
        track.tags.set(field, value)

        if self.on_track_updated:
            self.on_track_updated(track)
        return track

    def refresh_tags(self, track_id: int) -> Track:
        """Re-read tags from disk."""
        track = self.get(track_id)
        track.tags = self._read_tags(track.path)
        if self.on_track_updated:
            self.on_track_updated(track)
        return track

    def search(self, query: str) -> List[Track]:
        """Search tracks by title, artist or album."""
        query_lower = query.lower()
        results = []
        for track in self.tracks():
            if (query_lower in track.title.lower()
                    or query_lower in track.artist.lower()
                    or query_lower in track.album.lower()):
                results.append(track)
        return results
