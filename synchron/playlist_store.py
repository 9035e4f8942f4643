"""Named playlists of library track identifiers."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from synchron.exceptions import (
    IndexOutOfRange, InvalidPlaylistName, PlaylistExists, UnknownPlaylist, UnknownTrack,
)
from synchron.library import Library
from synchron.logging import get_logger
from synchron.security import SecurityValidator

logger = get_logger(__name__)


class EditKind(Enum):
    INSERT = "insert"
    REMOVE = "remove"
    MOVE = "move"


@dataclass(frozen=True)
class PlaylistEdit:
    """A single positional edit, expressed against the pruned playlist.

    INSERT places ``track_id`` at ``position``; REMOVE drops ``position``;
    MOVE takes the entry at ``position`` and reinserts it at ``target``.
    """

    kind: EditKind
    position: int
    track_id: Optional[int] = None
    target: Optional[int] = None

    @classmethod
    def insert(cls, position: int, track_id: int) -> 'PlaylistEdit':
        return cls(EditKind.INSERT, position, track_id=track_id)

    @classmethod
    def remove(cls, position: int) -> 'PlaylistEdit':
        return cls(EditKind.REMOVE, position)

    @classmethod
    def move(cls, position: int, target: int) -> 'PlaylistEdit':
        return cls(EditKind.MOVE, position, target=target)

    def apply(self, entries: List[int]) -> List[int]:
        """Return a new entry list with this edit applied."""
        result = list(entries)
        if self.kind == EditKind.INSERT:
            result.insert(self.position, self.track_id)
        elif self.kind == EditKind.REMOVE:
            result.pop(self.position)
        else:
            result.insert(self.target, result.pop(self.position))
        return result


class PlaylistStore:
    """Manages playlists.

    Entries may outlive their library tracks; such dangling references are
    pruned when the playlist is next read or edited. Edits are reported via
    ``on_playlist_edited`` so an active playback context can follow them.
    """

    def __init__(self, library: Library, playlists: Optional[Dict[str, List[int]]] = None):
        self._library = library
        self._playlists: Dict[str, List[int]] = {
            name: list(entries) for name, entries in (playlists or {}).items()
        }

        self.on_playlist_edited: Optional[Callable[[str, PlaylistEdit], None]] = None
        self.on_playlist_renamed: Optional[Callable[[str, str], None]] = None
        self.on_playlist_deleted: Optional[Callable[[str], None]] = None

    def __contains__(self, name: str) -> bool:
        return name in self._playlists

    def names(self) -> List[str]:
        return sorted(self._playlists)

    def _require(self, name: str) -> List[int]:
        try:
            return self._playlists[name]
        except KeyError:
            raise UnknownPlaylist(name) from None

    def _prune(self, name: str) -> List[int]:
        entries = self._require(name)
        alive = [track_id for track_id in entries if track_id in self._library]
        if len(alive) != len(entries):
            logger.debug("Pruned %d dangling entries from playlist %s",
                         len(entries) - len(alive), name)
            self._playlists[name] = alive
        return self._playlists[name]

    @staticmethod
    def _clean_name(name: str) -> str:
        sanitized = SecurityValidator.sanitize_playlist_name(name)
        if not sanitized:
            raise InvalidPlaylistName(name)
        return sanitized

    def entries(self, name: str) -> List[int]:
        """Track ids of a playlist with dangling references removed."""
        return list(self._prune(name))

    def raw_entries(self, name: str) -> List[int]:
        """Stored ids including dangling references (for persistence)."""
        return list(self._require(name))

    def as_dict(self) -> Dict[str, List[int]]:
        return {name: list(entries) for name, entries in self._playlists.items()}

    def create(self, name: str, entries: Optional[List[int]] = None) -> str:
        """Create a playlist and return its (sanitized) name."""
        name = self._clean_name(name)
        if name in self._playlists:
            raise PlaylistExists(name)
        for track_id in entries or []:
            self._library.get(track_id)
        self._playlists[name] = list(entries or [])
        logger.info("Created playlist %s", name)
        return name

    def delete(self, name: str) -> None:
        self._require(name)
        del self._playlists[name]
        logger.info("Deleted playlist %s", name)
        if self.on_playlist_deleted:
            self.on_playlist_deleted(name)

    def rename(self, old_name: str, new_name: str) -> str:
        entries = self._require(old_name)
        new_name = self._clean_name(new_name)
        if new_name == old_name:
            return new_name
        if new_name in self._playlists:
            raise PlaylistExists(new_name)
        del self._playlists[old_name]
        self._playlists[new_name] = entries
        logger.info("Renamed playlist %s -> %s", old_name, new_name)
        if self.on_playlist_renamed:
            self.on_playlist_renamed(old_name, new_name)
        return new_name

    def _edit(self, name: str, edit: PlaylistEdit) -> PlaylistEdit:
        self._playlists[name] = edit.apply(self._playlists[name])
        if self.on_playlist_edited:
            self.on_playlist_edited(name, edit)
        return edit

    def append(self, name: str, track_id: int) -> PlaylistEdit:
        entries = self._prune(name)
        return self.insert(name, len(entries), track_id)

    def insert(self, name: str, position: int, track_id: int) -> PlaylistEdit:
        """Insert a track before ``position`` (``len`` appends)."""
        entries = self._prune(name)
        if track_id not in self._library:
            raise UnknownTrack(track_id)
        if not 0 <= position <= len(entries):
            raise IndexOutOfRange(position, len(entries) + 1)
        return self._edit(name, PlaylistEdit.insert(position, track_id))

    def remove(self, name: str, position: int) -> PlaylistEdit:
        entries = self._prune(name)
        if not 0 <= position < len(entries):
            raise IndexOutOfRange(position, len(entries))
        return self._edit(name, PlaylistEdit.remove(position))

    def move(self, name: str, from_index: int, to_index: int) -> PlaylistEdit:
        """Move an entry from one position to another."""
        entries = self._prune(name)
        for index in (from_index, to_index):
            if not 0 <= index < len(entries):
                raise IndexOutOfRange(index, len(entries))
        return self._edit(name, PlaylistEdit.move(from_index, to_index))

    def move_up(self, name: str, position: int) -> PlaylistEdit:
        """Swap an entry with the one above it (no-op move at the top)."""
        return self.move(name, position, max(position - 1, 0))

    def move_down(self, name: str, position: int) -> PlaylistEdit:
        entries = self._prune(name)
        return self.move(name, position, min(position + 1, max(len(entries) - 1, 0)))
