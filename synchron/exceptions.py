"""Custom exception hierarchy for the synchron player.

Every recoverable failure raised by the library, playlist store, queue
engine or playback controller derives from ``SynchronError`` so the command
surface can render it without knowing the concrete kind.
"""


class SynchronError(Exception):
    """Base exception for all player errors."""

    pass


class UnknownTrack(SynchronError):
    """A referenced track identifier is absent from the library."""

    def __init__(self, track_id):
        super().__init__(f"Unknown track: {track_id}")
        self.track_id = track_id


class UnknownPlaylist(SynchronError):
    """A referenced playlist name does not exist."""

    def __init__(self, name: str):
        super().__init__(f"Unknown playlist: {name}")
        self.name = name


class PlaylistExists(SynchronError):
    """A playlist with the requested name already exists."""

    def __init__(self, name: str):
        super().__init__(f"Playlist already exists: {name}")
        self.name = name


class InvalidPlaylistName(SynchronError):
    """A playlist name is empty once sanitized."""

    def __init__(self, name: str):
        super().__init__(f"Invalid playlist name: {name!r}")
        self.name = name


class EmptyContext(SynchronError):
    """Playback was requested with no tracks available."""

    def __init__(self, message: str = "Nothing to play"):
        super().__init__(message)


class IndexOutOfRange(SynchronError):
    """A playlist edit referenced a position that does not exist."""

    def __init__(self, index: int, length: int):
        super().__init__(f"Position {index} out of range (0-{max(length - 1, 0)})")
        self.index = index
        self.length = length


class DecodeError(SynchronError):
    """The audio backend failed to open or play a file."""

    pass


class TagError(SynchronError):
    """Reading or writing a file's metadata failed."""

    pass


class InvalidPath(SynchronError):
    """A file path failed validation (missing, not a file, bad extension)."""

    pass


class PersistenceError(SynchronError):
    """The library database is unreadable or malformed."""

    pass


class ConfigurationError(SynchronError):
    """Errors related to configuration."""

    pass


class CommandError(SynchronError):
    """A command line could not be parsed."""

    pass
