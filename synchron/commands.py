"""Text command interpreter for the prompt.

``CommandInterpreter.execute`` takes one input line and returns the text to
print. Recoverable errors never escape: they are rendered as
``Error: <message>``.
"""

import shlex
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from synchron.exceptions import CommandError, SynchronError
from synchron.logging import get_logger
from synchron.player import Player
from synchron.queue_engine import LoopMode
from synchron.track import Track

logger = get_logger(__name__)

HELP_TEXT = """\
Playback:  open <path|id>, queue [<path|id>|clear], next, prev, status,
           play [library [id]], pause, toggle, stop
Modes:     loop off|track|playlist|get, shuffle on|off|toggle|get
Volume:    volume up|down|set <v>|get|reset|mute
Position:  position set <s>|get, seek forward|backward
Library:   library, add <path>, remove <id>..., tag <id> <field> <value>,
           refresh <id>, search <query>
Playlists: playlist list|show <name>|create <name> [id...]|delete <name>|
           rename <old> <new>|add <name> <id>|insert <name> <pos> <id>|
           remove <name> <pos>|move <name> <from> <to>|up <name> <pos>|
           down <name> <pos>|play <name> [pos]
Other:     help, exit"""


class _Unrecognized(Exception):
    """Raised by handlers for subcommands they do not know."""


def _int(value: str, what: str = "number") -> int:
    try:
        return int(value)
    except ValueError:
        raise CommandError(f"Invalid {what}: {value}") from None


def _float(value: str, what: str = "number") -> float:
    try:
        return float(value)
    except ValueError:
        raise CommandError(f"Invalid {what}: {value}") from None


def _marked_lines(rows: Sequence[Tuple[bool, Track]]) -> List[str]:
    return [f"{'->' if marked else '  '} {index}: {track.format()}"
            for index, (marked, track) in enumerate(rows)]


class CommandInterpreter:
    """Maps prompt commands onto Player operations."""

    def __init__(self, player: Player):
        self._player = player
        self.running = True
        self._handlers: Dict[str, Callable[[List[str]], Optional[str]]] = {
            'open': self._open,
            'queue': self._queue,
            'next': self._next,
            'prev': self._prev,
            'status': self._status,
            'toggle': self._toggle,
            'play': self._play,
            'pause': self._pause,
            'stop': self._stop,
            'loop': self._loop,
            'shuffle': self._shuffle,
            'volume': self._volume,
            'position': self._position,
            'seek': self._seek,
            'library': self._library,
            'add': self._add,
            'remove': self._remove,
            'tag': self._tag,
            'refresh': self._refresh,
            'search': self._search,
            'playlist': self._playlist,
            'help': self._help,
            'exit': self._exit,
        }

    def execute(self, line: str) -> str:
        line = line.strip()
        if not line:
            return ""
        try:
            tokens = shlex.split(line)
        except ValueError:
            # Unbalanced quotes, e.g. an apostrophe in a file name
            tokens = line.split()

        handler = self._handlers.get(tokens[0])
        try:
            if handler is None:
                raise _Unrecognized()
            return handler(tokens[1:]) or ""
        except _Unrecognized:
            return f"Unknown command: '{line}'"
        except SynchronError as e:
            logger.debug("Command %r failed: %s", line, e)
            return f"Error: {e}"

    # Playback --------------------------------------------------------------

    def _open(self, args: List[str]) -> str:
        if not args:
            raise CommandError("Usage: open <path|id>")
        return f"Playing: {self._player.open(' '.join(args)).format()}"

    def _queue(self, args: List[str]) -> str:
        engine = self._player.engine
        if not args:
            upcoming = [self._player.library.get(track_id) for track_id in engine.upcoming()]
            if not upcoming:
                return "Queue is empty"
            return "\n".join(f"{index}: {track.format()}" for index, track in enumerate(upcoming))
        if args == ['clear']:
            engine.clear_queue()
            return "Queue cleared"
        return f"Queued: {self._player.queue(' '.join(args)).format()}"

    def _next(self, args: List[str]) -> str:
        if args:
            raise _Unrecognized()
        track = self._player.controller.skip_next()
        return f"Playing: {track.format()}" if track else "End of queue"

    def _prev(self, args: List[str]) -> str:
        if args:
            raise _Unrecognized()
        return f"Playing: {self._player.controller.skip_previous().format()}"

    def _status(self, args: List[str]) -> str:
        text = self._player.controller.get_status().format()
        view = _marked_lines(self._player.queue_view())
        if view:
            text += "\n\n" + "\n".join(view)
        return text

    def _toggle(self, args: List[str]) -> None:
        self._player.controller.toggle()

    def _play(self, args: List[str]) -> Optional[str]:
        if not args:
            self._player.controller.play()
            return None
        if args[0] != 'library' or len(args) > 2:
            raise _Unrecognized()
        start = _int(args[1], "track id") if len(args) == 2 else None
        return f"Playing: {self._player.open_library(start).format()}"

    def _pause(self, args: List[str]) -> None:
        self._player.controller.pause()

    def _stop(self, args: List[str]) -> None:
        self._player.controller.stop()

    # Modes -----------------------------------------------------------------

    def _loop(self, args: List[str]) -> Optional[str]:
        engine = self._player.engine
        if args == ['get']:
            return engine.loop.value
        if len(args) != 1:
            raise _Unrecognized()
        try:
            engine.set_loop(LoopMode(args[0]))
        except ValueError:
            raise _Unrecognized() from None
        return None

    def _shuffle(self, args: List[str]) -> Optional[str]:
        engine = self._player.engine
        if args == ['on']:
            engine.set_shuffle(True)
        elif args == ['off']:
            engine.set_shuffle(False)
        elif args == ['toggle']:
            engine.toggle_shuffle()
        elif args == ['get']:
            return "On" if engine.shuffle else "Off"
        else:
            raise _Unrecognized()
        return None

    def _volume(self, args: List[str]) -> Optional[str]:
        controller = self._player.controller
        if args == ['up']:
            controller.volume_up()
        elif args == ['down']:
            controller.volume_down()
        elif args == ['reset']:
            controller.reset_volume()
        elif args == ['mute']:
            return "Muted" if controller.toggle_mute() else "Unmuted"
        elif args == ['get']:
            return f"{controller.volume:g}"
        elif len(args) == 2 and args[0] == 'set':
            controller.set_volume(_float(args[1], "volume"))
        else:
            raise _Unrecognized()
        return None

    def _position(self, args: List[str]) -> Optional[str]:
        controller = self._player.controller
        if args == ['get']:
            return controller.get_status().position_line()
        if len(args) == 2 and args[0] == 'set':
            controller.set_position(_float(args[1], "position"))
            return None
        raise _Unrecognized()

    def _seek(self, args: List[str]) -> None:
        controller = self._player.controller
        if args == ['forward']:
            controller.seek_forward()
        elif args == ['backward']:
            controller.seek_backward()
        else:
            raise _Unrecognized()

    # Library ---------------------------------------------------------------

    def _library(self, args: List[str]) -> str:
        tracks = self._player.library.tracks()
        if not tracks:
            return "Library is empty"
        return "\n".join(f"{track.id}: {track.format()}" for track in tracks)

    def _add(self, args: List[str]) -> str:
        if not args:
            raise CommandError("Usage: add <path>")
        track = self._player.add_track(' '.join(args))
        return f"Added {track.id}: {track.format()}"

    def _remove(self, args: List[str]) -> str:
        if not args:
            raise CommandError("Usage: remove <id>...")
        removed = self._player.remove_tracks([_int(arg, "track id") for arg in args])
        return "Removed " + ", ".join(str(track_id) for track_id in removed)

    def _tag(self, args: List[str]) -> str:
        if len(args) < 3:
            raise CommandError("Usage: tag <id> <field> <value>")
        track = self._player.update_tag(_int(args[0], "track id"), args[1], ' '.join(args[2:]))
        return f"Updated {track.id}: {track.format()}"

    def _refresh(self, args: List[str]) -> str:
        if len(args) != 1:
            raise CommandError("Usage: refresh <id>")
        track = self._player.refresh_tags(_int(args[0], "track id"))
        return f"{track.id}: {track.format()}"

    def _search(self, args: List[str]) -> str:
        if not args:
            raise CommandError("Usage: search <query>")
        results = self._player.library.search(' '.join(args))
        if not results:
            return "No matches"
        return "\n".join(f"{track.id}: {track.format()}" for track in results)

    # Playlists -------------------------------------------------------------

    def _playlist(self, args: List[str]) -> Optional[str]:
        if not args:
            raise _Unrecognized()
        player = self._player
        store = player.playlists
        sub, rest = args[0], args[1:]

        if sub == 'list' and not rest:
            names = store.names()
            return "\n".join(names) if names else "No playlists"
        if sub == 'show' and len(rest) == 1:
            lines = _marked_lines(player.playlist_view(rest[0]))
            return "\n".join(lines) if lines else f"Playlist {rest[0]} is empty"
        if sub == 'create' and rest:
            ids = [_int(arg, "track id") for arg in rest[1:]]
            return f"Created playlist {player.create_playlist(rest[0], ids)}"
        if sub == 'delete' and len(rest) == 1:
            store.delete(rest[0])
            return f"Deleted playlist {rest[0]}"
        if sub == 'rename' and len(rest) == 2:
            return f"Renamed playlist to {store.rename(rest[0], rest[1])}"
        if sub == 'add' and len(rest) == 2:
            store.append(rest[0], _int(rest[1], "track id"))
            return None
        if sub == 'insert' and len(rest) == 3:
            store.insert(rest[0], _int(rest[1], "position"), _int(rest[2], "track id"))
            return None
        if sub == 'remove' and len(rest) == 2:
            store.remove(rest[0], _int(rest[1], "position"))
            return None
        if sub == 'move' and len(rest) == 3:
            store.move(rest[0], _int(rest[1], "position"), _int(rest[2], "position"))
            return None
        if sub == 'up' and len(rest) == 2:
            store.move_up(rest[0], _int(rest[1], "position"))
            return None
        if sub == 'down' and len(rest) == 2:
            store.move_down(rest[0], _int(rest[1], "position"))
            return None
        if sub == 'play' and len(rest) in (1, 2):
            start = _int(rest[1], "position") if len(rest) == 2 else 0
            return f"Playing: {player.open_playlist(rest[0], start).format()}"
        raise _Unrecognized()

    # Other -----------------------------------------------------------------

    def _help(self, args: List[str]) -> str:
        return HELP_TEXT

    def _exit(self, args: List[str]) -> None:
        self.running = False
