"""synchron - entry point.

The GLib main loop is the control thread: GStreamer bus messages, D-Bus
calls and progress polling all run there. Prompt input is read on a
separate thread and each line is handed to the main loop with
``GLib.idle_add``, so commands never run concurrently with playback events.
"""

import sys
import threading

import dbus
import gi
gi.require_version('GLib', '2.0')
gi.require_version('Gst', '1.0')
from gi.repository import GLib, Gst

from synchron.commands import CommandInterpreter
from synchron.config import get_config
from synchron.database import Database
from synchron.events import EventBus
from synchron.exceptions import ConfigurationError, PersistenceError
from synchron.gst_backend import GstBackend
from synchron.logging import LinuxLogger, get_logger
from synchron.player import Player
from synchron.queue_engine import LoopMode

logger = get_logger(__name__)


class PromptReader(threading.Thread):
    """Reads command lines from stdin and runs them on the main loop."""

    def __init__(self, interpreter: CommandInterpreter, prompt: str, main_loop):
        super().__init__(name="prompt", daemon=True)
        self._interpreter = interpreter
        self._prompt = prompt
        self._main_loop = main_loop

    def _dispatch(self, line: str) -> str:
        done = threading.Event()
        result = {'output': ""}

        def run_command():
            try:
                result['output'] = self._interpreter.execute(line)
            finally:
                done.set()
            return False

        GLib.idle_add(run_command)
        done.wait()
        return result['output']

    def run(self) -> None:
        while self._interpreter.running:
            try:
                line = input(self._prompt)
            except EOFError:
                break
            output = self._dispatch(line)
            if output:
                print(output, flush=True)
        GLib.idle_add(self._main_loop.quit)


def _start_mpris(events: EventBus, player: Player, main_loop):
    from synchron.mpris import MPRIS2Manager

    try:
        mpris = MPRIS2Manager(events)
    except dbus.exceptions.DBusException as e:
        logger.warning("MPRIS2 unavailable: %s", e)
        return None
    mpris.attach(player, on_quit=main_loop.quit)
    return mpris


def main() -> int:
    """Main entry point."""
    try:
        config = get_config()
        settings = dict(
            volume=config.volume,
            volume_step=config.volume_step,
            seek_step=config.seek_step,
            loop=LoopMode(config.loop_mode),
            shuffle=config.shuffle,
        )
        mpris_enabled = config.mpris_enabled
        prompt = config.prompt
        log_level = config.log_level
    except ConfigurationError as e:
        print(f"synchron: {e}", file=sys.stderr)
        return 1

    LinuxLogger(config.log_dir, level=log_level)

    database = Database(config.database_file)
    try:
        snapshot = database.load()
    except PersistenceError as e:
        logger.critical("%s", e)
        print(f"synchron: {e}", file=sys.stderr)
        LinuxLogger.shutdown()
        return 1

    Gst.init(None)
    events = EventBus()
    player = Player(database, GstBackend(), snapshot, events, **settings)
    interpreter = CommandInterpreter(player)
    main_loop = GLib.MainLoop()

    mpris = None
    if mpris_enabled:
        mpris = _start_mpris(events, player, main_loop)

    player.controller.start_polling()
    PromptReader(interpreter, prompt, main_loop).start()

    try:
        main_loop.run()
    except KeyboardInterrupt:
        pass
    finally:
        player.shutdown()
        if mpris is not None:
            mpris.cleanup()
        LinuxLogger.shutdown()
    return 0


if __name__ == '__main__':
    sys.exit(main())
