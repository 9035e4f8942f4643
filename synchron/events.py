"""Centralized event bus for decoupled component communication."""

from typing import Any, Callable, Dict, List

from synchron.logging import get_logger

logger = get_logger(__name__)


class EventBus:
    """Publish-subscribe event system.

    The player core (QueueEngine, PlaybackController, Player) publishes
    *_CHANGED notifications; surfaces such as MPRIS subscribe to them.
    Callbacks run synchronously on the control thread.
    """

    # Playback state (published by PlaybackController)
    # {"state": "playing"|"paused"|"stopped", "track": Track?}
    PLAYBACK_STATE_CHANGED = "playback.state_changed"
    # {"position": float, "duration": float}
    PLAYBACK_PROGRESS = "playback.progress"
    # {"position": float} after an explicit seek
    PLAYBACK_SEEKED = "playback.seeked"
    VOLUME_CHANGED = "volume.changed"
    # {"track": Track?}
    TRACK_CHANGED = "track.changed"

    # Ordering state (published by QueueEngine)
    SHUFFLE_CHANGED = "queue.shuffle_changed"
    LOOP_MODE_CHANGED = "queue.loop_mode_changed"
    QUEUE_CHANGED = "queue.changed"
    CONTEXT_CHANGED = "queue.context_changed"
    END_OF_QUEUE = "queue.end"

    # Collection state (published by Player)
    LIBRARY_CHANGED = "library.changed"
    PLAYLIST_CHANGED = "playlist.changed"

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, event: str, callback: Callable[[Any], None]) -> None:
        if event not in self._subscribers:
            self._subscribers[event] = []
        self._subscribers[event].append(callback)

    def unsubscribe(self, event: str, callback: Callable[[Any], None]) -> None:
        if event in self._subscribers:
            try:
                self._subscribers[event].remove(callback)
            except ValueError:
                pass

    def publish(self, event: str, data: Any = None) -> None:
        for callback in list(self._subscribers.get(event, [])):
            try:
                callback(data)
            except Exception as e:
                logger.error(
                    "Error in event callback for %s: %s", event, e, exc_info=True
                )
