"""Playback ordering: the immediate queue, the playlist queue and loop/shuffle.

Two queues decide what plays next:

- The *immediate* queue holds tracks the user asked to hear next. Entries
  are consumed when selected and can never be reached again through
  ``previous``.
- The *playlist* queue is a cursor into the active context (one track, a
  playlist or the whole library). Moving it is a pointer move, so it can be
  walked in both directions.

The ordering state is a frozen ``QueueState``; the module-level functions
take a state plus an event and return the next state. ``QueueEngine`` owns
the current state, validates input against the library and publishes
changes on the event bus.
"""

import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from synchron.events import EventBus
from synchron.exceptions import EmptyContext, IndexOutOfRange
from synchron.library import Library
from synchron.logging import get_logger
from synchron.playlist_store import EditKind, PlaylistEdit

logger = get_logger(__name__)


class LoopMode(Enum):
    OFF = "off"
    TRACK = "track"
    PLAYLIST = "playlist"

    def cycle(self) -> 'LoopMode':
        members = list(LoopMode)
        return members[(members.index(self) + 1) % len(members)]


class ContextKind(Enum):
    TRACK = "track"
    PLAYLIST = "playlist"
    LIBRARY = "library"


@dataclass(frozen=True)
class PlaybackContext:
    """What the playlist queue walks over: a snapshot of track ids."""

    kind: ContextKind
    entries: Tuple[int, ...] = ()
    name: Optional[str] = None

    @classmethod
    def single(cls, track_id: int) -> 'PlaybackContext':
        return cls(ContextKind.TRACK, (track_id,))

    @classmethod
    def playlist(cls, name: str, entries: Iterable[int]) -> 'PlaybackContext':
        return cls(ContextKind.PLAYLIST, tuple(entries), name)

    @classmethod
    def library(cls, entries: Iterable[int]) -> 'PlaybackContext':
        return cls(ContextKind.LIBRARY, tuple(entries))

    def label(self) -> str:
        if self.kind == ContextKind.PLAYLIST:
            return f"playlist {self.name}" if self.name else "playlist (deleted)"
        return self.kind.value


@dataclass(frozen=True)
class QueueState:
    """Complete ordering state.

    ``order`` lists context positions in traversal order (a permutation when
    shuffled). ``cursor`` indexes ``order``; ``cursor == len(order)`` means
    the context has been played through. ``primed`` is False until the
    cursor's track has been handed out, so the first ``next`` after opening
    a context plays the opened item instead of skipping it.
    """

    immediate: Tuple[int, ...] = ()
    context: Optional[PlaybackContext] = None
    order: Tuple[int, ...] = ()
    cursor: int = 0
    primed: bool = False
    loop: LoopMode = LoopMode.OFF
    shuffle: bool = False
    current: Optional[int] = None
    from_immediate: bool = False

    @property
    def entries(self) -> Tuple[int, ...]:
        return self.context.entries if self.context else ()

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.order)

    def track_at(self, cursor: int) -> int:
        return self.entries[self.order[cursor]]

    def cursor_position(self) -> Optional[int]:
        """Context position under the cursor, None when exhausted."""
        if self.exhausted:
            return None
        return self.order[self.cursor]


# ============================================================================
# Traversal order
# ============================================================================
def traversal_order(entries: Sequence[int], shuffle: bool, rng: random.Random,
                    first: Optional[int] = None,
                    avoid_track: Optional[int] = None) -> Tuple[int, ...]:
    """
    Build the order in which context positions are visited.

    Args:
        entries: Context track ids
        shuffle: Permute positions when True, else keep them sequential
        rng: Random source for the permutation
        first: Position to put at the front of a shuffled order
        avoid_track: Track that should not open a shuffled order, if any
            other track is available

    Returns:
        Tuple of positions into ``entries``
    """
    positions = list(range(len(entries)))
    if not shuffle:
        return tuple(positions)

    rng.shuffle(positions)
    if first is not None:
        positions.remove(first)
        positions.insert(0, first)
    elif avoid_track is not None and positions and entries[positions[0]] == avoid_track:
        for i, position in enumerate(positions):
            if entries[position] != avoid_track:
                positions[0], positions[i] = positions[i], positions[0]
                break
    return tuple(positions)


def _anchored(state: QueueState, context: PlaybackContext, anchor: Optional[int],
              primed: bool, rng: random.Random) -> QueueState:
    """Rebuild order and cursor so the cursor sits on context position ``anchor``.

    ``anchor=None`` leaves the cursor exhausted.
    """
    if anchor is None:
        order = traversal_order(context.entries, state.shuffle, rng)
        return replace(state, context=context, order=order, cursor=len(order),
                       primed=True)
    order = traversal_order(context.entries, state.shuffle, rng, first=anchor)
    cursor = 0 if state.shuffle else anchor
    return replace(state, context=context, order=order, cursor=cursor, primed=primed)


def _wrapped(state: QueueState, context: PlaybackContext,
             rng: random.Random) -> QueueState:
    """Restart traversal at the beginning with a fresh order."""
    order = traversal_order(context.entries, state.shuffle, rng,
                            avoid_track=state.current)
    return replace(state, context=context, order=order, cursor=0, primed=False)


# ============================================================================
# Transitions
# ============================================================================
def enqueue(state: QueueState, track_id: int) -> QueueState:
    return replace(state, immediate=state.immediate + (track_id,))


def clear_immediate(state: QueueState) -> QueueState:
    return replace(state, immediate=())


def open_context(state: QueueState, context: PlaybackContext, start: int,
                 rng: random.Random) -> QueueState:
    """Replace the playlist queue; the immediate queue is left alone."""
    if not context.entries:
        return replace(state, context=context, order=(), cursor=0, primed=False)
    if not 0 <= start < len(context.entries):
        raise IndexOutOfRange(start, len(context.entries))
    return _anchored(state, context, start, False, rng)


def load_current(state: QueueState, rng: random.Random) -> Tuple[QueueState, int]:
    """Make the cursor's track current without advancing.

    A played-through context starts over from the beginning.
    """
    if not state.entries:
        raise EmptyContext()
    if state.exhausted:
        state = _wrapped(state, state.context, rng)
    track_id = state.track_at(state.cursor)
    return replace(state, primed=True, current=track_id, from_immediate=False), track_id


def advance(state: QueueState, rng: random.Random) -> Tuple[QueueState, Optional[int]]:
    """
    Pick the next track.

    Returns:
        The new state and the track to play, or None at the end of the
        queue (loop off), in which case nothing is current any more

    Raises:
        EmptyContext: Nothing queued and the context has no tracks
    """
    if state.immediate:
        head = state.immediate[0]
        return replace(state, immediate=state.immediate[1:], current=head,
                       from_immediate=True), head

    if state.loop == LoopMode.TRACK and state.current is not None:
        return state, state.current

    if not state.entries:
        raise EmptyContext()

    if not state.primed and not state.exhausted:
        cursor = state.cursor
    elif state.cursor + 1 < len(state.order):
        cursor = state.cursor + 1
    elif state.loop == LoopMode.PLAYLIST:
        state = _wrapped(state, state.context, rng)
        cursor = 0
    else:
        return replace(state, cursor=len(state.order), primed=True, current=None,
                       from_immediate=False), None

    track_id = state.track_at(cursor)
    return replace(state, cursor=cursor, primed=True, current=track_id,
                   from_immediate=False), track_id


def retreat(state: QueueState) -> Tuple[QueueState, int]:
    """
    Step the playlist queue back.

    The immediate queue is ignored. When the current track came from the
    immediate queue, the playlist queue's own item is returned first.
    An unprimed cursor points one past the item before it, so it steps
    back like a primed one.
    """
    if not state.entries:
        raise EmptyContext()

    if not state.exhausted and state.from_immediate:
        cursor = state.cursor
    elif state.cursor > 0:
        cursor = min(state.cursor, len(state.order)) - 1
    elif state.loop == LoopMode.PLAYLIST:
        cursor = len(state.order) - 1
    else:
        cursor = 0

    track_id = state.track_at(cursor)
    return replace(state, cursor=cursor, primed=True, current=track_id,
                   from_immediate=False), track_id


def set_loop(state: QueueState, mode: LoopMode) -> QueueState:
    return replace(state, loop=mode)


def set_shuffle(state: QueueState, enabled: bool, rng: random.Random) -> QueueState:
    """Toggle shuffle, regenerating the order around the cursor's track."""
    if state.shuffle == enabled:
        return state
    state = replace(state, shuffle=enabled)
    if state.context is None:
        return state
    return _anchored(state, state.context, state.cursor_position(), state.primed, rng)


def _reanchor(state: QueueState, entries: Sequence[int],
              mapping: Callable[[int], Optional[int]],
              rng: random.Random) -> QueueState:
    """
    Carry the cursor across a change of context entries.

    ``mapping`` translates an old context position to its new position, or
    None if that entry is gone. The cursor keeps its track; if the track is
    gone it moves to the next surviving entry in traversal order, left
    unprimed so the following ``next`` plays it. With nothing left ahead the
    cursor wraps (loop playlist) or is exhausted.
    """
    context = replace(state.context, entries=tuple(entries))
    if state.exhausted:
        return _anchored(state, context, None, True, rng)

    anchor = mapping(state.order[state.cursor])
    if anchor is not None:
        return _anchored(state, context, anchor, state.primed, rng)

    for position in state.order[state.cursor + 1:]:
        anchor = mapping(position)
        if anchor is not None:
            return _anchored(state, context, anchor, False, rng)

    if state.loop == LoopMode.PLAYLIST and entries:
        return _wrapped(state, context, rng)
    return _anchored(state, context, None, True, rng)


def remove_tracks(state: QueueState, removed: Iterable[int],
                  rng: random.Random) -> QueueState:
    """Drop library-removed tracks from both queues and the current pointer."""
    removed = set(removed)
    state = replace(state, immediate=tuple(t for t in state.immediate if t not in removed))
    if state.current in removed:
        state = replace(state, current=None, from_immediate=False)

    old_entries = state.entries
    if not any(track_id in removed for track_id in old_entries):
        return state

    new_positions: List[Optional[int]] = []
    kept: List[int] = []
    for track_id in old_entries:
        if track_id in removed:
            new_positions.append(None)
        else:
            new_positions.append(len(kept))
            kept.append(track_id)
    return _reanchor(state, kept, lambda position: new_positions[position], rng)


def append_tracks(state: QueueState, track_ids: Sequence[int],
                  rng: random.Random) -> QueueState:
    """Grow a library context with newly added tracks."""
    if state.context is None or state.context.kind != ContextKind.LIBRARY or not track_ids:
        return state
    entries = state.entries + tuple(track_ids)
    return _reanchor(state, entries, lambda position: position, rng)


def _edit_mapping(edit: PlaylistEdit) -> Callable[[int], Optional[int]]:
    if edit.kind == EditKind.INSERT:
        return lambda p: p + 1 if p >= edit.position else p
    if edit.kind == EditKind.REMOVE:
        return lambda p: None if p == edit.position else (p - 1 if p > edit.position else p)

    src, dst = edit.position, edit.target

    def moved(p: int) -> int:
        if p == src:
            return dst
        if src < p <= dst:
            return p - 1
        if dst <= p < src:
            return p + 1
        return p
    return moved


def apply_playlist_edit(state: QueueState, name: str, edit: PlaylistEdit,
                        rng: random.Random) -> QueueState:
    """Follow an edit of the playlist the context was opened from."""
    context = state.context
    if context is None or context.kind != ContextKind.PLAYLIST or context.name != name:
        return state
    return _reanchor(state, edit.apply(list(context.entries)), _edit_mapping(edit), rng)


def rename_playlist(state: QueueState, old_name: str, new_name: str) -> QueueState:
    context = state.context
    if context is None or context.kind != ContextKind.PLAYLIST or context.name != old_name:
        return state
    return replace(state, context=replace(context, name=new_name))


def detach_playlist(state: QueueState, name: str) -> QueueState:
    """Keep playing a deleted playlist's snapshot, but stop following edits."""
    return rename_playlist(state, name, None)


# ============================================================================
# Engine
# ============================================================================
class QueueEngine:
    """Owns the ordering state and the only way to change it.

    Every operation runs on the control thread and finishes synchronously.
    """

    def __init__(self, library: Library, event_bus: Optional[EventBus] = None,
                 rng: Optional[random.Random] = None,
                 loop: LoopMode = LoopMode.OFF, shuffle: bool = False):
        self._library = library
        self._events = event_bus
        self._rng = rng or random.Random()
        self._state = QueueState(loop=loop, shuffle=shuffle)

        # Called after a reconciliation removed the current track
        self.on_current_removed: Optional[Callable[[], None]] = None

    def _publish(self, event: str, data=None) -> None:
        if self._events is not None:
            self._events.publish(event, data)

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def current(self) -> Optional[int]:
        return self._state.current

    @property
    def loop(self) -> LoopMode:
        return self._state.loop

    @property
    def shuffle(self) -> bool:
        return self._state.shuffle

    @property
    def context(self) -> Optional[PlaybackContext]:
        return self._state.context

    def upcoming(self) -> List[int]:
        """Immediate queue contents, head first."""
        return list(self._state.immediate)

    def cursor_position(self) -> Optional[int]:
        return self._state.cursor_position()

    def view(self) -> List[Tuple[bool, int]]:
        """Context entries in stored order, flagging the one under the cursor."""
        position = self._state.cursor_position()
        return [(index == position, track_id)
                for index, track_id in enumerate(self._state.entries)]

    def has_context(self) -> bool:
        return bool(self._state.entries)

    # Immediate queue -------------------------------------------------------

    def enqueue(self, track_id: int) -> None:
        self._library.get(track_id)
        self._state = enqueue(self._state, track_id)
        logger.debug("Queued track %d (%d waiting)", track_id, len(self._state.immediate))
        self._publish(EventBus.QUEUE_CHANGED, {"queue": self.upcoming()})

    def clear_queue(self) -> None:
        self._state = clear_immediate(self._state)
        self._publish(EventBus.QUEUE_CHANGED, {"queue": []})

    # Playlist queue --------------------------------------------------------

    def open_context(self, context: PlaybackContext, start: int = 0) -> None:
        for track_id in set(context.entries):
            self._library.get(track_id)
        self._state = open_context(self._state, context, start, self._rng)
        logger.info("Opened %s (%d tracks) at %d", context.label(), len(context.entries), start)
        self._publish(EventBus.CONTEXT_CHANGED, {"context": context})

    def load_current(self) -> int:
        self._state, track_id = load_current(self._state, self._rng)
        return track_id

    def next(self) -> Optional[int]:
        had_immediate = bool(self._state.immediate)
        self._state, track_id = advance(self._state, self._rng)
        if had_immediate:
            self._publish(EventBus.QUEUE_CHANGED, {"queue": self.upcoming()})
        if track_id is None:
            logger.info("End of queue")
            self._publish(EventBus.END_OF_QUEUE)
        return track_id

    def previous(self) -> int:
        self._state, track_id = retreat(self._state)
        return track_id

    # Modes -----------------------------------------------------------------

    def set_loop(self, mode: LoopMode) -> None:
        if mode != self._state.loop:
            self._state = set_loop(self._state, mode)
            self._publish(EventBus.LOOP_MODE_CHANGED, {"mode": mode})

    def cycle_loop(self) -> LoopMode:
        self.set_loop(self._state.loop.cycle())
        return self._state.loop

    def set_shuffle(self, enabled: bool) -> None:
        if enabled != self._state.shuffle:
            self._state = set_shuffle(self._state, enabled, self._rng)
            self._publish(EventBus.SHUFFLE_CHANGED, {"enabled": enabled})

    def toggle_shuffle(self) -> bool:
        self.set_shuffle(not self._state.shuffle)
        return self._state.shuffle

    # Reconciliation --------------------------------------------------------

    def reconcile_on_library_change(self, removed_ids: Iterable[int]) -> None:
        removed_ids = list(removed_ids)
        had_current = self._state.current
        queued = len(self._state.immediate)
        self._state = remove_tracks(self._state, removed_ids, self._rng)

        if len(self._state.immediate) != queued:
            self._publish(EventBus.QUEUE_CHANGED, {"queue": self.upcoming()})
        if had_current is not None and self._state.current is None:
            logger.info("Current track %d was removed from the library", had_current)
            if self.on_current_removed:
                self.on_current_removed()

    def reconcile_on_library_add(self, added_ids: Sequence[int]) -> None:
        self._state = append_tracks(self._state, added_ids, self._rng)

    def reconcile_on_playlist_change(self, playlist_name: str, edit: PlaylistEdit) -> None:
        self._state = apply_playlist_edit(self._state, playlist_name, edit, self._rng)

    def reconcile_on_playlist_rename(self, old_name: str, new_name: str) -> None:
        self._state = rename_playlist(self._state, old_name, new_name)

    def reconcile_on_playlist_delete(self, playlist_name: str) -> None:
        self._state = detach_playlist(self._state, playlist_name)
