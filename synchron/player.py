"""Application shell: owns every component and keeps them consistent.

Each mutation of the library or a playlist runs the matching queue engine
reconciliation before the database is written, all synchronously on the
control thread.
"""

import random
from typing import List, Optional, Sequence, Tuple

from synchron.database import Database, Snapshot
from synchron.events import EventBus
from synchron.exceptions import SynchronError, UnknownTrack
from synchron.library import Library
from synchron.logging import get_logger
from synchron.playback_controller import PlaybackController
from synchron.playlist_store import PlaylistEdit, PlaylistStore
from synchron.queue_engine import LoopMode, PlaybackContext, QueueEngine
from synchron.tags import read_duration, read_tags, write_tag
from synchron.track import Track

logger = get_logger(__name__)


class Player:
    """Library, playlists, queue engine and playback controller wired together."""

    def __init__(self, database: Database, backend, snapshot: Optional[Snapshot] = None,
                 event_bus: Optional[EventBus] = None, rng: Optional[random.Random] = None,
                 volume: float = 1.0, volume_step: float = 0.3, seek_step: float = 5.0,
                 loop: LoopMode = LoopMode.OFF, shuffle: bool = False,
                 tag_reader=read_tags, tag_writer=write_tag, duration_reader=read_duration):
        snapshot = snapshot if snapshot is not None else database.load()

        self.database = database
        self.events = event_bus if event_bus is not None else EventBus()
        self.library = Library(snapshot.tracks, snapshot.next_id, tag_reader=tag_reader,
                               tag_writer=tag_writer, duration_reader=duration_reader)
        self.playlists = PlaylistStore(self.library, snapshot.playlists)
        self.engine = QueueEngine(self.library, self.events, rng, loop=loop, shuffle=shuffle)
        self.controller = PlaybackController(
            self.engine, self.library, backend, self.events,
            volume=volume, volume_step=volume_step, seek_step=seek_step,
        )

        self.library.on_tracks_added = self._on_tracks_added
        self.library.on_tracks_removed = self._on_tracks_removed
        self.library.on_track_updated = self._on_track_updated
        self.playlists.on_playlist_edited = self._on_playlist_edited
        self.playlists.on_playlist_renamed = self._on_playlist_renamed
        self.playlists.on_playlist_deleted = self._on_playlist_deleted

    # Persistence -----------------------------------------------------------

    def persist(self) -> None:
        self.database.write(Snapshot(
            tracks={track.id: track for track in self.library.tracks()},
            next_id=self.library.next_id,
            playlists=self.playlists.as_dict(),
        ))

    # Reconciliation --------------------------------------------------------

    def _on_tracks_added(self, track_ids: List[int]) -> None:
        self.engine.reconcile_on_library_add(track_ids)
        self.persist()
        self.events.publish(EventBus.LIBRARY_CHANGED, {"added": track_ids})

    def _on_tracks_removed(self, track_ids: List[int]) -> None:
        self.engine.reconcile_on_library_change(track_ids)
        self.persist()
        self.events.publish(EventBus.LIBRARY_CHANGED, {"removed": track_ids})

    def _on_track_updated(self, track: Track) -> None:
        self.persist()
        self.events.publish(EventBus.LIBRARY_CHANGED, {"updated": [track.id]})
        if track.id == self.engine.current:
            self.events.publish(EventBus.TRACK_CHANGED, {"track": track})

    def _on_playlist_edited(self, name: str, edit: PlaylistEdit) -> None:
        self.engine.reconcile_on_playlist_change(name, edit)
        self.persist()
        self.events.publish(EventBus.PLAYLIST_CHANGED, {"name": name})

    def _on_playlist_renamed(self, old_name: str, new_name: str) -> None:
        self.engine.reconcile_on_playlist_rename(old_name, new_name)
        self.persist()
        self.events.publish(EventBus.PLAYLIST_CHANGED, {"name": new_name, "old_name": old_name})

    def _on_playlist_deleted(self, name: str) -> None:
        self.engine.reconcile_on_playlist_delete(name)
        self.persist()
        self.events.publish(EventBus.PLAYLIST_CHANGED, {"name": name, "deleted": True})

    # Opening contexts ------------------------------------------------------

    def resolve(self, target: str) -> Track:
        """Turn a command argument into a track: a library id, else a file path."""
        target = target.strip()
        if target.isdigit() and int(target) in self.library:
            return self.library.get(int(target))
        return self.library.add(target)

    def _open(self, context: PlaybackContext, start: int = 0) -> Track:
        self.engine.open_context(context, start)
        self.controller.invalidate()
        try:
            return self.controller.start()
        except SynchronError:
            self.controller.stop()
            raise

    def open_track(self, track_id: int) -> Track:
        self.library.get(track_id)
        return self._open(PlaybackContext.single(track_id))

    def open_playlist(self, name: str, start: int = 0) -> Track:
        return self._open(PlaybackContext.playlist(name, self.playlists.entries(name)), start)

    def open_library(self, start_track: Optional[int] = None) -> Track:
        ids = self.library.ids()
        start = 0
        if start_track is not None:
            if start_track not in self.library:
                raise UnknownTrack(start_track)
            start = ids.index(start_track)
        return self._open(PlaybackContext.library(ids), start)

    def open(self, target: str) -> Track:
        return self.open_track(self.resolve(target).id)

    def queue(self, target: str) -> Track:
        track = self.resolve(target)
        self.engine.enqueue(track.id)
        return track

    # Library ---------------------------------------------------------------

    def add_track(self, path: str) -> Track:
        return self.library.add(path)

    def remove_tracks(self, track_ids: Sequence[int]) -> List[int]:
        return self.library.remove(track_ids)

    def update_tag(self, track_id: int, field: str, value: str) -> Track:
        return self.library.update_tag(track_id, field, value)

    def refresh_tags(self, track_id: int) -> Track:
        return self.library.refresh_tags(track_id)

    # Playlists -------------------------------------------------------------

    def create_playlist(self, name: str, entries: Optional[List[int]] = None) -> str:
        name = self.playlists.create(name, entries)
        self.persist()
        self.events.publish(EventBus.PLAYLIST_CHANGED, {"name": name})
        return name

    def playlist_view(self, name: str) -> List[Tuple[bool, Track]]:
        """Entries of a playlist, flagging the one under the queue cursor."""
        entries = self.playlists.entries(name)
        context = self.engine.context
        marked = None
        if context is not None and context.name == name:
            marked = self.engine.cursor_position()
        return [(index == marked, self.library.get(track_id))
                for index, track_id in enumerate(entries)]

    def queue_view(self) -> List[Tuple[bool, Track]]:
        return [(marked, self.library.get(track_id)) for marked, track_id in self.engine.view()]

    # Lifecycle -------------------------------------------------------------

    def shutdown(self) -> None:
        logger.info("Shutting down")
        self.controller.cleanup()
        self.persist()
