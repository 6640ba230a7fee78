"""
Playback manager: plays cached tracks from a queue snapshot.

The manager owns one media engine at a time, the current PlaybackQueue
and the playback state. Every transition is published on an EventBus.

States:
    IDLE     no track loaded, or the last track ended, or stop() was called
    LOADING  resolving the cached file and opening it in the engine
    PLAYING  the engine is playing the current track
    PAUSED   paused by the user

    IDLE -> LOADING -> PLAYING <-> PAUSED
    PLAYING --(track ends)--> IDLE --(automatic next)--> LOADING ...
    any --stop()--> IDLE

Only cached tracks can be played. Asking for an uncached track publishes
a PlaybackError carrying NotAvailableOffline and leaves the manager IDLE.
A fresh play() keeps the previous queue and cursor in that case; next(),
previous() and the automatic advance still move the cursor onto the
uncached track, so pressing next again steps past it.

Thread Safety:
    All state changes happen under one reentrant lock. The engine reports
    the end of a track from its own thread; the notification carries the
    load generation it belongs to and is ignored if another track has been
    loaded since. Events are published while the lock is held, so an
    observer may call back into the manager from the same thread.
    stop() is the exception: the engine is closed and PlaybackStopped is
    published after the lock is released, because closing an engine may
    wait for its event thread, which may itself be waiting for the lock.

Usage:
    manager = PlaybackManager(store, MpvEngine)
    manager.events.subscribe(on_event)
    manager.play(tracks, 0)
"""

import threading
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator

from drive_player.cache.store import CacheStore
from drive_player.catalog.models import CatalogItem
from drive_player.core.exceptions import FileSystemError, NotAvailableOffline
from drive_player.core.logger import get_logger
from drive_player.playback.engine import EndObserver, EngineFactory, MediaEngine
from drive_player.playback.events import (
    EventBus,
    PlaybackError,
    PlaybackEvent,
    PlaybackStopped,
    PlaybackToggled,
    TrackFinished,
    TrackLoading,
    TrackStarted,
)
from drive_player.playback.queue import PlaybackQueue

logger = get_logger(__name__)


class PlaybackState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"


class PlaybackManager:
    """
    Queue-driven player for offline tracks.

    Attributes:
        events: Bus every playback event is published on.
        _store: Cache used to resolve tracks to local files.
        _engine_factory: Creates a media engine when one is needed.
        _engine: Current engine, or None before the first play and after stop().
        _queue: Current snapshot and cursor, or None before the first play.
        _generation: Incremented on every load and stop; end notifications
                     from older generations are dropped.
    """

    def __init__(
        self,
        store: CacheStore,
        engine_factory: EngineFactory,
        events: EventBus | None = None
    ) -> None:
        self._store = store
        self._engine_factory = engine_factory
        self.events = events or EventBus()

        self._lock = threading.RLock()
        self._engine: MediaEngine | None = None
        self._end_observer: EndObserver | None = None
        self._queue: PlaybackQueue | None = None
        self._state = PlaybackState.IDLE
        self._generation = 0

    # =========================================================================
    # Queue state
    # =========================================================================

    @property
    def state(self) -> PlaybackState:
        with self._lock:
            return self._state

    @property
    def items(self) -> tuple[CatalogItem, ...]:
        with self._lock:
            return self._queue.items if self._queue else ()

    @property
    def current_index(self) -> int | None:
        with self._lock:
            return self._queue.current_index if self._queue else None

    @property
    def current_item(self) -> CatalogItem | None:
        with self._lock:
            return self._queue.current_item if self._queue else None

    @property
    def has_next(self) -> bool:
        with self._lock:
            return self._queue is not None and self._queue.has_next

    @property
    def has_previous(self) -> bool:
        with self._lock:
            return self._queue is not None and self._queue.has_previous

    def upcoming(self, count: int) -> Iterator[CatalogItem]:
        """
        Lazily yield the next `count` items after the current one (fewer
        near the end).

        The iterator walks the snapshot taken at call time; a later play()
        does not change what it yields.
        """
        with self._lock:
            queue = self._queue
        if queue is None:
            return iter(())
        return queue.upcoming(count)

    # =========================================================================
    # Engine state
    # =========================================================================

    @property
    def position(self) -> float:
        with self._lock:
            return self._engine.position if self._engine else 0.0

    @property
    def duration(self) -> float | None:
        with self._lock:
            return self._engine.duration if self._engine else None

    @property
    def is_playing(self) -> bool:
        with self._lock:
            return self._state is PlaybackState.PLAYING

    def seek(self, seconds: float) -> None:
        with self._lock:
            if self._engine is not None and self._state in (PlaybackState.PLAYING, PlaybackState.PAUSED):
                self._engine.seek(seconds)

    # =========================================================================
    # Commands
    # =========================================================================

    def play(self, items: Iterable[CatalogItem], index: int) -> bool:
        """
        Start playing `items` at `index`.

        The items are copied into a new snapshot; the caller's list can
        change afterwards without affecting playback.

        Returns:
            True if playback started. On failure a PlaybackError event is
            published instead of raising:
                IndexError           index outside the list (state unchanged)
                NotAvailableOffline  the track is not cached (state IDLE)
                engine exception     the engine could not open it (state IDLE)
        """
        snapshot = tuple(items)
        with self._lock:
            if not 0 <= index < len(snapshot):
                self._publish(PlaybackError(IndexError(
                    f"Track index {index} out of range for {len(snapshot)} items"
                )))
                return False
            return self._start(PlaybackQueue(snapshot, index))

    def next(self) -> bool:
        """Play the following track. Does nothing on the last track."""
        with self._lock:
            if self._queue is None or not self._queue.has_next:
                return False
            following = self._queue.with_index(self._queue.current_index + 1)
            return self._start(following, move_on_miss=True)

    def previous(self) -> bool:
        """Play the preceding track. Does nothing on the first track."""
        with self._lock:
            if self._queue is None or not self._queue.has_previous:
                return False
            preceding = self._queue.with_index(self._queue.current_index - 1)
            return self._start(preceding, move_on_miss=True)

    def pause(self) -> None:
        with self._lock:
            if self._state is not PlaybackState.PLAYING or self._engine is None:
                return
            self._engine.pause()
            self._state = PlaybackState.PAUSED
            self._publish(PlaybackToggled(is_playing=False))

    def resume(self) -> None:
        with self._lock:
            if self._state is not PlaybackState.PAUSED or self._engine is None:
                return
            self._engine.play()
            self._state = PlaybackState.PLAYING
            self._publish(PlaybackToggled(is_playing=True))

    def toggle_play_pause(self) -> None:
        with self._lock:
            if self._state is PlaybackState.PLAYING:
                self.pause()
            elif self._state is PlaybackState.PAUSED:
                self.resume()

    def stop(self) -> None:
        """
        Stop playback and release the engine entirely.

        The queue is kept; the next play(), next() or previous() creates a
        new engine.
        """
        with self._lock:
            self._generation += 1
            self._detach_end_observer()
            engine, self._engine = self._engine, None
            self._state = PlaybackState.IDLE

        # Outside the lock: close() may join an engine thread that is
        # blocked in _handle_track_end waiting for it
        if engine is not None:
            try:
                engine.close()
            except Exception as e:
                logger.warning(f"Media engine failed to close cleanly: {e}")
        self._publish(PlaybackStopped())

    # =========================================================================
    # Internals
    # =========================================================================

    def _start(self, queue: PlaybackQueue, move_on_miss: bool = False) -> bool:
        """
        Load and play queue.current_item.

        move_on_miss commits the queue even when the item is not cached;
        stepping through a snapshot uses it so the next step goes past the gap.
        """
        item = queue.current_item
        path = self._resolve(item)

        if path is None:
            self._release_current_load()
            if move_on_miss:
                self._queue = queue
            self._state = PlaybackState.IDLE
            logger.warning(f"Not available offline: {item.name}")
            self._publish(PlaybackError(NotAvailableOffline(
                f"'{item.name}' is not available offline",
                details={"item_id": item.id, "name": item.name}
            )))
            return False

        self._queue = queue
        self._state = PlaybackState.LOADING
        self._publish(TrackLoading(item, queue.current_index))

        self._generation += 1
        generation = self._generation
        self._detach_end_observer()

        try:
            engine = self._ensure_engine()
            engine.load(str(path))
            self._end_observer = engine.add_end_observer(
                lambda: self._handle_track_end(generation)
            )
            engine.play()
        except Exception as e:
            logger.error(f"Could not play '{item.name}': {e}")
            self._release_current_load()
            self._state = PlaybackState.IDLE
            self._publish(PlaybackError(e))
            return False

        self._state = PlaybackState.PLAYING
        logger.debug(f"Playing [{queue.current_index}] {item.name}")
        self._publish(TrackStarted(item, queue.current_index))
        return True

    def _handle_track_end(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._queue is None:
                logger.debug("Ignoring end notification from an earlier track")
                return

            # Consume the notification so a repeated one is dropped
            self._generation += 1
            self._detach_end_observer()

            queue = self._queue
            self._state = PlaybackState.IDLE
            self._publish(TrackFinished(queue.current_item, queue.current_index))

            if queue.has_next:
                self._start(queue.with_index(queue.current_index + 1), move_on_miss=True)

    def _resolve(self, item: CatalogItem) -> Path | None:
        try:
            return self._store.resolve(item.name)
        except FileSystemError as e:
            logger.debug(f"Cannot resolve '{item.name}' in the cache: {e}")
            return None

    def _ensure_engine(self) -> MediaEngine:
        if self._engine is None:
            self._engine = self._engine_factory()
        return self._engine

    def _release_current_load(self) -> None:
        """Silence whatever is loaded without tearing down the engine."""
        self._generation += 1
        self._detach_end_observer()
        if self._engine is not None and self._state in (PlaybackState.PLAYING, PlaybackState.LOADING):
            try:
                self._engine.pause()
            except Exception as e:
                logger.debug(f"Media engine failed to pause: {e}")

    def _detach_end_observer(self) -> None:
        if self._end_observer is not None:
            self._end_observer.remove()
            self._end_observer = None

    def _publish(self, event: PlaybackEvent) -> None:
        self.events.publish(event)
