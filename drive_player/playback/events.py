"""
Playback events and the bus that delivers them.

The playback manager publishes one event per state change. Observers
subscribe to the event types they care about and keep the returned
Subscription; disposing it stops delivery.

Events:
    TrackLoading(item, index)    - the engine is about to open a track
    TrackStarted(item, index)    - playback of that track has begun
    PlaybackToggled(is_playing)  - pause / resume
    TrackFinished(item, index)   - the track played to its end
    PlaybackStopped()            - stop() released the engine
    PlaybackError(error)         - a command could not be carried out

Usage:
    bus = EventBus()

    with bus.subscribe(render, TrackStarted, TrackFinished):
        manager.play(items, 0)
"""

import threading
from dataclasses import dataclass
from typing import Callable

from drive_player.catalog.models import CatalogItem
from drive_player.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlaybackEvent:
    """Base class of every playback event."""


@dataclass(frozen=True)
class TrackLoading(PlaybackEvent):
    item: CatalogItem
    index: int


@dataclass(frozen=True)
class TrackStarted(PlaybackEvent):
    item: CatalogItem
    index: int


@dataclass(frozen=True)
class PlaybackToggled(PlaybackEvent):
    is_playing: bool


@dataclass(frozen=True)
class TrackFinished(PlaybackEvent):
    item: CatalogItem
    index: int


@dataclass(frozen=True)
class PlaybackStopped(PlaybackEvent):
    pass


@dataclass(frozen=True)
class PlaybackError(PlaybackEvent):
    """
    A playback command failed.

    error is an IndexError for an out-of-range play(), NotAvailableOffline
    for an uncached track, or whatever the media engine raised.
    """
    error: Exception


EventCallback = Callable[[PlaybackEvent], None]


class Subscription:
    """
    Handle returned by EventBus.subscribe().

    dispose() is idempotent. Used as a context manager, the subscription
    is disposed on exit.
    """

    def __init__(self, bus: "EventBus", callback: EventCallback,
                 event_types: tuple[type[PlaybackEvent], ...]) -> None:
        self._bus = bus
        self.callback = callback
        self.event_types = event_types
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def accepts(self, event: PlaybackEvent) -> bool:
        return not self.event_types or isinstance(event, self.event_types)

    def dispose(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bus._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()


class EventBus:
    """
    Synchronous publish/subscribe for playback events.

    Events are delivered on the publishing thread, in subscription order.
    An observer that raises is logged and skipped; the publisher never
    sees the exception.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []

    def subscribe(self, callback: EventCallback, *event_types: type[PlaybackEvent]) -> Subscription:
        """
        Register an observer.

        Args:
            callback: Called with each matching event.
            *event_types: Event classes to deliver. None given means all events.
        """
        subscription = Subscription(self, callback, event_types)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: PlaybackEvent) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.accepts(event)]

        for subscription in targets:
            if not subscription.active:
                continue
            try:
                subscription.callback(event)
            except Exception as e:
                logger.error(
                    f"Playback observer failed on {type(event).__name__}: {e}",
                    exc_info=True
                )

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
