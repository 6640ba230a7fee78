"""
Offline playback: queue, events, media engine interface and manager.

MpvEngine is not imported here; it needs libmpv and is imported from
drive_player.playback.mpv_engine only where real playback is wanted.
"""

from drive_player.playback.engine import EndObserver, EngineFactory, MediaEngine
from drive_player.playback.events import (
    EventBus,
    PlaybackError,
    PlaybackEvent,
    PlaybackStopped,
    PlaybackToggled,
    Subscription,
    TrackFinished,
    TrackLoading,
    TrackStarted,
)
from drive_player.playback.manager import PlaybackManager, PlaybackState
from drive_player.playback.queue import PlaybackQueue

__all__ = [
    "PlaybackManager",
    "PlaybackState",
    "PlaybackQueue",
    "MediaEngine",
    "EndObserver",
    "EngineFactory",
    "EventBus",
    "Subscription",
    "PlaybackEvent",
    "TrackLoading",
    "TrackStarted",
    "PlaybackToggled",
    "TrackFinished",
    "PlaybackStopped",
    "PlaybackError",
]
