"""
Media engine interface used by the playback manager.

The manager only talks to this protocol. The real implementation is
MpvEngine (drive_player.playback.mpv_engine); tests use a fake.

Contract:
    - load() opens a source (local path or URL) paused at position 0.
    - Each load produces at most one end notification, delivered to the
      end observers registered at the time the track ends. Observers are
      called with no arguments, possibly from an engine thread.
    - close() releases the engine; it is not used again afterwards.
"""

from typing import Callable, Protocol


EndCallback = Callable[[], None]


class EndObserver(Protocol):
    """Registration handle returned by add_end_observer()."""

    def remove(self) -> None:
        """Stop delivering end notifications. Idempotent."""
        ...


class MediaEngine(Protocol):

    def load(self, source: str, headers: dict[str, str] | None = None) -> None:
        """
        Open a source for playback.

        Args:
            source: Local file path or URL.
            headers: Extra HTTP headers for URL sources.

        Raises:
            Any exception; the manager reports it as a PlaybackError event.
        """
        ...

    def play(self) -> None:
        ...

    def pause(self) -> None:
        ...

    def seek(self, seconds: float) -> None:
        """Jump to an absolute position in the loaded source."""
        ...

    @property
    def position(self) -> float:
        """Seconds into the loaded source (0.0 when unknown)."""
        ...

    @property
    def duration(self) -> float | None:
        """Length of the loaded source, or None when unknown."""
        ...

    @property
    def is_playing(self) -> bool:
        ...

    def add_end_observer(self, callback: EndCallback) -> EndObserver:
        ...

    def close(self) -> None:
        ...


EngineFactory = Callable[[], MediaEngine]
