"""
MediaEngine implementation on top of python-mpv.

Requires the libmpv shared library at runtime. Import this module only
where real playback is needed (the CLI does so lazily) so that the rest
of the package works without libmpv installed.

mpv runs with keep-open enabled, so reaching the end of a file sets the
"eof-reached" property instead of unloading the file. That property is
observed and turned into a single end notification per load.
"""

import threading

import mpv

from drive_player.core.logger import get_logger
from drive_player.playback.engine import EndCallback

logger = get_logger(__name__)


class _MpvEndObserver:

    def __init__(self, engine: "MpvEngine", callback: EndCallback) -> None:
        self._engine = engine
        self.callback = callback

    def remove(self) -> None:
        self._engine._remove_observer(self)


class MpvEngine:
    """
    Audio-only mpv player.

    Attributes:
        player: The underlying mpv.MPV instance.
    """

    def __init__(self) -> None:
        # vo='null' because we are audio-only; sources are local files
        self.player = mpv.MPV(
            vo="null",
            ytdl=False,
            keep_open="yes",
            input_default_bindings=False
        )
        self._lock = threading.Lock()
        self._observers: list[_MpvEndObserver] = []
        self._load_generation = 0
        self._ended_generation = -1
        self._closed = False

        self.player.observe_property("eof-reached", self._handle_eof)

    def load(self, source: str, headers: dict[str, str] | None = None) -> None:
        with self._lock:
            self._load_generation += 1

        if headers:
            self.player.http_header_fields = [f"{key}: {value}" for key, value in headers.items()]
        self.player.pause = True
        self.player.play(source)
        logger.debug(f"mpv loaded {source}")

    def play(self) -> None:
        self.player.pause = False

    def pause(self) -> None:
        self.player.pause = True

    def seek(self, seconds: float) -> None:
        self.player.seek(max(0.0, seconds), reference="absolute")

    @property
    def position(self) -> float:
        return self.player.time_pos or 0.0

    @property
    def duration(self) -> float | None:
        return self.player.duration

    @property
    def is_playing(self) -> bool:
        return not self._closed and not self.player.pause and not self.player.idle_active

    def add_end_observer(self, callback: EndCallback) -> _MpvEndObserver:
        observer = _MpvEndObserver(self, callback)
        with self._lock:
            self._observers.append(observer)
        return observer

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._observers.clear()
        self.player.terminate()

    def _remove_observer(self, observer: _MpvEndObserver) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def _handle_eof(self, name, value) -> None:
        if not value:
            return

        with self._lock:
            # One notification per load, however often mpv reports eof
            if self._ended_generation == self._load_generation:
                return
            self._ended_generation = self._load_generation
            observers = list(self._observers)

        for observer in observers:
            try:
                observer.callback()
            except Exception as e:
                logger.error(f"Track end callback failed: {e}", exc_info=True)
