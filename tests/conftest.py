"""Test configuration and fixtures"""

import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest

from drive_player.cache import CacheStore
from drive_player.catalog import CatalogItem, ItemKind
from drive_player.core import parse_config


class FakeEndObserver:
    """End observer handle returned by FakeEngine"""

    def __init__(self, engine, callback):
        self.engine = engine
        self.callback = callback

    def remove(self):
        if self in self.engine.observers:
            self.engine.observers.remove(self)


class FakeEngine:
    """In-memory media engine that records every command"""

    def __init__(self):
        self.loaded = []
        self.play_calls = 0
        self.pause_calls = 0
        self.seeks = []
        self.closed = False
        self.observers = []
        self.position = 0.0
        self.duration = None
        self.is_playing = False

    def load(self, source, headers=None):
        self.loaded.append(source)
        self.position = 0.0

    def play(self):
        self.play_calls += 1
        self.is_playing = True

    def pause(self):
        self.pause_calls += 1
        self.is_playing = False

    def seek(self, seconds):
        self.seeks.append(seconds)
        self.position = seconds

    def add_end_observer(self, callback):
        observer = FakeEndObserver(self, callback)
        self.observers.append(observer)
        return observer

    def finish(self):
        """Simulate the loaded track playing to its end"""
        for observer in list(self.observers):
            observer.callback()

    def close(self):
        self.closed = True


def make_track(name, mime_type="audio/mpeg"):
    return CatalogItem(id=f"id-{name}", name=name, kind=ItemKind.FILE, mime_type=mime_type)


def make_folder(name, child_count=None):
    return CatalogItem(id=f"id-{name}", name=name, kind=ItemKind.FOLDER, child_count=child_count)


def cache_file(store, name, subfolder=None, content=b"audio"):
    """Put a file straight into the cache directory"""
    directory = store.root / subfolder if subfolder else store.root
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_bytes(content)
    return path


def graph_response(payload, status_code=200):
    """Mock requests.Response returning a JSON payload"""
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def raw_config(temp_dir):
    """Minimal valid configuration dictionary"""
    return {
        "auth": {"client_id": "test-client-id"},
        "storage": {"directory": str(temp_dir / "data")},
    }


@pytest.fixture
def config(raw_config):
    return parse_config(raw_config)


@pytest.fixture
def store(temp_dir):
    return CacheStore(temp_dir / "offline")


@pytest.fixture
def engines():
    """Every FakeEngine created by engine_factory, in creation order"""
    return []


@pytest.fixture
def engine_factory(engines):
    def factory():
        engine = FakeEngine()
        engines.append(engine)
        return engine
    return factory


@pytest.fixture
def sample_listing():
    """One page of a folder listing as returned by the Graph API"""
    return {
        "value": [
            {"id": "F1", "name": "Album B", "folder": {"childCount": 3}},
            {
                "id": "T1",
                "name": "song.mp3",
                "file": {"mimeType": "audio/mpeg"},
                "webUrl": "https://example.invalid/song.mp3",
            },
            {"id": "D1", "name": "cover.jpg", "file": {"mimeType": "image/jpeg"}},
            {"id": "F2", "name": "album a", "folder": {"childCount": 0}},
        ]
    }
