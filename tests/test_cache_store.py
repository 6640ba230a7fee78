"""Test the local cache store"""

import logging
from unittest.mock import patch

import pytest

from drive_player.cache import CacheStore
from drive_player.core import FileSystemError

from tests.conftest import cache_file


@pytest.fixture(autouse=True)
def skip_duration_read():
    """Test files hold placeholder bytes, not real audio"""
    with patch("drive_player.cache.store.read_audio_duration", return_value=None):
        yield


@pytest.fixture
def download(temp_dir):
    """Factory for temporary downloaded files outside the cache"""
    downloads = temp_dir / "downloads"
    downloads.mkdir()

    def make(name, content=b"audio"):
        path = downloads / name
        path.write_bytes(content)
        return path
    return make


class TestLookup:
    """Test exists() and resolve()"""

    def test_empty_store(self, store):
        assert not store.exists("song.mp3")
        assert store.resolve("song.mp3") is None
        assert store.entries() == []
        assert store.total_size() == 0

    def test_finds_files_in_subfolders(self, store):
        path = cache_file(store, "song.mp3", subfolder="Album A")

        assert store.exists("song.mp3")
        assert store.resolve("song.mp3") == path

    def test_names_are_exact(self, store):
        cache_file(store, "Song.mp3")

        assert not store.exists("song.mp3")
        assert not store.exists("Song")

    @pytest.mark.parametrize("name", ["", ".", "..", "a/b.mp3", "a\\b.mp3"])
    def test_invalid_names(self, store, name):
        with pytest.raises(FileSystemError):
            store.exists(name)


class TestWrite:
    """Test write()"""

    def test_write_moves_file_into_subfolder(self, store, download):
        source = download("song.mp3", b"abc")

        path = store.write("song.mp3", source, subfolder="Album A")

        assert path == store.root / "Album A" / "song.mp3"
        assert path.read_bytes() == b"abc"
        assert not source.exists()
        assert store.exists("song.mp3")

    def test_write_without_subfolder(self, store, download):
        path = store.write("song.mp3", download("song.mp3"))
        assert path == store.root / "song.mp3"

    def test_write_is_idempotent(self, store, download):
        first = store.write("song.mp3", download("song.mp3", b"first"), subfolder="A")
        second_source = download("song.mp3", b"second")

        second = store.write("song.mp3", second_source, subfolder="B")

        assert second == first
        assert first.read_bytes() == b"first"
        assert second_source.exists()
        assert len(store.entries()) == 1

    def test_subfolder_name_is_sanitized(self, store, download):
        path = store.write("song.mp3", download("song.mp3"), subfolder="AC/DC")

        assert path.parent.parent == store.root
        assert path.parent.name != "AC/DC"

    def test_no_part_file_left_behind(self, store, download):
        store.write("song.mp3", download("song.mp3"), subfolder="A")
        assert list((store.root / "A").iterdir()) == [store.root / "A" / "song.mp3"]

    def test_missing_source(self, store, temp_dir):
        with pytest.raises(FileSystemError):
            store.write("song.mp3", temp_dir / "missing.mp3")
        assert not store.exists("song.mp3")

    def test_entry_count_matches_distinct_names(self, store, download):
        for name in ["a.mp3", "b.mp3", "a.mp3", "c.m4a", "b.mp3"]:
            store.write(name, download(name), subfolder="Album")

        assert [entry.name for entry in store.entries()] == ["a.mp3", "b.mp3", "c.m4a"]


class TestDelete:
    """Test delete() and delete_all()"""

    def test_delete_existing(self, store):
        path = cache_file(store, "song.mp3", subfolder="A")

        assert store.delete("song.mp3") is True
        assert not path.exists()
        assert not store.exists("song.mp3")

    def test_delete_missing_logs_warning(self, store, caplog):
        with caplog.at_level(logging.WARNING):
            assert store.delete("missing.mp3") is False
        assert "missing.mp3" in caplog.text

    def test_delete_all(self, store):
        cache_file(store, "a.mp3", subfolder="A")
        cache_file(store, "b.mp3")

        store.delete_all()

        assert not store.root.exists()
        assert store.entries() == []

    def test_delete_all_is_idempotent(self, store):
        store.delete_all()
        store.delete_all()
        assert not store.root.exists()

    def test_write_after_delete_all(self, store, download):
        cache_file(store, "a.mp3", subfolder="A")
        store.delete_all()

        path = store.write("a.mp3", download("a.mp3"), subfolder="A")
        assert path.exists()


class TestEntries:
    """Test entries() and total_size()"""

    def test_sorted_case_insensitively(self, store):
        cache_file(store, "beta.mp3", subfolder="X")
        cache_file(store, "Alpha.m4a")
        cache_file(store, "gamma.wav", subfolder="Y")

        assert [entry.name for entry in store.entries()] == ["Alpha.m4a", "beta.mp3", "gamma.wav"]

    def test_audio_only_filter(self, store):
        cache_file(store, "song.mp3")
        cache_file(store, "notes.txt")
        cache_file(store, "half.mp3.part")

        assert [entry.name for entry in store.entries()] == ["song.mp3"]
        assert [entry.name for entry in store.entries(audio_only=False)] == ["notes.txt", "song.mp3"]

    def test_entry_fields(self, store):
        cache_file(store, "song.mp3", subfolder="Album A", content=b"12345")

        with patch("drive_player.cache.store.read_audio_duration", return_value=181.5):
            (entry,) = store.entries()

        assert entry.folder == "Album A"
        assert entry.size_bytes == 5
        assert entry.duration_seconds == 181.5
        assert entry.path == store.root / "Album A" / "song.mp3"

    def test_total_size(self, store):
        cache_file(store, "a.mp3", content=b"123")
        cache_file(store, "b.mp3", subfolder="A", content=b"4567")

        assert store.total_size() == 7


def test_root_is_created_lazily(temp_dir):
    store = CacheStore(temp_dir / "not-yet")
    assert not store.root.exists()
    assert not store.exists("song.mp3")
    assert not store.root.exists()
