"""Test the SQLite database"""

import pytest

from drive_player.core import Database, DatabaseError


@pytest.fixture
def database(temp_dir):
    db = Database(temp_dir / "drive_player.db")
    yield db
    db.close()


class TestHiddenFolders:
    """Test hidden folder persistence"""

    def test_hide_and_unhide(self, database):
        database.hide_folder("F1", "Podcasts")

        assert database.is_hidden("F1")
        assert database.hidden_folder_ids() == {"F1"}

        assert database.unhide_folder("F1") is True
        assert not database.is_hidden("F1")
        assert database.unhide_folder("F1") is False

    def test_hide_twice_keeps_one_row(self, database):
        database.hide_folder("F1", "Podcasts")
        database.hide_folder("F1", "Podcasts (old)")

        folders = database.get_hidden_folders()
        assert len(folders) == 1
        assert folders[0]["name"] == "Podcasts (old)"

    def test_hidden_folders_ordered_by_name(self, database):
        database.hide_folder("F1", "zeta")
        database.hide_folder("F2", "Alpha")
        database.hide_folder("F3", "beta")

        names = [folder["name"] for folder in database.get_hidden_folders()]
        assert names == ["Alpha", "beta", "zeta"]

    def test_persists_across_connections(self, temp_dir):
        db_path = temp_dir / "drive_player.db"
        first = Database(db_path)
        first.hide_folder("F1", "Podcasts")
        first.close()

        second = Database(db_path)
        try:
            assert second.is_hidden("F1")
        finally:
            second.close()


class TestDownloadHistory:
    """Test download history"""

    def test_record_and_list(self, database, temp_dir):
        database.record_download("T1", "song.mp3", "Album A", temp_dir / "song.mp3")

        downloads = database.get_downloads()
        assert len(downloads) == 1
        assert downloads[0]["item_id"] == "T1"
        assert downloads[0]["folder"] == "Album A"
        assert downloads[0]["file_path"] == str(temp_dir / "song.mp3")

    def test_record_is_upsert(self, database):
        database.record_download("T1", "song.mp3", "Album A", "/a/song.mp3")
        database.record_download("T1", "song.mp3", "Album B", "/b/song.mp3")

        downloads = database.get_downloads()
        assert len(downloads) == 1
        assert downloads[0]["folder"] == "Album B"

    def test_forget_and_clear(self, database):
        database.record_download("T1", "a.mp3", None, "/a.mp3")
        database.record_download("T2", "b.mp3", None, "/b.mp3")

        assert database.forget_download("a.mp3") == 1
        assert database.forget_download("a.mp3") == 0
        assert database.clear_downloads() == 1
        assert database.get_downloads() == []


def test_missing_parent_directory(temp_dir):
    with pytest.raises(DatabaseError, match="Parent directory"):
        Database(temp_dir / "missing" / "drive_player.db")
