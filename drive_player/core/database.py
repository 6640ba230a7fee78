"""
Thread-safe SQLite database for drive-player.

Holds the small amount of state that outlives one run:

Schema:
    hidden_folders:  Folders the user chose not to see while browsing
    downloads:       One row per file saved offline (item id, name, folder, path)

The offline files themselves are the source of truth for "is this cached";
the downloads table is history for display and never consulted by the
cache store.

Usage:
    db = Database(config.database_path)

    db.hide_folder(folder.id, folder.name)
    visible = [item for item in items if not db.is_hidden(item.id)]

    db.record_download(item.id, item.name, "Album A", path)
"""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from drive_player.core.exceptions import DatabaseError


DATABASE_VERSION = 1


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS hidden_folders (
    folder_id TEXT PRIMARY KEY,
    name TEXT,
    hidden_at TEXT
);

CREATE TABLE IF NOT EXISTS downloads (
    item_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    folder TEXT,
    file_path TEXT NOT NULL,
    downloaded_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_downloads_name ON downloads(name);
"""


class Database:
    """
    SQLite store shared by the CLI and the sync worker threads.

    One connection is opened lazily and reused; every statement runs
    under self._lock, and writes commit before the lock is released.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise DatabaseError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            self._migrate()
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to initialize database: {e}",
                details={"path": str(db_path)}
            ) from e

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # guarded by _lock
            )
            self._conn.row_factory = sqlite3.Row
        return self._conn

    @contextmanager
    def _transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Hold the lock for one unit of work and commit it on success.

        sqlite3 errors are rolled back and re-raised as DatabaseError.
        """
        with self._lock:
            conn = self._connection()
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise DatabaseError(
                    f"Database operation failed: {e}",
                    details={"path": str(self.db_path), "original_error": str(e)}
                ) from e

    def _fetch(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._transaction() as conn:
            return conn.execute(sql, params).fetchall()

    def _execute(self, sql: str, params: tuple = ()) -> int:
        with self._transaction() as conn:
            return conn.execute(sql, params).rowcount

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _migrate(self) -> None:
        with self._transaction() as conn:
            conn.executescript(_SCHEMA_SQL)
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()

            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
            elif row[0] != DATABASE_VERSION:
                raise DatabaseError(
                    f"Unsupported database version {row[0]} (this release reads {DATABASE_VERSION})",
                    details={"expected": DATABASE_VERSION, "actual": row[0]}
                )

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # Hidden Folders
    # =========================================================================

    def hide_folder(self, folder_id: str, name: str) -> None:
        """Hide a folder from browsing. Hiding twice keeps the first timestamp."""
        self._execute(
            "INSERT INTO hidden_folders (folder_id, name, hidden_at) VALUES (?, ?, ?) "
            "ON CONFLICT(folder_id) DO UPDATE SET name = excluded.name",
            (folder_id, name, self._timestamp())
        )

    def unhide_folder(self, folder_id: str) -> bool:
        """Show a hidden folder again. Returns False if it was not hidden."""
        return self._execute("DELETE FROM hidden_folders WHERE folder_id = ?", (folder_id,)) > 0

    def is_hidden(self, folder_id: str) -> bool:
        return bool(self._fetch("SELECT 1 FROM hidden_folders WHERE folder_id = ?", (folder_id,)))

    def hidden_folder_ids(self) -> set[str]:
        return {row["folder_id"] for row in self._fetch("SELECT folder_id FROM hidden_folders")}

    def get_hidden_folders(self) -> list[dict[str, Any]]:
        """All hidden folders ordered by name: folder_id, name, hidden_at."""
        rows = self._fetch(
            "SELECT folder_id, name, hidden_at FROM hidden_folders ORDER BY name COLLATE NOCASE"
        )
        return [dict(row) for row in rows]

    # =========================================================================
    # Download History
    # =========================================================================

    def record_download(
        self,
        item_id: str,
        name: str,
        folder: str | None,
        file_path: Path | str
    ) -> None:
        """Remember that an item was saved offline (upsert by item id)."""
        self._execute(
            "INSERT INTO downloads (item_id, name, folder, file_path, downloaded_at) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(item_id) DO UPDATE SET name = excluded.name, folder = excluded.folder, "
            "file_path = excluded.file_path, downloaded_at = excluded.downloaded_at",
            (item_id, name, folder, str(file_path), self._timestamp())
        )

    def get_downloads(self) -> list[dict[str, Any]]:
        rows = self._fetch(
            "SELECT item_id, name, folder, file_path, downloaded_at FROM downloads "
            "ORDER BY name COLLATE NOCASE"
        )
        return [dict(row) for row in rows]

    def forget_download(self, name: str) -> int:
        """Drop history rows for a deleted cache entry. Returns rows removed."""
        return self._execute("DELETE FROM downloads WHERE name = ?", (name,))

    def clear_downloads(self) -> int:
        return self._execute("DELETE FROM downloads")
