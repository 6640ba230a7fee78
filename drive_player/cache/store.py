"""
Local cache store for offline audio files.

Files live under one root directory, optionally grouped into one level of
subfolders (one per downloaded remote folder):

    {root}/
        Album A/
            01 Intro.mp3
            02 Song.mp3
        loose.m4a

Lookups are by file name only, searching the whole tree. The first match
wins, so two cached files with the same name in different subfolders
shadow each other; exists() and delete() see whichever the walk finds
first. Names are compared exactly (case-sensitive).

Write Semantics:
    write() moves a finished download into place. The file is first moved
    next to its final location under a ".part" name and then renamed with
    os.replace(), so a reader never sees a half-written file under the
    real name. Writing a name that is already cached is a silent no-op.

Usage:
    store = CacheStore(config.cache_directory)

    if not store.exists("song.mp3"):
        store.write("song.mp3", temp_file, subfolder="Album A")

    path = store.resolve("song.mp3")
"""

import os
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path

from drive_player.core.exceptions import FileSystemError
from drive_player.core.logger import get_logger
from drive_player.utils import is_audio_path, read_audio_duration, sanitize_filename

logger = get_logger(__name__)


PART_SUFFIX = ".part"


@dataclass(frozen=True)
class CacheEntry:
    """
    One cached file, as listed on the offline screen.

    Attributes:
        name: File name (the cache key).
        path: Absolute path of the file.
        folder: Subfolder the file sits in, or None at the root.
        size_bytes: File size on disk.
        duration_seconds: Playing time read with mutagen, None if unreadable.
    """
    name: str
    path: Path
    folder: str | None
    size_bytes: int
    duration_seconds: float | None = None


class CacheStore:
    """
    Name-keyed file store rooted at one directory.

    Thread Safety:
        Directory creation and the final move-in are serialized with a
        lock, so concurrent sync workers writing into the same subfolder
        cannot race each other. Lookups are lock-free.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._lock = threading.Lock()

    # =========================================================================
    # Lookup
    # =========================================================================

    def exists(self, name: str) -> bool:
        """True if a file with exactly this name exists anywhere under the root."""
        return self.resolve(name) is not None

    def resolve(self, name: str) -> Path | None:
        """
        Return the path of the first cached file named `name`, or None.

        Raises:
            FileSystemError: If name is not a plain file name.
        """
        self._validate_name(name)
        if not self.root.is_dir():
            return None

        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames.sort()
            if name in filenames:
                return Path(dirpath) / name
        return None

    def entries(self, audio_only: bool = True) -> list[CacheEntry]:
        """
        List cached files, sorted case-insensitively by name.

        Args:
            audio_only: Skip files whose suffix is not a known audio type.
                        Leftover ".part" files are always skipped.
        """
        if not self.root.is_dir():
            return []

        result = []
        for dirpath, _, filenames in os.walk(self.root):
            directory = Path(dirpath)
            folder = None if directory == self.root else directory.relative_to(self.root).as_posix()
            for filename in filenames:
                path = directory / filename
                if filename.endswith(PART_SUFFIX):
                    continue
                if audio_only and not is_audio_path(path):
                    continue
                try:
                    size = path.stat().st_size
                except OSError as e:
                    logger.debug(f"Skipping unreadable cache file {path}: {e}")
                    continue
                result.append(CacheEntry(
                    name=filename,
                    path=path,
                    folder=folder,
                    size_bytes=size,
                    duration_seconds=read_audio_duration(path) if is_audio_path(path) else None
                ))

        result.sort(key=lambda entry: (entry.name.casefold(), entry.folder or ""))
        return result

    def total_size(self) -> int:
        """Bytes used by every file under the root."""
        if not self.root.is_dir():
            return 0
        total = 0
        for dirpath, _, filenames in os.walk(self.root):
            for filename in filenames:
                try:
                    total += (Path(dirpath) / filename).stat().st_size
                except OSError:
                    continue
        return total

    # =========================================================================
    # Mutation
    # =========================================================================

    def write(self, name: str, source: Path, subfolder: str | None = None) -> Path:
        """
        Move a downloaded file into the cache.

        Args:
            name: File name to store it under (the cache key).
            source: Temporary file holding the content. It is moved, not copied.
            subfolder: Optional grouping folder directly below the root.
                       Sanitized for the local file system.

        Returns:
            Path of the cached file. If `name` is already cached anywhere,
            that existing path is returned and `source` is left untouched.

        Raises:
            FileSystemError: If the name is invalid, or the directory cannot
                             be created, or the move fails.
        """
        self._validate_name(name)
        directory = self.root
        if subfolder:
            directory = self.root / sanitize_filename(subfolder)

        with self._lock:
            existing = self.resolve(name)
            if existing is not None:
                logger.debug(f"Already cached, keeping existing file: {existing}")
                return existing

            target = directory / name
            part = directory / (name + PART_SUFFIX)
            try:
                directory.mkdir(parents=True, exist_ok=True)
                shutil.move(str(source), str(part))
                os.replace(part, target)
            except OSError as e:
                if part.exists():
                    part.unlink(missing_ok=True)
                raise FileSystemError(
                    f"Could not write '{name}' to the cache: {e}",
                    details={"name": name, "path": str(target), "original_error": str(e)}
                ) from e

        logger.debug(f"Cached {target}")
        return target

    def delete(self, name: str) -> bool:
        """
        Delete the first cached file named `name`.

        Returns:
            True if a file was removed. A missing name is logged as a
            warning and returns False.
        """
        with self._lock:
            path = self.resolve(name)
            if path is None:
                logger.warning(f"Cannot delete '{name}': not in the offline cache")
                return False
            try:
                path.unlink()
            except FileNotFoundError:
                logger.warning(f"Cannot delete '{name}': removed while deleting")
                return False
            except OSError as e:
                logger.error(f"Failed to delete '{name}': {e}")
                return False

        logger.info(f"Deleted offline file: {name}")
        return True

    def delete_all(self) -> None:
        """
        Remove every cached file and folder. Safe to call on an empty cache.

        Raises:
            FileSystemError: If the root exists but cannot be removed.
        """
        with self._lock:
            if not self.root.exists():
                return
            try:
                shutil.rmtree(self.root)
            except OSError as e:
                raise FileSystemError(
                    f"Could not clear the offline cache: {e}",
                    details={"path": str(self.root), "original_error": str(e)}
                ) from e
        logger.info("Cleared offline cache")

    @staticmethod
    def _validate_name(name: str) -> None:
        if (
            not name
            or name in (".", "..")
            or "/" in name
            or "\\" in name
            or "\x00" in name
        ):
            raise FileSystemError(
                f"Invalid cache file name: {name!r}",
                details={"name": name}
            )
