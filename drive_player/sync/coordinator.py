"""
Offline sync: download every audio file under a remote folder.

Workflow of download_folder():
    1. Walk the folder tree breadth-first with an explicit work queue,
       listing every page of every folder.
    2. Collect audio files that are not cached yet. Files already in the
       cache are skipped; non-audio files are ignored.
    3. Download the collected files on a thread pool. Each job resolves a
       fresh download URL, streams it into a private temp directory and
       moves the result into the cache under the name of the folder that
       contains it.

Failure Isolation:
    A folder that cannot be listed is reported and its branch is skipped.
    A file that cannot be downloaded is reported and the others continue.
    Nothing is retried; running the sync again picks up whatever is
    still missing.

    Every failure goes to the on_error callback (if any), to the ERROR log
    and, for files, to download_failures.log through log_download_failure().

Usage:
    coordinator = SyncCoordinator(client, store, threads=4)
    stats = coordinator.download_folder(folder.id, folder.name)
    print(f"{stats.downloaded} downloaded, {stats.failed} failed")
"""

import shutil
import tempfile
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

from drive_player.cache.store import CacheStore
from drive_player.catalog.auth import CredentialProvider
from drive_player.catalog.client import CatalogClient
from drive_player.catalog.models import CatalogItem
from drive_player.core.exceptions import DrivePlayerError
from drive_player.core.logger import get_logger, log_download_failure
from drive_player.core.progress import SyncProgressBar

logger = get_logger(__name__)


@dataclass(frozen=True)
class SyncFailure:
    """
    One folder or file the sync could not handle.

    Attributes:
        name: Folder or file name.
        item_id: Catalog id of the folder or file.
        error: The exception that stopped it.
        is_folder: True for a listing failure, False for a download failure.
    """
    name: str
    item_id: str
    error: Exception
    is_folder: bool = False


@dataclass
class SyncStats:
    """
    Statistics from one download_folder() run.

    Attributes:
        folders: Folders listed successfully (including the top folder).
        total: Audio files found that were not cached yet.
        downloaded: Files saved to the cache.
        skipped: Files already cached, or repeated names within this run.
        failed: Files that could not be downloaded.
        ignored: Non-audio files.
        cancelled: Jobs not started because cancel() was called.
        errors: Every listing and download failure, in the order seen.
    """
    folders: int = 0
    total: int = 0
    downloaded: int = 0
    skipped: int = 0
    failed: int = 0
    ignored: int = 0
    cancelled: int = 0
    errors: list[SyncFailure] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Downloaded files as a percentage of files attempted."""
        if self.total == 0:
            return 0.0
        return (self.downloaded / self.total) * 100


class _JobOutcome(Enum):
    DOWNLOADED = "downloaded"
    FAILED = "failed"
    CANCELLED = "cancelled"


ErrorCallback = Callable[[SyncFailure], None]
DownloadedCallback = Callable[[CatalogItem, Path], None]


class SyncCoordinator:
    """
    Mirrors a remote folder tree into the local cache.

    Attributes:
        _client: Catalog client used for listings and download URLs.
        _store: Cache the files end up in.
        _threads: Number of parallel downloads.
        _on_error: Called once per SyncFailure, from the calling thread.
        _on_downloaded: Called with (item, cached path) after each download.
        _show_progress: Show a rich progress bar while downloading.

    Thread Safety:
        One download_folder() call at a time per coordinator. cancel() may
        be called from any thread.
    """

    def __init__(
        self,
        client: CatalogClient,
        store: CacheStore,
        threads: int = 4,
        on_error: ErrorCallback | None = None,
        on_downloaded: DownloadedCallback | None = None,
        show_progress: bool = True
    ) -> None:
        if threads < 1:
            raise ValueError("threads must be at least 1")
        self._client = client
        self._store = store
        self._threads = threads
        self._on_error = on_error
        self._on_downloaded = on_downloaded
        self._show_progress = show_progress
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """
        Stop starting new downloads. Transfers already running finish;
        the remaining jobs are counted as cancelled.
        """
        self._cancel_event.set()

    def download_folder(
        self,
        folder_id: str,
        folder_name: str,
        credentials: CredentialProvider | None = None
    ) -> SyncStats:
        """
        Download every uncached audio file below a remote folder.

        Args:
            folder_id: Catalog id of the folder to mirror.
            folder_name: Display name of the folder, also the cache subfolder
                         for its own files. Files of a nested folder go to
                         a subfolder named after that folder.
            credentials: Optional provider overriding the client's own.

        Returns:
            SyncStats for the run. Failures are in stats.errors; this method
            does not raise for listing or download failures.
        """
        self._cancel_event.clear()
        stats = SyncStats()

        logger.info(f"Scanning '{folder_name}' for audio files")
        jobs = self._collect_jobs(folder_id, folder_name, stats, credentials)
        stats.total = len(jobs)

        if not jobs:
            logger.info(
                f"Nothing to download in '{folder_name}' "
                f"({stats.skipped} already offline)"
            )
            return stats

        logger.info(
            f"Downloading {len(jobs)} files from '{folder_name}' "
            f"with {self._threads} threads ({stats.skipped} already offline)"
        )

        if self._show_progress:
            with SyncProgressBar(len(jobs), folder_name, already_offline=stats.skipped) as progress:
                self._run_jobs(jobs, stats, credentials, progress)
        else:
            self._run_jobs(jobs, stats, credentials, None)

        logger.info(
            f"Sync of '{folder_name}' complete: {stats.downloaded}/{stats.total} downloaded, "
            f"{stats.failed} failed, {stats.skipped} skipped"
        )
        return stats

    # =========================================================================
    # Tree walk
    # =========================================================================

    def _collect_jobs(
        self,
        folder_id: str,
        folder_name: str,
        stats: SyncStats,
        credentials: CredentialProvider | None
    ) -> list[tuple[CatalogItem, str]]:
        """Walk the tree; returns (file, name of the folder holding it) pairs."""
        pending: deque[tuple[str, str]] = deque([(folder_id, folder_name)])
        seen_names: set[str] = set()
        jobs: list[tuple[CatalogItem, str]] = []

        while pending:
            current_id, current_name = pending.popleft()
            try:
                children = self._client.list_all_children(current_id, credentials=credentials)
            except DrivePlayerError as e:
                self._report(stats, SyncFailure(current_name, current_id, e, is_folder=True))
                logger.error(f"Could not list folder '{current_name}': {e}")
                continue

            stats.folders += 1

            for child in children:
                if child.is_folder:
                    pending.append((child.id, child.name))
                elif not child.is_audio:
                    stats.ignored += 1
                elif child.name in seen_names:
                    logger.debug(f"Skipping repeated name in this sync: {child.name}")
                    stats.skipped += 1
                elif self._store.exists(child.name):
                    seen_names.add(child.name)
                    stats.skipped += 1
                else:
                    seen_names.add(child.name)
                    jobs.append((child, current_name))

        return jobs

    # =========================================================================
    # Downloads
    # =========================================================================

    def _run_jobs(
        self,
        jobs: list[tuple[CatalogItem, str]],
        stats: SyncStats,
        credentials: CredentialProvider | None,
        progress: SyncProgressBar | None
    ) -> None:
        with ThreadPoolExecutor(max_workers=self._threads) as executor:
            future_to_item = {
                executor.submit(self._download_one, item, folder, credentials): item
                for item, folder in jobs
            }

            for future in as_completed(future_to_item):
                item = future_to_item[future]
                outcome, failure = future.result()

                if outcome is _JobOutcome.CANCELLED:
                    stats.cancelled += 1
                elif outcome is _JobOutcome.DOWNLOADED:
                    stats.downloaded += 1
                else:
                    stats.failed += 1
                    if failure is not None:
                        self._report(stats, failure)

                if progress is not None:
                    progress.advance(outcome.value)
                logger.debug(f"{outcome.value}: {item.name}")

    def _download_one(
        self,
        item: CatalogItem,
        folder_name: str,
        credentials: CredentialProvider | None
    ) -> tuple[_JobOutcome, SyncFailure | None]:
        """
        Download one file into the cache.

        Runs on a worker thread. Never raises; failures are returned so
        that counting and reporting happen on the calling thread.
        """
        if self._cancel_event.is_set():
            return _JobOutcome.CANCELLED, None

        temp_dir = Path(tempfile.mkdtemp(prefix=f"driveplayer_{item.id[:8]}_"))

        try:
            locator = self._client.get_download_locator(item.id, credentials=credentials)
            downloaded = self._client.download_to(locator, temp_dir / item.name)
            cached_path = self._store.write(item.name, downloaded, subfolder=folder_name)
        except (DrivePlayerError, OSError) as e:
            log_download_failure(
                logger,
                name=item.name,
                item_id=item.id,
                error_message=str(e),
                folder=folder_name
            )
            return _JobOutcome.FAILED, SyncFailure(item.name, item.id, e)
        finally:
            self._cleanup_temp_dir(temp_dir)

        if self._on_downloaded is not None:
            try:
                self._on_downloaded(item, cached_path)
            except DrivePlayerError as e:
                logger.warning(f"Downloaded '{item.name}' but could not record it: {e}")

        return _JobOutcome.DOWNLOADED, None

    def _report(self, stats: SyncStats, failure: SyncFailure) -> None:
        stats.errors.append(failure)
        if self._on_error is None:
            return
        try:
            self._on_error(failure)
        except Exception as e:
            logger.error(f"Error callback failed for '{failure.name}': {e}")

    @staticmethod
    def _cleanup_temp_dir(temp_dir: Path) -> None:
        try:
            if temp_dir.exists():
                shutil.rmtree(temp_dir)
        except OSError as e:
            logger.debug(f"Failed to clean up temp directory {temp_dir}: {e}")
