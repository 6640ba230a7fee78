"""
Logging configuration for drive-player.

setup_logging() attaches four handlers to the root logger:
    - Console: INFO and above, colored level names, written through tqdm
    - log_full_<timestamp>.log: everything from DEBUG up
    - log_errors_<timestamp>.log: ERROR and CRITICAL only
    - download_failures_<timestamp>.log: one block per file that could
      not be saved offline (see log_download_failure)

All files live in <storage directory>/logs; each run writes its own set.

Usage:
    from drive_player.core.logger import setup_logging, get_logger

    setup_logging(config.storage.directory)
    logger = get_logger(__name__)
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


LOG_FULL_FILENAME = "log_full"
LOG_ERRORS_FILENAME = "log_errors"
DOWNLOAD_FAILURES_FILENAME = "download_failures"

FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Extra-field names carried by records from log_download_failure()
FAILURE_NAME = "download_failed_item_name"
FAILURE_ID = "download_failed_item_id"
FAILURE_FOLDER = "download_failed_item_folder"
FAILURE_REASON = "download_failed_reason"

_RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[34m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1m\033[31m",
}


class ConsoleFormatter(logging.Formatter):
    """'LEVEL: message' with the level name colored."""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno, "")
        return f"{color}{record.levelname}{_RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """Console handler that prints through tqdm.write() so active bars are not torn."""

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self.stream = stream if stream is not None else sys.stderr

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=self.stream)
        except Exception:
            self.handleError(record)


class DownloadFailureHandler(logging.FileHandler):
    """
    Writes failed offline downloads as short readable blocks:

        Album A/song2.mp3
        item: 01ABCDEF...
        reason: Connection reset by peer

    Records without the download_failed_item_name extra are dropped. The
    file is only created once the first failure arrives.
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__(report_path, mode="w", encoding="utf-8", delay=True)
        self.addFilter(lambda record: hasattr(record, FAILURE_NAME))

    def format(self, record: logging.LogRecord) -> str:
        name = getattr(record, FAILURE_NAME)
        folder = getattr(record, FAILURE_FOLDER, None)
        label = f"{folder}/{name}" if folder else name
        return (
            f"{label}\n"
            f"item: {getattr(record, FAILURE_ID, '')}\n"
            f"reason: {getattr(record, FAILURE_REASON, '')}\n"
        )


def _file_handler(path: Path, level: int) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    return handler


def setup_logging(output_dir: Path, console_level: int = logging.INFO) -> Path:
    """
    Configure the root logger. Call once, after the config is loaded.

    Existing root handlers are replaced, so calling it again (tests, a
    second CLI invocation in the same process) does not duplicate output.

    Args:
        output_dir: Storage directory; logs go to its 'logs' subdirectory.
        console_level: Minimum level shown on the console.

    Returns:
        The logs directory.
    """
    logs_dir = output_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    shutdown_logging()

    console = TqdmLoggingHandler()
    console.setLevel(console_level)
    console.setFormatter(ConsoleFormatter())

    for handler in (
        console,
        _file_handler(logs_dir / f"{LOG_FULL_FILENAME}_{stamp}.log", logging.DEBUG),
        _file_handler(logs_dir / f"{LOG_ERRORS_FILENAME}_{stamp}.log", logging.ERROR),
        DownloadFailureHandler(logs_dir / f"{DOWNLOAD_FAILURES_FILENAME}_{stamp}.log"),
    ):
        root_logger.addHandler(handler)

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logs_dir


def get_logger(name: str) -> logging.Logger:
    """Module logger; use as get_logger(__name__)."""
    return logging.getLogger(name)


def log_download_failure(
    logger: logging.Logger,
    name: str,
    item_id: str,
    error_message: str,
    folder: str | None = None
) -> None:
    """
    Log a file that could not be saved offline.

    The record is logged at ERROR and carries the extra fields that
    DownloadFailureHandler writes to download_failures.log.

    Args:
        logger: Logger to emit on.
        name: Display name of the catalog item.
        item_id: Catalog id of the item.
        error_message: Why the download failed.
        folder: Cache subfolder the file was headed for, if any.
    """
    logger.error(
        f"Download failed: {name} - {error_message}",
        extra={
            FAILURE_NAME: name,
            FAILURE_ID: item_id,
            FAILURE_FOLDER: folder,
            FAILURE_REASON: error_message,
        }
    )


def shutdown_logging() -> None:
    """Flush, close and detach every root handler. Safe to call repeatedly."""
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        try:
            handler.flush()
            handler.close()
        except (OSError, ValueError):
            pass
