"""
Core module for drive-player.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - database: Thread-safe SQLite store for hidden folders and download history
    - logger: Logging system with multiple outputs
    - progress: Rich progress bar for offline downloads

Usage:
    from drive_player.core import (
        Config, load_config,
        Database,
        setup_logging, get_logger,
        DrivePlayerError, ConfigError, AuthError
    )
"""

from drive_player.core.config import (
    AuthConfig,
    Config,
    PlaybackConfig,
    StorageConfig,
    SyncConfig,
    load_config,
    parse_config,
)
from drive_player.core.database import Database
from drive_player.core.exceptions import (
    AuthError,
    ConfigError,
    DatabaseError,
    DecodeError,
    DrivePlayerError,
    FileSystemError,
    NetworkError,
    NotAvailableOffline,
    NotFoundError,
)
from drive_player.core.logger import (
    get_logger,
    log_download_failure,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "AuthConfig",
    "StorageConfig",
    "SyncConfig",
    "PlaybackConfig",
    "load_config",
    "parse_config",
    # Database
    "Database",
    # Exceptions
    "DrivePlayerError",
    "ConfigError",
    "DatabaseError",
    "AuthError",
    "NetworkError",
    "DecodeError",
    "NotFoundError",
    "NotAvailableOffline",
    "FileSystemError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_download_failure",
    "shutdown_logging",
]
