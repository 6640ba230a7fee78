"""
Configuration management for drive-player.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Identity provider registration (client_id, authority, scopes)
    - Storage directory (offline cache, logs, database, token cache)
    - Number of parallel download threads and listing page size
    - How many upcoming tracks the player shows

Configuration File Location:
    By default config.yaml is read from the current working directory.
    The CLI accepts --config to point somewhere else.

Example config.yaml:
    auth:
      client_id: "00000000-0000-0000-0000-000000000000"
      authority: "https://login.microsoftonline.com/organizations"
      scopes: ["Files.Read", "User.Read", "offline_access"]

    storage:
      directory: "~/Music/DrivePlayer"

    sync:
      threads: 4
      page_size: null

    playback:
      upcoming_count: 5
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from drive_player.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_AUTHORITY = "https://login.microsoftonline.com/organizations"
DEFAULT_SCOPES = ("Files.Read", "User.Read", "offline_access")

# Layout inside storage.directory
CACHE_DIRNAME = "offline"
DATABASE_FILENAME = "drive_player.db"
TOKEN_FILENAME = "token.json"


@dataclass(frozen=True)
class AuthConfig:
    """
    Identity provider configuration.

    Attributes:
        client_id: Application (client) ID of the app registration.
        authority: Authority URL; the token and device-code endpoints
                   are derived from it.
        scopes: Delegated permissions requested at sign-in.
                "offline_access" is needed to receive a refresh token.
    """
    client_id: str
    authority: str
    scopes: tuple[str, ...]


@dataclass(frozen=True)
class StorageConfig:
    """
    Storage configuration.

    Attributes:
        directory: Absolute path of the application data directory.
                   Path expansion is performed (~ is expanded to home directory).
                   The directory is created on first use.
    """
    directory: Path


@dataclass(frozen=True)
class SyncConfig:
    """
    Offline download behavior.

    Attributes:
        threads: Number of parallel file downloads. Default: 4.
        page_size: Optional $top for folder listings. None lets the
                   server pick its default page size.
    """
    threads: int
    page_size: int | None


@dataclass(frozen=True)
class PlaybackConfig:
    """
    Player behavior.

    Attributes:
        upcoming_count: How many upcoming tracks the player lists. Default: 5.
    """
    upcoming_count: int


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable (frozen dataclass).

    Example:
        config = load_config()
        print(f"Offline files in: {config.cache_directory}")
    """
    auth: AuthConfig
    storage: StorageConfig
    sync: SyncConfig
    playback: PlaybackConfig

    @property
    def cache_directory(self) -> Path:
        """Cache root holding downloaded audio files."""
        return self.storage.directory / CACHE_DIRNAME

    @property
    def database_path(self) -> Path:
        """SQLite database with hidden folders and download history."""
        return self.storage.directory / DATABASE_FILENAME

    @property
    def token_path(self) -> Path:
        """JSON token cache written by the credential provider."""
        return self.storage.directory / TOKEN_FILENAME


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file is not found, has invalid YAML syntax,
                     is missing required fields, or contains invalid values.
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return parse_config(raw_config)


def parse_config(raw_config: dict[str, Any]) -> Config:
    """
    Build a Config from an already-parsed dictionary.

    Split out of load_config() so tests and embedding code can skip the
    file system.

    Raises:
        ConfigError: If validation fails.
    """
    _validate_config(raw_config)

    return Config(
        auth=_parse_auth_config(raw_config["auth"]),
        storage=_parse_storage_config(raw_config["storage"]),
        sync=_parse_sync_config(raw_config.get("sync")),
        playback=_parse_playback_config(raw_config.get("playback"))
    )


def _validate_config(raw_config: dict[str, Any]) -> None:
    """
    Check the configuration has all required sections.

    Raises:
        ConfigError: If a required section is missing or is not a mapping.
    """
    required_sections = ["auth", "storage"]

    for section in required_sections:
        if section not in raw_config:
            raise ConfigError(
                f"Missing required section: '{section}'",
                details={"missing_section": section}
            )

        if not isinstance(raw_config[section], dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )

    for section in ["sync", "playback"]:
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _parse_auth_config(auth_section: dict[str, Any]) -> AuthConfig:
    """
    Parse and validate the auth section.

    Raises:
        ConfigError: If client_id is missing or scopes is not a list of strings.
    """
    client_id = auth_section.get("client_id", "")
    if not isinstance(client_id, str) or not client_id.strip():
        raise ConfigError(
            "'auth.client_id' must be a non-empty string",
            details={"field": "auth.client_id"}
        )

    authority = auth_section.get("authority") or DEFAULT_AUTHORITY
    if not isinstance(authority, str) or not authority.startswith("https://"):
        raise ConfigError(
            "'auth.authority' must be an https URL",
            details={"field": "auth.authority", "value": authority}
        )

    scopes = auth_section.get("scopes")
    if scopes is None:
        scopes = list(DEFAULT_SCOPES)
    if not isinstance(scopes, list) or not scopes or not all(
        isinstance(scope, str) and scope.strip() for scope in scopes
    ):
        raise ConfigError(
            "'auth.scopes' must be a non-empty list of strings",
            details={"field": "auth.scopes"}
        )

    return AuthConfig(
        client_id=client_id.strip(),
        authority=authority.rstrip("/"),
        scopes=tuple(scope.strip() for scope in scopes)
    )


def _parse_storage_config(storage_section: dict[str, Any]) -> StorageConfig:
    """
    Parse and validate the storage section.

    Expands ~ to home directory and converts to absolute Path.
    Does NOT create the directory.

    Raises:
        ConfigError: If directory is missing or empty.
    """
    directory = storage_section.get("directory", "")

    if not isinstance(directory, str) or not directory.strip():
        raise ConfigError(
            "'storage.directory' must be a non-empty string",
            details={"field": "storage.directory"}
        )

    return StorageConfig(directory=Path(directory.strip()).expanduser().resolve())


def _parse_sync_config(sync_section: dict[str, Any] | None) -> SyncConfig:
    """
    Parse the sync section, applying defaults.

    Defaults: threads=4, page_size=None.

    Raises:
        ConfigError: If threads or page_size is not a positive integer.
    """
    threads = 4
    page_size = None

    if sync_section is not None:
        raw_threads = sync_section.get("threads")
        if raw_threads is not None:
            if not isinstance(raw_threads, int) or isinstance(raw_threads, bool) or raw_threads < 1:
                raise ConfigError(
                    "'sync.threads' must be a positive integer",
                    details={"field": "sync.threads", "value": raw_threads}
                )
            threads = raw_threads

        raw_page_size = sync_section.get("page_size")
        if raw_page_size is not None:
            if not isinstance(raw_page_size, int) or isinstance(raw_page_size, bool) or raw_page_size < 1:
                raise ConfigError(
                    "'sync.page_size' must be a positive integer or null",
                    details={"field": "sync.page_size", "value": raw_page_size}
                )
            page_size = raw_page_size

    return SyncConfig(threads=threads, page_size=page_size)


def _parse_playback_config(playback_section: dict[str, Any] | None) -> PlaybackConfig:
    """Parse the playback section. Default upcoming_count: 5."""
    upcoming_count = 5

    if playback_section is not None:
        raw_count = playback_section.get("upcoming_count")
        if raw_count is not None:
            if not isinstance(raw_count, int) or isinstance(raw_count, bool) or raw_count < 0:
                raise ConfigError(
                    "'playback.upcoming_count' must be a non-negative integer",
                    details={"field": "playback.upcoming_count", "value": raw_count}
                )
            upcoming_count = raw_count

    return PlaybackConfig(upcoming_count=upcoming_count)
