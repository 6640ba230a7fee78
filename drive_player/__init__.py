"""
drive-player: Offline music player for a cloud drive.

Browse the folders of a OneDrive account, save whole folders of audio
offline, and play the saved files from a queue.

Architecture:
    catalog/    Remote catalog (Microsoft Graph)
        - Credential providers (device-code sign-in, token refresh)
        - Folder listings and download URLs
    cache/      Local cache store
        - Offline files under one root, looked up by file name
    sync/       Offline sync coordinator
        - Breadth-first walk of a remote folder
        - Parallel downloads of audio files not cached yet
    playback/   Playback queue manager
        - Queue snapshot with a cursor
        - Media engine interface and the mpv implementation
        - Events published on an EventBus
    core/       Configuration, database, logging, progress, exceptions
    utils/      Filename and formatting helpers
    cli.py      Command-line interface

Usage:
    Command Line:
        driveplayer login
        driveplayer ls
        driveplayer download <folder-id> --name "Album A"
        driveplayer play

    Python API:
        from drive_player.core import load_config, setup_logging
        from drive_player.catalog import CatalogClient, DeviceCodeCredentialProvider
        from drive_player.cache import CacheStore
        from drive_player.sync import SyncCoordinator
        from drive_player.playback import PlaybackManager
        from drive_player.playback.mpv_engine import MpvEngine

        config = load_config()
        setup_logging(config.storage.directory)

        provider = DeviceCodeCredentialProvider(config.auth, config.token_path)
        client = CatalogClient(credentials=provider)
        store = CacheStore(config.cache_directory)

        SyncCoordinator(client, store).download_folder(folder_id, "Album A")

        manager = PlaybackManager(store, MpvEngine)
        manager.play(tracks, 0)

Configuration:
    Requires a config.yaml file in the current directory (or --config):
        auth:
          client_id: "your_client_id"
        storage:
          directory: "~/Music/DrivePlayer"

Dependencies:
    - requests: Graph API and identity endpoints
    - python-mpv: Audio playback
    - mutagen: Audio durations for the offline list
    - yt-dlp: Filename sanitization
    - PyYAML: Configuration
    - click / rich-click: CLI
    - rich / tqdm: Progress bar and log output
"""

__version__ = "0.1.0"
__author__ = "drive-player contributors"

from drive_player.core.config import Config, load_config
from drive_player.core.exceptions import DrivePlayerError

__all__ = [
    "__version__",
    "Config",
    "load_config",
    "DrivePlayerError",
]
