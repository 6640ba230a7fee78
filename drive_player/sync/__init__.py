"""Offline sync of remote folders into the local cache."""

from drive_player.sync.coordinator import SyncCoordinator, SyncFailure, SyncStats

__all__ = ["SyncCoordinator", "SyncFailure", "SyncStats"]
