"""Local offline file cache."""

from drive_player.cache.store import CacheEntry, CacheStore

__all__ = ["CacheStore", "CacheEntry"]
