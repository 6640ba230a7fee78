"""
Remote catalog: data model, credential providers and the HTTP client.

Usage:
    from drive_player.catalog import CatalogClient, DeviceCodeCredentialProvider

    provider = DeviceCodeCredentialProvider(config.auth, config.token_path)
    client = CatalogClient(credentials=provider)
"""

from drive_player.catalog.auth import (
    CredentialProvider,
    DeviceCodeCredentialProvider,
    StaticTokenProvider,
)
from drive_player.catalog.client import GRAPH_BASE_URL, CatalogClient
from drive_player.catalog.models import (
    CatalogItem,
    CatalogPage,
    ItemKind,
    audio_items,
    sort_for_display,
)

__all__ = [
    "CatalogClient",
    "GRAPH_BASE_URL",
    "CredentialProvider",
    "StaticTokenProvider",
    "DeviceCodeCredentialProvider",
    "CatalogItem",
    "CatalogPage",
    "ItemKind",
    "audio_items",
    "sort_for_display",
]
