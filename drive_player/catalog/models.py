"""
Data models for remote catalog entities.

This module defines immutable dataclasses for the nodes of the remote file
hierarchy (folders and files) and for one page of a folder listing.

Design Decisions:
    - All dataclasses are frozen (immutable); a listing is re-fetched on
      every folder navigation instead of being updated in place
    - Field names follow Python conventions; from_graph_api() maps the
      wire names (webUrl, mimeType, childCount)
    - Models are independent of how the cache stores files

Wire format (one item of a listing's "value" array):
    {
        "id": "01ABCDEF...",
        "name": "song.mp3",
        "file": {"mimeType": "audio/mpeg"},
        "webUrl": "https://..."
    }
    A "folder" object (optionally with "childCount") marks a folder instead.
    Items with neither facet (OneNote "package", shared "remoteItem") are
    kept as plain non-audio files so they never break a listing.

Usage:
    from drive_player.catalog.models import CatalogItem

    items = [CatalogItem.from_graph_api(entry) for entry in response["value"]]
    tracks = [item for item in items if item.is_audio]
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from drive_player.core.exceptions import DecodeError
from drive_player.core.logger import get_logger

logger = get_logger(__name__)


AUDIO_MIME_PREFIX = "audio/"


class ItemKind(Enum):
    """Whether a catalog node is a folder or a file."""
    FOLDER = "folder"
    FILE = "file"


@dataclass(frozen=True)
class CatalogItem:
    """
    Immutable representation of one node in the remote hierarchy.

    Attributes:
        id: Opaque, stable identifier assigned by the remote system.
            Example: "01BYE5RZ6QN3ZWBTUFOFD3GSPGOHDJD36K"

        name: Display name. Also the key used for cache lookups, so two
              files with the same name in different folders share one
              cache entry.
              Example: "01 Intro.mp3"

        kind: ItemKind.FOLDER or ItemKind.FILE.

        mime_type: MIME type reported by the server. FILE only.
                   Example: "audio/mpeg"

        web_url: Link for viewing the item in a browser. FILE only.

        child_count: Number of children reported by the server. FOLDER only.
    """
    id: str
    name: str
    kind: ItemKind
    mime_type: str | None = None
    web_url: str | None = None
    child_count: int | None = None

    @property
    def is_folder(self) -> bool:
        return self.kind is ItemKind.FOLDER

    @property
    def is_file(self) -> bool:
        return self.kind is ItemKind.FILE

    @property
    def is_audio(self) -> bool:
        """True for files whose MIME type starts with 'audio/'."""
        return (
            self.is_file
            and self.mime_type is not None
            and self.mime_type.lower().startswith(AUDIO_MIME_PREFIX)
        )

    @classmethod
    def from_graph_api(cls, data: Any) -> "CatalogItem":
        """
        Create a CatalogItem from one wire object.

        Args:
            data: A single element of a listing's "value" array.

        Returns:
            The decoded CatalogItem.

        Raises:
            DecodeError: If the object is not a mapping, lacks id/name, or
                         carries both "folder" and "file".
        """
        if not isinstance(data, dict):
            raise DecodeError(
                "Catalog item must be a JSON object",
                details={"type": type(data).__name__}
            )

        item_id = data.get("id")
        name = data.get("name")
        if not isinstance(item_id, str) or not item_id:
            raise DecodeError("Catalog item has no 'id'", details={"item": data})
        if not isinstance(name, str) or not name:
            raise DecodeError(
                "Catalog item has no 'name'", details={"item_id": item_id}
            )

        folder = data.get("folder")
        file = data.get("file")

        if folder is not None and file is not None:
            raise DecodeError(
                f"Catalog item '{name}' cannot be both a folder and a file",
                details={"item_id": item_id}
            )

        if folder is None and file is None:
            logger.debug(f"Listing '{name}' as a plain file (no folder or file facet)")
            return cls(id=item_id, name=name, kind=ItemKind.FILE, web_url=data.get("webUrl"))

        if folder is not None:
            child_count = folder.get("childCount") if isinstance(folder, dict) else None
            return cls(
                id=item_id,
                name=name,
                kind=ItemKind.FOLDER,
                child_count=child_count if isinstance(child_count, int) else None
            )

        if not isinstance(file, dict):
            raise DecodeError(
                f"Catalog item '{name}' has a malformed 'file' facet",
                details={"item_id": item_id}
            )

        mime_type = file.get("mimeType")
        web_url = data.get("webUrl")
        return cls(
            id=item_id,
            name=name,
            kind=ItemKind.FILE,
            mime_type=mime_type if isinstance(mime_type, str) else None,
            web_url=web_url if isinstance(web_url, str) else None
        )


@dataclass(frozen=True)
class CatalogPage:
    """
    One page of a folder listing.

    Attributes:
        items: Items on this page, in server order.
        next_link: Absolute URL of the next page, or None on the last page.
    """
    items: tuple[CatalogItem, ...]
    next_link: str | None = None

    @property
    def has_more(self) -> bool:
        return self.next_link is not None


def sort_for_display(items: Iterable[CatalogItem]) -> list[CatalogItem]:
    """
    Order items the way the browser lists them: folders first, then
    case-insensitive by name.
    """
    return sorted(items, key=lambda item: (not item.is_folder, item.name.casefold()))


def audio_items(items: Iterable[CatalogItem]) -> list[CatalogItem]:
    """Keep only audio files, preserving order (the list a queue is built from)."""
    return [item for item in items if item.is_audio]
