"""
Immutable play queue: a snapshot of a track list plus a cursor.

A new PlaybackQueue is built every time playback starts from a list, so
later changes to the list being browsed never affect what plays next.
Moving the cursor returns a new queue.
"""

from dataclasses import dataclass
from itertools import islice
from typing import Iterable, Iterator

from drive_player.catalog.models import CatalogItem


@dataclass(frozen=True)
class PlaybackQueue:
    """
    Attributes:
        items: The snapshot, in play order.
        current_index: Zero-based cursor into items.

    Raises:
        IndexError: On construction with a cursor outside [0, len(items) - 1].
    """
    items: tuple[CatalogItem, ...]
    current_index: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.current_index < len(self.items):
            raise IndexError(
                f"Queue index {self.current_index} out of range for {len(self.items)} items"
            )

    @classmethod
    def from_items(cls, items: Iterable[CatalogItem], index: int = 0) -> "PlaybackQueue":
        return cls(items=tuple(items), current_index=index)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def current_item(self) -> CatalogItem:
        return self.items[self.current_index]

    @property
    def has_next(self) -> bool:
        return self.current_index < len(self.items) - 1

    @property
    def has_previous(self) -> bool:
        return self.current_index > 0

    def with_index(self, index: int) -> "PlaybackQueue":
        """Same snapshot, different cursor."""
        return PlaybackQueue(items=self.items, current_index=index)

    def upcoming(self, count: int) -> Iterator[CatalogItem]:
        """
        Items after the cursor, at most `count` of them.

        Returns a lazy iterator; a negative count yields nothing.
        """
        start = self.current_index + 1
        return islice(self.items, start, start + max(0, count))
