"""
Fixed-capacity history with a navigable cursor.

Used for the last generated images (capacity 3) and the last refinement
instructions (capacity 2). Entries are evicted oldest first.
"""

from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")

IMAGE_HISTORY_CAPACITY = 3
REFINEMENT_HISTORY_CAPACITY = 2


class HistoryRing(Generic[T]):
    """FIFO buffer of at most ``capacity`` entries plus a "currently shown" cursor.

    The cursor is -1 when the ring is empty. Removing entries keeps the cursor
    on the entry the user was looking at whenever that entry still exists.
    """

    def __init__(self, capacity: int, items: Iterable[T] = (), index: int | None = None) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._items: list[T] = []
        self._index = -1
        for item in items:
            self.push(item)
        if index is not None:
            self.set_index(index)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def items(self) -> tuple[T, ...]:
        return tuple(self._items)

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> T | None:
        """The entry under the cursor, or None when empty."""
        if self._index < 0:
            return None
        return self._items[self._index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(tuple(self._items))

    def __getitem__(self, index: int) -> T:
        return self._items[index]

    def push(self, item: T) -> None:
        """Append item, evict from the front past capacity, and point the cursor at it."""
        self._items.append(item)
        while len(self._items) > self._capacity:
            self._items.pop(0)
        self._index = len(self._items) - 1

    def remove_at(self, index: int) -> None:
        """Remove the entry at index. Out-of-range indexes are ignored."""
        if not 0 <= index < len(self._items):
            return
        del self._items[index]
        if not self._items:
            self._index = -1
        elif index == self._index:
            self._index = min(index, len(self._items) - 1)
        elif index < self._index:
            self._index -= 1

    def set_index(self, index: int) -> None:
        """Move the cursor. Out-of-range indexes are ignored."""
        if 0 <= index < len(self._items):
            self._index = index

    def previous(self) -> None:
        self.set_index(self._index - 1)

    def next(self) -> None:
        self.set_index(self._index + 1)

    def clear(self) -> None:
        self._items.clear()
        self._index = -1

    def __repr__(self) -> str:
        return (
            f"HistoryRing(capacity={self._capacity}, size={len(self._items)}, "
            f"index={self._index})"
        )
