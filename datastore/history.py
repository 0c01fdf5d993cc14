from __future__ import annotations

from collections import deque
from threading import Lock
from typing import Callable, Deque, Generic, List, Optional, TypeVar

T = TypeVar("T")


class BoundedHistory(Generic[T]):
    """Insertion-ordered ring buffer; the oldest entry is evicted once full."""

    def __init__(self, name: str, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("History capacity must be positive.")
        self.name = name
        self.capacity = capacity
        self._items: Deque[T] = deque(maxlen=capacity)
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def append(self, item: T) -> None:
        with self._lock:
            self._items.append(item)

    def snapshot(self) -> List[T]:
        """Return the buffered items, oldest first."""

        with self._lock:
            return list(self._items)

    def tail(self, limit: int, predicate: Optional[Callable[[T], bool]] = None) -> List[T]:
        """Return up to ``limit`` most recent items matching ``predicate``, oldest first."""

        if limit <= 0:
            return []
        items = self.snapshot()
        if predicate is not None:
            items = [item for item in items if predicate(item)]
        return items[-limit:]

    def find(self, predicate: Callable[[T], bool]) -> Optional[T]:
        with self._lock:
            for item in reversed(self._items):
                if predicate(item):
                    return item
        return None

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
