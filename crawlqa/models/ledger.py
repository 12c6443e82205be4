"""Bookkeeping structures owned by the scheduler.

RouteLedger remembers every path that has been scheduled or visited so
the crawl never loops on itself. WorkQueue holds pending WorkItems in
insertion order, with retries jumping to the front.
"""

from __future__ import annotations

from collections import deque
from typing import Callable, Iterator

from crawlqa.models.types import WorkItem


class RouteLedger:
    """Grow-only set of logical paths already enqueued or visited."""

    def __init__(self):
        self._paths: set[str] = set()
        self._order: list[str] = []

    def contains(self, path: str) -> bool:
        return path in self._paths

    def add(self, path: str) -> bool:
        """Insert ``path``; return True only if it was not already present."""
        if path in self._paths:
            return False
        self._paths.add(path)
        self._order.append(path)
        return True

    def paths(self) -> list[str]:
        """Paths in the order they were first ledgered."""
        return list(self._order)

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[str]:
        return iter(self._order)


class WorkQueue:
    """FIFO of pending work. ``push_front`` is reserved for retries."""

    def __init__(self):
        self._items: deque[WorkItem] = deque()

    def push(self, item: WorkItem):
        self._items.append(item)

    def push_front(self, item: WorkItem):
        self._items.appendleft(item)

    def pop_front(self) -> WorkItem | None:
        if not self._items:
            return None
        return self._items.popleft()

    def is_empty(self) -> bool:
        return not self._items

    def pending(self) -> list[WorkItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


ProgressCallback = Callable[[str, dict], None]
