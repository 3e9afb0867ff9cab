from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import AbstractSet


@dataclass(frozen=True)
class FrontierItem:
    url: str
    depth: int


class Frontier:
    """Breadth-first work queue of crawl units.

    URLs are marked visited when they are enqueued, so a URL can never be
    queued or dequeued twice within one process.
    """

    def __init__(self, *, max_depth: int) -> None:
        self.max_depth = max_depth
        self._queue: deque[FrontierItem] = deque()
        self._visited: set[str] = set()

    @property
    def visited(self) -> AbstractSet[str]:
        return self._visited

    def seed(self, url: str) -> bool:
        return self.enqueue(url, 0)

    def enqueue(self, url: str, depth: int) -> bool:
        if url in self._visited or depth < 0 or depth > self.max_depth:
            return False
        self._visited.add(url)
        self._queue.append(FrontierItem(url, depth))
        return True

    def can_expand(self, item: FrontierItem) -> bool:
        return item.depth < self.max_depth

    def dequeue(self) -> FrontierItem | None:
        if not self._queue:
            return None
        return self._queue.popleft()

    def has_work(self) -> bool:
        return bool(self._queue)

    def __len__(self) -> int:
        return len(self._queue)
