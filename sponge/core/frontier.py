"""
URL frontier for the Sponge crawler.

Priority-ordered queue of URLs awaiting traversal with a seen-set that
prevents any URL from being queued twice.
"""

import heapq
import itertools
from collections import Counter
from typing import Any

from sponge.models import FrontierEntry


class UrlFrontier:
    """
    In-memory URL frontier.

    Entries come out by descending priority, then ascending depth, with
    ties broken by insertion order. The seen-set only ever grows, so a
    URL that was dequeued (and is possibly still in flight) is rejected
    if discovered again.
    """

    def __init__(self) -> None:
        self._heap: list[tuple[float, int, int, FrontierEntry]] = []
        self._seen: set[str] = set()
        self._sequence = itertools.count()

    def enqueue(self, url: str, depth: int, priority: float = 0) -> bool:
        """
        Add a URL to the frontier.

        Args:
            url: Absolute URL to queue.
            depth: Link distance from the seed.
            priority: Higher values are dequeued first.

        Returns:
            True if the URL was added, False if it had been seen before.
        """
        if url in self._seen:
            return False

        self._seen.add(url)
        entry = FrontierEntry(url=url, depth=depth, priority=priority)
        heapq.heappush(self._heap, (-priority, depth, next(self._sequence), entry))
        return True

    def dequeue(self) -> FrontierEntry | None:
        """Remove and return the next entry, or None when empty."""
        if not self._heap:
            return None
        return heapq.heappop(self._heap)[-1]

    def size(self) -> int:
        return len(self._heap)

    def is_empty(self) -> bool:
        return not self._heap

    def has_seen(self, url: str) -> bool:
        return url in self._seen

    def __len__(self) -> int:
        return len(self._heap)

    def get_stats(self) -> dict[str, Any]:
        """Get frontier statistics."""
        depths = Counter(item[-1].depth for item in self._heap)
        return {
            "total": len(self._heap),
            "seen": len(self._seen),
            "by_depth": dict(sorted(depths.items())),
        }

    def clear(self) -> None:
        """Drop all queued entries and forget every seen URL."""
        self._heap.clear()
        self._seen.clear()
