"""Timer queue: pending wake-ups ordered by absolute due time.

Backed by a heapq min-heap of (due, seq, fiber_id). The monotonically
increasing ``seq`` keeps entries with equal due times in insertion order.
"""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field


@dataclass(order=True, frozen=True)
class TimerEntry:
    """A fiber waiting for ``due`` on the scheduler clock."""

    due: float
    seq: int
    fiber_id: int = field(compare=False)


class TimerQueue:
    """Min-heap of TimerEntry, FIFO among equal due times."""

    def __init__(self) -> None:
        self._heap: list[TimerEntry] = []
        self._counter = itertools.count()

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)

    def push(self, due: float, fiber_id: int) -> TimerEntry:
        entry = TimerEntry(due, next(self._counter), fiber_id)
        heapq.heappush(self._heap, entry)
        return entry

    def next_due(self) -> float | None:
        """Due time of the earliest entry, or None when empty."""
        return self._heap[0].due if self._heap else None

    def pop(self) -> TimerEntry:
        """Remove and return the earliest entry.

        Raises:
            IndexError: If the queue is empty.
        """
        return heapq.heappop(self._heap)

    def pop_due(self, now: float) -> list[TimerEntry]:
        """Remove and return every entry due at or before ``now``, in order."""
        fired: list[TimerEntry] = []
        while self._heap and self._heap[0].due <= now:
            fired.append(heapq.heappop(self._heap))
        return fired
