"""Clock sources for the scheduler.

The scheduler only asks a clock for the current time and to wait until a
deadline. ``MonotonicClock`` really waits; ``VirtualClock`` jumps, which
makes runs instantaneous and fully reproducible.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Protocol satisfied by MonotonicClock and VirtualClock."""

    #: True when time passes on its own (waiting on I/O is meaningful).
    realtime: bool

    def now(self) -> float: ...

    def advance_to(self, deadline: float) -> None: ...


class MonotonicClock:
    """Wall-clock time measured from construction, via time.monotonic()."""

    realtime = True

    def __init__(self) -> None:
        self._origin = time.monotonic()

    def now(self) -> float:
        return time.monotonic() - self._origin

    def advance_to(self, deadline: float) -> None:
        """Sleep until ``deadline`` (no-op if it has already passed)."""
        remaining = deadline - self.now()
        if remaining > 0:
            time.sleep(remaining)


class VirtualClock:
    """Simulated time that only moves when the scheduler advances it."""

    realtime = False

    def __init__(self, start: float = 0.0) -> None:
        self._now = start

    def now(self) -> float:
        return self._now

    def advance_to(self, deadline: float) -> None:
        # Never move backwards: a deadline in the past means "now".
        if deadline > self._now:
            self._now = deadline


def make_clock(kind: str) -> Clock:
    """Build the clock named by RuntimeConfig.clock."""
    if kind == "virtual":
        return VirtualClock()
    if kind == "real":
        return MonotonicClock()
    raise ValueError(f"unknown clock kind: {kind!r}")
