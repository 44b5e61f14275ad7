"""
Cooperative, manually clocked scheduler.

Time only moves when `advance()` is called; due callbacks then fire in
(due time, scheduling order) with the clock set to their due time, so a
callback that schedules another call inside the advanced window sees it
fire in the same advance. Cancelled calls never fire.
"""

import heapq
import itertools
from datetime import datetime, timedelta
from typing import Any, Callable

from bioledger.observability.logger import get_logger

logger = get_logger(__name__)


class SimulatedScheduler:
    """
    Usage:
        scheduler = SimulatedScheduler(start=datetime(2026, 2, 28, 8, 0))
        handle = scheduler.call_later(30, poller.tick)
        scheduler.advance(120)
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime.utcnow().replace(microsecond=0)
        self._queue: list[tuple[datetime, int, Callable, tuple]] = []
        self._handles = itertools.count(1)
        self._pending: set[int] = set()

    def now(self) -> datetime:
        return self._now

    def call_later(self, delay_seconds: float, callback: Callable[..., Any], *args) -> int:
        """
        Schedule a callback.

        Args:
            delay_seconds: Non-negative delay from now
            callback: Called with *args when due

        Returns:
            Handle usable with cancel()
        """
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {delay_seconds}")

        handle = next(self._handles)
        due = self._now + timedelta(seconds=delay_seconds)
        heapq.heappush(self._queue, (due, handle, callback, args))
        self._pending.add(handle)
        return handle

    def cancel(self, handle: int) -> bool:
        """Returns True if the call was still pending."""
        if handle not in self._pending:
            return False
        self._pending.discard(handle)
        return True

    def pending(self) -> int:
        return len(self._pending)

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, firing every call that falls due.

        Returns:
            Number of callbacks fired
        """
        if seconds < 0:
            raise ValueError(f"Cannot move the clock backwards ({seconds}s)")

        target = self._now + timedelta(seconds=seconds)
        fired = 0

        while self._queue and self._queue[0][0] <= target:
            due, handle, callback, args = heapq.heappop(self._queue)
            if handle not in self._pending:
                continue
            self._pending.discard(handle)
            self._now = due
            callback(*args)
            fired += 1

        self._now = target
        logger.debug(f"Advanced clock to {target.isoformat()}, fired {fired} callback(s)")
        return fired
