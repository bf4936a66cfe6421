"""Deferred one-shot callbacks on a single-threaded queue.

Entries are keyed (by order id, for status simulation) so everything pending
for a key can be dropped at once. Entries with the same deadline fire in the
order they were scheduled. ``run`` drives the queue from the asyncio event
loop; tests call ``run_pending`` with a fake clock instead.
"""
from __future__ import annotations
import asyncio
import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Hashable, Optional

logger = logging.getLogger(__name__)


@dataclass(order=True)
class ScheduledCall:
    due: float
    seq: int
    key: Hashable = field(compare=False)
    callback: Callable[[], None] = field(compare=False, repr=False)
    cancelled: bool = field(default=False, compare=False)


class StatusScheduler:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._queue: list[ScheduledCall] = []
        self._by_key: dict[Hashable, list[ScheduledCall]] = {}
        self._seq = itertools.count()
        self._wakeup: Optional[asyncio.Event] = None

    def __len__(self) -> int:
        return sum(len(calls) for calls in self._by_key.values())

    def schedule(self, delay: float, key: Hashable, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(self.clock() + max(delay, 0.0), next(self._seq), key, callback)
        heapq.heappush(self._queue, call)
        self._by_key.setdefault(key, []).append(call)
        if self._wakeup is not None:
            self._wakeup.set()
        return call

    def pending(self, key: Hashable) -> int:
        return len(self._by_key.get(key, ()))

    def cancel(self, key: Hashable) -> int:
        calls = self._by_key.pop(key, [])
        for call in calls:
            call.cancelled = True
        return len(calls)

    def next_delay(self) -> Optional[float]:
        """Seconds until the next live entry is due, or None when idle."""
        while self._queue and self._queue[0].cancelled:
            heapq.heappop(self._queue)
        if not self._queue:
            return None
        return max(self._queue[0].due - self.clock(), 0.0)

    def run_pending(self) -> int:
        fired = 0
        now = self.clock()
        while self._queue and self._queue[0].due <= now:
            call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            self._forget(call)
            try:
                call.callback()
            except Exception:
                logger.exception("scheduled callback for %s failed", call.key)
            fired += 1
        return fired

    def _forget(self, call: ScheduledCall) -> None:
        calls = self._by_key.get(call.key)
        if not calls:
            return
        calls.remove(call)
        if not calls:
            del self._by_key[call.key]

    async def run(self) -> None:
        self._wakeup = asyncio.Event()
        logger.info("status scheduler started")
        try:
            while True:
                self.run_pending()
                delay = self.next_delay()
                self._wakeup.clear()
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._wakeup = None
            logger.info("status scheduler stopped")
