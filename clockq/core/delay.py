"""
DelayQueue — one owned timer task for every scheduled retry of a backend.

Instead of a sleeping task per failed message, scheduled ids sit in a heap
ordered by due time and a single asyncio task waits for the earliest one:

  schedule("a", 4s) ─┐
  schedule("b", 1s) ─┼──> heap [(t+1, b), (t+4, a)]
                     │         ↓ wait until t+1, or until woken by a new
  Timer:             └──────── earlier entry; pop due ids → on_due(id)

The number of outstanding timers is the number of heap entries, and close()
cancels all of them at once. on_due is awaited in the timer task; it must
not raise (exceptions are logged and the loop continues).
"""

from __future__ import annotations

import asyncio
import dataclasses
import heapq
import itertools
from collections.abc import Awaitable, Callable
from datetime import timedelta

from clockq.log import get_logger

logger = get_logger(__name__)

DueFn = Callable[[str], Awaitable[None]]


@dataclasses.dataclass
class DelayQueue:
    """
    Heap of (due_time, seq, message_id) served by a single background task.

    Usage
    -----
        delays = DelayQueue(on_due=backend._reinsert)
        delays.schedule(message_id, timedelta(minutes=4))
        ...
        await delays.close()   # drops every pending entry
    """

    on_due: DueFn

    _heap: list[tuple[float, int, str]] = dataclasses.field(
        default_factory=list, init=False, repr=False
    )
    _seq: itertools.count = dataclasses.field(
        default_factory=itertools.count, init=False, repr=False
    )
    _wakeup: asyncio.Event = dataclasses.field(
        default_factory=asyncio.Event, init=False, repr=False
    )
    _task: asyncio.Task[None] | None = dataclasses.field(
        default=None, init=False, repr=False
    )
    _closed: bool = dataclasses.field(default=False, init=False, repr=False)

    def __len__(self) -> int:
        return len(self._heap)

    def __contains__(self, message_id: object) -> bool:
        return any(entry[2] == message_id for entry in self._heap)

    # ------------------------------------------------------------------ #
    # Public API                                                           #
    # ------------------------------------------------------------------ #

    def schedule(self, message_id: str, delay: timedelta) -> None:
        """Call on_due(message_id) once `delay` has elapsed."""
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        due = loop.time() + max(delay.total_seconds(), 0.0)
        heapq.heappush(self._heap, (due, next(self._seq), message_id))
        if self._task is None:
            self._task = loop.create_task(self._run(), name="clockq-delay-queue")
        self._wakeup.set()

    async def close(self) -> None:
        """Cancel the timer task and drop every pending entry."""
        self._closed = True
        self._heap.clear()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    # ------------------------------------------------------------------ #
    # Internal machinery                                                   #
    # ------------------------------------------------------------------ #

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while not self._closed:
            if not self._heap:
                self._wakeup.clear()
                await self._wakeup.wait()
                continue

            due, _, message_id = self._heap[0]
            remaining = due - loop.time()
            if remaining > 0:
                self._wakeup.clear()
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    pass
                continue

            heapq.heappop(self._heap)
            try:
                await self.on_due(message_id)
            except Exception:
                logger.exception("delay_queue.on_due_failed", message_id=message_id)
