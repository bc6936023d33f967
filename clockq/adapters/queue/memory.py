"""
InMemoryQueue — asyncio-based backend for a single process.

State
-----
_messages : dict id → Message, guarded by one asyncio.Lock
_ready    : bounded asyncio.Queue of ready ids (the ready-signal channel)
_overflow : ids that found the channel full, drained back as room frees up
_delays   : one DelayQueue holding every scheduled retry

A message id sits in the ready channel only once its process_at has
elapsed; messages enqueued for the future and failed messages awaiting
their backoff wait in the DelayQueue. get_nowait() hands each id to
exactly one dequeue() call, so claims are exclusive.

Nothing survives a restart. Safe for concurrent producers in one event
loop; NOT safe across processes or threads.
"""
from __future__ import annotations

import asyncio
import collections
import dataclasses
from collections.abc import Callable
from datetime import datetime, timedelta
from types import TracebackType

from clockq.core import retry
from clockq.core.delay import DelayQueue
from clockq.domain.errors import (
    DuplicateMessageError,
    MessageNotFoundError,
    QueueClosedError,
    QueueSaturatedError,
)
from clockq.domain.models import Message, MessageStatus
from clockq.log import get_logger

logger = get_logger(__name__)

DEFAULT_CAPACITY: int = 1000


@dataclasses.dataclass
class InMemoryQueue:
    """
    In-process queue backend.

    Parameters
    ----------
    capacity     : size of the ready channel (default 1000)
    backoff_unit : multiplied by attempts² to get the retry delay (default 1 min)
    clock        : returns the current UTC time; injectable for tests
    """

    capacity: int = DEFAULT_CAPACITY
    backoff_unit: timedelta = retry.DEFAULT_BACKOFF_UNIT
    clock: Callable[[], datetime] = retry.utcnow

    def __post_init__(self) -> None:
        self._messages: dict[str, Message] = {}
        self._ready: asyncio.Queue[str] = asyncio.Queue(maxsize=self.capacity)
        self._overflow: collections.deque[str] = collections.deque()
        self._delays = DelayQueue(on_due=self._release)
        self._lock = asyncio.Lock()
        self._closed = False

    async def __aenter__(self) -> "InMemoryQueue":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------ #
    # Queue contract                                                       #
    # ------------------------------------------------------------------ #

    async def enqueue(self, message: Message) -> Message:
        """
        Store a message and signal it ready, or schedule it for process_at.

        Raises DuplicateMessageError when the id is already stored, and
        QueueSaturatedError when the ready channel is full; a saturated message
        is kept and delivered once the overflow backlog drains.
        """
        async with self._lock:
            if self._closed:
                raise QueueClosedError()
            now = self.clock()
            message = retry.prepare(message, now)
            message_id = message.message_id
            if message_id in self._messages:
                raise DuplicateMessageError(message_id)
            self._messages[message_id] = message

            if not message.is_ready(now):
                self._delays.schedule(message_id, message.delay_until_due(now))
            elif not self._offer(message_id):
                raise QueueSaturatedError(message_id)
        return message

    async def dequeue(self) -> Message | None:
        """
        Claim the next ready message without waiting. Returns None if none.

        Ids whose message is gone or no longer PENDING are dropped. A PENDING
        message whose process_at has not yet come goes back to the delay
        queue for the remaining time.
        """
        async with self._lock:
            if self._closed:
                return None
            now = self.clock()
            self._refill()
            while not self._ready.empty():
                message_id = self._ready.get_nowait()
                self._refill()
                message = self._messages.get(message_id)
                if message is None or message.status != MessageStatus.PENDING:
                    logger.debug("memory_queue.stale_id_skipped", message_id=message_id)
                    continue
                if not message.is_ready(now):
                    self._delays.schedule(message_id, message.delay_until_due(now))
                    continue
                claimed = retry.claim(message)
                self._messages[message_id] = claimed
                return claimed
            return None

    async def mark_completed(self, message_id: str) -> None:
        async with self._lock:
            message = self._require(message_id)
            self._messages[message_id] = retry.complete(message)

    async def mark_failed(self, message_id: str) -> None:
        """Apply the retry policy and schedule re-delivery after the backoff."""
        async with self._lock:
            message = self._require(message_id)
            now = self.clock()
            updated = retry.apply_failure(message, now, self.backoff_unit)
            self._messages[message_id] = updated

            if updated.status == MessageStatus.FAILED:
                logger.error(
                    "memory_queue.message_failed",
                    message_id=message_id,
                    attempts=updated.attempts,
                )
            elif updated is not message and updated.status == MessageStatus.PENDING:
                self._delays.schedule(message_id, updated.delay_until_due(now))
                logger.info(
                    "memory_queue.retry_scheduled",
                    message_id=message_id,
                    attempts=updated.attempts,
                    process_at=str(updated.process_at),
                )

    async def pending_count(self) -> int:
        """PENDING messages: ready, parked on the overflow backlog, or delayed."""
        async with self._lock:
            return sum(
                1 for m in self._messages.values() if m.status == MessageStatus.PENDING
            )

    async def get(self, message_id: str) -> Message | None:
        async with self._lock:
            return self._messages.get(message_id)

    async def close(self) -> None:
        """Refuse new work, drop the ready channel and cancel every timer."""
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            while not self._ready.empty():
                self._ready.get_nowait()
            self._overflow.clear()
        await self._delays.close()

    # ------------------------------------------------------------------ #
    # Internal helpers (call with the lock held)                           #
    # ------------------------------------------------------------------ #

    def _require(self, message_id: str) -> Message:
        message = self._messages.get(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        return message

    def _offer(self, message_id: str) -> bool:
        """Signal readiness. False when the id had to go to the overflow backlog."""
        if not self._overflow:
            try:
                self._ready.put_nowait(message_id)
                return True
            except asyncio.QueueFull:
                pass
        self._overflow.append(message_id)
        return False

    def _refill(self) -> None:
        """Move backlog ids into the ready channel while it has room."""
        while self._overflow and not self._ready.full():
            self._ready.put_nowait(self._overflow.popleft())

    async def _release(self, message_id: str) -> None:
        """DelayQueue callback: signal a delayed message once its time has come."""
        async with self._lock:
            if self._closed:
                return
            message = self._messages.get(message_id)
            if message is None or message.status != MessageStatus.PENDING:
                return
            if not self._offer(message_id):
                logger.warning("memory_queue.saturated", message_id=message_id)
