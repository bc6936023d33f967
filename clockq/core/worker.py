"""
Worker — the single polling consumer.

Each iteration:
  1. dequeue() once
  2. dispatch the message by type to its handler
  3. mark_completed() on success; mark_failed() on any handler error or
     when no handler is registered for the type
  4. wait poll_interval (or until stopped) and go again

Stopping is cooperative: stop() sets an asyncio.Event that the loop checks
at the top of every iteration and while it waits. stop() never blocks, so
calling it after the loop has exited is harmless. There is no drain phase;
a message dequeued but not yet resolved when the process exits stays
PROCESSING.

Usage
-----
    worker = Worker(queue, default_handlers(reporting, notifier))
    task = asyncio.create_task(worker.run())
    ...
    worker.stop()
    await task
"""
from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Mapping
from datetime import timedelta

from clockq.core.handlers import Handler
from clockq.domain.errors import ClockQError
from clockq.domain.models import Message, MessageType
from clockq.log import get_logger
from clockq.ports.queue import QueueBackend

logger = get_logger(__name__)


@dataclasses.dataclass
class Worker:
    """
    Parameters
    ----------
    queue         : any QueueBackend implementation
    handlers      : message type → async handler
    poll_interval : pause after every iteration (default 1 second)
    """

    queue: QueueBackend
    handlers: Mapping[MessageType | str, Handler]
    poll_interval: timedelta = timedelta(seconds=1)

    _stop: asyncio.Event = dataclasses.field(
        default_factory=asyncio.Event, init=False, repr=False
    )

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Ask the loop to exit after the current iteration."""
        self._stop.set()

    async def run(self) -> None:
        """Poll until stop() is called."""
        logger.info("worker.started", backend=type(self.queue).__name__)
        while not self._stop.is_set():
            await self.process_next()
            try:
                await asyncio.wait_for(
                    self._stop.wait(), timeout=self.poll_interval.total_seconds()
                )
            except asyncio.TimeoutError:
                pass
        logger.info("worker.stopped")

    async def process_next(self) -> Message | None:
        """
        Run one iteration. Returns the message that was handled, if any.

        Queue errors are logged and swallowed so the loop keeps polling.
        """
        try:
            message = await self.queue.dequeue()
        except ClockQError as exc:
            logger.error("worker.dequeue_failed", error=str(exc))
            return None

        if message is None:
            return None
        message_id = message.message_id

        log = logger.bind(
            message_id=message_id, type=message.type_name, attempt=message.attempts
        )
        log.info("worker.message_received")

        handler = self.handlers.get(message.type)
        try:
            if handler is None:
                log.error("worker.unknown_type")
                await self.queue.mark_failed(message_id)
                return message
            try:
                await handler(message)
            except Exception as exc:
                log.warning("worker.handler_failed", error=str(exc))
                await self.queue.mark_failed(message_id)
            else:
                log.info("worker.message_completed")
                await self.queue.mark_completed(message_id)
        except ClockQError as exc:
            log.error("worker.resolve_failed", error=str(exc))
        return message
