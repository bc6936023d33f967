"""
RedisQueue — durable backend on a Redis hash plus a Redis list.

Install extras: pip install "clockq[redis]"

Layout
------
  {prefix}:messages  HASH  id → encoded Message (see core/codec.py)
  {prefix}:pending   LIST  ready ids; LPUSH on enqueue, BRPOP on dequeue

enqueue() writes the body with HSETNX, so an id that is already stored is
rejected instead of overwritten. Every later mutation re-reads the message,
applies the transition from core/retry.py and writes the whole body back
with HSET. Survives process restarts and can be shared by several
processes.

Weaker guarantees than InMemoryQueue
------------------------------------
- BRPOP is atomic, but a crash between the pop and the HSET that records
  the claim leaves the stored status PENDING with no id on the list, and
  a crash after a failure's HSET but before its LPUSH loses the retry.
- mark_failed() re-pushes a retried id immediately. The computed
  process_at is stored on the message but NOT waited for, so the next
  attempt may run straight away.
- Messages enqueued with a future process_at are pushed immediately too.
"""
from __future__ import annotations

import dataclasses
from collections.abc import Callable
from datetime import datetime, timedelta
from types import TracebackType
from typing import TYPE_CHECKING

from pydantic import ValidationError

from clockq.core import codec, retry
from clockq.domain.errors import (
    BackendError,
    ClockQError,
    DuplicateMessageError,
    MessageNotFoundError,
    QueueClosedError,
)
from clockq.domain.models import Message, MessageStatus
from clockq.log import get_logger

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)


@dataclasses.dataclass
class RedisQueue:
    """
    Redis queue backend.

    Parameters
    ----------
    url           : redis:// URL, used when `client` is omitted
    key_prefix    : namespace for the hash and list keys
    block_timeout : seconds dequeue() waits in BRPOP before returning None
    client        : redis.asyncio.Redis — created lazily from `url` if omitted
    backoff_unit  : multiplied by attempts² to get the recorded retry delay
    clock         : returns the current UTC time; injectable for tests
    """

    url: str = "redis://localhost:6379/0"
    key_prefix: str = "clockq"
    block_timeout: int = 1
    client: Redis | None = None
    backoff_unit: timedelta = retry.DEFAULT_BACKOFF_UNIT
    clock: Callable[[], datetime] = retry.utcnow

    def __post_init__(self) -> None:
        self._closed = False

    @property
    def messages_key(self) -> str:
        return f"{self.key_prefix}:messages"

    @property
    def pending_key(self) -> str:
        return f"{self.key_prefix}:pending"

    def _get_client(self) -> Redis:
        if self.client is not None:
            return self.client
        try:
            from redis import asyncio as aioredis
        except ImportError as exc:
            raise ImportError(
                "RedisQueue requires redis. Install with: pip install 'clockq[redis]'"
            ) from exc
        self.client = aioredis.from_url(self.url)
        return self.client

    async def __aenter__(self) -> "RedisQueue":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def ping(self) -> None:
        """Check connectivity; raises BackendError when Redis is unreachable."""
        try:
            await self._get_client().ping()
        except Exception as exc:
            raise BackendError("Redis ping failed", exc) from exc

    # ------------------------------------------------------------------ #
    # Queue contract                                                       #
    # ------------------------------------------------------------------ #

    async def enqueue(self, message: Message) -> Message:
        """Store the body with HSETNX and push the id. An existing id is rejected."""
        if self._closed:
            raise QueueClosedError()
        message = retry.prepare(message, self.clock())
        message_id = message.message_id
        client = self._get_client()
        try:
            created = await client.hsetnx(
                self.messages_key, message_id, codec.encode(message)
            )
            if created:
                await client.lpush(self.pending_key, message_id)
        except Exception as exc:
            raise BackendError("Redis enqueue failed", exc) from exc
        if not created:
            raise DuplicateMessageError(message_id)
        return message

    async def dequeue(self) -> Message | None:
        """Wait up to block_timeout seconds for a ready id and claim its message."""
        if self._closed:
            return None
        client = self._get_client()
        try:
            result = await client.brpop([self.pending_key], timeout=self.block_timeout)
            if result is None:
                return None
            message_id = _text(result[1])

            data = await client.hget(self.messages_key, message_id)
            if data is None:
                logger.warning("redis_queue.body_missing", message_id=message_id)
                return None

            claimed = retry.claim(codec.decode(data))
            await client.hset(self.messages_key, message_id, codec.encode(claimed))
            return claimed
        except ClockQError:
            raise
        except Exception as exc:
            raise BackendError("Redis dequeue failed", exc) from exc

    async def mark_completed(self, message_id: str) -> None:
        message = await self._load(message_id)
        await self._store(retry.complete(message))

    async def mark_failed(self, message_id: str) -> None:
        """Record the failure; a retried id goes straight back on the list."""
        message = await self._load(message_id)
        updated = retry.apply_failure(message, self.clock(), self.backoff_unit)
        await self._store(updated)

        if updated.status == MessageStatus.FAILED:
            logger.error(
                "redis_queue.message_failed",
                message_id=message_id,
                attempts=updated.attempts,
            )
        elif updated is not message and updated.status == MessageStatus.PENDING:
            try:
                await self._get_client().lpush(self.pending_key, message_id)
            except Exception as exc:
                raise BackendError("Redis requeue failed", exc) from exc
            logger.info(
                "redis_queue.retry_requeued",
                message_id=message_id,
                attempts=updated.attempts,
            )

    async def pending_count(self) -> int:
        """Length of the ready list; 0 when Redis cannot be reached."""
        try:
            return int(await self._get_client().llen(self.pending_key))
        except Exception as exc:
            logger.warning("redis_queue.pending_count_failed", error=str(exc))
            return 0

    async def get(self, message_id: str) -> Message | None:
        try:
            data = await self._get_client().hget(self.messages_key, message_id)
        except Exception as exc:
            raise BackendError("Redis read failed", exc) from exc
        if data is None:
            return None
        try:
            return codec.decode(data)
        except ValidationError as exc:
            raise BackendError(f"Stored message {message_id!r} is corrupt", exc) from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.client is not None:
            try:
                await self.client.aclose()
            except Exception as exc:
                raise BackendError("Redis close failed", exc) from exc

    # ------------------------------------------------------------------ #
    # Internal helpers                                                     #
    # ------------------------------------------------------------------ #

    async def _load(self, message_id: str) -> Message:
        message = await self.get(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        return message

    async def _store(self, message: Message) -> None:
        try:
            await self._get_client().hset(
                self.messages_key, message.message_id, codec.encode(message)
            )
        except Exception as exc:
            raise BackendError("Redis write failed", exc) from exc


def _text(value: bytes | str) -> str:
    """Redis returns bytes unless the client was built with decode_responses."""
    return value.decode("utf-8") if isinstance(value, bytes) else value
