"""
QueueBackend — the single port in clockq.

Any object satisfying this structural Protocol can back the Worker and the
producer. No base class or registration is required.

Contract
--------
enqueue(message)
  - fills unset defaults (id, created_at, process_at, status, max_attempts)
  - persists the message and makes it visible once process_at has elapsed
  - raises QueueClosedError after close()
  - raises DuplicateMessageError when the backend already stores the id;
    stored messages, terminal ones included, are never overwritten
    (SQSQueue keeps no store and cannot check)

dequeue()
  - returns one ready message, claimed (status=processing, attempts += 1)
  - returns None when nothing is ready; never blocks indefinitely

mark_completed(message_id) / mark_failed(message_id)
  - raise MessageNotFoundError for unknown ids
  - SQSQueue forgets a message once it is resolved, so a second call
    raises MessageNotFoundError there
  - mark_failed applies the shared retry policy (core/retry.py); each
    backend documents how faithfully it honours the computed process_at

pending_count()
  - messages in PENDING status waiting in the backend's ready or delayed
    structures; in-flight (PROCESSING) messages are not counted

close()
  - stops accepting new work and releases resources; idempotent
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from clockq.domain.models import Message


@runtime_checkable
class QueueBackend(Protocol):
    """
    Minimal interface required by the Worker and the producer.

    Implementing adapters (built-in):
      - InMemoryQueue — asyncio.Queue ready channel + dict, single process
      - RedisQueue    — Redis list of ready ids + hash of message bodies
      - SQSQueue      — AWS SQS queue, delete-on-receive (aioboto3)
    """

    async def enqueue(self, message: Message) -> Message:
        """Persist a message. Returns the committed Message with defaults filled."""
        ...

    async def dequeue(self) -> Message | None:
        """Claim the next ready message, or return None."""
        ...

    async def mark_completed(self, message_id: str) -> None:
        """Transition a message to COMPLETED."""
        ...

    async def mark_failed(self, message_id: str) -> None:
        """Schedule a retry or transition to FAILED once attempts are exhausted."""
        ...

    async def pending_count(self) -> int:
        """Best-effort count of pending messages, for observability only."""
        ...

    async def get(self, message_id: str) -> Message | None:
        """Read-only snapshot of a stored message, or None if absent."""
        ...

    async def close(self) -> None:
        """Stop accepting work and release backend resources."""
        ...
