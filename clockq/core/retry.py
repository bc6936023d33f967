"""
Retry policy — the message state transitions shared by every backend.

Backends decide *where* a message lives; this module decides *what* its
next state is. All functions are pure and return new Message instances.

Backoff
-------
A failed message with attempts < max_attempts returns to PENDING with

    process_at = max(process_at, now + attempts² × unit)

where `unit` defaults to one minute (1, 4, 9, 16 ... minutes). Once
attempts reaches max_attempts the message becomes FAILED and is never
scheduled again. Terminal messages are returned unchanged by every
transition.
"""
from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

from clockq.domain.models import DEFAULT_MAX_ATTEMPTS, Message, MessageStatus

DEFAULT_BACKOFF_UNIT: timedelta = timedelta(minutes=1)


def backoff_delay(attempts: int, unit: timedelta = DEFAULT_BACKOFF_UNIT) -> timedelta:
    """Quadratic backoff: attempts² × unit."""
    return unit * (attempts * attempts)


def prepare(message: Message, now: datetime) -> Message:
    """Fill enqueue-time defaults for any field left unset."""
    created_at = message.created_at or now
    return message.model_copy(
        update={
            "id": message.id or str(uuid.uuid4()),
            "created_at": created_at,
            "process_at": message.process_at or created_at,
            "max_attempts": message.max_attempts or DEFAULT_MAX_ATTEMPTS,
        }
    )


def claim(message: Message) -> Message:
    """Mark a message PROCESSING and count the attempt."""
    return message.model_copy(
        update={"status": MessageStatus.PROCESSING, "attempts": message.attempts + 1}
    )


def complete(message: Message) -> Message:
    """Mark a message COMPLETED. Terminal messages are returned unchanged."""
    if message.status.is_terminal:
        return message
    return message.with_status(MessageStatus.COMPLETED)


def apply_failure(
    message: Message,
    now: datetime,
    unit: timedelta = DEFAULT_BACKOFF_UNIT,
) -> Message:
    """
    Return the message rescheduled for retry, or FAILED when out of attempts.

    Only an in-flight (PROCESSING) message can fail; any other message is
    returned unchanged so a stray call cannot reschedule it twice.
    """
    if message.status != MessageStatus.PROCESSING:
        return message

    max_attempts = message.max_attempts or DEFAULT_MAX_ATTEMPTS
    if message.attempts >= max_attempts:
        return message.with_status(MessageStatus.FAILED)

    process_at = now + backoff_delay(message.attempts, unit)
    if message.process_at is not None and message.process_at > process_at:
        process_at = message.process_at
    return message.model_copy(
        update={"status": MessageStatus.PENDING, "process_at": process_at}
    )


def utcnow() -> datetime:
    """Default clock for every backend."""
    return datetime.now(UTC)
