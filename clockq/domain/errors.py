"""
Exception hierarchy for clockq.

ClockQError
├── QueueClosedError       — the backend has been closed
├── QueueSaturatedError    — message stored but the ready channel is full
├── MessageNotFoundError   — message_id unknown to the backend
├── DuplicateMessageError  — message_id already stored by the backend
├── MalformedPayloadError  — payload failed per-task validation
└── BackendError           — underlying client failure (wraps original exception)
"""

from __future__ import annotations


class ClockQError(Exception):
    """Base class for all clockq exceptions."""


class QueueClosedError(ClockQError):
    """Raised by enqueue() once close() has been called."""

    def __init__(self) -> None:
        super().__init__("Queue is closed")


class QueueSaturatedError(ClockQError):
    """
    Raised when the in-process ready channel is full.

    The message is stored and parked on the overflow backlog; it becomes
    visible to dequeue() once the channel has room again.
    """

    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(
            f"Queue is full, message {message_id!r} stored but not queued "
            "for immediate processing"
        )


class MessageNotFoundError(ClockQError):
    """Raised when a message_id is not known to the backend."""

    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(f"Message {message_id!r} not found")


class DuplicateMessageError(ClockQError):
    """Raised by enqueue() when a message with the same id is already stored."""

    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(f"Message {message_id!r} already exists")


class MalformedPayloadError(ClockQError):
    """
    Raised by a handler when the payload does not match its task type.

    Attributes
    ----------
    message_type : the type tag of the offending message
    detail       : human-readable validation summary
    """

    def __init__(self, message_type: str, detail: str) -> None:
        self.message_type = message_type
        self.detail = detail
        super().__init__(f"Invalid {message_type} payload: {detail}")


class BackendError(ClockQError):
    """
    Wraps an underlying failure from a durable backend client.

    Attributes
    ----------
    cause : Exception
        The original exception from the Redis or SQS client.
    """

    def __init__(self, message: str, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"{message}: {cause}")
