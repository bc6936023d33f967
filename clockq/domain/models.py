"""
Domain models for clockq — backed by Pydantic v2.

Pydantic handles:
  - JSON serialization / deserialization (via codec.py)
  - datetime parsing (ISO-8601 with timezone)
  - field validation (non-negative attempts, positive max_attempts)

Message is frozen. State transitions return new instances via
model_copy(update=...); see core/retry.py for the transitions themselves.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageType(str, Enum):
    """Known task types. Message.type also accepts unknown strings."""

    LABOR_COST_REPORT = "labor_cost_report"
    EMAIL_NOTIFICATION = "email_notification"


class MessageStatus(str, Enum):
    """Lifecycle states for a queued message."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MessageStatus.COMPLETED, MessageStatus.FAILED)


DEFAULT_MAX_ATTEMPTS: int = 5


class Message(BaseModel):
    """
    A single unit of work.

    id           — opaque identifier, assigned at enqueue time when absent
    type         — routes the message to a handler
    payload      — task-specific fields; validated by the handler, not the queue
    attempts     — number of times the message has been dequeued
    max_attempts — attempt budget, fixed at creation (5 when unset at enqueue)
    created_at   — UTC timestamp of the first enqueue
    process_at   — earliest instant the message may be delivered
    status       — current lifecycle state

    Fields left as None are filled in by core.retry.prepare() at enqueue.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    # Known strings become MessageType; anything else stays a plain str.
    type: MessageType | str = Field(union_mode="left_to_right")
    payload: dict[str, Any] = Field(default_factory=dict)
    attempts: int = Field(default=0, ge=0)
    max_attempts: int | None = Field(default=None, ge=1)
    created_at: datetime | None = None
    process_at: datetime | None = None
    status: MessageStatus = MessageStatus.PENDING

    @property
    def message_id(self) -> str:
        """The assigned id. Raises ValueError on a message that was never enqueued."""
        if self.id is None:
            raise ValueError("Message has no id until it is enqueued")
        return self.id

    @property
    def type_name(self) -> str:
        """The wire value of `type`, whether known or not."""
        return self.type.value if isinstance(self.type, MessageType) else self.type

    def with_status(self, status: MessageStatus) -> "Message":
        """Return a new Message with an updated status."""
        return self.model_copy(update={"status": status})

    def delay_until_due(self, now: datetime) -> timedelta:
        """Time left until process_at; zero once it has elapsed or when unset."""
        if self.process_at is None or self.process_at <= now:
            return timedelta(0)
        return self.process_at - now

    def is_ready(self, now: datetime) -> bool:
        """True when the message is pending and its process_at has elapsed."""
        return self.status == MessageStatus.PENDING and (
            self.process_at is None or self.process_at <= now
        )
