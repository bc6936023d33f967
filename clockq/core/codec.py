"""
Codec — serialize and deserialize Message to/from bytes using Pydantic v2.

Used by the durable backends: Redis stores the encoded bytes as hash values,
SQS carries them as the message body.

Wire format (produced by model_dump_json):
------------------------------------------
{
  "id": "550e8400-...",
  "type": "labor_cost_report",
  "payload": {"employee_id": "E1", "hours_worked": 8.5, "date": "2024-01-01"},
  "attempts": 0,
  "max_attempts": 5,
  "created_at": "2024-01-01T00:00:00Z",
  "process_at": "2024-01-01T00:00:00Z",
  "status": "pending"
}
"""
from __future__ import annotations

from clockq.domain.models import Message


def encode(message: Message) -> bytes:
    """Serialize a Message to UTF-8 JSON bytes."""
    return message.model_dump_json().encode("utf-8")


def decode(data: bytes | str) -> Message:
    """Deserialize UTF-8 JSON (bytes or str) to a Message."""
    return Message.model_validate_json(data)
