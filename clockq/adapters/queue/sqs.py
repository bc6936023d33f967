"""
SQSQueue — durable broker backend on AWS SQS using aioboto3.

Install extras: pip install "clockq[sqs]"

Delivery semantics
------------------
  enqueue()  → SendMessage with the encoded Message as body (SQS stores it
               durably across restarts and processes)
  dequeue()  → ReceiveMessage (WaitTimeSeconds=0, no waiting), then
               DeleteMessage straight away: the message is acknowledged on
               fetch, before any handler runs

Consequences, kept on purpose:
  - a crash between dequeue() and completion loses the message; SQS never
    redelivers it
  - attempts and status live only on the in-memory copy this backend hands
    out; nothing is written back to SQS
  - that copy is held only while the message is in flight; mark_completed()
    and mark_failed() drop it, so a second call raises MessageNotFoundError
  - mark_failed() applies the retry policy for logging but never
    resubmits, so failed messages are NOT retried

Compatible with SQS-compatible brokers reachable through endpoint_url
(ElasticMQ, LocalStack).
"""
from __future__ import annotations

import dataclasses
from collections.abc import Callable
from datetime import datetime, timedelta
from types import TracebackType
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from clockq.core import codec, retry
from clockq.domain.errors import (
    BackendError,
    MessageNotFoundError,
    QueueClosedError,
)
from clockq.domain.models import Message, MessageStatus
from clockq.log import get_logger

if TYPE_CHECKING:
    from aioboto3 import Session as AioBoto3Session

logger = get_logger(__name__)


@dataclasses.dataclass
class SQSQueue:
    """
    AWS SQS queue backend.

    Parameters
    ----------
    queue_url    : full SQS queue URL
    session      : aioboto3.Session — created lazily from env vars if omitted
    region_name  : AWS region passed to the SQS client
    endpoint_url : custom endpoint for SQS-compatible brokers
    backoff_unit : multiplied by attempts² to get the recorded retry delay
    clock        : returns the current UTC time; injectable for tests
    """

    queue_url: str
    session: AioBoto3Session | None = None
    region_name: str | None = None
    endpoint_url: str | None = None
    backoff_unit: timedelta = retry.DEFAULT_BACKOFF_UNIT
    clock: Callable[[], datetime] = retry.utcnow

    def __post_init__(self) -> None:
        self._received: dict[str, Message] = {}
        self._closed = False

    def _get_session(self) -> AioBoto3Session:
        if self.session is not None:
            return self.session
        try:
            import aioboto3  # type: ignore[import-untyped]
        except ImportError as exc:
            raise ImportError(
                "SQSQueue requires aioboto3. Install with: pip install 'clockq[sqs]'"
            ) from exc
        self.session = aioboto3.Session()
        return self.session  # type: ignore[return-value]

    def _client_kwargs(self) -> dict[str, str]:
        """Build kwargs forwarded to the SQS client constructor."""
        kwargs: dict[str, str] = {}
        if self.region_name:
            kwargs["region_name"] = self.region_name
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        return kwargs

    def _client(self) -> Any:
        return self._get_session().client("sqs", **self._client_kwargs())  # type: ignore[attr-defined]

    async def __aenter__(self) -> "SQSQueue":
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
        """Publish the message. Returns the committed Message."""
        if self._closed:
            raise QueueClosedError()
        message = retry.prepare(message, self.clock())
        try:
            async with self._client() as sqs:
                await sqs.send_message(
                    QueueUrl=self.queue_url,
                    MessageBody=codec.encode(message).decode("utf-8"),
                    MessageAttributes={
                        "Type": {"StringValue": message.type_name, "DataType": "String"}
                    },
                )
        except Exception as exc:
            raise BackendError("SQS enqueue failed", exc) from exc
        logger.info("sqs_queue.enqueued", message_id=message.id, type=message.type_name)
        return message

    async def dequeue(self) -> Message | None:
        """Receive one message, delete it from SQS at once, claim the local copy."""
        if self._closed:
            return None
        try:
            async with self._client() as sqs:
                response = await sqs.receive_message(
                    QueueUrl=self.queue_url,
                    MaxNumberOfMessages=1,
                    WaitTimeSeconds=0,
                )
                received = response.get("Messages", [])
                if not received:
                    return None
                await sqs.delete_message(
                    QueueUrl=self.queue_url,
                    ReceiptHandle=received[0]["ReceiptHandle"],
                )
        except Exception as exc:
            raise BackendError("SQS dequeue failed", exc) from exc

        try:
            message = codec.decode(received[0]["Body"])
        except ValidationError as exc:
            # Already deleted; nothing left to redeliver.
            logger.error("sqs_queue.invalid_body_dropped", error=str(exc))
            return None

        claimed = retry.claim(message)
        self._received[claimed.message_id] = claimed
        logger.info(
            "sqs_queue.dequeued",
            message_id=claimed.id,
            type=claimed.type_name,
            attempts=claimed.attempts,
        )
        return claimed

    async def mark_completed(self, message_id: str) -> None:
        """Drop the local copy; SQS already forgot the message on receipt."""
        self._release(message_id)
        logger.info("sqs_queue.completed", message_id=message_id)

    async def mark_failed(self, message_id: str) -> None:
        """Log the outcome and drop the local copy. The message is never resubmitted."""
        message = self._release(message_id)
        updated = retry.apply_failure(message, self.clock(), self.backoff_unit)
        if updated.status == MessageStatus.FAILED:
            logger.error(
                "sqs_queue.message_failed",
                message_id=message_id,
                attempts=updated.attempts,
            )
        else:
            logger.warning(
                "sqs_queue.retry_not_resubmitted",
                message_id=message_id,
                attempts=updated.attempts,
            )

    async def pending_count(self) -> int:
        """ApproximateNumberOfMessages for the queue; 0 when SQS cannot be reached."""
        try:
            async with self._client() as sqs:
                response = await sqs.get_queue_attributes(
                    QueueUrl=self.queue_url,
                    AttributeNames=["ApproximateNumberOfMessages"],
                )
            return int(response["Attributes"]["ApproximateNumberOfMessages"])
        except Exception as exc:
            logger.warning("sqs_queue.pending_count_failed", error=str(exc))
            return 0

    async def get(self, message_id: str) -> Message | None:
        """Only messages received by this process and not yet resolved are known."""
        return self._received.get(message_id)

    async def close(self) -> None:
        # Clients are opened per call; nothing else to release.
        self._closed = True

    def _release(self, message_id: str) -> Message:
        """Remove and return the in-flight copy of a received message."""
        message = self._received.pop(message_id, None)
        if message is None:
            raise MessageNotFoundError(message_id)
        return message
