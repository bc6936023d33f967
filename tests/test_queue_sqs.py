import json
from unittest.mock import AsyncMock

import pytest

from clockq.adapters.queue.sqs import SQSQueue
from clockq.core import codec, tasks
from clockq.domain.errors import BackendError, MessageNotFoundError
from clockq.domain.models import MessageStatus

from conftest import QUEUE_URL, FakeSQSBroker, FakeSQSClient

# ---------------------------------------------------------------------------
# Publish
# ---------------------------------------------------------------------------


async def test_enqueue_sends_encoded_body(sqs_queue: SQSQueue, sqs_broker: FakeSQSBroker) -> None:
    msg = await sqs_queue.enqueue(tasks.labor_cost_report("E1", 8.5, "2024-01-01"))

    (sent,) = sqs_broker.sent
    assert sent["QueueUrl"] == QUEUE_URL
    assert codec.decode(sent["MessageBody"]) == msg
    assert json.loads(sent["MessageBody"])["type"] == "labor_cost_report"
    assert sent["MessageAttributes"] == {
        "Type": {"StringValue": "labor_cost_report", "DataType": "String"}
    }


async def test_enqueue_wraps_client_errors(
    sqs_queue: SQSQueue, monkeypatch: pytest.MonkeyPatch
) -> None:
    cause = RuntimeError("throttled")
    monkeypatch.setattr(FakeSQSClient, "send_message", AsyncMock(side_effect=cause))

    with pytest.raises(BackendError) as exc_info:
        await sqs_queue.enqueue(tasks.labor_cost_report("E1", 8.5, "2024-01-01"))
    assert exc_info.value.cause is cause


# ---------------------------------------------------------------------------
# Receive
# ---------------------------------------------------------------------------


async def test_dequeue_deletes_on_receipt(sqs_queue: SQSQueue, sqs_broker: FakeSQSBroker) -> None:
    await sqs_queue.enqueue(tasks.labor_cost_report("E1", 8.5, "2024-01-01"))
    msg = await sqs_queue.dequeue()

    assert msg.status == MessageStatus.PROCESSING
    assert sqs_broker.deleted == ["rh-1"]
    assert sqs_broker.in_flight == {}
    assert sqs_broker.visible == []


async def test_failed_message_never_resubmitted(
    sqs_queue: SQSQueue, sqs_broker: FakeSQSBroker
) -> None:
    msg = await sqs_queue.enqueue(tasks.labor_cost_report("E1", 8.5, "2024-01-01"))
    await sqs_queue.dequeue()
    await sqs_queue.mark_failed(msg.id)

    assert await sqs_queue.get(msg.id) is None
    assert len(sqs_broker.sent) == 1
    assert await sqs_queue.dequeue() is None


async def test_completion_is_local_only(sqs_queue: SQSQueue, sqs_broker: FakeSQSBroker) -> None:
    msg = await sqs_queue.enqueue(tasks.email_notification("E1", 8.5, "2024-01-01"))
    claimed = await sqs_queue.dequeue()
    assert (await sqs_queue.get(msg.id)) == claimed

    await sqs_queue.mark_completed(msg.id)
    assert await sqs_queue.get(msg.id) is None
    assert len(sqs_broker.sent) == 1


async def test_resolved_copies_are_not_retained(sqs_queue: SQSQueue) -> None:
    for i in range(50):
        await sqs_queue.enqueue(tasks.labor_cost_report(f"E{i}", 8, "2024-01-01"))
    for i in range(50):
        msg = await sqs_queue.dequeue()
        if i % 2:
            await sqs_queue.mark_completed(msg.id)
        else:
            await sqs_queue.mark_failed(msg.id)

    assert sqs_queue._received == {}
    assert await sqs_queue.dequeue() is None


async def test_second_resolution_is_unknown(sqs_queue: SQSQueue) -> None:
    msg = await sqs_queue.enqueue(tasks.labor_cost_report("E1", 8.5, "2024-01-01"))
    await sqs_queue.dequeue()
    await sqs_queue.mark_failed(msg.id)

    with pytest.raises(MessageNotFoundError):
        await sqs_queue.mark_completed(msg.id)


async def test_invalid_body_is_dropped(sqs_queue: SQSQueue, sqs_broker: FakeSQSBroker) -> None:
    sqs_broker.put_raw("not json")
    assert await sqs_queue.dequeue() is None
    assert sqs_broker.deleted == ["rh-1"]


async def test_get_before_receive_is_unknown(sqs_queue: SQSQueue) -> None:
    msg = await sqs_queue.enqueue(tasks.labor_cost_report("E1", 8.5, "2024-01-01"))
    assert await sqs_queue.get(msg.id) is None
    with pytest.raises(MessageNotFoundError):
        await sqs_queue.mark_completed(msg.id)


# ---------------------------------------------------------------------------
# Introspection & client wiring
# ---------------------------------------------------------------------------


async def test_pending_count_returns_zero_on_error(
    sqs_queue: SQSQueue, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        FakeSQSClient, "get_queue_attributes", AsyncMock(side_effect=RuntimeError("denied"))
    )
    assert await sqs_queue.pending_count() == 0


def test_client_kwargs() -> None:
    q = SQSQueue(
        queue_url=QUEUE_URL,
        region_name="eu-west-1",
        endpoint_url="http://localhost:9324",
    )
    assert q._client_kwargs() == {
        "region_name": "eu-west-1",
        "endpoint_url": "http://localhost:9324",
    }
    assert SQSQueue(queue_url=QUEUE_URL)._client_kwargs() == {}


async def test_client_kwargs_forwarded(sqs_broker: FakeSQSBroker) -> None:
    q = SQSQueue(queue_url=QUEUE_URL, session=sqs_broker, region_name="eu-west-1")  # type: ignore[arg-type]
    await q.pending_count()
    assert sqs_broker.client_kwargs == [{"region_name": "eu-west-1"}]
