"""
Shared fixtures and in-process fakes for the durable backends' clients.

FakeRedis implements the handful of redis.asyncio commands RedisQueue uses.
FakeSQSBroker stands in for an aioboto3 session: session.client("sqs")
returns an async context manager around a client sharing broker state.
"""
from __future__ import annotations

import asyncio
import dataclasses
import itertools
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from clockq.adapters.queue.memory import InMemoryQueue
from clockq.adapters.queue.redis import RedisQueue
from clockq.adapters.queue.sqs import SQSQueue
from clockq.domain.models import Message

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/clockq-tasks"


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------


@dataclasses.dataclass
class FrozenClock:
    """Callable clock that only moves when told to."""

    now: datetime = datetime(2024, 1, 1, 17, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


# ---------------------------------------------------------------------------
# Redis fake
# ---------------------------------------------------------------------------


def _b(value: bytes | str) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


class FakeRedis:
    """Byte-returning subset of redis.asyncio.Redis. brpop never waits."""

    def __init__(self) -> None:
        self.hashes: dict[str, dict[bytes, bytes]] = {}
        self.lists: dict[str, list[bytes]] = {}
        self.brpop_timeouts: list[int] = []
        self.closed = False

    async def ping(self) -> bool:
        return True

    async def hset(self, name: str, key: str, value: bytes | str) -> int:
        bucket = self.hashes.setdefault(name, {})
        created = _b(key) not in bucket
        bucket[_b(key)] = _b(value)
        return int(created)

    async def hsetnx(self, name: str, key: str, value: bytes | str) -> int:
        bucket = self.hashes.setdefault(name, {})
        if _b(key) in bucket:
            return 0
        bucket[_b(key)] = _b(value)
        return 1

    async def hget(self, name: str, key: str) -> bytes | None:
        return self.hashes.get(name, {}).get(_b(key))

    async def lpush(self, name: str, *values: bytes | str) -> int:
        items = self.lists.setdefault(name, [])
        for value in values:
            items.insert(0, _b(value))
        return len(items)

    async def brpop(self, keys: list[str], timeout: int = 0) -> tuple[bytes, bytes] | None:
        self.brpop_timeouts.append(timeout)
        await asyncio.sleep(0)
        for key in keys:
            items = self.lists.get(key)
            if items:
                return _b(key), items.pop()
        return None

    async def llen(self, name: str) -> int:
        return len(self.lists.get(name, []))

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


# ---------------------------------------------------------------------------
# SQS fake
# ---------------------------------------------------------------------------


class FakeSQSBroker:
    """Queue state plus the session.client(...) entrypoint aioboto3 exposes."""

    def __init__(self) -> None:
        self.visible: list[dict[str, Any]] = []
        self.in_flight: dict[str, dict[str, Any]] = {}
        self.sent: list[dict[str, Any]] = []
        self.deleted: list[str] = []
        self.client_kwargs: list[dict[str, Any]] = []
        self._ids = itertools.count(1)

    def client(self, service_name: str, **kwargs: Any) -> "_ClientContext":
        assert service_name == "sqs"
        self.client_kwargs.append(kwargs)
        return _ClientContext(FakeSQSClient(self))

    def put_raw(self, body: str) -> None:
        n = next(self._ids)
        self.visible.append(
            {"MessageId": f"mid-{n}", "ReceiptHandle": f"rh-{n}", "Body": body}
        )


class _ClientContext:
    def __init__(self, client: "FakeSQSClient") -> None:
        self._client = client

    async def __aenter__(self) -> "FakeSQSClient":
        return self._client

    async def __aexit__(self, *args: object) -> None:
        pass


class FakeSQSClient:
    def __init__(self, broker: FakeSQSBroker) -> None:
        self.broker = broker

    async def send_message(self, **kwargs: Any) -> dict[str, Any]:
        assert kwargs["QueueUrl"] == QUEUE_URL
        self.broker.sent.append(kwargs)
        self.broker.put_raw(kwargs["MessageBody"])
        return {"MessageId": self.broker.visible[-1]["MessageId"]}

    async def receive_message(self, **kwargs: Any) -> dict[str, Any]:
        if not self.broker.visible:
            return {}
        entry = self.broker.visible.pop(0)
        self.broker.in_flight[entry["ReceiptHandle"]] = entry
        return {"Messages": [entry]}

    async def delete_message(self, **kwargs: Any) -> dict[str, Any]:
        self.broker.in_flight.pop(kwargs["ReceiptHandle"], None)
        self.broker.deleted.append(kwargs["ReceiptHandle"])
        return {}

    async def get_queue_attributes(self, **kwargs: Any) -> dict[str, Any]:
        return {
            "Attributes": {"ApproximateNumberOfMessages": str(len(self.broker.visible))}
        }


@pytest.fixture
def sqs_broker() -> FakeSQSBroker:
    return FakeSQSBroker()


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

FAST_BACKOFF = timedelta(milliseconds=1)


@pytest.fixture
async def memory_queue():  # type: ignore[no-untyped-def]
    q = InMemoryQueue(backoff_unit=FAST_BACKOFF)
    yield q
    await q.close()


@pytest.fixture
def redis_queue(fake_redis: FakeRedis) -> RedisQueue:
    return RedisQueue(client=fake_redis, backoff_unit=FAST_BACKOFF)  # type: ignore[arg-type]


@pytest.fixture
def sqs_queue(sqs_broker: FakeSQSBroker) -> SQSQueue:
    return SQSQueue(queue_url=QUEUE_URL, session=sqs_broker, backoff_unit=FAST_BACKOFF)  # type: ignore[arg-type]


async def dequeue_soon(queue: Any, timeout: float = 1.0) -> Message | None:
    """Poll dequeue() until it yields a message or `timeout` seconds pass."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        message = await queue.dequeue()
        if message is not None or loop.time() >= deadline:
            return message
        await asyncio.sleep(0.002)


@pytest.fixture
def poll():  # type: ignore[no-untyped-def]
    return dequeue_soon
