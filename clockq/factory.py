"""Build the configured QueueBackend."""
from __future__ import annotations

from clockq.adapters.queue.memory import InMemoryQueue
from clockq.adapters.queue.redis import RedisQueue
from clockq.adapters.queue.sqs import SQSQueue
from clockq.config import Settings
from clockq.ports.queue import QueueBackend


def build_queue(settings: Settings) -> QueueBackend:
    """Return the backend named by settings.backend, not yet connected."""
    match settings.backend:
        case "memory":
            return InMemoryQueue(
                capacity=settings.memory_capacity,
                backoff_unit=settings.backoff_unit_delta,
            )
        case "redis":
            return RedisQueue(
                url=settings.redis_url,
                key_prefix=settings.redis_key_prefix,
                block_timeout=settings.redis_block_timeout,
                backoff_unit=settings.backoff_unit_delta,
            )
        case "sqs":
            if not settings.sqs_queue_url:
                raise ValueError("backend=sqs requires sqs_queue_url")
            return SQSQueue(
                queue_url=settings.sqs_queue_url,
                region_name=settings.aws_region,
                endpoint_url=settings.aws_endpoint_url,
                backoff_unit=settings.backoff_unit_delta,
            )
        case _:
            raise ValueError(f"Unsupported queue backend: {settings.backend}")
