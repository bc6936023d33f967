"""
clockq — background task queue for the check-out workflow.

When an employee checks out, two side effects must happen without holding
up the request: a labor cost report to the payroll system and a worked-hours
notice to the employee. The producer enqueues both; a single Worker polls
the queue, dispatches by message type and reports the outcome back to the
backend, which owns every state transition and retry.

Quick start
-----------
    import asyncio
    from clockq import InMemoryQueue, Worker, default_handlers, enqueue_checkout_tasks
    from clockq.adapters.integrations import LoggingNotifier, LoggingReportingClient

    async def main():
        async with InMemoryQueue() as q:
            await enqueue_checkout_tasks(q, "E1", 8.5, "2024-01-01")

            worker = Worker(q, default_handlers(
                LoggingReportingClient("http://payroll.local/hours"),
                LoggingNotifier("smtp.local"),
            ))
            await worker.process_next()   # one iteration; run() loops

    asyncio.run(main())

Backends
--------
Built-in (no extra deps):
  - InMemoryQueue  — single process, honours retry backoff exactly

Optional (install extras):
  - RedisQueue     (pip install "clockq[redis]") — durable; retries re-queue
                   immediately, ignoring the backoff
  - SQSQueue       (pip install "clockq[sqs]")   — durable; acknowledged on
                   fetch, failed messages are never resubmitted

Retry policy
------------
A failed message is retried after attempts² minutes until max_attempts
(5 for labor cost reports, 3 for email notifications), then FAILED.

Architecture
------------
Follows the Ports & Adapters pattern:
  domain/   — pure value types (Message, MessageType, MessageStatus)
  ports/    — Protocol interface (QueueBackend)
  core/     — retry policy, task factory, handlers, Worker, producer
  adapters/ — concrete queue backends and collaborator stand-ins
"""
from __future__ import annotations

from clockq.adapters.queue.memory import InMemoryQueue
from clockq.core.handlers import (
    HoursPayload,
    Notifier,
    ReportingClient,
    default_handlers,
)
from clockq.core.producer import enqueue_checkout_tasks
from clockq.core.tasks import email_notification, labor_cost_report
from clockq.core.worker import Worker
from clockq.domain.errors import (
    BackendError,
    ClockQError,
    DuplicateMessageError,
    MalformedPayloadError,
    MessageNotFoundError,
    QueueClosedError,
    QueueSaturatedError,
)
from clockq.domain.models import Message, MessageStatus, MessageType
from clockq.ports.queue import QueueBackend

__all__ = [
    # Domain models
    "Message",
    "MessageStatus",
    "MessageType",
    # Errors
    "ClockQError",
    "BackendError",
    "DuplicateMessageError",
    "MalformedPayloadError",
    "MessageNotFoundError",
    "QueueClosedError",
    "QueueSaturatedError",
    # Port (for typing custom backends)
    "QueueBackend",
    # Task factory, handlers, worker, producer
    "labor_cost_report",
    "email_notification",
    "HoursPayload",
    "ReportingClient",
    "Notifier",
    "default_handlers",
    "Worker",
    "enqueue_checkout_tasks",
    # Built-in backend
    "InMemoryQueue",
]
