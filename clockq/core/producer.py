"""
Producer side of the check-out workflow.

When an employee checks out, the primary transaction (event + session
update) has already committed. The background tasks queued here are
best-effort: an enqueue failure is logged as a warning and never
propagates to the caller.
"""
from __future__ import annotations

from datetime import date as date_type

from clockq.core import tasks
from clockq.domain.errors import ClockQError, QueueSaturatedError
from clockq.domain.models import Message
from clockq.log import get_logger
from clockq.ports.queue import QueueBackend

logger = get_logger(__name__)


async def enqueue_checkout_tasks(
    queue: QueueBackend,
    employee_id: str,
    hours_worked: float,
    worked_on: str | date_type,
) -> list[Message]:
    """
    Queue the labor cost report, then the email notification.

    Returns the messages the backend accepted. A saturated in-process queue
    still stores the message, so it is not counted as accepted here but
    will be delivered once the backlog drains.
    """
    accepted: list[Message] = []
    for message in (
        tasks.labor_cost_report(employee_id, hours_worked, worked_on),
        tasks.email_notification(employee_id, hours_worked, worked_on),
    ):
        try:
            accepted.append(await queue.enqueue(message))
        except QueueSaturatedError as exc:
            logger.warning(
                "producer.enqueue_deferred",
                employee_id=employee_id,
                type=message.type_name,
                message_id=exc.message_id,
            )
        except ClockQError as exc:
            logger.warning(
                "producer.enqueue_failed",
                employee_id=employee_id,
                type=message.type_name,
                error=str(exc),
            )
    return accepted
