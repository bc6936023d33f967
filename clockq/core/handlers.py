"""
Task handlers and the collaborator interfaces they call.

The queue carries payloads as loose dicts. Each handler validates its
payload into HoursPayload before touching a collaborator, so a missing or
mistyped field fails with MalformedPayloadError and no external call is
made.
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr, ValidationError

from clockq.domain.errors import MalformedPayloadError
from clockq.domain.models import Message, MessageType

Handler = Callable[[Message], Awaitable[None]]


@runtime_checkable
class ReportingClient(Protocol):
    """External payroll / labor-cost endpoint."""

    async def report_hours(self, employee_id: str, hours: float, date: str) -> None: ...


@runtime_checkable
class Notifier(Protocol):
    """Sends the worked-hours notice to the employee."""

    async def send_hours_notice(self, employee_id: str, hours: float, date: str) -> None: ...


class HoursPayload(BaseModel):
    """Payload shared by labor_cost_report and email_notification."""

    model_config = ConfigDict(frozen=True)

    employee_id: StrictStr
    hours_worked: StrictFloat | StrictInt
    date: StrictStr

    @classmethod
    def from_message(cls, message: Message) -> "HoursPayload":
        try:
            return cls.model_validate(message.payload)
        except ValidationError as exc:
            fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
            raise MalformedPayloadError(
                message.type_name, f"missing or invalid: {', '.join(fields) or 'payload'}"
            ) from exc


def labor_cost_handler(client: ReportingClient) -> Handler:
    async def handle(message: Message) -> None:
        payload = HoursPayload.from_message(message)
        await client.report_hours(
            payload.employee_id, float(payload.hours_worked), payload.date
        )

    return handle


def email_notification_handler(notifier: Notifier) -> Handler:
    async def handle(message: Message) -> None:
        payload = HoursPayload.from_message(message)
        await notifier.send_hours_notice(
            payload.employee_id, float(payload.hours_worked), payload.date
        )

    return handle


def default_handlers(
    client: ReportingClient, notifier: Notifier
) -> Mapping[MessageType | str, Handler]:
    """Handler table for the two built-in task types."""
    return {
        MessageType.LABOR_COST_REPORT: labor_cost_handler(client),
        MessageType.EMAIL_NOTIFICATION: email_notification_handler(notifier),
    }
