"""Task factory — well-formed Messages for the known task types."""
from __future__ import annotations

from datetime import date as date_type

from clockq.domain.models import Message, MessageType

LABOR_COST_MAX_ATTEMPTS: int = 5
EMAIL_MAX_ATTEMPTS: int = 3


def _hours_payload(
    employee_id: str, hours_worked: float, date: str | date_type
) -> dict[str, object]:
    if isinstance(date, date_type):
        date = date.strftime("%Y-%m-%d")
    return {"employee_id": employee_id, "hours_worked": hours_worked, "date": date}


def labor_cost_report(
    employee_id: str, hours_worked: float, date: str | date_type
) -> Message:
    """Report worked hours to the external payroll system (5 attempts)."""
    return Message(
        type=MessageType.LABOR_COST_REPORT,
        payload=_hours_payload(employee_id, hours_worked, date),
        max_attempts=LABOR_COST_MAX_ATTEMPTS,
    )


def email_notification(
    employee_id: str, hours_worked: float, date: str | date_type
) -> Message:
    """Tell the employee how many hours were recorded (3 attempts)."""
    return Message(
        type=MessageType.EMAIL_NOTIFICATION,
        payload=_hours_payload(employee_id, hours_worked, date),
        max_attempts=EMAIL_MAX_ATTEMPTS,
    )
