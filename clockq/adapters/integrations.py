"""
Logging stand-ins for the two downstream integrations.

The payroll endpoint and the mail relay are external systems. These
implementations satisfy ReportingClient and Notifier by logging what would
be sent, and are what `clockq worker` wires in by default.
"""
from __future__ import annotations

import asyncio
import dataclasses
import json

from clockq.log import get_logger

logger = get_logger(__name__)


@dataclasses.dataclass
class LoggingReportingClient:
    """
    Parameters
    ----------
    endpoint_url : where the labor cost report would be POSTed
    latency      : simulated network delay in seconds
    """

    endpoint_url: str
    latency: float = 0.5

    async def report_hours(self, employee_id: str, hours: float, date: str) -> None:
        body = json.dumps(
            {"employee_id": employee_id, "hours_worked": hours, "date": date}
        )
        if self.latency > 0:
            await asyncio.sleep(self.latency)
        logger.info(
            "reporting.hours_reported",
            url=self.endpoint_url,
            employee_id=employee_id,
            hours=round(hours, 2),
            date=date,
            body=body,
        )


@dataclasses.dataclass
class LoggingNotifier:
    """
    Parameters
    ----------
    smtp_host / smtp_port : the relay that would deliver the mail
    domain                : recipient address is <employee_id>@<domain>
    """

    smtp_host: str
    smtp_port: int = 25
    domain: str = "company.com"

    async def send_hours_notice(self, employee_id: str, hours: float, date: str) -> None:
        logger.info(
            "notify.hours_notice_sent",
            to=f"{employee_id}@{self.domain}",
            subject=f"Your work hours for {date}",
            body=f"You worked {hours:.2f} hours today.",
            smtp=f"{self.smtp_host}:{self.smtp_port}",
        )
