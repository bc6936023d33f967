"""
clockq command line.

Usage:
    clockq worker                      # poll the configured backend until SIGINT/SIGTERM
    clockq status                      # pending count of the configured backend
    clockq enqueue E1 8.5 --date 2024-01-01

Backend selection comes from CLOCKQ_* settings (see config.py). With the
default in-process backend, `enqueue` and `status` only see their own
process; use redis or sqs to share a queue with a running worker.
"""
from __future__ import annotations

import asyncio
import signal
from datetime import date as date_type

import typer
from rich.console import Console
from rich.table import Table

from clockq.adapters.integrations import LoggingNotifier, LoggingReportingClient
from clockq.adapters.queue.redis import RedisQueue
from clockq.config import Settings, get_settings
from clockq.core.handlers import default_handlers
from clockq.core.producer import enqueue_checkout_tasks
from clockq.core.worker import Worker
from clockq.domain.models import Message
from clockq.factory import build_queue
from clockq.log import configure_logging

app = typer.Typer(help="Background task queue for check-out side effects", add_completion=False)
console = Console()


def _settings() -> Settings:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    return settings


async def _run_worker(settings: Settings) -> None:
    queue = build_queue(settings)
    if isinstance(queue, RedisQueue):
        await queue.ping()

    worker = Worker(
        queue,
        default_handlers(
            LoggingReportingClient(settings.reporting_url),
            LoggingNotifier(settings.smtp_host, settings.smtp_port),
        ),
        poll_interval=settings.poll_interval_delta,
    )
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)
    try:
        await worker.run()
    finally:
        await queue.close()


@app.command()
def worker() -> None:
    """Run the polling worker until interrupted."""
    settings = _settings()
    console.print(f"[bold]clockq worker[/bold] backend=[cyan]{settings.backend}[/cyan]")
    asyncio.run(_run_worker(settings))


@app.command()
def status() -> None:
    """Show how many messages are waiting in the configured backend."""
    settings = _settings()

    async def _count() -> int:
        queue = build_queue(settings)
        try:
            return await queue.pending_count()
        finally:
            await queue.close()

    table = Table(title="clockq status")
    table.add_column("Backend", style="cyan")
    table.add_column("Pending", justify="right", style="green")
    table.add_row(settings.backend, str(asyncio.run(_count())))
    console.print(table)


@app.command()
def enqueue(
    employee_id: str = typer.Argument(..., help="Employee identifier"),
    hours: float = typer.Argument(..., help="Hours worked"),
    date: str | None = typer.Option(
        None, "--date", help="Work date (YYYY-MM-DD), defaults to today"
    ),
) -> None:
    """Queue the check-out tasks (labor cost report + email) for one employee."""
    settings = _settings()
    worked_on = date or date_type.today().strftime("%Y-%m-%d")

    async def _enqueue() -> list[Message]:
        queue = build_queue(settings)
        try:
            return await enqueue_checkout_tasks(queue, employee_id, hours, worked_on)
        finally:
            await queue.close()

    accepted = asyncio.run(_enqueue())

    table = Table(title=f"Queued for {employee_id}")
    table.add_column("Message ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Max attempts", justify="right")
    for message in accepted:
        table.add_row(message.message_id, message.type_name, str(message.max_attempts))
    console.print(table)
    if len(accepted) < 2:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
