from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, List, Optional, Tuple

from rich import box
from rich.console import Console
from rich.table import Table

from pgboss_producer.domain.models import JobState, QueueDefaults, ResolvedJobOptions
from pgboss_producer.resolver.intervals import format_interval


def _describe(value: Any) -> str:
    if value is None:
        return "[dim]-[/dim]"
    if isinstance(value, timedelta):
        return format_interval(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def _options_rows(options: ResolvedJobOptions) -> List[Tuple[str, str]]:
    singleton_window = None
    if options.singleton_seconds is not None:
        mode = "debounce" if options.singleton_next_slot else "throttle"
        window = format_interval(timedelta(seconds=options.singleton_seconds))
        singleton_window = f"{window} ({mode})"

    return [
        ("Priority", _describe(options.priority)),
        ("Start after", _describe(options.start_after) if options.start_after else "now"),
        ("Expire in", _describe(options.expire_in)),
        ("Keep until", _describe(options.keep_until)),
        ("Retry limit", _describe(options.retry_limit)),
        ("Retry delay (s)", _describe(options.retry_delay)),
        ("Retry backoff", _describe(options.retry_backoff)),
        ("Singleton key", _describe(options.singleton_key)),
        ("Singleton window", _describe(singleton_window)),
        ("On complete", _describe(options.on_complete)),
    ]


def print_resolved_options(
    name: str, options: ResolvedJobOptions, console: Optional[Console] = None
) -> None:
    """
    Render resolved job options as a rich table.

    Intervals are shown as human text ("15 minutes"); relative start and
    retention values are shown as delays because they are only anchored to a
    clock at insert time.
    """
    console = console or Console()

    table = Table(title=f"Resolved options for '{name}'", box=box.ROUNDED)
    table.add_column("Option", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    for label, value in _options_rows(options):
        table.add_row(label, value)

    console.print(table)


def print_queue_defaults(defaults: QueueDefaults, console: Optional[Console] = None) -> None:
    console = console or Console()

    table = Table(title="Queue defaults", box=box.ROUNDED)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="magenta")

    table.add_row("Schema", defaults.schema_name)
    table.add_row("Retry", f"{defaults.retry_limit} x {defaults.retry_delay}s")
    table.add_row("Retry backoff", _describe(defaults.retry_backoff))
    table.add_row("Expire in", _describe(defaults.expire_in))
    table.add_row("Keep until", _describe(defaults.keep_until))
    table.add_row("Archive after", _describe(timedelta(seconds=defaults.archive_seconds)))
    table.add_row("Delete after", _describe(defaults.delete_after))
    table.add_row("UUID", defaults.uuid_version)

    console.print(table)


def print_job_state(job_id: str, state: Optional[JobState], console: Optional[Console] = None) -> None:
    console = console or Console()

    if state is None:
        console.print(f"[yellow]Job {job_id} not found.[/yellow]")
        return

    table = Table(box=box.ROUNDED)
    table.add_column("Job", style="cyan", no_wrap=True)
    table.add_column("State", style="bold green")
    table.add_row(job_id, state.value)
    console.print(table)


__all__ = ["print_job_state", "print_queue_defaults", "print_resolved_options"]
