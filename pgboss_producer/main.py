from __future__ import annotations

import json
import sys
from typing import Any, Optional

import psycopg
import typer

from pgboss_producer.config import Settings, get_settings
from pgboss_producer.domain.errors import JobQueueError
from pgboss_producer.domain.models import JobRequest
from pgboss_producer.infrastructure.db_factory import get_sync_connection
from pgboss_producer.infrastructure.schema import ensure_schema
from pgboss_producer.queue import JobQueue
from pgboss_producer.reporter import print_job_state, print_queue_defaults, print_resolved_options
from pgboss_producer.utils.logging import configure_logging

app = typer.Typer(help="pgboss-producer CLI.")


def _settings() -> Settings:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return settings


def _parse_json(value: Optional[str], option: str) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"invalid JSON: {exc}", param_hint=option) from exc


def _queue(settings: Settings) -> JobQueue:
    try:
        return JobQueue.from_settings(settings)
    except JobQueueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = _settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"env={settings.app_env} log_level={settings.log_level}"
    )
    print_queue_defaults(_queue(settings).defaults)


@app.command("init-schema")
def init_schema() -> None:
    """
    Create the job schema, table and singleton indexes if missing.
    """
    settings = _settings()
    queue = _queue(settings)
    try:
        with get_sync_connection() as conn:
            ensure_schema(conn, queue.defaults.schema_name)
    except (JobQueueError, psycopg.Error) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Schema '{queue.defaults.schema_name}' is ready.")


@app.command()
def resolve(
    name: str = typer.Argument(..., help="Queue name."),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="Job payload as JSON."),
    options: Optional[str] = typer.Option(
        None, "--options", "-o", help="Job options as a JSON object (snake_case keys)."
    ),
) -> None:
    """
    Resolve job options against the queue defaults without touching the database.
    """
    settings = _settings()
    queue = _queue(settings)
    request = JobRequest.of(name, _parse_json(data, "--data"), _parse_json(options, "--options"))
    try:
        resolved = queue.resolve(request)
    except JobQueueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    print_resolved_options(name, resolved)


@app.command()
def send(
    name: str = typer.Argument(..., help="Queue name."),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="Job payload as JSON."),
    options: Optional[str] = typer.Option(
        None, "--options", "-o", help="Job options as a JSON object (snake_case keys)."
    ),
) -> None:
    """
    Enqueue one job and print its id.
    """
    settings = _settings()
    queue = _queue(settings)
    payload = _parse_json(data, "--data")
    job_options = _parse_json(options, "--options")
    try:
        with get_sync_connection() as conn:
            with conn.transaction():
                job_id = queue.send(conn, name, payload, job_options)
    except (JobQueueError, psycopg.Error) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if job_id is None:
        typer.echo("Job suppressed by an existing singleton job.")
    else:
        typer.echo(job_id)


@app.command()
def state(job_id: str = typer.Argument(..., help="Job id.")) -> None:
    """
    Show the current state of a job.
    """
    settings = _settings()
    queue = _queue(settings)
    try:
        with get_sync_connection() as conn:
            job_state = queue.get_job_state(conn, job_id)
    except (JobQueueError, psycopg.Error) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    print_job_state(job_id, job_state)


@app.command("check-clock")
def check_clock() -> None:
    """
    Compare this host's clock with the database server's.
    """
    settings = _settings()
    queue = _queue(settings)
    try:
        with get_sync_connection() as conn:
            skew = queue.check_clock_skew(conn)
    except (JobQueueError, psycopg.Error) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Clock skew: {skew:+.3f}s (database minus local)")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
