"""
Producer demo for pgboss-producer.

Sends one job on its own, then three jobs inside a single transaction to show
that enqueueing commits (or rolls back) together with the caller's writes.
Finally several pooled workers race to send the same throttled job; the
singleton index lets exactly one of them through.
"""

from __future__ import annotations

import sys
import time
from concurrent.futures import ThreadPoolExecutor

import psycopg
import typer

from pgboss_producer.infrastructure.db_factory import PoolManager, build_dsn, get_sync_pool
from pgboss_producer.infrastructure.schema import ensure_schema
from pgboss_producer.queue import JobQueue
from pgboss_producer.utils.logging import configure_logging

THROTTLE_SECONDS = 60

app = typer.Typer(help="Enqueue demo jobs into a pg-boss compatible job table.")


def _build_dsn(dsn_override: str | None) -> str:
    if dsn_override:
        return dsn_override
    return build_dsn()


def _send_plain(conn: psycopg.Connection, queue: JobQueue, name: str) -> str | None:
    job_id = queue.send(conn, name, {"message": "plain send"}, {"priority": 1})
    conn.commit()
    return job_id


def _send_in_transaction(conn: psycopg.Connection, queue: JobQueue, name: str) -> list[str | None]:
    with conn.transaction():
        return [
            queue.send(conn, name, {"message": "transactional send", "index": index})
            for index in range(3)
        ]


def _send_concurrently(queue: JobQueue, name: str, workers: int) -> list[str | None]:
    manager = PoolManager()

    def send(index: int) -> str | None:
        with manager.sync_connection() as conn:
            return queue.send_throttled(conn, name, {"worker": index}, None, THROTTLE_SECONDS)

    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(send, range(workers)))


@app.command()
def main(
    queue_name: str = typer.Option(
        "demo-queue",
        "--queue",
        "-q",
        help="Queue name to send jobs to.",
    ),
    dsn: str | None = typer.Option(
        None,
        "--dsn",
        help="Optional DSN override for Postgres.",
    ),
    init_schema: bool = typer.Option(
        True,
        "--init-schema/--no-init-schema",
        help="Create the job schema first if it is missing.",
    ),
    workers: int = typer.Option(
        4,
        "--workers",
        "-w",
        min=1,
        help="Pooled workers racing to send one throttled job.",
    ),
) -> None:
    """
    Send one job, then three jobs in one transaction, then race pooled workers
    on a throttled job, and print the ids and states.
    """
    configure_logging(level="INFO")
    queue = JobQueue.from_settings()
    start = time.perf_counter()

    conninfo = _build_dsn(dsn)

    with psycopg.connect(conninfo) as conn:
        if init_schema:
            ensure_schema(conn, queue.defaults.schema_name)

        plain_id = _send_plain(conn, queue, queue_name)
        typer.echo(f"Plain send -> {plain_id}")

        batch_ids = _send_in_transaction(conn, queue, queue_name)
        typer.echo(f"Transactional sends -> {', '.join(str(job_id) for job_id in batch_ids)}")

        for job_id in [plain_id, *batch_ids]:
            if job_id is not None:
                state = queue.get_job_state(conn, job_id)
                typer.echo(f"  {job_id}: {state.value if state else 'missing'}")

    get_sync_pool(min_size=1, max_size=workers, dsn=conninfo)
    try:
        raced = _send_concurrently(queue, f"{queue_name}-throttled", workers)
    finally:
        PoolManager().close_all()
    inserted = [job_id for job_id in raced if job_id is not None]
    typer.echo(
        f"Concurrent throttled sends -> {len(inserted)} inserted, "
        f"{len(raced) - len(inserted)} suppressed"
    )

    typer.echo(f"Done in {time.perf_counter() - start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
