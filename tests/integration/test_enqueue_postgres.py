"""
Integration tests for enqueueing against PostgreSQL.

These tests run against a real PostgreSQL instance and verify that:
1. The schema DDL is idempotent and the singleton indexes suppress duplicates
2. Enqueueing participates in the caller's transaction
3. The sync and async engines write the same rows

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
from datetime import timedelta

import asyncpg
import psycopg
import pytest

from pgboss_producer.domain.models import JobState, QueueDefaults
from pgboss_producer.infrastructure.schema import ensure_schema
from pgboss_producer.queue import AsyncJobQueue, JobQueue

THROTTLE_SECONDS = 300
EXPECTED_PRIORITY = 5

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
)


@pytest.fixture
def queue(clean_job_table: str) -> JobQueue:
    return JobQueue(defaults=QueueDefaults(schema_name=clean_job_table))


def _count(conn: psycopg.Connection, schema: str) -> int:
    return conn.execute(f"SELECT count(*) FROM {schema}.job").fetchone()[0]


def test_ensure_schema_is_idempotent(db_connection, db_schema_initialized):
    ensure_schema(db_connection, db_schema_initialized)


def test_send_writes_resolved_row(db_connection, queue, clean_job_table):
    job_id = queue.send(
        db_connection,
        "send-email",
        {"to": "a@example.com"},
        {"priority": 5, "retry_limit": 3, "retry_delay": 10},
    )
    db_connection.commit()

    row = db_connection.execute(
        f"""
        SELECT priority, retryLimit, retryDelay, retryBackoff, expireIn,
               keepUntil - startAfter, data
        FROM {clean_job_table}.job WHERE id = %s::uuid
        """,
        [job_id],
    ).fetchone()

    assert row[0] == EXPECTED_PRIORITY
    assert row[1:4] == (3, 10, False)
    assert row[4] == timedelta(minutes=15)
    assert row[5] == timedelta(days=14)
    assert row[6] == {"to": "a@example.com"}
    assert queue.get_job_state(db_connection, job_id) is JobState.created


def test_throttle_inserts_one_row_per_window(db_connection, queue, clean_job_table):
    ids = [
        queue.send_throttled(db_connection, "digest", None, None, THROTTLE_SECONDS)
        for _ in range(3)
    ]
    db_connection.commit()

    assert ids[0] is not None
    assert ids[1:] == [None, None]
    assert _count(db_connection, clean_job_table) == 1


def test_singleton_queue_and_once(db_connection, queue, clean_job_table):
    assert queue.send_singleton(db_connection, "nightly") is not None
    assert queue.send_singleton(db_connection, "nightly") is None
    assert queue.send_once(db_connection, "rebuild", None, None, key="k") is not None
    assert queue.send_once(db_connection, "rebuild", None, None, key="k") is None
    db_connection.commit()

    assert _count(db_connection, clean_job_table) == 2


def test_rollback_discards_enqueued_job(db_connection, queue, clean_job_table):
    with pytest.raises(RuntimeError):
        with db_connection.transaction():
            queue.send(db_connection, "send-email", {"to": "x"})
            raise RuntimeError("caller's unit of work failed")

    assert _count(db_connection, clean_job_table) == 0


def test_bulk_insert(db_connection, queue, clean_job_table):
    ids = queue.insert(
        db_connection,
        [
            {"name": "import", "data": {"row": 1}},
            {"name": "import", "data": {"row": 2}, "singleton_key": "once"},
            {"name": "import", "data": {"row": 3}, "singleton_key": "once"},
        ],
    )
    db_connection.commit()

    assert len(ids) == 2
    assert _count(db_connection, clean_job_table) == 2


def test_clock_skew_is_small(db_connection, queue):
    assert abs(queue.check_clock_skew(db_connection)) < 60


@pytest.mark.asyncio
async def test_async_queue_writes_rows(test_dsn, db_connection, clean_job_table):
    queue = AsyncJobQueue(defaults=QueueDefaults(schema_name=clean_job_table))
    conn = await asyncpg.connect(test_dsn)
    try:
        job_id = await queue.send(conn, "sync-crm", {"account": 7}, {"priority": 2})
        first_window = await queue.send_debounced(conn, "sync-crm", None, None, THROTTLE_SECONDS)
        again = await queue.send_debounced(conn, "sync-crm", None, None, THROTTLE_SECONDS)
        state = await queue.get_job_state(conn, job_id)
    finally:
        await conn.close()

    assert first_window is not None
    assert again is None
    assert state is JobState.created
