from __future__ import annotations

import json
from datetime import timedelta

import pytest

from pgboss_producer.domain.errors import StorageError
from pgboss_producer.domain.models import JobRequest, JobState, QueueDefaults
from pgboss_producer.engine import AsyncEnqueueEngine
from pgboss_producer.queue import AsyncJobQueue
from pgboss_producer.resolver import resolve

WINDOW_SECONDS = 30


def _options(options=None):
    return resolve(JobRequest.of("sync-crm", None, options), QueueDefaults())


@pytest.fixture
def engine(fixed_now):
    return AsyncEnqueueEngine(clock=lambda: fixed_now)


def test_statements_use_asyncpg_placeholders():
    engine = AsyncEnqueueEngine()

    assert "$1::uuid" in engine._insert_sql
    assert "$14::boolean" in engine._insert_sql
    assert "%s" not in engine._insert_sql
    assert engine._state_sql.endswith("$1::uuid")


@pytest.mark.asyncio
async def test_enqueue_sends_payload_as_json_text(engine, fake_async_store, fake_store):
    job_id = await engine.enqueue(fake_async_store, "sync-crm", {"account": 7}, _options())

    row = fake_store.rows[job_id]
    assert json.loads(row["data"]) == {"account": 7}
    assert row["expire_in"] == timedelta(minutes=15)


@pytest.mark.asyncio
async def test_enqueue_suppressed_by_window(engine, fake_async_store):
    options = _options({"singleton_seconds": WINDOW_SECONDS})

    first = await engine.enqueue(fake_async_store, "sync-crm", None, options)
    second = await engine.enqueue(fake_async_store, "sync-crm", None, options)

    assert first is not None
    assert second is None


@pytest.mark.asyncio
async def test_driver_errors_become_storage_errors(engine, fake_async_store):
    fake_async_store.fail_with = OSError("connection reset by peer")

    with pytest.raises(StorageError, match="failed to enqueue job on queue 'sync-crm'"):
        await engine.enqueue(fake_async_store, "sync-crm", None, _options())


@pytest.mark.asyncio
async def test_fetch_state_and_bulk_insert(engine, fake_async_store):
    ids = await engine.insert(fake_async_store, [{"name": "sync-crm"}, {"name": "sync-crm"}])

    assert len(ids) == 2
    assert await engine.fetch_state(fake_async_store, ids[0]) is JobState.created


@pytest.mark.asyncio
async def test_async_queue_debounce(fixed_now, fake_async_store):
    queue = AsyncJobQueue(engine=AsyncEnqueueEngine(clock=lambda: fixed_now))

    first = await queue.send_debounced(fake_async_store, "sync-crm", None, None, WINDOW_SECONDS)
    second = await queue.send_debounced(fake_async_store, "sync-crm", None, None, WINDOW_SECONDS)

    assert first is not None
    assert second is None
    assert await queue.get_job_state(fake_async_store, first) is JobState.created
