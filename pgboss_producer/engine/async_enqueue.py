"""
Asynchronous enqueue engine for asyncpg connections.

Same statements and guarantees as `EnqueueEngine`, rendered with asyncpg's
``$n`` placeholders. asyncpg is used directly rather than psycopg's async
API because it is what async services in this stack already hold.
"""

from __future__ import annotations

import json
from typing import Any, List, Mapping, Optional, Sequence

import asyncpg

from pgboss_producer.domain.errors import StorageError
from pgboss_producer.domain.models import JobState, ResolvedJobOptions
from pgboss_producer.engine.abstract import AsyncExecutionContext
from pgboss_producer.engine.enqueue import BaseEnqueueEngine, first_column
from pgboss_producer.engine.sql import asyncpg_placeholder
from pgboss_producer.utils.logging import get_logger

log = get_logger(__name__)

ASYNC_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class AsyncEnqueueEngine(BaseEnqueueEngine):
    """Coroutine twin of `EnqueueEngine`."""

    placeholder = staticmethod(asyncpg_placeholder)

    async def enqueue(
        self,
        conn: AsyncExecutionContext,
        name: str,
        data: Any,
        options: ResolvedJobOptions,
    ) -> Optional[str]:
        record = self.materialize(name, data, options)
        params = self.record_params(record)
        params[7] = json.dumps(record.data)

        try:
            row = await conn.fetchrow(self._insert_sql, *params)
        except ASYNC_DRIVER_ERRORS as exc:
            log.warning("Enqueue failed", extra={"queue": name, "error": str(exc)})
            raise StorageError(f"failed to enqueue job on queue '{name}': {exc}") from exc

        if row is None:
            log.debug(
                "Job suppressed by singleton constraint",
                extra={"queue": name, "singleton_key": record.singleton_key},
            )
            return None

        job_id = str(record.id)
        log.debug("Job enqueued", extra={"queue": name, "job_id": job_id})
        return job_id

    async def insert(
        self, conn: AsyncExecutionContext, jobs: Sequence[Mapping[str, Any]]
    ) -> List[str]:
        if not jobs:
            return []
        try:
            rows = await conn.fetch(self._insert_many_sql, self.batch_payload(jobs))
        except ASYNC_DRIVER_ERRORS as exc:
            raise StorageError(f"failed to insert {len(jobs)} jobs: {exc}") from exc
        return [str(first_column(row)) for row in rows]

    async def fetch_state(self, conn: AsyncExecutionContext, job_id: str) -> Optional[JobState]:
        try:
            row = await conn.fetchrow(self._state_sql, job_id)
        except ASYNC_DRIVER_ERRORS as exc:
            raise StorageError(f"failed to read state of job {job_id}: {exc}") from exc
        if row is None:
            return None
        return JobState(first_column(row))


__all__ = ["ASYNC_DRIVER_ERRORS", "AsyncEnqueueEngine"]
