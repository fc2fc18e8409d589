"""
Enqueue engine: turns resolved options into one conflict-safe insert.

The engine computes every time-dependent value from its clock, builds the
`EnqueueRecord`, and issues a single ``INSERT ... ON CONFLICT DO NOTHING``
on the caller's execution context. Duplicate suppression inside a singleton
window is left entirely to the store's unique indexes, so concurrent callers
racing for the same window see exactly one winner and no errors.

Usage:
    engine = EnqueueEngine(schema_name="pgboss")
    with psycopg.connect(dsn) as conn:
        job_id = engine.enqueue(conn, "send-email", {"to": "x"}, options)
"""

from __future__ import annotations

import json
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import psycopg
from psycopg.types.json import Jsonb

from pgboss_producer.domain.errors import StorageError, ValidationError
from pgboss_producer.domain.models import (
    DEFAULT_SCHEMA,
    EnqueueRecord,
    JobState,
    ResolvedJobOptions,
)
from pgboss_producer.engine.abstract import ExecutionContext
from pgboss_producer.engine.sql import (
    Placeholder,
    insert_job_sql,
    insert_jobs_sql,
    job_state_sql,
    psycopg_placeholder,
)
from pgboss_producer.resolver.intervals import coerce_instant
from pgboss_producer.resolver.options import resolve_start_after
from pgboss_producer.utils.logging import get_logger

log = get_logger(__name__)

Clock = Callable[[], datetime]
IdFactory = Callable[[], uuid.UUID]

EPOCH = datetime(1970, 1, 1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def id_factory_for(version: str) -> IdFactory:
    """Job identifier generator for the configured uuid flavor."""
    return uuid.uuid1 if version == "v1" else uuid.uuid4


def singleton_slot(now: datetime, seconds: int) -> datetime:
    """
    Start of the fixed-width window containing `now`.

    Windows are aligned to the Unix epoch:
    ``epoch + seconds * floor(epoch_seconds(now) / seconds)``. Throttled and
    debounced jobs share this bucketing; the result is naive UTC.
    """
    if seconds <= 0:
        raise ValueError("singleton window must be a positive number of seconds")
    epoch_seconds = now.timestamp()
    return EPOCH + timedelta(seconds=seconds * math.floor(epoch_seconds / seconds))


def shift(instant: datetime, delta: timedelta, key: str) -> datetime:
    """`instant + delta`, raising ValidationError when it leaves the datetime range."""
    try:
        return instant + delta
    except OverflowError as exc:
        raise ValidationError(f"{key} is out of range") from exc


def first_column(row: Any) -> Any:
    """First value of a tuple row or a dict row."""
    if isinstance(row, Mapping):
        return next(iter(row.values()))
    return row[0]


class BaseEnqueueEngine:
    """
    Record materialization shared by the sync and async engines.

    Subclasses bind a placeholder style and a driver.
    """

    placeholder: Placeholder = staticmethod(psycopg_placeholder)

    def __init__(
        self,
        schema_name: str = DEFAULT_SCHEMA,
        id_factory: IdFactory = uuid.uuid4,
        clock: Clock = utcnow,
    ) -> None:
        self.schema_name = schema_name
        self.id_factory = id_factory
        self.clock = clock
        self._insert_sql = insert_job_sql(schema_name, type(self).placeholder)
        self._insert_many_sql = insert_jobs_sql(schema_name, type(self).placeholder)
        self._state_sql = job_state_sql(schema_name, type(self).placeholder)

    def materialize(self, name: str, data: Any, options: ResolvedJobOptions) -> EnqueueRecord:
        """Build the row for one job, resolving every relative time against the clock."""
        now = self.clock()

        singleton_on = None
        if options.singleton_seconds is not None:
            singleton_on = singleton_slot(now, options.singleton_seconds)

        if isinstance(options.start_after, datetime):
            start_after = options.start_after
        elif isinstance(options.start_after, timedelta):
            start_after = shift(now, options.start_after, "start_after")
        else:
            start_after = now

        if isinstance(options.keep_until, datetime):
            keep_until = options.keep_until
        else:
            keep_until = shift(start_after, options.keep_until, "keep_until")

        return EnqueueRecord(
            id=self.id_factory(),
            name=name,
            priority=options.priority,
            state=JobState.created,
            retry_limit=options.retry_limit,
            retry_delay=options.retry_delay,
            retry_backoff=options.retry_backoff,
            start_after=start_after,
            expire_in=options.expire_in,
            data=data,
            singleton_key=options.singleton_key,
            singleton_on=singleton_on,
            keep_until=keep_until,
            on_complete=options.on_complete,
        )

    def record_params(self, record: EnqueueRecord) -> List[Any]:
        """Values for `insert_job_sql`, in column order, payload left unencoded."""
        return [
            record.id,
            record.name,
            record.priority,
            record.state.value,
            record.retry_limit,
            record.start_after,
            record.expire_in,
            record.data,
            record.singleton_key,
            record.singleton_on,
            record.retry_delay,
            record.retry_backoff,
            record.keep_until,
            record.on_complete,
        ]

    @staticmethod
    def _batch_keep_until(value: Any, start_after: datetime) -> Optional[str]:
        """Intervals are anchored to the job's start; instants pass through as ISO text."""
        if value is None:
            return None
        if isinstance(value, timedelta):
            return shift(start_after, value, "keep_until").isoformat()
        if isinstance(value, (datetime, str)):
            return coerce_instant(value, "keep_until").isoformat()
        raise ValidationError("keep_until must be a datetime, an ISO-8601 timestamp or an interval")

    def batch_payload(self, jobs: Sequence[Mapping[str, Any]]) -> str:
        """
        JSON array for `insert_jobs_sql`. Ids are generated here for jobs that
        do not carry one; relative start times are anchored to the clock.
        """
        now = self.clock()
        items: List[Dict[str, Any]] = []
        for job in jobs:
            start_after = resolve_start_after(job.get("start_after"))
            if isinstance(start_after, timedelta):
                start_after = shift(now, start_after, "start_after")
            keep_until = self._batch_keep_until(job.get("keep_until"), start_after or now)
            items.append(
                {
                    "id": str(job.get("id") or self.id_factory()),
                    "name": job.get("name"),
                    "priority": job.get("priority"),
                    "data": job.get("data"),
                    "start_after": start_after.isoformat() if start_after else None,
                    "retry_limit": job.get("retry_limit"),
                    "retry_delay": job.get("retry_delay"),
                    "retry_backoff": job.get("retry_backoff"),
                    "singleton_key": job.get("singleton_key"),
                    "expire_in_seconds": job.get("expire_in_seconds"),
                    "keep_until": keep_until,
                    "on_complete": job.get("on_complete"),
                }
            )
        try:
            return json.dumps(items)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"job data must be JSON serializable: {exc}") from exc


class EnqueueEngine(BaseEnqueueEngine):
    """
    Synchronous engine for psycopg connections and cursors.

    Every public method issues exactly one statement and never commits, so it
    can sit inside a larger transaction owned by the caller.
    """

    placeholder = staticmethod(psycopg_placeholder)

    def enqueue(
        self,
        ctx: ExecutionContext,
        name: str,
        data: Any,
        options: ResolvedJobOptions,
    ) -> Optional[str]:
        """
        Insert one job.

        Returns
        -------
        str | None
            The new job id, or None when a job already occupies the singleton
            window or key.

        Raises
        ------
        StorageError
            When the execution context reports any failure.
        """
        record = self.materialize(name, data, options)
        params = self.record_params(record)
        params[7] = Jsonb(record.data)

        try:
            row = ctx.execute(self._insert_sql, params).fetchone()
        except psycopg.Error as exc:
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

    def insert(self, ctx: ExecutionContext, jobs: Sequence[Mapping[str, Any]]) -> List[str]:
        """Insert prepared jobs in one statement; returns the ids actually inserted."""
        if not jobs:
            return []
        try:
            rows = ctx.execute(self._insert_many_sql, [self.batch_payload(jobs)]).fetchall()
        except psycopg.Error as exc:
            raise StorageError(f"failed to insert {len(jobs)} jobs: {exc}") from exc
        return [str(first_column(row)) for row in rows]

    def fetch_state(self, ctx: ExecutionContext, job_id: str) -> Optional[JobState]:
        """Current lifecycle state of `job_id`, or None when no such job exists."""
        try:
            row = ctx.execute(self._state_sql, [job_id]).fetchone()
        except psycopg.Error as exc:
            raise StorageError(f"failed to read state of job {job_id}: {exc}") from exc
        if row is None:
            return None
        return JobState(first_column(row))


__all__ = [
    "BaseEnqueueEngine",
    "EnqueueEngine",
    "first_column",
    "id_factory_for",
    "shift",
    "singleton_slot",
    "utcnow",
]
