"""
Job queue facades.

`JobQueue` and `AsyncJobQueue` pair the option resolver with an enqueue
engine. Every send variant resolves first and then issues exactly one insert
on the execution context the caller passes in, so a job can be committed (or
rolled back) together with the caller's own writes.

Usage:
    queue = JobQueue.from_settings()
    with psycopg.connect(dsn) as conn:
        with conn.transaction():
            conn.execute("INSERT INTO orders ...")
            queue.send(conn, "send-email", {"order": 42}, {"retry_limit": 3})
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from pgboss_producer.config import Settings, get_settings
from pgboss_producer.domain.models import (
    SINGLETON_QUEUE_KEY,
    JobRequest,
    JobState,
    QueueDefaults,
    ResolvedJobOptions,
)
from pgboss_producer.engine.abstract import AsyncExecutionContext, ExecutionContext
from pgboss_producer.engine.async_enqueue import AsyncEnqueueEngine
from pgboss_producer.engine.enqueue import BaseEnqueueEngine, EnqueueEngine, id_factory_for
from pgboss_producer.engine.timekeeper import check_clock_skew, check_clock_skew_async
from pgboss_producer.resolver.options import resolve, resolve_batch
from pgboss_producer.resolver.queue_config import build_queue_defaults
from pgboss_producer.utils.diagnostics import DiagnosticsSink
from pgboss_producer.utils.logging import get_logger

log = get_logger(__name__)

Options = Optional[Mapping[str, Any]]

_SINGLETON_WINDOW_KEYS = ("singleton_hours", "singleton_minutes", "singleton_seconds")


def _copy(options: Options) -> Dict[str, Any]:
    return dict(options) if options else {}


def once_request(name: str, data: Any, options: Options, key: Optional[str]) -> JobRequest:
    """At most one queued job per key; the key defaults to the queue name."""
    merged = _copy(options)
    merged["singleton_key"] = key or name
    return JobRequest.of(name, data, merged)


def singleton_request(name: str, data: Any, options: Options) -> JobRequest:
    merged = _copy(options)
    merged["singleton_key"] = SINGLETON_QUEUE_KEY
    return JobRequest.of(name, data, merged)


def delayed_request(name: str, data: Any, options: Options, after: Any) -> JobRequest:
    merged = _copy(options)
    merged["start_after"] = after
    return JobRequest.of(name, data, merged)


def windowed_request(
    name: str,
    data: Any,
    options: Options,
    seconds: int,
    key: Optional[str],
    next_slot: bool,
) -> JobRequest:
    """
    One job per `seconds`-wide window, optionally per key.

    Coarser window units the caller passed are dropped so `seconds` wins.
    """
    merged = _copy(options)
    for window_key in _SINGLETON_WINDOW_KEYS:
        merged.pop(window_key, None)
    merged["singleton_seconds"] = seconds
    merged["singleton_next_slot"] = next_slot
    if key is not None:
        merged["singleton_key"] = key
    return JobRequest.of(name, data, merged)


class BaseJobQueue:
    """Resolution state shared by the sync and async facades."""

    engine_class = BaseEnqueueEngine

    def __init__(
        self,
        defaults: Optional[QueueDefaults] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        engine: Optional[BaseEnqueueEngine] = None,
    ) -> None:
        self.defaults = defaults or QueueDefaults()
        self.diagnostics = diagnostics or DiagnosticsSink()
        self.engine = engine or self.engine_class(
            schema_name=self.defaults.schema_name,
            id_factory=id_factory_for(self.defaults.uuid_version),
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any):
        """
        Build a queue whose defaults come from the ``QUEUE_*`` environment.

        Raises
        ------
        ValidationError
            If the configured queue options are invalid.
        """
        settings = settings or get_settings()
        diagnostics = kwargs.pop("diagnostics", None) or DiagnosticsSink()
        defaults = build_queue_defaults(settings.queue_options(), diagnostics)
        log.debug(
            "Queue configured",
            extra={"schema": defaults.schema_name, "uuid": defaults.uuid_version},
        )
        return cls(defaults=defaults, diagnostics=diagnostics, **kwargs)

    def resolve(self, request: JobRequest) -> ResolvedJobOptions:
        return resolve(request, self.defaults, self.diagnostics)


class JobQueue(BaseJobQueue):
    """
    Synchronous facade over `EnqueueEngine`.

    ``ctx`` is anything with a psycopg-style ``execute``: a connection, a
    cursor, or a connection inside ``conn.transaction()``. The queue never
    commits.
    """

    engine_class = EnqueueEngine

    def submit(self, ctx: ExecutionContext, request: JobRequest) -> Optional[str]:
        """
        Resolve and enqueue one request.

        Returns
        -------
        str | None
            The job id, or None when a singleton constraint suppressed it.

        Raises
        ------
        ValidationError
            Before any database work, if the request is invalid.
        StorageError
            If the insert fails.
        """
        options = self.resolve(request)
        return self.engine.enqueue(ctx, request.name, request.data, options)

    def send(
        self, ctx: ExecutionContext, name: str, data: Any = None, options: Options = None
    ) -> Optional[str]:
        return self.submit(ctx, JobRequest.of(name, data, options))

    def send_once(
        self,
        ctx: ExecutionContext,
        name: str,
        data: Any = None,
        options: Options = None,
        key: Optional[str] = None,
    ) -> Optional[str]:
        return self.submit(ctx, once_request(name, data, options, key))

    def send_singleton(
        self, ctx: ExecutionContext, name: str, data: Any = None, options: Options = None
    ) -> Optional[str]:
        return self.submit(ctx, singleton_request(name, data, options))

    def send_after(
        self, ctx: ExecutionContext, name: str, data: Any, options: Options, after: Any
    ) -> Optional[str]:
        return self.submit(ctx, delayed_request(name, data, options, after))

    def send_throttled(
        self,
        ctx: ExecutionContext,
        name: str,
        data: Any,
        options: Options,
        seconds: int,
        key: Optional[str] = None,
    ) -> Optional[str]:
        return self.submit(ctx, windowed_request(name, data, options, seconds, key, False))

    def send_debounced(
        self,
        ctx: ExecutionContext,
        name: str,
        data: Any,
        options: Options,
        seconds: int,
        key: Optional[str] = None,
    ) -> Optional[str]:
        return self.submit(ctx, windowed_request(name, data, options, seconds, key, True))

    def insert(self, ctx: ExecutionContext, jobs: Sequence[Mapping[str, Any]]) -> List[str]:
        """Bulk insert pre-built jobs; returns the ids that were not suppressed."""
        return self.engine.insert(ctx, resolve_batch(jobs))

    def get_job_state(self, ctx: ExecutionContext, job_id: str) -> Optional[JobState]:
        return self.engine.fetch_state(ctx, job_id)

    def check_clock_skew(self, ctx: ExecutionContext) -> float:
        return check_clock_skew(ctx, self.diagnostics, self.engine.clock)


class AsyncJobQueue(BaseJobQueue):
    """Coroutine twin of `JobQueue` for asyncpg connections."""

    engine_class = AsyncEnqueueEngine

    async def submit(self, conn: AsyncExecutionContext, request: JobRequest) -> Optional[str]:
        options = self.resolve(request)
        return await self.engine.enqueue(conn, request.name, request.data, options)

    async def send(
        self, conn: AsyncExecutionContext, name: str, data: Any = None, options: Options = None
    ) -> Optional[str]:
        return await self.submit(conn, JobRequest.of(name, data, options))

    async def send_once(
        self,
        conn: AsyncExecutionContext,
        name: str,
        data: Any = None,
        options: Options = None,
        key: Optional[str] = None,
    ) -> Optional[str]:
        return await self.submit(conn, once_request(name, data, options, key))

    async def send_singleton(
        self, conn: AsyncExecutionContext, name: str, data: Any = None, options: Options = None
    ) -> Optional[str]:
        return await self.submit(conn, singleton_request(name, data, options))

    async def send_after(
        self, conn: AsyncExecutionContext, name: str, data: Any, options: Options, after: Any
    ) -> Optional[str]:
        return await self.submit(conn, delayed_request(name, data, options, after))

    async def send_throttled(
        self,
        conn: AsyncExecutionContext,
        name: str,
        data: Any,
        options: Options,
        seconds: int,
        key: Optional[str] = None,
    ) -> Optional[str]:
        return await self.submit(conn, windowed_request(name, data, options, seconds, key, False))

    async def send_debounced(
        self,
        conn: AsyncExecutionContext,
        name: str,
        data: Any,
        options: Options,
        seconds: int,
        key: Optional[str] = None,
    ) -> Optional[str]:
        return await self.submit(conn, windowed_request(name, data, options, seconds, key, True))

    async def insert(
        self, conn: AsyncExecutionContext, jobs: Sequence[Mapping[str, Any]]
    ) -> List[str]:
        return await self.engine.insert(conn, resolve_batch(jobs))

    async def get_job_state(self, conn: AsyncExecutionContext, job_id: str) -> Optional[JobState]:
        return await self.engine.fetch_state(conn, job_id)

    async def check_clock_skew(self, conn: AsyncExecutionContext) -> float:
        return await check_clock_skew_async(conn, self.diagnostics, self.engine.clock)


__all__ = [
    "AsyncJobQueue",
    "BaseJobQueue",
    "JobQueue",
    "delayed_request",
    "once_request",
    "singleton_request",
    "windowed_request",
]
