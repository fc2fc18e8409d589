"""
Clock skew detection between this process and the database server.

Singleton windows, start times and retention deadlines are computed from the
engine's clock, so it must agree with the store's. These checks read the
server time, compare it with the local clock and report skew of a minute or
more through the diagnostics sink. Skew never fails a call.
"""

from __future__ import annotations

from typing import Optional

import psycopg

from pgboss_producer.domain.errors import StorageError
from pgboss_producer.engine.abstract import AsyncExecutionContext, ExecutionContext
from pgboss_producer.engine.async_enqueue import ASYNC_DRIVER_ERRORS
from pgboss_producer.engine.enqueue import Clock, first_column, utcnow
from pgboss_producer.engine.sql import DATABASE_EPOCH_MS_SQL
from pgboss_producer.utils.diagnostics import DiagnosticsSink
from pgboss_producer.utils.logging import get_logger

log = get_logger(__name__)

MAX_SKEW_SECONDS = 60


def _report_skew(
    database_ms: float, local_ms: float, diagnostics: Optional[DiagnosticsSink]
) -> float:
    skew_seconds = (database_ms - local_ms) / 1000
    log.debug("Clock skew measured", extra={"skew_seconds": skew_seconds})

    if abs(skew_seconds) >= MAX_SKEW_SECONDS and diagnostics is not None:
        direction = "slower" if skew_seconds > 0 else "faster"
        diagnostics.warn_clock_skew(
            f"Instance clock is {abs(skew_seconds):.0f}s {direction} than database."
        )
    return skew_seconds


def check_clock_skew(
    ctx: ExecutionContext,
    diagnostics: Optional[DiagnosticsSink] = None,
    clock: Clock = utcnow,
) -> float:
    """
    Return the database clock minus the local clock, in seconds.

    Positive values mean this instance is behind the database.
    """
    try:
        row = ctx.execute(DATABASE_EPOCH_MS_SQL).fetchone()
    except psycopg.Error as exc:
        raise StorageError(f"failed to read database clock: {exc}") from exc
    local_ms = clock().timestamp() * 1000
    return _report_skew(float(first_column(row)), local_ms, diagnostics)


async def check_clock_skew_async(
    conn: AsyncExecutionContext,
    diagnostics: Optional[DiagnosticsSink] = None,
    clock: Clock = utcnow,
) -> float:
    """Coroutine twin of `check_clock_skew` for asyncpg connections."""
    try:
        row = await conn.fetchrow(DATABASE_EPOCH_MS_SQL)
    except ASYNC_DRIVER_ERRORS as exc:
        raise StorageError(f"failed to read database clock: {exc}") from exc
    local_ms = clock().timestamp() * 1000
    return _report_skew(float(first_column(row)), local_ms, diagnostics)


__all__ = ["MAX_SKEW_SECONDS", "check_clock_skew", "check_clock_skew_async"]
