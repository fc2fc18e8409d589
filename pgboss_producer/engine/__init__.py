"""
Engine package for pgboss-producer.

Re-exports the execution context contracts and the sync/async engines so
callers can import from `pgboss_producer.engine` directly.
"""

from pgboss_producer.engine.abstract import AsyncExecutionContext, ExecutionContext, ResultCursor
from pgboss_producer.engine.async_enqueue import AsyncEnqueueEngine
from pgboss_producer.engine.enqueue import EnqueueEngine, id_factory_for, singleton_slot
from pgboss_producer.engine.timekeeper import check_clock_skew, check_clock_skew_async

__all__ = [
    # Contracts
    "AsyncExecutionContext",
    "ExecutionContext",
    "ResultCursor",
    # Engines
    "AsyncEnqueueEngine",
    "EnqueueEngine",
    "id_factory_for",
    "singleton_slot",
    # Clock
    "check_clock_skew",
    "check_clock_skew_async",
]
