"""
pgboss-producer - transactional job submission for pg-boss compatible queues.

Jobs are written with a single conflict-safe ``INSERT`` on a connection the
caller already holds, so enqueueing can share a transaction with the
caller's own writes. The package provides:

- Option resolution against queue-wide defaults (retry, expiration,
  retention, start time, singleton windows and keys)
- Sync (psycopg) and async (asyncpg) enqueue engines
- The ``job`` table DDL with the singleton unique indexes
- Warn-once operator diagnostics and database clock skew checks
"""

from __future__ import annotations

__version__ = "0.1.0"

# Public API exports
from pgboss_producer.config import Settings, get_settings
from pgboss_producer.domain import (
    SINGLETON_QUEUE_KEY,
    JobQueueError,
    JobRequest,
    JobState,
    QueueDefaults,
    ResolvedJobOptions,
    StorageError,
    ValidationError,
)
from pgboss_producer.engine import AsyncEnqueueEngine, EnqueueEngine
from pgboss_producer.queue import AsyncJobQueue, JobQueue
from pgboss_producer.resolver import build_queue_defaults, resolve, resolve_batch
from pgboss_producer.utils import DiagnosticsSink, WarningKind, configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    "build_queue_defaults",
    # Queue facades
    "AsyncJobQueue",
    "JobQueue",
    # Resolution
    "resolve",
    "resolve_batch",
    # Engines
    "AsyncEnqueueEngine",
    "EnqueueEngine",
    # Domain
    "SINGLETON_QUEUE_KEY",
    "JobRequest",
    "JobState",
    "QueueDefaults",
    "ResolvedJobOptions",
    # Errors
    "JobQueueError",
    "StorageError",
    "ValidationError",
    # Diagnostics and logging
    "DiagnosticsSink",
    "WarningKind",
    "configure_logging",
    "get_logger",
]
