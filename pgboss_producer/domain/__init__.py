"""
Domain package for pgboss-producer.

Exports the models and error types shared by the resolver, the engines and
the queue facade. Keep this package focused on data definitions.
"""

from pgboss_producer.domain.errors import JobQueueError, StorageError, ValidationError
from pgboss_producer.domain.models import (
    DEFAULT_SCHEMA,
    SINGLETON_QUEUE_KEY,
    EnqueueRecord,
    JobRequest,
    JobState,
    QueueDefaults,
    ResolvedJobOptions,
)

__all__ = [
    "DEFAULT_SCHEMA",
    "SINGLETON_QUEUE_KEY",
    "EnqueueRecord",
    "JobRequest",
    "JobState",
    "QueueDefaults",
    "ResolvedJobOptions",
    "JobQueueError",
    "StorageError",
    "ValidationError",
]
