"""
Error types raised by pgboss-producer.

Two kinds reach callers: `ValidationError` for calls that must be fixed before
they can succeed, and `StorageError` for anything the database or driver
reported while running the single enqueue statement.
"""

from __future__ import annotations


class JobQueueError(Exception):
    """Base class for all pgboss-producer errors."""


class ValidationError(JobQueueError, ValueError):
    """A job request or queue configuration violates a constraint."""


class StorageError(JobQueueError):
    """The execution context failed; the driver error is chained as ``__cause__``."""


__all__ = ["JobQueueError", "ValidationError", "StorageError"]
