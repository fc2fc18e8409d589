"""
Option resolution package for pgboss-producer.

Pure functions that turn caller input and queue configuration into canonical,
validated values. Nothing here talks to the database.
"""

from pgboss_producer.resolver.options import apply_singleton_key, resolve, resolve_batch
from pgboss_producer.resolver.queue_config import build_queue_defaults

__all__ = [
    "apply_singleton_key",
    "build_queue_defaults",
    "resolve",
    "resolve_batch",
]
