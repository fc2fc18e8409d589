"""
Infrastructure package for pgboss-producer.

Centralizes database connectivity (sync/async factories, pooling) and the
job table DDL. Keep this layer focused on I/O and resource management,
decoupled from option resolution and the enqueue engine.
"""

from pgboss_producer.infrastructure.db_factory import (
    PoolManager,
    get_async_connection,
    get_sync_connection,
    get_sync_pool,
)
from pgboss_producer.infrastructure.schema import create_schema_statements, ensure_schema

__all__ = [
    "PoolManager",
    "create_schema_statements",
    "ensure_schema",
    "get_async_connection",
    "get_sync_connection",
    "get_sync_pool",
]
