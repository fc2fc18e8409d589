"""
Database connection factory utilities for pgboss-producer.

Provides centralized management of sync psycopg connections/pools and asyncpg
connections with proper lifecycle management. The PoolManager singleton
ensures pools are cleaned up on application exit.

Retries cover connection acquisition only. Statements issued on a connection,
including the enqueue insert, are never retried here.
"""

from __future__ import annotations

import atexit
import threading
from contextlib import contextmanager
from typing import Generator, Optional

import asyncpg
import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from pgboss_producer.config import get_settings
from pgboss_producer.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn() -> str:
    """Compose a DSN string from settings."""
    return get_settings().dsn


class PoolManager:
    """
    Thread-safe singleton for managing the synchronous connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._sync_pool = None
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_sync_pool(
        self, min_size: int = 1, max_size: int = 10, dsn: Optional[str] = None
    ) -> ConnectionPool:
        """
        Get or create the synchronous connection pool.

        Parameters
        ----------
        min_size : int
            Minimum number of idle connections to keep.
        max_size : int
            Maximum total connections in the pool.
        dsn : str, optional
            Connection string; defaults to the configured database. Only used
            when the pool is first created.

        Returns
        -------
        ConnectionPool
            The managed sync pool instance.
        """
        with self._lock:
            if self._sync_pool is None:
                self._sync_pool = ConnectionPool(
                    conninfo=dsn or build_dsn(), min_size=min_size, max_size=max_size, open=True
                )
            return self._sync_pool

    @contextmanager
    def sync_connection(self) -> Generator[Connection, None, None]:
        """
        Context manager for obtaining a sync connection from the pool.

        The pool commits when the block exits cleanly and rolls back otherwise.

        Example
        -------
            manager = PoolManager()
            with manager.sync_connection() as conn:
                queue.send(conn, "send-email", {"to": "x"})
        """
        pool = self.get_sync_pool()
        with pool.connection() as conn:
            yield conn

    def close_all(self) -> None:
        """
        Close the managed pool and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            if self._sync_pool is not None:
                try:
                    self._sync_pool.close()
                except psycopg.Error:
                    log.warning("Failed to close connection pool cleanly")
                finally:
                    self._sync_pool = None


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    settings = get_settings()
    return psycopg.connect(dsn or settings.dsn, connect_timeout=settings.db_connect_timeout)


def get_sync_pool(
    min_size: int = 1, max_size: int = 10, dsn: Optional[str] = None
) -> ConnectionPool:
    """Get or create a synchronous connection pool via PoolManager."""
    return PoolManager().get_sync_pool(min_size=min_size, max_size=max_size, dsn=dsn)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((OSError, ConnectionError, asyncpg.CannotConnectNowError)),
    reraise=True,
)
async def get_async_connection(dsn: Optional[str] = None) -> asyncpg.Connection:
    """
    Acquire an asyncpg connection with automatic retry.

    Raises
    ------
    OSError
        If connection fails after all retry attempts.
    """
    settings = get_settings()
    return await asyncpg.connect(dsn or settings.dsn, timeout=settings.db_connect_timeout)


__all__ = [
    "PoolManager",
    "build_dsn",
    "get_async_connection",
    "get_sync_connection",
    "get_sync_pool",
]
