from __future__ import annotations

from contextlib import contextmanager

import psycopg
import pytest
from tenacity import wait_none

from pgboss_producer.infrastructure import db_factory

CONNECT_ATTEMPTS = 3


class _FakePool:
    def __init__(self, conninfo: str, min_size: int, max_size: int, open: bool) -> None:
        self.conninfo = conninfo
        self.min_size = min_size
        self.max_size = max_size
        self.closed = False

    @contextmanager
    def connection(self):
        yield self.conninfo

    def close(self) -> None:
        self.closed = True


def test_build_dsn_reads_settings(monkeypatch):
    monkeypatch.setenv("DB_HOST", "queue-db")
    monkeypatch.setenv("DB_NAME", "jobs")

    assert "@queue-db:" in db_factory.build_dsn()
    assert db_factory.build_dsn().endswith("/jobs")


def test_sync_connection_retries_transient_errors(monkeypatch):
    attempts = []
    connection = object()

    def fake_connect(dsn, connect_timeout):
        attempts.append(dsn)
        if len(attempts) < 2:
            raise psycopg.OperationalError("the database system is starting up")
        return connection

    monkeypatch.setattr(db_factory.psycopg, "connect", fake_connect)

    result = db_factory.get_sync_connection.retry_with(wait=wait_none())("postgresql://x")

    assert result is connection
    assert attempts == ["postgresql://x", "postgresql://x"]


def test_sync_connection_gives_up_after_three_attempts(monkeypatch):
    attempts = []

    def fake_connect(dsn, connect_timeout):
        attempts.append(dsn)
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr(db_factory.psycopg, "connect", fake_connect)

    with pytest.raises(psycopg.OperationalError):
        db_factory.get_sync_connection.retry_with(wait=wait_none())("postgresql://x")

    assert len(attempts) == CONNECT_ATTEMPTS


@pytest.mark.asyncio
async def test_async_connection_retries_os_errors(monkeypatch):
    attempts = []
    connection = object()

    async def fake_connect(dsn, timeout):
        attempts.append(dsn)
        if len(attempts) < 2:
            raise ConnectionRefusedError("connection refused")
        return connection

    monkeypatch.setattr(db_factory.asyncpg, "connect", fake_connect)

    result = await db_factory.get_async_connection.retry_with(wait=wait_none())("postgresql://x")

    assert result is connection
    assert len(attempts) == 2


def test_pool_manager_is_a_singleton_owning_one_pool(monkeypatch):
    monkeypatch.setattr(db_factory, "ConnectionPool", _FakePool)
    manager = db_factory.PoolManager()
    manager.close_all()

    pool = db_factory.get_sync_pool(min_size=2, max_size=4)

    assert db_factory.PoolManager() is manager
    assert manager.get_sync_pool() is pool
    assert (pool.min_size, pool.max_size) == (2, 4)

    manager.close_all()

    assert pool.closed is True
    assert manager.get_sync_pool() is not pool
    manager.close_all()


def test_pool_connections_use_the_dsn_override(monkeypatch):
    monkeypatch.setattr(db_factory, "ConnectionPool", _FakePool)
    manager = db_factory.PoolManager()
    manager.close_all()

    db_factory.get_sync_pool(max_size=2, dsn="postgresql://override/jobs")
    with manager.sync_connection() as conn:
        assert conn == "postgresql://override/jobs"

    manager.close_all()
