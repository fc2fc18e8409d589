"""
Pytest configuration for pgboss-producer.

Provides fixtures for:
- An in-memory job store that honors the singleton unique indexes
- A fixed clock for deterministic singleton windows
- Database connection management and schema setup for integration tests
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional, Sequence

import psycopg
import pytest

from pgboss_producer.config import Settings, get_settings

FIXED_EPOCH_SECONDS = 1_700_000_000
TEST_SCHEMA = "pgboss_test"


class FakeCursor:
    def __init__(self, rows: Sequence[Any]) -> None:
        self._rows = list(rows)

    def fetchone(self) -> Optional[Any]:
        return self._rows[0] if self._rows else None

    def fetchall(self) -> List[Any]:
        return list(self._rows)


class FakeJobStore:
    """
    Stand-in for a psycopg connection over the job table.

    Understands the statements the engines issue and applies the singleton
    uniqueness rules for jobs in the ``created`` state.
    """

    def __init__(self, database_epoch_ms: Optional[float] = None) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.statements: List[str] = []
        self.database_epoch_ms = database_epoch_ms
        self.fail_with: Optional[Exception] = None

    def _conflicts(self, row: Dict[str, Any]) -> bool:
        for existing in self.rows.values():
            if existing["name"] != row["name"]:
                continue
            if row["singleton_on"] is not None:
                if (
                    existing["singleton_on"] == row["singleton_on"]
                    and existing["singleton_key"] == row["singleton_key"]
                ):
                    return True
            elif row["singleton_key"] is not None:
                if existing["singleton_on"] is None and (
                    existing["singleton_key"] == row["singleton_key"]
                ):
                    return True
        return False

    def _store(self, row: Dict[str, Any]) -> List[Any]:
        if self._conflicts(row):
            return []
        self.rows[str(row["id"])] = row
        return [(row["id"],)]

    def execute(self, query: Any, params: Optional[Sequence[Any]] = None) -> FakeCursor:
        self.statements.append(str(query))
        if self.fail_with is not None:
            raise self.fail_with

        text = str(query)
        if "json_to_recordset" in text:
            inserted: List[Any] = []
            for item in json.loads(params[0]):
                row = dict(item, singleton_on=None, state="created")
                inserted.extend(self._store(row))
            return FakeCursor(inserted)

        if text.startswith("INSERT INTO"):
            (
                job_id,
                name,
                priority,
                state,
                retry_limit,
                start_after,
                expire_in,
                data,
                singleton_key,
                singleton_on,
                retry_delay,
                retry_backoff,
                keep_until,
                on_complete,
            ) = params
            row = {
                "id": job_id,
                "name": name,
                "priority": priority,
                "state": state,
                "retry_limit": retry_limit,
                "start_after": start_after,
                "expire_in": expire_in,
                "data": getattr(data, "obj", data),
                "singleton_key": singleton_key,
                "singleton_on": singleton_on,
                "retry_delay": retry_delay,
                "retry_backoff": retry_backoff,
                "keep_until": keep_until,
                "on_complete": on_complete,
            }
            return FakeCursor(self._store(row))

        if text.startswith("SELECT state"):
            row = self.rows.get(str(params[0]))
            return FakeCursor([(row["state"],)] if row else [])

        if "date_part('epoch'" in text:
            return FakeCursor([(self.database_epoch_ms,)])

        raise AssertionError(f"unexpected statement: {text}")


class FakeAsyncJobStore:
    """asyncpg-shaped wrapper around `FakeJobStore`."""

    def __init__(self, store: Optional[FakeJobStore] = None) -> None:
        self.store = store or FakeJobStore()
        self.fail_with: Optional[Exception] = None

    def _run(self, query: str, args: Sequence[Any]) -> FakeCursor:
        if self.fail_with is not None:
            raise self.fail_with
        return self.store.execute(query, list(args))

    async def fetchrow(self, query: str, *args: Any) -> Optional[Any]:
        return self._run(query, args).fetchone()

    async def fetch(self, query: str, *args: Any) -> List[Any]:
        return self._run(query, args).fetchall()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime.fromtimestamp(FIXED_EPOCH_SECONDS, tz=timezone.utc)


@pytest.fixture
def fake_store() -> FakeJobStore:
    return FakeJobStore()


@pytest.fixture
def fake_async_store(fake_store: FakeJobStore) -> FakeAsyncJobStore:
    return FakeAsyncJobStore(fake_store)


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "pgboss"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    return test_settings.dsn


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1").fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> str:
    """
    Create the job schema used by integration tests and return its name.
    """
    from pgboss_producer.infrastructure.schema import ensure_schema

    ensure_schema(db_connection, TEST_SCHEMA)
    return TEST_SCHEMA


@pytest.fixture(scope="function")
def clean_job_table(
    db_connection: psycopg.Connection, db_schema_initialized: str
) -> Generator[str, None, None]:
    """
    Empty the job table before and after each test function.
    """
    db_connection.execute(f"TRUNCATE TABLE {db_schema_initialized}.job")
    db_connection.commit()
    yield db_schema_initialized
    db_connection.rollback()
    db_connection.execute(f"TRUNCATE TABLE {db_schema_initialized}.job")
    db_connection.commit()
