"""
Job table DDL.

Creates the schema, the ``job_state`` enum, the ``job`` table and the partial
unique indexes that implement singleton suppression. The layout matches the
pg-boss job table so producers here and pg-boss workers can share one store.

All statements are idempotent and are executed without parameters, so the
``%`` characters in the LIKE patterns are sent to the server untouched.
"""

from __future__ import annotations

from typing import List

import psycopg

from pgboss_producer.domain.errors import StorageError
from pgboss_producer.domain.models import DEFAULT_SCHEMA, SINGLETON_QUEUE_KEY, JobState
from pgboss_producer.resolver.queue_config import validate_schema_name
from pgboss_producer.utils.logging import get_logger

log = get_logger(__name__)


def _like_prefix(value: str) -> str:
    return value.replace("\\", "\\\\").replace("_", "\\_").replace("%", "\\%") + "%"


def create_schema_statements(schema_name: str = DEFAULT_SCHEMA) -> List[str]:
    """
    DDL statements, in execution order, for a job store in `schema_name`.

    Parameters
    ----------
    schema_name : str
        Target schema; validated the same way as the queue configuration.

    Returns
    -------
    list[str]
        Statements safe to run repeatedly.
    """
    schema = validate_schema_name(schema_name)
    states = ", ".join(f"'{state.value}'" for state in JobState)
    sentinel = _like_prefix(SINGLETON_QUEUE_KEY)

    return [
        f"CREATE SCHEMA IF NOT EXISTS {schema}",
        f"""
        DO $$
        BEGIN
            CREATE TYPE {schema}.job_state AS ENUM ({states});
        EXCEPTION
            WHEN duplicate_object THEN NULL;
        END
        $$
        """,
        f"""
        CREATE TABLE IF NOT EXISTS {schema}.job (
            id uuid PRIMARY KEY NOT NULL,
            name text NOT NULL,
            priority integer NOT NULL DEFAULT 0,
            data jsonb,
            state {schema}.job_state NOT NULL DEFAULT 'created',
            retryLimit integer NOT NULL DEFAULT 0,
            retryCount integer NOT NULL DEFAULT 0,
            retryDelay integer NOT NULL DEFAULT 0,
            retryBackoff boolean NOT NULL DEFAULT false,
            startAfter timestamp with time zone NOT NULL DEFAULT now(),
            startedOn timestamp with time zone,
            singletonKey text,
            singletonOn timestamp without time zone,
            expireIn interval NOT NULL DEFAULT interval '15 minutes',
            createdOn timestamp with time zone NOT NULL DEFAULT now(),
            completedOn timestamp with time zone,
            keepUntil timestamp with time zone NOT NULL DEFAULT now() + interval '14 days',
            on_complete boolean NOT NULL DEFAULT false,
            output jsonb
        )
        """,
        f"""
        CREATE UNIQUE INDEX IF NOT EXISTS job_singletonOn ON {schema}.job (name, singletonOn)
        WHERE state < 'expired' AND singletonKey IS NULL
        """,
        f"""
        CREATE UNIQUE INDEX IF NOT EXISTS job_singletonKeyOn ON {schema}.job (name, singletonOn, singletonKey)
        WHERE state < 'expired'
        """,
        f"""
        CREATE UNIQUE INDEX IF NOT EXISTS job_singletonKey ON {schema}.job (name, singletonKey)
        WHERE state < 'completed' AND singletonOn IS NULL
        AND NOT singletonKey LIKE '{sentinel}'
        """,
        f"""
        CREATE UNIQUE INDEX IF NOT EXISTS job_singleton_queue ON {schema}.job (name, singletonKey)
        WHERE state < 'active' AND singletonOn IS NULL
        AND singletonKey LIKE '{sentinel}'
        """,
        f"CREATE INDEX IF NOT EXISTS job_name ON {schema}.job (name text_pattern_ops)",
        f"CREATE INDEX IF NOT EXISTS job_fetch ON {schema}.job (name text_pattern_ops, startAfter) "
        "WHERE state < 'active'",
    ]


def ensure_schema(conn: psycopg.Connection, schema_name: str = DEFAULT_SCHEMA) -> None:
    """
    Create the job store in `schema_name` if it does not exist and commit.

    Raises
    ------
    ValidationError
        If `schema_name` is not a valid schema identifier.
    StorageError
        If any statement fails; the transaction is rolled back.
    """
    statements = create_schema_statements(schema_name)
    try:
        with conn.cursor() as cur:
            for statement in statements:
                cur.execute(statement)
        conn.commit()
    except psycopg.Error as exc:
        conn.rollback()
        raise StorageError(f"failed to create job schema '{schema_name}': {exc}") from exc

    log.info("Job schema ready", extra={"schema": schema_name})


__all__ = ["create_schema_statements", "ensure_schema"]
