"""
SQL statements issued by the enqueue engines.

Statements are rendered once per engine for a given schema and placeholder
style, psycopg (``%s``) or asyncpg (``$1``). The schema name is interpolated
directly; `build_queue_defaults` only admits word characters for it.
"""

from __future__ import annotations

from typing import Callable, Tuple

Placeholder = Callable[[int], str]

# Column order of the single-row insert; `EnqueueRecord` values follow it.
INSERT_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("id", "uuid"),
    ("name", "text"),
    ("priority", "integer"),
    ("state", "{schema}.job_state"),
    ("retryLimit", "integer"),
    ("startAfter", "timestamptz"),
    ("expireIn", "interval"),
    ("data", "jsonb"),
    ("singletonKey", "text"),
    ("singletonOn", "timestamp"),
    ("retryDelay", "integer"),
    ("retryBackoff", "boolean"),
    ("keepUntil", "timestamptz"),
    ("on_complete", "boolean"),
)


def psycopg_placeholder(index: int) -> str:
    del index
    return "%s"


def asyncpg_placeholder(index: int) -> str:
    return f"${index}"


def insert_job_sql(schema: str, placeholder: Placeholder = psycopg_placeholder) -> str:
    """
    Single-row insert. A singleton conflict is a no-op and returns no row.
    """
    columns = ", ".join(name for name, _ in INSERT_COLUMNS)
    values = ", ".join(
        f"{placeholder(index)}::{cast.format(schema=schema)}"
        for index, (_, cast) in enumerate(INSERT_COLUMNS, start=1)
    )
    return (
        f"INSERT INTO {schema}.job ({columns}) "
        f"VALUES ({values}) "
        "ON CONFLICT DO NOTHING "
        "RETURNING id"
    )


def insert_jobs_sql(schema: str, placeholder: Placeholder = psycopg_placeholder) -> str:
    """
    Bulk insert from a JSON array of jobs; missing fields get store-side defaults.
    """
    return f"""
        INSERT INTO {schema}.job (
          id,
          name,
          data,
          priority,
          startAfter,
          singletonKey,
          expireIn,
          keepUntil,
          retryLimit,
          retryDelay,
          retryBackoff,
          on_complete
        )
        SELECT
          j.id,
          j.name,
          j.data,
          COALESCE(j.priority, 0),
          COALESCE(j.start_after, now()),
          j.singleton_key,
          COALESCE(j.expire_in_seconds, 15 * 60) * interval '1s',
          COALESCE(j.keep_until, COALESCE(j.start_after, now()) + interval '14 days'),
          COALESCE(j.retry_limit, 0),
          COALESCE(j.retry_delay, 0),
          COALESCE(j.retry_backoff, false),
          COALESCE(j.on_complete, false)
        FROM json_to_recordset({placeholder(1)}::json) AS j (
          id uuid,
          name text,
          priority integer,
          data jsonb,
          start_after timestamptz,
          retry_limit integer,
          retry_delay integer,
          retry_backoff boolean,
          singleton_key text,
          expire_in_seconds integer,
          keep_until timestamptz,
          on_complete boolean
        )
        ON CONFLICT DO NOTHING
        RETURNING id
    """


def job_state_sql(schema: str, placeholder: Placeholder = psycopg_placeholder) -> str:
    return f"SELECT state FROM {schema}.job WHERE id = {placeholder(1)}::uuid"


DATABASE_EPOCH_MS_SQL = "SELECT round(date_part('epoch', now()) * 1000) AS time"


__all__ = [
    "DATABASE_EPOCH_MS_SQL",
    "INSERT_COLUMNS",
    "asyncpg_placeholder",
    "insert_job_sql",
    "insert_jobs_sql",
    "job_state_sql",
    "psycopg_placeholder",
]
