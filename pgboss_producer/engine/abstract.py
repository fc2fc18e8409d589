"""
Execution context contracts for the enqueue engines.

The engines never open, commit or roll back anything: callers hand in the
connection (or cursor) their unit of work already uses, and the engine issues
exactly one statement on it.

A psycopg 3 `Connection` or `Cursor` satisfies `ExecutionContext`; an asyncpg
`Connection` satisfies `AsyncExecutionContext`.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, runtime_checkable


@runtime_checkable
class ResultCursor(Protocol):
    """What `ExecutionContext.execute` hands back."""

    def fetchone(self) -> Optional[Any]:
        ...

    def fetchall(self) -> Sequence[Any]:
        ...


@runtime_checkable
class ExecutionContext(Protocol):
    """
    Synchronous context able to run one parameterized statement.

    Parameters use psycopg's ``%s`` placeholder style.
    """

    def execute(self, query: Any, params: Optional[Sequence[Any]] = None) -> ResultCursor:
        ...


@runtime_checkable
class AsyncExecutionContext(Protocol):
    """
    Asynchronous context able to run one parameterized statement.

    Parameters use asyncpg's ``$n`` placeholder style.
    """

    async def fetchrow(self, query: str, *args: Any) -> Optional[Any]:
        ...

    async def fetch(self, query: str, *args: Any) -> Sequence[Any]:
        ...


__all__ = [
    "AsyncExecutionContext",
    "ExecutionContext",
    "ResultCursor",
]
