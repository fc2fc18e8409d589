"""
Structured logging utilities for pgboss-producer.

Every enqueue, suppression and diagnostic is logged with job context passed
through `extra=` (``queue``, ``job_id``, ``singleton_key``, ``code``). The
console formatter appends that context to the line; the JSON formatter emits
it as top-level fields so log pipelines can filter by queue or warning code.

Usage:
    from pgboss_producer.utils.logging import configure_logging, get_logger

    configure_logging(level="INFO", json_logs=False)
    log = get_logger(__name__)
    log.info("Job enqueued", extra={"job_id": job_id, "queue": "send-email"})
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else arrived through `extra=`.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "extra"}

# Context shown on console lines, in this order.
CONTEXT_FIELDS = ("queue", "job_id", "singleton_key", "code")

DRIVER_LOGGERS = ("psycopg", "psycopg.pool", "asyncpg")


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = {key: value for key, value in vars(record).items() if key not in _STANDARD_ATTRS}
    if hasattr(record, "extra") and isinstance(record.extra, dict):
        fields.update(record.extra)
    return fields


def _json_formatter(record: logging.LogRecord) -> str:
    """Render a log record as JSON string."""
    payload: Dict[str, Any] = {
        "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    payload.update(_extra_fields(record))
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


class ConsoleFormatter(logging.Formatter):
    """Human formatter that appends job context, e.g. ``[queue=send-email job_id=...]``."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _extra_fields(record)
        context = " ".join(
            f"{key}={fields[key]}" for key in CONTEXT_FIELDS if fields.get(key) is not None
        )
        return f"{line} [{context}]" if context else line


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    driver_level: str = "WARNING",
) -> None:
    """
    Configure root logging.

    Parameters
    ----------
    level : str
        Logging level name (e.g., "DEBUG", "INFO", "WARNING").
    json_logs : bool
        Whether to emit logs as JSON. If False, uses the console formatter.
    driver_level : str
        Level for the psycopg, psycopg.pool and asyncpg loggers.
    """
    formatter_name = "json" if json_logs else "console"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "()": ConsoleFormatter,
                    "fmt": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {
                    "()": JsonFormatter,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter_name,
                    "level": level,
                }
            },
            "loggers": {name: {"level": driver_level} for name in DRIVER_LOGGERS},
            "root": {
                "handlers": ["default"],
                "level": level,
            },
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with the given name. If name is None, returns the root logger.
    """
    return logging.getLogger(name)


__all__ = ["ConsoleFormatter", "JsonFormatter", "configure_logging", "get_logger"]
