"""
Queue-level configuration normalization.

`build_queue_defaults` validates a raw configuration mapping (usually
`Settings.queue_options()`) and produces the immutable `QueueDefaults` that
every job submission is resolved against.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional

from pgboss_producer.domain.errors import ValidationError
from pgboss_producer.domain.models import DEFAULT_ARCHIVE_SECONDS, DEFAULT_SCHEMA, QueueDefaults
from pgboss_producer.resolver.intervals import (
    DELETE_AFTER_CHAIN,
    interval_from_chain,
    is_number,
)
from pgboss_producer.resolver.options import (
    resolve_expire_in,
    resolve_keep_until,
    resolve_on_complete,
    resolve_retry,
)
from pgboss_producer.utils.diagnostics import DiagnosticsSink, WarningKind, default_diagnostics

MAX_SCHEMA_LENGTH = 50
TEN_MINUTES_IN_SECONDS = 600

_NON_WORD_RE = re.compile(r"\W")


def _at_least(config: Mapping[str, Any], key: str, minimum: float, message: str) -> Optional[float]:
    if key not in config:
        return None
    value = config[key]
    if not is_number(value) or value < minimum:
        raise ValidationError(f"configuration assert: {message}")
    return value


def _between(
    config: Mapping[str, Any], key: str, low: float, high: float, message: str
) -> Optional[float]:
    if key not in config:
        return None
    value = config[key]
    if not is_number(value) or not low <= value <= high:
        raise ValidationError(f"configuration assert: {message}")
    return value


def validate_schema_name(schema: Any) -> str:
    """Return `schema` if it is usable as an unquoted schema identifier."""
    if not isinstance(schema, str) or not schema:
        raise ValidationError("configuration assert: schema must be a non-empty string")
    if len(schema) > MAX_SCHEMA_LENGTH:
        raise ValidationError(
            f"configuration assert: schema name cannot exceed {MAX_SCHEMA_LENGTH} characters"
        )
    if _NON_WORD_RE.search(schema):
        raise ValidationError(
            f"configuration assert: {schema} cannot be used as a schema. "
            "Only alphanumeric characters and underscores are allowed"
        )
    return schema


def _schema_name(config: Mapping[str, Any]) -> str:
    schema = config.get("schema")
    if not schema:
        return DEFAULT_SCHEMA
    return validate_schema_name(schema)


def _archive_seconds(config: Mapping[str, Any], diagnostics: Optional[DiagnosticsSink]) -> int:
    value = _at_least(
        config,
        "archive_completed_after_seconds",
        1,
        "archive_completed_after_seconds must be at least every second",
    )
    archive_seconds = int(value) if value else DEFAULT_ARCHIVE_SECONDS
    if archive_seconds < 60 and diagnostics is not None:
        diagnostics.emit(WarningKind.CRON_DISABLED)
    return archive_seconds


def _archive_failed_seconds(
    config: Mapping[str, Any], archive_seconds: int, diagnostics: Optional[DiagnosticsSink]
) -> int:
    value = _at_least(
        config,
        "archive_failed_after_seconds",
        1,
        "archive_failed_after_seconds must be at least every second",
    )
    archive_failed_seconds = int(value) if value else archive_seconds
    # The archive check above already reported a sub-minute interval.
    if archive_failed_seconds < 60 and archive_seconds >= 60 and diagnostics is not None:
        diagnostics.emit(WarningKind.CRON_DISABLED)
    return archive_failed_seconds


def _maintenance_interval_seconds(config: Mapping[str, Any]) -> int:
    seconds = _at_least(
        config,
        "maintenance_interval_seconds",
        1,
        "maintenance_interval_seconds must be at least every second",
    )
    minutes = _at_least(
        config,
        "maintenance_interval_minutes",
        1,
        "maintenance_interval_minutes must be at least every minute",
    )
    if minutes:
        return int(minutes * 60)
    if seconds:
        return int(seconds)
    return 120


def _new_job_check_interval_ms(config: Mapping[str, Any]) -> int:
    millis = _at_least(
        config,
        "new_job_check_interval",
        100,
        "new_job_check_interval must be at least every 100ms",
    )
    seconds = _at_least(
        config,
        "new_job_check_interval_seconds",
        1,
        "new_job_check_interval_seconds must be at least every second",
    )
    if seconds:
        return int(seconds * 1000)
    if millis:
        return int(millis)
    return 2000


def _monitor_state_interval_seconds(config: Mapping[str, Any]) -> Optional[int]:
    seconds = _at_least(
        config,
        "monitor_state_interval_seconds",
        1,
        "monitor_state_interval_seconds must be at least every second",
    )
    minutes = _at_least(
        config,
        "monitor_state_interval_minutes",
        1,
        "monitor_state_interval_minutes must be at least every minute",
    )
    if minutes:
        return int(minutes * 60)
    if seconds:
        return int(seconds)
    return None


def _clock_monitor_interval_seconds(config: Mapping[str, Any]) -> int:
    seconds = _between(
        config,
        "clock_monitor_interval_seconds",
        1,
        TEN_MINUTES_IN_SECONDS,
        "clock_monitor_interval_seconds must be between 1 second and 10 minutes",
    )
    minutes = _between(
        config,
        "clock_monitor_interval_minutes",
        1,
        10,
        "clock_monitor_interval_minutes must be between 1 and 10",
    )
    if minutes:
        return int(minutes * 60)
    if seconds:
        return int(seconds)
    return TEN_MINUTES_IN_SECONDS


def _uuid_version(config: Mapping[str, Any]) -> str:
    version = config.get("uuid") or "v4"
    if version not in ("v1", "v4"):
        raise ValidationError("configuration assert: uuid option only supports v1 or v4")
    return version


def build_queue_defaults(
    config: Optional[Mapping[str, Any]] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
) -> QueueDefaults:
    """
    Validate `config` and return the queue's `QueueDefaults`.

    Keys mirror the job option names (``retry_limit``, ``expire_in_minutes``,
    ``retention_days``, ...) plus the queue-only settings: ``schema``,
    ``archive_completed_after_seconds``, ``archive_failed_after_seconds``,
    ``delete_after_*``, ``maintenance_interval_*``, ``new_job_check_interval``
    (ms), ``new_job_check_interval_seconds``, ``monitor_state_interval_*``,
    ``clock_monitor_interval_*`` and ``uuid``.

    Raises
    ------
    ValidationError
        On the first invalid value, prefixed with ``configuration assert:``.
    """
    if config is None:
        config = {}
    if diagnostics is None:
        diagnostics = default_diagnostics()
    if not isinstance(config, Mapping):
        raise ValidationError("configuration assert: config object is required")
    config = dict(config)
    if "keep_until" in config:
        raise ValidationError(
            "configuration assert: keep_until is a per-job option; use retention_days, "
            "retention_hours, retention_minutes or retention_seconds"
        )

    retry_limit, retry_delay, retry_backoff = resolve_retry(config)
    archive_seconds = _archive_seconds(config, diagnostics)

    values: Dict[str, Any] = {
        "schema_name": _schema_name(config),
        "retry_limit": retry_limit,
        "retry_delay": retry_delay,
        "retry_backoff": retry_backoff,
        "expire_in": resolve_expire_in(config, diagnostics=diagnostics),
        "keep_until": resolve_keep_until(config),
        "on_complete": resolve_on_complete(config),
        "archive_seconds": archive_seconds,
        "archive_failed_seconds": _archive_failed_seconds(config, archive_seconds, diagnostics),
        "maintenance_interval_seconds": _maintenance_interval_seconds(config),
        "new_job_check_interval_ms": _new_job_check_interval_ms(config),
        "monitor_state_interval_seconds": _monitor_state_interval_seconds(config),
        "clock_monitor_interval_seconds": _clock_monitor_interval_seconds(config),
        "uuid_version": _uuid_version(config),
    }

    delete_after = interval_from_chain(config, DELETE_AFTER_CHAIN)
    if delete_after is not None:
        values["delete_after"] = delete_after

    return QueueDefaults(**values)


__all__ = ["build_queue_defaults", "validate_schema_name"]
