"""
Job option resolution.

`resolve` reduces a caller's partially specified options and the queue's
defaults to one `ResolvedJobOptions`. The precedence everywhere is: the most
specific value the caller supplied, then the queue default, then the built-in
default carried by `QueueDefaults`. Every violation raises `ValidationError`
before anything touches the database.

Usage:
    from pgboss_producer.resolver import resolve

    options = resolve(
        JobRequest.of("send-email", {"to": "x"}, {"priority": 5, "retry_limit": 3}),
        QueueDefaults(),
    )
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pgboss_producer.domain.errors import ValidationError
from pgboss_producer.domain.models import (
    SINGLETON_QUEUE_KEY,
    JobRequest,
    QueueDefaults,
    ResolvedJobOptions,
)
from pgboss_producer.resolver.intervals import (
    EXPIRATION_CHAIN,
    RETENTION_CHAIN,
    coerce_instant,
    ensure_aware,
    interval_from_chain,
    is_integer,
    is_number,
    parse_interval,
    parse_timestamp,
    singleton_seconds_from,
)
from pgboss_producer.utils.diagnostics import DiagnosticsSink, WarningKind, default_diagnostics
from pgboss_producer.utils.logging import get_logger

log = get_logger(__name__)

StartAfter = Optional[Union[datetime, timedelta]]


def _check_request(request: JobRequest) -> Dict[str, Any]:
    if not isinstance(request, JobRequest):
        raise ValidationError(
            f"expected a JobRequest, got {type(request).__name__}; "
            "use JobRequest.of(), from_tuple() or from_mapping()"
        )

    if not isinstance(request.name, str) or not request.name:
        raise ValidationError("boss requires all jobs to have a queue name")

    if callable(request.data):
        raise ValidationError(
            "send() cannot accept a function as the payload. Did you intend to register a worker?"
        )

    try:
        json.dumps(request.data)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"job data must be JSON serializable: {exc}") from exc

    options = request.options if request.options is not None else {}
    if not isinstance(options, Mapping):
        raise ValidationError("options should be an object")

    return dict(options)


def resolve_priority(options: Mapping[str, Any]) -> int:
    if "priority" in options and not is_integer(options["priority"]):
        raise ValidationError("priority must be an integer")
    return options.get("priority") or 0


def resolve_retry(
    options: Mapping[str, Any], defaults: Optional[QueueDefaults] = None
) -> Tuple[int, int, bool]:
    """
    Return ``(retry_limit, retry_delay, retry_backoff)``.

    Backoff without a delay gets a one second delay, and any delay implies at
    least one retry.
    """
    for key in ("retry_delay", "retry_limit"):
        if key in options:
            value = options[key]
            if not is_integer(value) or value < 0:
                raise ValidationError(f"{key} must be an integer >= 0")

    if "retry_backoff" in options and not isinstance(options["retry_backoff"], bool):
        raise ValidationError("retry_backoff must be either true or false")

    retry_delay = options.get("retry_delay")
    retry_limit = options.get("retry_limit")
    retry_backoff = options.get("retry_backoff")

    if defaults is not None:
        retry_delay = retry_delay or defaults.retry_delay
        retry_limit = retry_limit or defaults.retry_limit
        retry_backoff = retry_backoff or defaults.retry_backoff

    retry_delay = retry_delay or 0
    retry_limit = retry_limit or 0
    retry_backoff = bool(retry_backoff)

    if retry_backoff and not retry_delay:
        retry_delay = 1
    if retry_delay and not retry_limit:
        retry_limit = 1

    return retry_limit, retry_delay, retry_backoff


def resolve_expire_in(
    options: Mapping[str, Any],
    defaults: Optional[QueueDefaults] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
) -> timedelta:
    if "expire_in" in options:
        (diagnostics or default_diagnostics()).emit(WarningKind.EXPIRE_IN_REMOVED)

    expire_in = interval_from_chain(options, EXPIRATION_CHAIN)
    if expire_in is not None:
        return expire_in
    return (defaults or QueueDefaults()).expire_in


def resolve_keep_until(
    options: Mapping[str, Any], defaults: Optional[QueueDefaults] = None
) -> Union[timedelta, datetime]:
    keep_until = interval_from_chain(options, RETENTION_CHAIN)
    if options.get("keep_until") is not None:
        return coerce_instant(options["keep_until"], "keep_until")
    if keep_until is not None:
        return keep_until
    return (defaults or QueueDefaults()).keep_until


def resolve_on_complete(options: Mapping[str, Any], defaults: Optional[QueueDefaults] = None) -> bool:
    if "on_complete" in options:
        if not isinstance(options["on_complete"], bool):
            raise ValidationError("on_complete must be either true or false")
        return options["on_complete"]
    return defaults.on_complete if defaults is not None else False


def resolve_start_after(value: Any) -> StartAfter:
    """
    Normalize a start time to an absolute instant, a positive delay, or None.

    Strings are tried as ISO-8601 timestamps first and then as interval text.
    """
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, timedelta):
        return value if value > timedelta(0) else None
    if is_number(value):
        if value <= 0:
            return None
        try:
            return timedelta(seconds=value)
        except OverflowError as exc:
            raise ValidationError("start_after is out of range") from exc
    if isinstance(value, str):
        if not value.strip():
            return None
        timestamp = parse_timestamp(value)
        if timestamp is not None:
            return timestamp
        delay = parse_interval(value)
        if delay is None:
            raise ValidationError(
                f"start_after must be a timestamp or an interval, got {value!r}"
            )
        return delay if delay > timedelta(0) else None
    return None


def apply_singleton_key(options: Dict[str, Any]) -> Dict[str, Any]:
    """
    Move keys requested for the singleton queue into their own namespace.

    ``use_singleton_queue`` is consumed here and never reaches storage.
    """
    singleton_key = options.get("singleton_key")
    if singleton_key is not None and not isinstance(singleton_key, str):
        raise ValidationError("singleton_key must be a string")

    if (
        singleton_key
        and options.get("use_singleton_queue")
        and singleton_key != SINGLETON_QUEUE_KEY
    ):
        options["singleton_key"] = SINGLETON_QUEUE_KEY + singleton_key
    options.pop("use_singleton_queue", None)
    return options


def resolve(
    request: JobRequest,
    defaults: QueueDefaults,
    diagnostics: Optional[DiagnosticsSink] = None,
) -> ResolvedJobOptions:
    """
    Validate `request` and resolve its options against `defaults`.

    Raises
    ------
    ValidationError
        If the name, payload or any option is invalid, or if the singleton
        window is longer than the queue's archive interval.
    """
    options = _check_request(request)

    priority = resolve_priority(options)
    retry_limit, retry_delay, retry_backoff = resolve_retry(options, defaults)
    expire_in = resolve_expire_in(options, defaults, diagnostics)
    keep_until = resolve_keep_until(options, defaults)
    on_complete = resolve_on_complete(options, defaults)
    apply_singleton_key(options)

    start_after = resolve_start_after(options.get("start_after"))
    singleton_seconds = singleton_seconds_from(options)

    singleton_next_slot = options.get("singleton_next_slot", False)
    if not isinstance(singleton_next_slot, bool):
        raise ValidationError("singleton_next_slot must be either true or false")

    if singleton_seconds is not None and singleton_seconds > defaults.archive_seconds:
        raise ValidationError(
            f"throttling interval {singleton_seconds}s cannot exceed "
            f"archive interval {defaults.archive_seconds}s"
        )

    resolved = ResolvedJobOptions(
        priority=priority,
        start_after=start_after,
        expire_in=expire_in,
        keep_until=keep_until,
        retry_limit=retry_limit,
        retry_delay=retry_delay,
        retry_backoff=retry_backoff,
        singleton_key=options.get("singleton_key"),
        singleton_seconds=singleton_seconds,
        singleton_next_slot=singleton_next_slot,
        on_complete=on_complete,
    )
    log.debug(
        "Resolved job options",
        extra={"queue": request.name, "singleton_seconds": singleton_seconds},
    )
    return resolved


def resolve_batch(jobs: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Prepare pre-built jobs for the bulk insert path.

    Only the singleton key rewrite is applied; everything else is taken as-is
    and defaulted by the store at insert time.
    """
    if not isinstance(jobs, (list, tuple)):
        raise ValidationError(
            f"jobs argument should be an array.  Received '{type(jobs).__name__}'"
        )

    prepared: List[Dict[str, Any]] = []
    for index, job in enumerate(jobs):
        if not isinstance(job, Mapping):
            raise ValidationError(f"jobs[{index}] should be an object")
        prepared.append(apply_singleton_key(dict(job)))
    return prepared


__all__ = [
    "apply_singleton_key",
    "resolve",
    "resolve_batch",
    "resolve_expire_in",
    "resolve_keep_until",
    "resolve_on_complete",
    "resolve_priority",
    "resolve_retry",
    "resolve_start_after",
]
