"""
Interval helpers shared by job-option and queue-config resolution.

Several options come in families where the caller may express the same value
in different units (``expire_in_hours`` / ``expire_in_minutes`` / ...). The
most significant unit present wins; every supplied member of the family is
validated whether or not it wins.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Sequence, Tuple

from pgboss_producer.domain.errors import ValidationError

# (option key, timedelta keyword, unit word used in error messages)
UnitChain = Sequence[Tuple[str, str, str]]

EXPIRATION_CHAIN: UnitChain = (
    ("expire_in_hours", "hours", "hour"),
    ("expire_in_minutes", "minutes", "minute"),
    ("expire_in_seconds", "seconds", "second"),
)

RETENTION_CHAIN: UnitChain = (
    ("retention_days", "days", "day"),
    ("retention_hours", "hours", "hour"),
    ("retention_minutes", "minutes", "minute"),
    ("retention_seconds", "seconds", "second"),
)

DELETE_AFTER_CHAIN: UnitChain = (
    ("delete_after_days", "days", "day"),
    ("delete_after_hours", "hours", "hour"),
    ("delete_after_minutes", "minutes", "minute"),
    ("delete_after_seconds", "seconds", "second"),
)

SINGLETON_CHAIN: Sequence[Tuple[str, int]] = (
    ("singleton_hours", 60 * 60),
    ("singleton_minutes", 60),
    ("singleton_seconds", 1),
)

_UNIT_SECONDS = {
    "s": 1,
    "sec": 1,
    "secs": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "mins": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hr": 3600,
    "hrs": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 604800,
    "week": 604800,
    "weeks": 604800,
}

_NUMBER_RE = re.compile(r"^\s*\d+(?:\.\d+)?\s*$")
_INTERVAL_PART_RE = re.compile(r"\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]+)\s*")


def is_number(value: Any) -> bool:
    """True for ints and floats; bools are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def require_at_least_one(options: Mapping[str, Any], key: str, unit_word: str) -> float:
    value = options[key]
    if not is_number(value) or value < 1:
        raise ValidationError(f"{key} must be at least every {unit_word}")
    return value


def interval_from_chain(options: Mapping[str, Any], chain: UnitChain) -> Optional[timedelta]:
    """
    Return the interval for the most significant key of `chain` present in
    `options`, or None when none is present.
    """
    for key, _, unit_word in chain:
        if key in options:
            require_at_least_one(options, key, unit_word)

    for key, unit, _ in chain:
        if key in options:
            try:
                return timedelta(**{unit: options[key]})
            except OverflowError as exc:
                raise ValidationError(f"{key} is out of range") from exc
    return None


def singleton_seconds_from(options: Mapping[str, Any]) -> Optional[int]:
    """
    Collapse the singleton window family into whole seconds, or None.

    Fractions round up, so any positive window is at least one second wide.
    """
    for key, multiplier in SINGLETON_CHAIN:
        value = options.get(key)
        if value is None:
            continue
        if not is_number(value):
            raise ValidationError(f"{key} must be a number")
        if value > 0:
            return math.ceil(value * multiplier)
    return None


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(text: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, returning None when `text` is not one."""
    candidate = text.strip()
    if not candidate or _NUMBER_RE.match(candidate):
        return None
    if candidate[-1] in ("Z", "z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        return ensure_aware(datetime.fromisoformat(candidate))
    except ValueError:
        return None


def _seconds(total: float) -> timedelta:
    try:
        return timedelta(seconds=total)
    except OverflowError as exc:
        raise ValidationError(f"interval of {total:g} seconds is out of range") from exc


def parse_interval(text: str) -> Optional[timedelta]:
    """
    Parse interval text such as ``"90"``, ``"10 minutes"`` or
    ``"1 hour 30 minutes"``. A bare number is seconds. Returns None when the
    text is not an interval.
    """
    candidate = text.strip()
    if not candidate:
        return None
    if _NUMBER_RE.match(candidate):
        return _seconds(float(candidate))

    total = 0.0
    position = 0
    while position < len(candidate):
        match = _INTERVAL_PART_RE.match(candidate, position)
        if match is None:
            return None
        amount, unit = match.groups()
        seconds = _UNIT_SECONDS.get(unit.lower())
        if seconds is None:
            return None
        total += float(amount) * seconds
        position = match.end()
    return _seconds(total)


def coerce_instant(value: Any, key: str) -> datetime:
    """Accept a datetime or an ISO-8601 string; anything else is invalid."""
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, str):
        parsed = parse_timestamp(value)
        if parsed is not None:
            return parsed
    raise ValidationError(f"{key} must be a datetime or an ISO-8601 timestamp string")


def format_interval(value: timedelta) -> str:
    """Render an interval the way operators write them, e.g. ``"15 minutes"``."""
    seconds = value.total_seconds()
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60), ("second", 1)):
        if seconds >= size and seconds % size == 0:
            count = int(seconds // size)
            return f"{count} {unit}" if count == 1 else f"{count} {unit}s"
    return f"{seconds} seconds"


__all__ = [
    "EXPIRATION_CHAIN",
    "RETENTION_CHAIN",
    "DELETE_AFTER_CHAIN",
    "SINGLETON_CHAIN",
    "coerce_instant",
    "ensure_aware",
    "format_interval",
    "interval_from_chain",
    "is_integer",
    "is_number",
    "parse_interval",
    "parse_timestamp",
    "require_at_least_one",
    "singleton_seconds_from",
]
