"""
Warn-once diagnostics for pgboss-producer.

Some resolutions are worth telling an operator about without failing the call:
a removed option is still being passed, maintenance is effectively disabled by
a sub-minute archive interval, or this process disagrees with the database
about the time. A `DiagnosticsSink` owns the "already warned" state for each
kind, so every queue instance decides for itself what it has reported.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Callable, List, Optional, Set

from pgboss_producer.utils.logging import get_logger


class WarningKind(enum.Enum):
    """Known diagnostic warnings, each with a stable code."""

    EXPIRE_IN_REMOVED = (
        "pgboss-w01",
        "'expire_in' option detected. This option has been removed. "
        "Use expire_in_seconds, expire_in_minutes or expire_in_hours.",
    )
    CLOCK_SKEW = (
        "pgboss-w02",
        "Timekeeper detected clock skew between this instance and the database server. "
        "This will not affect scheduling operations, but this warning is shown any time "
        "the skew exceeds 60 seconds.",
    )
    CRON_DISABLED = (
        "pgboss-w03",
        "Archive interval is set less than 60s. Cron processing is disabled.",
    )

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message


WarningListener = Callable[[WarningKind, str], None]


class DiagnosticsSink:
    """
    Fire-and-forget warning channel with per-kind suppression.

    Each kind is emitted at most once for the life of the sink unless the
    caller passes ``force=True``. Emitted warnings are logged at WARNING and
    handed to every subscribed listener; listener failures are logged and
    never reach the caller.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._log = logger or get_logger("pgboss_producer.diagnostics")
        self._emitted: Set[WarningKind] = set()
        self._listeners: List[WarningListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: WarningListener) -> None:
        self._listeners.append(listener)

    def has_emitted(self, kind: WarningKind) -> bool:
        return kind in self._emitted

    def emit(self, kind: WarningKind, detail: Optional[str] = None, *, force: bool = False) -> bool:
        """
        Emit `kind` unless it was already emitted and `force` is False.

        Returns True when the warning was actually emitted.
        """
        with self._lock:
            if kind in self._emitted and not force:
                return False
            self._emitted.add(kind)

        message = f"{kind.message} {detail}" if detail else kind.message
        self._log.warning(message, extra={"code": kind.code, "warning": kind.name})

        for listener in list(self._listeners):
            try:
                listener(kind, message)
            except Exception:  # noqa: BLE001
                self._log.exception("Diagnostics listener failed", extra={"code": kind.code})
        return True

    def warn_clock_skew(self, detail: str) -> bool:
        """Clock skew is reported on every occurrence."""
        return self.emit(WarningKind.CLOCK_SKEW, detail, force=True)

    def reset(self) -> None:
        with self._lock:
            self._emitted.clear()


_default_sink = DiagnosticsSink()


def default_diagnostics() -> DiagnosticsSink:
    """Process-wide sink used when a caller resolves without one of its own."""
    return _default_sink


__all__ = ["DiagnosticsSink", "WarningKind", "WarningListener", "default_diagnostics"]
