"""
Utilities package for pgboss-producer.

Exports shared helpers for logging and diagnostics.
Keep this package lightweight and free of queue-specific logic.
"""

from pgboss_producer.utils.diagnostics import DiagnosticsSink, WarningKind, default_diagnostics
from pgboss_producer.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
    "DiagnosticsSink",
    "WarningKind",
    "default_diagnostics",
]
