from __future__ import annotations

import json
import logging
import uuid

from pgboss_producer.utils.logging import (
    ConsoleFormatter,
    JsonFormatter,
    _json_formatter,
    configure_logging,
)

EXPECTED_PRIORITY = 5
EXPECTED_SINGLETON_SECONDS = 60


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="hello",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record(queue="send-email", priority=EXPECTED_PRIORITY)

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["queue"] == "send-email"
    assert payload["priority"] == EXPECTED_PRIORITY
    assert "pathname" not in payload


def test_json_formatter_supports_legacy_nested_extra_field() -> None:
    record = _record(extra={"singleton_seconds": EXPECTED_SINGLETON_SECONDS})

    payload = json.loads(_json_formatter(record))

    assert payload["singleton_seconds"] == EXPECTED_SINGLETON_SECONDS


def test_json_formatter_stringifies_unknown_types() -> None:
    job_id = uuid.uuid4()
    payload = json.loads(JsonFormatter().format(_record(job_id=job_id)))

    assert payload["job_id"] == str(job_id)


def test_configure_logging_json_mode() -> None:
    configure_logging(level="WARNING", json_logs=True)

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert any(isinstance(handler.formatter, JsonFormatter) for handler in root.handlers)

    configure_logging(level="INFO")


def test_console_formatter_appends_job_context() -> None:
    formatter = ConsoleFormatter("%(levelname)s %(message)s")

    line = formatter.format(_record(queue="send-email", job_id="abc", priority=EXPECTED_PRIORITY))

    assert line == "INFO hello [queue=send-email job_id=abc]"


def test_console_formatter_without_context() -> None:
    assert ConsoleFormatter("%(message)s").format(_record()) == "hello"


def test_json_formatter_includes_utc_time() -> None:
    payload = json.loads(_json_formatter(_record()))

    assert payload["time"].endswith("+00:00")


def test_configure_logging_quiets_driver_loggers() -> None:
    configure_logging(level="DEBUG")

    assert logging.getLogger("psycopg").level == logging.WARNING
    assert logging.getLogger("asyncpg").level == logging.WARNING
    assert any(
        isinstance(handler.formatter, ConsoleFormatter) for handler in logging.getLogger().handlers
    )

    configure_logging(level="INFO")
