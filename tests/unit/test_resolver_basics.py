from __future__ import annotations

from datetime import timedelta

import pytest

from pgboss_producer.domain.errors import ValidationError
from pgboss_producer.domain.models import JobRequest, QueueDefaults
from pgboss_producer.resolver import resolve

EXPECTED_PRIORITY = 5
EXPECTED_RETRY_LIMIT = 3
EXPECTED_RETRY_DELAY = 10


def test_resolve_send_email_example():
    request = JobRequest.of(
        "send-email",
        {"to": "a@example.com"},
        {"priority": 5, "retry_limit": 3, "retry_delay": 10},
    )

    options = resolve(request, QueueDefaults())

    assert options.priority == EXPECTED_PRIORITY
    assert options.retry_limit == EXPECTED_RETRY_LIMIT
    assert options.retry_delay == EXPECTED_RETRY_DELAY
    assert options.retry_backoff is False
    assert options.expire_in == timedelta(minutes=15)
    assert options.keep_until == timedelta(days=14)
    assert options.start_after is None
    assert options.singleton_key is None
    assert options.singleton_seconds is None
    assert options.on_complete is False


def test_resolve_without_options_uses_defaults():
    options = resolve(JobRequest.of("cleanup"), QueueDefaults())

    assert options.priority == 0
    assert options.retry_limit == 0
    assert options.retry_delay == 0
    assert options.expire_in == timedelta(minutes=15)


@pytest.mark.parametrize("name", ["", None, 42])
def test_resolve_rejects_missing_name(name):
    with pytest.raises(ValidationError, match="queue name"):
        resolve(JobRequest.of(name), QueueDefaults())


def test_resolve_rejects_function_payload():
    with pytest.raises(ValidationError, match="cannot accept a function"):
        resolve(JobRequest.of("q", lambda: None), QueueDefaults())


def test_resolve_rejects_unserializable_payload():
    with pytest.raises(ValidationError, match="JSON serializable"):
        resolve(JobRequest.of("q", {"tags": {1, 2}}), QueueDefaults())


def test_resolve_rejects_non_mapping_options():
    with pytest.raises(ValidationError, match="options should be an object"):
        resolve(JobRequest.of("q", None, ["priority", 1]), QueueDefaults())


def test_resolve_rejects_loose_arguments():
    with pytest.raises(ValidationError, match="expected a JobRequest"):
        resolve(("q", None), QueueDefaults())


@pytest.mark.parametrize("priority", ["high", 1.5, True])
def test_resolve_rejects_non_integer_priority(priority):
    with pytest.raises(ValidationError, match="priority must be an integer"):
        resolve(JobRequest.of("q", None, {"priority": priority}), QueueDefaults())


def test_resolve_on_complete_falls_back_to_queue_default():
    defaults = QueueDefaults(on_complete=True)

    assert resolve(JobRequest.of("q"), defaults).on_complete is True
    assert resolve(JobRequest.of("q", None, {"on_complete": False}), defaults).on_complete is False


def test_resolve_rejects_non_boolean_on_complete():
    with pytest.raises(ValidationError, match="on_complete"):
        resolve(JobRequest.of("q", None, {"on_complete": "yes"}), QueueDefaults())


def test_resolve_does_not_mutate_caller_options():
    caller_options = {"singleton_key": "k", "use_singleton_queue": True, "priority": 1}
    snapshot = dict(caller_options)

    resolve(JobRequest.of("q", None, caller_options), QueueDefaults())

    assert caller_options == snapshot


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        resolve(JobRequest.of(""), QueueDefaults())


def test_request_from_tuple_fills_missing_items():
    request = JobRequest.from_tuple(("q",))

    assert request.name == "q"
    assert request.data is None
    assert request.options is None


@pytest.mark.parametrize("args", [(), ("q", 1, {}, "extra"), "q"])
def test_request_from_tuple_rejects_bad_shapes(args):
    with pytest.raises(ValidationError):
        JobRequest.from_tuple(args)


def test_request_from_mapping():
    request = JobRequest.from_mapping({"name": "q", "data": {"a": 1}, "options": {"priority": 2}})

    assert request == JobRequest.of("q", {"a": 1}, {"priority": 2})
    with pytest.raises(ValidationError, match="mapping"):
        JobRequest.from_mapping(["q"])
