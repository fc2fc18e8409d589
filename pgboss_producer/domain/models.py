"""
Domain models for pgboss-producer.

`QueueDefaults` is resolved once per queue instance and shared read-only by
every submission. `JobRequest` is what a caller hands in, `ResolvedJobOptions`
is the canonical result of option resolution, and `EnqueueRecord` is the row
the engine writes to the job table.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal, Mapping, Optional, Sequence, Union
from uuid import UUID

from pydantic import BaseModel, Field

from pgboss_producer.domain.errors import ValidationError

DEFAULT_SCHEMA = "pgboss"
SINGLETON_QUEUE_KEY = "__pgboss__singleton_queue"

DEFAULT_EXPIRE_IN = timedelta(minutes=15)
DEFAULT_KEEP_UNTIL = timedelta(days=14)
DEFAULT_DELETE_AFTER = timedelta(days=7)
DEFAULT_ARCHIVE_SECONDS = 60 * 60 * 12


class JobState(str, enum.Enum):
    """Lifecycle states of the store's ``job_state`` enum, in ordinal order."""

    created = "created"
    retry = "retry"
    active = "active"
    completed = "completed"
    expired = "expired"
    cancelled = "cancelled"
    failed = "failed"


class QueueDefaults(BaseModel):
    """
    Queue-wide configuration, immutable after construction.

    Build it through `pgboss_producer.resolver.build_queue_defaults` to get the
    same validation job options receive; direct construction trusts its input.
    """

    schema_name: str = Field(DEFAULT_SCHEMA, description="Schema that holds the job table.")
    retry_limit: int = Field(0, description="Default retry limit.")
    retry_delay: int = Field(0, description="Default retry delay in seconds.")
    retry_backoff: bool = Field(False, description="Default exponential backoff flag.")
    expire_in: timedelta = Field(DEFAULT_EXPIRE_IN, description="Default active-state expiry.")
    keep_until: timedelta = Field(DEFAULT_KEEP_UNTIL, description="Default retention interval.")
    on_complete: bool = Field(False, description="Default completion-tracking flag.")
    archive_seconds: int = Field(
        DEFAULT_ARCHIVE_SECONDS, description="Archive horizon; ceiling for singleton windows."
    )
    archive_failed_seconds: int = Field(
        DEFAULT_ARCHIVE_SECONDS, description="Archive horizon for failed jobs."
    )
    delete_after: timedelta = Field(DEFAULT_DELETE_AFTER, description="Archive retention.")
    maintenance_interval_seconds: int = Field(120, description="Maintenance cadence.")
    new_job_check_interval_ms: int = Field(2000, description="Worker polling interval.")
    monitor_state_interval_seconds: Optional[int] = Field(
        None, description="State monitoring cadence; None disables it."
    )
    clock_monitor_interval_seconds: int = Field(600, description="Clock skew check cadence.")
    uuid_version: Literal["v1", "v4"] = Field("v4", description="Job identifier flavor.")

    model_config = {
        "frozen": True,
    }


@dataclass(frozen=True)
class JobRequest:
    """
    A single "enqueue this job" call.

    Use the constructors instead of passing loosely shaped arguments around:

        JobRequest.of("send-email", {"to": "x"}, {"priority": 5})
        JobRequest.from_tuple(("send-email", {"to": "x"}))
        JobRequest.from_mapping({"name": "send-email", "data": {"to": "x"}})
    """

    name: str
    data: Any = None
    options: Optional[Mapping[str, Any]] = None

    @classmethod
    def of(
        cls, name: str, data: Any = None, options: Optional[Mapping[str, Any]] = None
    ) -> "JobRequest":
        return cls(name=name, data=data, options=options)

    @classmethod
    def from_tuple(cls, args: Sequence[Any]) -> "JobRequest":
        if isinstance(args, (str, bytes)) or not isinstance(args, Sequence):
            raise ValidationError("request tuple must be a sequence of (name, data, options)")
        if not 1 <= len(args) <= 3:
            raise ValidationError(
                f"request tuple must have between 1 and 3 items, got {len(args)}"
            )
        name, data, options = (list(args) + [None, None])[:3]
        return cls(name=name, data=data, options=options)

    @classmethod
    def from_mapping(cls, job: Mapping[str, Any]) -> "JobRequest":
        if not isinstance(job, Mapping):
            raise ValidationError("job request must be a mapping with a name")
        return cls(name=job.get("name"), data=job.get("data"), options=job.get("options"))


class ResolvedJobOptions(BaseModel):
    """
    Canonical, fully-populated job options.

    `start_after` is either an absolute instant, a delay relative to the time
    of insert, or None for "now". `keep_until` is an absolute instant or an
    interval measured from the resolved start time.
    """

    priority: int = 0
    start_after: Optional[Union[datetime, timedelta]] = None
    expire_in: timedelta = DEFAULT_EXPIRE_IN
    keep_until: Union[timedelta, datetime] = DEFAULT_KEEP_UNTIL
    retry_limit: int = 0
    retry_delay: int = 0
    retry_backoff: bool = False
    singleton_key: Optional[str] = None
    singleton_seconds: Optional[int] = None
    singleton_next_slot: bool = False
    on_complete: bool = False

    model_config = {
        "frozen": True,
    }


class EnqueueRecord(BaseModel):
    """
    Representation of the row inserted into ``<schema>.job``.

    Every time-dependent value is absolute here; `singleton_on` is a naive UTC
    timestamp to match the store's ``timestamp without time zone`` column.
    """

    id: UUID = Field(..., description="Generated job identifier.")
    name: str = Field(..., description="Queue name.")
    priority: int = Field(0, description="Higher runs first.")
    state: JobState = Field(JobState.created, description="Initial lifecycle state.")
    retry_limit: int = Field(0, description="Maximum retries.")
    retry_delay: int = Field(0, description="Seconds between retries.")
    retry_backoff: bool = Field(False, description="Exponential backoff flag.")
    start_after: datetime = Field(..., description="Earliest time the job may be fetched.")
    expire_in: timedelta = Field(..., description="Time allowed in the active state.")
    data: Any = Field(None, description="JSON payload.")
    singleton_key: Optional[str] = Field(None, description="Deduplication key.")
    singleton_on: Optional[datetime] = Field(None, description="Singleton window bucket.")
    keep_until: datetime = Field(..., description="Retention deadline.")
    on_complete: bool = Field(False, description="Completion-tracking flag.")

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": False,
    }


__all__ = [
    "DEFAULT_SCHEMA",
    "SINGLETON_QUEUE_KEY",
    "JobState",
    "QueueDefaults",
    "JobRequest",
    "ResolvedJobOptions",
    "EnqueueRecord",
]
