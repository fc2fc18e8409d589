"""
Configuration settings for pgboss-producer.

Uses Pydantic Settings to load environment variables for the database
connection, logging, and queue-wide job defaults. Queue values left unset
fall through to the built-in defaults of `QueueDefaults`.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("pgboss", alias="DB_NAME")
    db_connect_timeout: int = Field(10, alias="DB_CONNECT_TIMEOUT")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Queue defaults
    queue_schema: Optional[str] = Field(None, alias="QUEUE_SCHEMA")
    queue_retry_limit: Optional[int] = Field(None, alias="QUEUE_RETRY_LIMIT")
    queue_retry_delay: Optional[int] = Field(None, alias="QUEUE_RETRY_DELAY")
    queue_retry_backoff: Optional[bool] = Field(None, alias="QUEUE_RETRY_BACKOFF")
    queue_expire_in_seconds: Optional[int] = Field(None, alias="QUEUE_EXPIRE_IN_SECONDS")
    queue_retention_days: Optional[int] = Field(None, alias="QUEUE_RETENTION_DAYS")
    queue_on_complete: Optional[bool] = Field(None, alias="QUEUE_ON_COMPLETE")
    queue_archive_completed_after_seconds: Optional[int] = Field(
        None, alias="QUEUE_ARCHIVE_COMPLETED_AFTER_SECONDS"
    )
    queue_archive_failed_after_seconds: Optional[int] = Field(
        None, alias="QUEUE_ARCHIVE_FAILED_AFTER_SECONDS"
    )
    queue_clock_monitor_interval_seconds: Optional[int] = Field(
        None, alias="QUEUE_CLOCK_MONITOR_INTERVAL_SECONDS"
    )
    queue_uuid: Optional[str] = Field(None, alias="QUEUE_UUID")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def dsn(self) -> str:
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    def queue_options(self) -> Dict[str, Any]:
        """
        Queue configuration for `build_queue_defaults`, without unset values.
        """
        options = {
            "schema": self.queue_schema,
            "retry_limit": self.queue_retry_limit,
            "retry_delay": self.queue_retry_delay,
            "retry_backoff": self.queue_retry_backoff,
            "expire_in_seconds": self.queue_expire_in_seconds,
            "retention_days": self.queue_retention_days,
            "on_complete": self.queue_on_complete,
            "archive_completed_after_seconds": self.queue_archive_completed_after_seconds,
            "archive_failed_after_seconds": self.queue_archive_failed_after_seconds,
            "clock_monitor_interval_seconds": self.queue_clock_monitor_interval_seconds,
            "uuid": self.queue_uuid,
        }
        return {key: value for key, value in options.items() if value is not None}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
