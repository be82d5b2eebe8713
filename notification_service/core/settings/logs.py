"""Logging configuration settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _default_logger_levels() -> dict[str, LogLevel]:
    return {
        "httpx": "WARNING",
        "httpcore": "WARNING",
        "aiosqlite": "WARNING",
        "sqlalchemy.engine": "WARNING",
    }


class LoggingSettings(BaseSettings):
    """Structured logging for the API, the sweeps and the CLI.

    Environment variables use LOG_ prefix.
    Example: LOG_LEVEL=DEBUG, LOG_JSON=false, LOG_FILE_ENABLED=true,
    LOG_LOGGER_LEVELS='{"notification_service.features.notifications.channels": "DEBUG"}'
    """

    service_name: str = Field(
        default="notification-service",
        description="Static ``service`` field on every JSON record",
    )

    level: LogLevel = Field(
        default="INFO",
        description="Root logger level",
    )

    json_logs: bool = Field(
        default=True,
        alias="json",
        description="Emit JSON Lines; plain text when false (local development)",
    )

    console_level: LogLevel | None = Field(
        default=None,
        description="Console handler level, defaults to the root level",
    )

    logger_levels: dict[str, LogLevel] = Field(
        default_factory=_default_logger_levels,
        description="Per-logger levels, e.g. to silence HTTP client chatter from webhook delivery",
    )

    # File output is off by default; sweeps under cron usually log to stdout

    file_enabled: bool = Field(
        default=False,
        description="Also write logs to a rotating file",
    )

    file_path: Path | None = Field(
        default=Path("logs/notification-service.log.jsonl"),
        description="Log file location, used only when file_enabled is true",
    )

    file_max_bytes: int = Field(
        default=10_485_760,
        ge=1024,
        le=1_073_741_824,
        description="Rotate after this many bytes",
    )

    file_backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Rotated files to keep",
    )

    include_context: bool = Field(
        default=True,
        description="Inject recipient, channel and notification ids from the logging context",
    )

    capture_warnings: bool = Field(
        default=True,
        description="Route the warnings module through logging",
    )

    @field_validator("level", "console_level", mode="before")
    @classmethod
    def normalize_level(cls, v: str | None) -> str | None:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("logger_levels", mode="before")
    @classmethod
    def normalize_logger_levels(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {name: str(level).upper() for name, level in v.items()}
        return v

    @computed_field
    @property
    def effective_file_path(self) -> Path | None:
        """Return the file path only when file logging is enabled."""
        if not self.file_enabled:
            return None
        return self.file_path

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``configure_logging``."""
        return {
            "service_name": self.service_name,
            "log_level": self.level,
            "json_logs": self.json_logs,
            "console_level": self.console_level or self.level,
            "logger_levels": dict(self.logger_levels),
            "file_path": str(self.effective_file_path) if self.effective_file_path else None,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
            "include_context": self.include_context,
            "capture_warnings": self.capture_warnings,
        }

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )
