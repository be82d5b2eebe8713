"""Tests for structured logging: context, JSON output and lazy messages."""

from __future__ import annotations

import contextvars
import json
import logging

from notification_service.core.settings.logs import LoggingSettings
from notification_service.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    get_lazy_logger,
    get_log_context,
    log_context,
    set_log_context,
)


def _record(msg: str = "Notification sent", **extra) -> logging.LogRecord:
    record = logging.LogRecord("orchestrator", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_log_context_restores_previous_fields() -> None:
    with log_context(recipient_id="user-1"):
        with log_context(notification_id="n-1"):
            assert get_log_context()["notification_id"] == "n-1"
            assert get_log_context()["recipient_id"] == "user-1"

        assert "notification_id" not in get_log_context()
        assert get_log_context()["recipient_id"] == "user-1"


def test_set_log_context_merges_fields() -> None:
    def run() -> dict:
        set_log_context(recipient_id="user-1")
        set_log_context(channel="push")
        return get_log_context()

    context = contextvars.copy_context().run(run)

    assert context["recipient_id"] == "user-1"
    assert context["channel"] == "push"
    assert "channel" not in get_log_context()


def test_filter_injects_context_without_overwriting_extra() -> None:
    record = _record(channel="email")

    with log_context(channel="sms", recipient_id="user-2"):
        assert ContextInjectingFilter().filter(record) is True

    assert record.channel == "email"
    assert record.recipient_id == "user-2"


def test_json_formatter_emits_one_object_per_record() -> None:
    formatter = JSONFormatter(static={"service": "notification-service"})

    line = formatter.format(_record(reason="quiet_hours"))
    data = json.loads(line)

    assert "\n" not in line
    assert data["level"] == "INFO"
    assert data["logger"] == "orchestrator"
    assert data["message"] == "Notification sent"
    assert data["service"] == "notification-service"
    assert data["reason"] == "quiet_hours"
    assert data["timestamp"].endswith("Z")


def test_lazy_logger_skips_disabled_levels() -> None:
    calls: list[str] = []
    lazy = get_lazy_logger("tests.lazy")
    lazy.logger.setLevel(logging.INFO)

    lazy.debug(lambda: calls.append("debug") or "debug")
    lazy.info(lambda: calls.append("info") or "info")

    assert calls == ["info"]


def test_logging_settings_normalise_levels() -> None:
    settings = LoggingSettings(level="debug", logger_levels={"httpx": "error"})

    kwargs = settings.to_logging_kwargs()

    assert kwargs["log_level"] == "DEBUG"
    assert kwargs["console_level"] == "DEBUG"
    assert kwargs["logger_levels"] == {"httpx": "ERROR"}
    assert kwargs["file_path"] is None
