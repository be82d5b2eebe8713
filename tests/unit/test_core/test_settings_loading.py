"""Tests for environment-driven settings and the cached loaders."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from notification_service.core.settings import (
    DatabaseSettings,
    clear_all_caches,
    get_notification_settings,
    get_redis_settings,
    get_webhook_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    clear_all_caches()
    yield
    clear_all_caches()


def test_notification_settings_read_prefixed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NOTIFICATION_DEFAULT_CHANNEL", "email")
    monkeypatch.setenv("NOTIFICATION_BATCH_CONCURRENCY", "3")

    settings = get_notification_settings()

    assert settings.default_channel == "email"
    assert settings.batch_concurrency == 3
    assert get_notification_settings() is settings


def test_cache_is_cleared(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_webhook_settings()
    monkeypatch.setenv("WEBHOOK_TIMEOUT_SECONDS", "5")
    clear_all_caches()

    second = get_webhook_settings()

    assert first.timeout_seconds == 30.0
    assert second.timeout_seconds == 5.0


def test_invalid_default_channel_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NOTIFICATION_DEFAULT_CHANNEL", "carrier-pigeon")

    with pytest.raises(ValidationError):
        get_notification_settings()


@pytest.mark.parametrize("url", ["postgresql://u:p@db/n", "sqlite:///./n.db"])
def test_database_url_requires_async_driver(url: str) -> None:
    with pytest.raises(ValidationError):
        DatabaseSettings(url=url)


def test_sqlite_detection() -> None:
    assert DatabaseSettings(url="sqlite+aiosqlite:///:memory:").is_sqlite
    assert not DatabaseSettings(url="postgresql+asyncpg://u:p@db/n").is_sqlite


def test_redis_is_optional_until_url_is_set(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REDIS_URL", raising=False)
    assert not get_redis_settings().is_configured

    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")
    monkeypatch.setenv("REDIS_KEY_PREFIX", "notify:ratelimit")
    clear_all_caches()

    settings = get_redis_settings()
    assert settings.is_configured
    assert settings.key_prefix == "notify:ratelimit"
    assert settings.connection_pool_kwargs()["decode_responses"] is True
