"""Pytest configuration and shared fixtures.

Organization:
    - Database Fixtures: SQLAlchemy engine, session factory and session
    - Service Fixtures: registries and the delivery orchestrator wired to the test database
    - Application Fixtures: FastAPI app and HTTP client with overridden dependencies
    - Data Fixtures: factories for channels, templates and preference documents

The database is a SQLite file per test rather than ``:memory:`` because
batches and sweeps open their own sessions and must see each other's commits.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notification_service.features.notifications.channels.base import DeliveryResult

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

    from notification_service.features.notifications.models import (
        NotificationChannel,
        NotificationTemplate,
    )

# Keep the module-level engine away from the working directory
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


class InMemoryRedis:
    """Stand-in for the Redis client's ``eval`` running the window-increment script.

    Shared between limiter instances it behaves like one Redis server seen by
    several service instances.
    """

    def __init__(self) -> None:
        self.counters: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def eval(self, script: str, numkeys: int, *args: Any) -> int:
        key, ttl = args[0], int(args[numkeys])
        self.counters[key] = self.counters.get(key, 0) + 1
        if self.counters[key] == 1:
            self.ttls[key] = ttl
        return self.counters[key]


class RecordingSender:
    """Channel sender that records every call and returns a canned result."""

    def __init__(self, result: DeliveryResult | None = None, error: Exception | None = None) -> None:
        self.result = result or DeliveryResult(success=True, provider_ref="ref-1")
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def send(self, content: dict[str, Any], settings: dict[str, Any], channel: Any) -> DeliveryResult:
        self.calls.append({"content": content, "settings": settings, "channel": channel.name})
        if self.error is not None:
            raise self.error
        return self.result


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine on a fresh SQLite file with all tables.

    Yields:
        Async SQLAlchemy engine.
    """
    from notification_service.core.database.base import Base
    from notification_service.features.notifications import models  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'notifications.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory matching the application's (no expiry on commit)."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Provide a session; uncommitted work is rolled back after the test.

    Example:
        async def test_create_channel(db_session, registry):
            channel = await registry.create_channel(db_session, ChannelCreate(...))
            assert channel.id is not None
    """
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def in_app_sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def sender_registry(in_app_sender: RecordingSender):
    from notification_service.features.notifications.channels.senders import SenderRegistry

    return SenderRegistry({"in-app": in_app_sender})


@pytest.fixture
def registry(sender_registry):
    from notification_service.features.notifications.channels.registry import ChannelRegistry

    return ChannelRegistry(tester=sender_registry.check_channel)


@pytest.fixture
def redis_client() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def notification_settings():
    from notification_service.core.settings import NotificationSettings

    return NotificationSettings(batch_concurrency=1, dispatch_timeout_seconds=1.0)


@pytest.fixture
def orchestrator(registry, sender_registry, notification_settings, session_factory, redis_client):
    """DeliveryOrchestrator bound to the test database and fake senders."""
    from notification_service.features.notifications.channels.rate_limit import FixedWindowRateLimiter
    from notification_service.features.notifications.service import DeliveryOrchestrator

    return DeliveryOrchestrator(
        channels=registry,
        senders=sender_registry,
        rate_limiter=FixedWindowRateLimiter(redis_client),
        settings=notification_settings,
        session_factory=session_factory,
    )


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
async def app(session_factory, orchestrator, registry):
    """FastAPI application with database and services bound to the test database."""
    from notification_service.app.main import create_app
    from notification_service.core.dependencies import get_db_session
    from notification_service.features.notifications.channels.registry import get_channel_registry
    from notification_service.features.notifications.service import get_delivery_orchestrator

    application = create_app()

    async def _session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db_session] = _session
    application.dependency_overrides[get_delivery_orchestrator] = lambda: orchestrator
    application.dependency_overrides[get_channel_registry] = lambda: registry
    return application


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client for the test application.

    Example:
        async def test_list_channels(client):
            response = await client.get("/channels")
            assert response.status_code == 200
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ============================================================================
# Data Fixtures
# ============================================================================


@pytest.fixture
def make_channel(registry):
    """Factory creating a channel through the registry."""
    from notification_service.features.notifications.schemas import ChannelCreate

    async def _make(session: AsyncSession, name: str, type: str = "in-app", **kwargs: Any) -> NotificationChannel:
        data = ChannelCreate(name=name, display_name=name.title(), type=type, **kwargs)
        return await registry.create_channel(session, data)

    return _make


@pytest.fixture
def make_template():
    """Factory creating a template through the template service."""
    from notification_service.features.notifications.schemas import TemplateCreate
    from notification_service.features.notifications.templates.service import TemplateService

    service = TemplateService()

    async def _make(session: AsyncSession, name: str = "welcome", **kwargs: Any) -> NotificationTemplate:
        payload: dict[str, Any] = {
            "name": name,
            "type": "account.welcome",
            "category": "account",
            "title_template": "Welcome {{ name }}",
            "message_template": "Hello {{ name }}, thanks for joining.",
            "supported_channels": [{"type": "in-app"}, {"type": "email"}],
            "variables": [{"name": "name", "required": True, "example_value": "Ada"}],
        }
        payload.update(kwargs)
        return await service.create_template(session, TemplateCreate(**payload))

    return _make
