"""Tests for the preference service layer."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from notification_service.core.exceptions import ValidationError
from notification_service.features.notifications.models import NotificationPreference
from notification_service.features.notifications.preferences.service import (
    PreferenceService,
    document_from_row,
)


@pytest.fixture
def service() -> PreferenceService:
    return PreferenceService()


async def _row_count(session: AsyncSession) -> int:
    return (await session.execute(select(func.count()).select_from(NotificationPreference))).scalar_one()


@pytest.mark.asyncio
async def test_reading_unknown_recipient_returns_defaults_without_row(
    db_session: AsyncSession, service: PreferenceService
) -> None:
    document = await service.get_document(db_session, "user-1")

    assert document.global_.enabled is True
    assert document.channels.sms.enabled is False
    assert await _row_count(db_session) == 0


@pytest.mark.asyncio
async def test_get_or_create_is_stable(db_session: AsyncSession, service: PreferenceService) -> None:
    first = await service.get_or_create(db_session, "user-1")
    second = await service.get_or_create(db_session, "user-1")

    assert first.id == second.id
    assert await _row_count(db_session) == 1
    assert document_from_row(first).channels.email.enabled is True


@pytest.mark.asyncio
async def test_update_deep_merges_nested_sections(db_session: AsyncSession, service: PreferenceService) -> None:
    await service.update(db_session, "user-1", {"channels": {"email": {"address": "a@example.com"}}})

    document = await service.update(
        db_session,
        "user-1",
        {
            "global": {"quietHours": {"enabled": True, "start": "21:00"}},
            "channels": {"email": {"frequency": "daily"}},
            "categories": [{"name": "news", "enabled": False}],
        },
    )

    assert document.channels.email.address == "a@example.com"
    assert document.channels.email.frequency == "daily"
    assert document.global_.quiet_hours.enabled is True
    assert document.global_.quiet_hours.start == "21:00"
    assert document.global_.quiet_hours.end == "07:00"
    assert [c.name for c in document.categories] == ["news"]
    assert (await service.get_document(db_session, "user-1")).to_storage() == document.to_storage()


@pytest.mark.asyncio
async def test_update_replaces_lists(db_session: AsyncSession, service: PreferenceService) -> None:
    await service.update(db_session, "user-1", {"types": [{"name": "a"}, {"name": "b"}]})

    document = await service.update(db_session, "user-1", {"types": [{"name": "c"}]})

    assert [t.name for t in document.types] == ["c"]


@pytest.mark.asyncio
async def test_invalid_update_lists_every_error_and_keeps_stored_document(
    db_session: AsyncSession, service: PreferenceService
) -> None:
    await service.update(db_session, "user-1", {"channels": {"email": {"address": "a@example.com"}}})

    with pytest.raises(ValidationError) as exc_info:
        await service.update(
            db_session,
            "user-1",
            {"global": {"quietHours": {"start": "25:99", "timezone": "Nowhere/City"}}},
        )

    assert exc_info.value.type == "invalid-preferences"
    assert len(exc_info.value.extra["errors"]) == 2
    stored = await service.get_document(db_session, "user-1")
    assert stored.global_.quiet_hours.start == "22:00"
    assert stored.channels.email.address == "a@example.com"


@pytest.mark.asyncio
async def test_reset_restores_defaults(db_session: AsyncSession, service: PreferenceService) -> None:
    await service.update(db_session, "user-1", {"global": {"enabled": False}})

    document = await service.reset(db_session, "user-1")

    assert document.global_.enabled is True
    assert (await service.get_document(db_session, "user-1")).global_.enabled is True


@pytest.mark.asyncio
async def test_check_delivery_reports_deciding_tier(db_session: AsyncSession, service: PreferenceService) -> None:
    await service.update(
        db_session,
        "user-1",
        {
            "global": {"quietHours": {"enabled": True, "start": "22:00", "end": "06:00", "timezone": "UTC"}},
            "types": [{"name": "digest", "channelOverrides": {"email": {"enabled": False}}}],
        },
    )
    night = datetime(2024, 3, 1, 23, 0, tzinfo=UTC)
    noon = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

    quiet = await service.check_delivery(db_session, "user-1", "news", "post", "email", now=night)
    urgent = await service.check_delivery(db_session, "user-1", "news", "post", "email", "urgent", now=night)
    by_type = await service.check_delivery(db_session, "user-1", "news", "digest", "email", now=noon)

    assert (quiet.would_deliver, quiet.reason) == (False, "quiet_hours")
    assert (urgent.would_deliver, urgent.reason) == (True, "channel_default")
    assert (by_type.would_deliver, by_type.reason) == (False, "type")


@pytest.mark.asyncio
async def test_push_token_lifecycle(db_session: AsyncSession, service: PreferenceService) -> None:
    await service.add_push_token(db_session, "user-1", "tok-1", "ios", "iPhone")
    await service.add_push_token(db_session, "user-1", "tok-2", "web")
    document = await service.add_push_token(db_session, "user-1", "tok-1", "ios", "iPad")

    assert [(t.token, t.device) for t in document.channels.push.tokens] == [("tok-1", "iPad"), ("tok-2", None)]

    document = await service.remove_push_token(db_session, "user-1", "tok-1")

    assert [t.token for t in document.channels.push.tokens] == ["tok-2"]


@pytest.mark.asyncio
async def test_webhook_endpoint_lifecycle(db_session: AsyncSession, service: PreferenceService) -> None:
    document = await service.add_webhook_endpoint(db_session, "user-1", "https://hook.example", secret="s")

    assert document.channels.webhook.enabled is True
    stored = await service.get_document(db_session, "user-1")
    assert stored.channels.webhook.endpoints[0].url == "https://hook.example"

    document = await service.remove_webhook_endpoint(db_session, "user-1", "https://hook.example")

    assert document.channels.webhook.endpoints == []
