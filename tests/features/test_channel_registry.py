"""Tests for the channel registry service."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from notification_service.core.exceptions import ConflictError, NotFoundError, ValidationError
from notification_service.features.notifications.channels.config import WebhookChannelConfig
from notification_service.features.notifications.channels.registry import ChannelRegistry
from notification_service.features.notifications.schemas import ChannelCreate, ChannelUpdate


@pytest.mark.asyncio
async def test_tagged_inactive_channel_is_not_default(db_session: AsyncSession, registry, make_channel) -> None:
    await make_channel(db_session, "push-legacy", type="push", tags=["default"], status="inactive")
    active = await make_channel(db_session, "push-main", type="push")

    channel = await registry.find_default_by_type(db_session, "push")

    assert channel is not None
    assert channel.id == active.id


@pytest.mark.asyncio
async def test_default_tag_wins_among_active_channels(db_session: AsyncSession, registry, make_channel) -> None:
    await make_channel(db_session, "mail-a", type="email")
    tagged = await make_channel(db_session, "mail-b", type="email", tags=["default"])

    channel = await registry.find_default_by_type(db_session, "email")

    assert channel is not None
    assert channel.id == tagged.id


@pytest.mark.asyncio
async def test_first_active_channel_without_default_tag(db_session: AsyncSession, registry, make_channel) -> None:
    first = await make_channel(db_session, "sms-a", type="sms")
    await make_channel(db_session, "sms-b", type="sms")

    channel = await registry.find_default_by_type(db_session, "sms")

    assert channel is not None
    assert channel.id == first.id


@pytest.mark.asyncio
async def test_no_active_channel_returns_none(db_session: AsyncSession, registry, make_channel) -> None:
    await make_channel(db_session, "hooks", type="webhook", status="error")

    assert await registry.find_default_by_type(db_session, "webhook") is None


@pytest.mark.asyncio
async def test_create_rejects_duplicate_name(db_session: AsyncSession, make_channel) -> None:
    await make_channel(db_session, "inbox")

    with pytest.raises(ConflictError):
        await make_channel(db_session, "inbox")


@pytest.mark.asyncio
async def test_create_validates_config_for_type(db_session: AsyncSession, make_channel) -> None:
    with pytest.raises(ValidationError) as exc_info:
        await make_channel(db_session, "mail", type="email", config={"provider": "pigeon"})

    assert exc_info.value.type == "invalid-channel-config"
    assert exc_info.value.extra["errors"]


@pytest.mark.asyncio
async def test_set_as_default_moves_tag(db_session: AsyncSession, registry, make_channel) -> None:
    old = await make_channel(db_session, "push-a", type="push", tags=["default", "mobile"])
    new = await make_channel(db_session, "push-b", type="push")

    await registry.set_as_default(db_session, new.id)
    await db_session.refresh(old)

    assert old.tags == ["mobile"]
    assert new.is_default
    assert (await registry.find_default_by_type(db_session, "push")).id == new.id


@pytest.mark.asyncio
async def test_update_channel_partial(db_session: AsyncSession, registry, make_channel) -> None:
    channel = await make_channel(db_session, "inbox", description="Main inbox")

    updated = await registry.update_channel(
        db_session,
        channel.id,
        ChannelUpdate(display_name="Inbox", rate_limit={"enabled": True, "limit": 5, "window_seconds": 10}),
    )

    assert updated.display_name == "Inbox"
    assert updated.description == "Main inbox"
    assert updated.rate_limit_enabled is True
    assert updated.rate_limit == 5


@pytest.mark.asyncio
async def test_delivery_stats_and_success_rate(db_session: AsyncSession, registry, make_channel) -> None:
    channel = await make_channel(db_session, "inbox")

    empty = await registry.get_stats(db_session, channel.id)
    for outcome in ("sent", "sent", "sent", "failed", "delivered"):
        await registry.update_delivery_stats(db_session, channel, outcome)
    stats = await registry.get_stats(db_session, channel.id)

    assert empty.success_rate == 100.0
    assert (stats.sent, stats.failed, stats.delivered) == (3, 1, 1)
    assert stats.success_rate == 75.0
    assert stats.last_sent_at is not None


@pytest.mark.asyncio
async def test_unknown_outcome_is_rejected(db_session: AsyncSession, registry, make_channel) -> None:
    channel = await make_channel(db_session, "inbox")

    with pytest.raises(ValueError, match="Unknown delivery outcome"):
        await registry.update_delivery_stats(db_session, channel, "bounced")


@pytest.mark.asyncio
async def test_channel_test_updates_status(db_session: AsyncSession, registry, make_channel) -> None:
    ok = await make_channel(db_session, "inbox", status="testing")
    missing = await make_channel(db_session, "texts", type="sms")

    passed = await registry.test(db_session, ok)
    failed = await registry.test(db_session, missing)

    assert passed.success is True
    assert ok.status == "active"
    assert ok.error_message is None
    assert failed.success is False
    assert missing.status == "error"
    assert missing.error_message == failed.message
    assert missing.last_tested_at is not None


@pytest.mark.asyncio
async def test_channel_test_exception_marks_error(db_session: AsyncSession) -> None:
    async def exploding_tester(channel):
        raise RuntimeError("provider down")

    registry = ChannelRegistry(tester=exploding_tester)
    channel = await registry.create_channel(
        db_session, ChannelCreate(name="mail", display_name="Mail", type="email")
    )

    result = await registry.test(db_session, channel)

    assert result.success is False
    assert result.message == "provider down"
    assert channel.status == "error"


@pytest.mark.asyncio
async def test_get_channel_not_found(db_session: AsyncSession, registry) -> None:
    with pytest.raises(NotFoundError):
        await registry.get_channel_by_name(db_session, "nope")


@pytest.mark.asyncio
async def test_get_config_is_typed_by_channel_type(db_session: AsyncSession, registry, make_channel) -> None:
    channel = await make_channel(
        db_session,
        "hooks",
        type="webhook",
        config={"auth": {"type": "bearer", "token": "t"}},
    )

    config = registry.get_config(channel)

    assert isinstance(config, WebhookChannelConfig)
    assert config.auth.type == "bearer"


@pytest.mark.asyncio
async def test_find_active_by_type_keeps_creation_order(db_session: AsyncSession, registry, make_channel) -> None:
    first = await make_channel(db_session, "mail-a", type="email")
    await make_channel(db_session, "mail-off", type="email", status="inactive")
    third = await make_channel(db_session, "mail-c", type="email")
    await make_channel(db_session, "inbox")

    channels = await registry.find_active_by_type(db_session, "email")

    assert [c.id for c in channels] == [first.id, third.id]
