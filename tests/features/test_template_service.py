"""Tests for the template service layer."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from notification_service.core.exceptions import (
    ConflictError,
    NotFoundError,
    UnsupportedChannelError,
    ValidationError,
)
from notification_service.features.notifications.schemas import TemplateVersionCreate
from notification_service.features.notifications.templates.service import TemplateService


@pytest.fixture
def service() -> TemplateService:
    return TemplateService()


@pytest.mark.asyncio
async def test_render_missing_required_variable_names_it(
    db_session: AsyncSession, service: TemplateService, make_template
) -> None:
    await make_template(db_session, "t1")

    with pytest.raises(ValidationError) as exc_info:
        await service.render_template(db_session, "t1", {}, "email")

    assert exc_info.value.extra["missing_variables"] == ["name"]
    assert "name" in exc_info.value.detail


@pytest.mark.asyncio
async def test_preview_uses_example_value(db_session: AsyncSession, service: TemplateService, make_template) -> None:
    template = await make_template(db_session, "t1")

    result = await service.preview_template(db_session, template.id, {}, "email")

    assert result["variables"]["name"] == "Ada"
    assert result["preview"]["subject"] == "Welcome Ada"


@pytest.mark.asyncio
async def test_preview_keeps_caller_values_and_rejects_unsupported_channel(
    db_session: AsyncSession, service: TemplateService, make_template
) -> None:
    template = await make_template(db_session, "t1")

    result = await service.preview_template(db_session, template.id, {"name": "Grace"}, "in-app")

    assert result["preview"]["title"] == "Welcome Grace"
    with pytest.raises(UnsupportedChannelError):
        await service.preview_template(db_session, template.id, {}, "sms")


@pytest.mark.asyncio
async def test_render_template_for_email(db_session: AsyncSession, service: TemplateService, make_template) -> None:
    await make_template(db_session)

    rendered = await service.render_template(db_session, "welcome", {"name": "Lin"}, "email")

    assert rendered["subject"] == "Welcome Lin"
    assert rendered["text_body"] == "Hello Lin, thanks for joining."


@pytest.mark.asyncio
async def test_active_name_conflict(db_session: AsyncSession, make_template) -> None:
    await make_template(db_session, "welcome")

    with pytest.raises(ConflictError):
        await make_template(db_session, "welcome")


@pytest.mark.asyncio
async def test_new_version_carries_fields_and_becomes_latest(
    db_session: AsyncSession, service: TemplateService, make_template
) -> None:
    v1 = await make_template(db_session, "welcome")

    v2 = await service.create_new_version(
        db_session,
        v1.id,
        TemplateVersionCreate(title_template="Hey {{ name }}!"),
    )
    latest = await service.get_latest(db_session, "welcome")

    assert v2.version == 2
    assert v2.previous_version_id == v1.id
    assert v1.is_active is True
    assert v2.message_template == v1.message_template
    assert v2.variables == v1.variables
    assert latest.id == v2.id
    assert (await service.render_template(db_session, "welcome", {"name": "Bo"}, "in-app"))["title"] == "Hey Bo!"
    assert (
        await service.render_template(db_session, "welcome", {"name": "Bo"}, "in-app", version=1)
    )["title"] == "Welcome Bo"


@pytest.mark.asyncio
async def test_deactivated_latest_falls_back_to_previous_version(
    db_session: AsyncSession, service: TemplateService, make_template
) -> None:
    v1 = await make_template(db_session, "welcome")
    v2 = await service.create_new_version(db_session, v1.id, TemplateVersionCreate(description="v2"))

    await service.deactivate_template(db_session, v2.id)

    assert (await service.get_latest(db_session, "welcome")).id == v1.id


@pytest.mark.asyncio
async def test_name_can_be_reused_once_inactive(
    db_session: AsyncSession, service: TemplateService, make_template
) -> None:
    v1 = await make_template(db_session, "promo")
    await service.deactivate_template(db_session, v1.id)

    again = await make_template(db_session, "promo")

    assert again.version == 2


@pytest.mark.asyncio
async def test_unknown_template_and_version(db_session: AsyncSession, service: TemplateService, make_template) -> None:
    await make_template(db_session, "welcome")

    with pytest.raises(NotFoundError):
        await service.get_latest(db_session, "missing")
    with pytest.raises(NotFoundError):
        await service.get_version(db_session, "welcome", 7)


@pytest.mark.asyncio
async def test_list_templates_active_only(db_session: AsyncSession, service: TemplateService, make_template) -> None:
    kept = await make_template(db_session, "a")
    dropped = await make_template(db_session, "b")
    await service.deactivate_template(db_session, dropped.id)

    active = await service.list_templates(db_session)
    everything = await service.list_templates(db_session, active_only=False)

    assert [t.id for t in active] == [kept.id]
    assert len(everything) == 2
