"""API routers for the notifications feature.

Notification Endpoints:
- POST /notifications - Process one notification request
- POST /notifications/batch - Process a batch of requests
- GET /notifications/recipients/{recipient_id} - List a recipient's notifications
- GET /notifications/recipients/{recipient_id}/unread-count - Unread count
- POST /notifications/recipients/{recipient_id}/read-all - Mark all as read
- POST /notifications/{notification_id}/read - Mark one as read

Preference Endpoints:
- GET|PATCH|DELETE /preferences/{recipient_id} - Read, merge or reset preferences
- POST /preferences/{recipient_id}/check - Would a notification be delivered?
- POST|DELETE /preferences/{recipient_id}/push-tokens - Manage push tokens
- POST|DELETE /preferences/{recipient_id}/webhook-endpoints - Manage webhook endpoints

Channel Endpoints:
- GET|POST /channels, GET|PATCH /channels/{channel_id}
- POST /channels/{channel_id}/test, POST /channels/{channel_id}/default
- GET /channels/{channel_id}/stats

Template Endpoints:
- GET|POST /templates, GET /templates/{template_id}
- POST /templates/{name}/render, POST /templates/{template_id}/preview
- POST /templates/{template_id}/versions, POST /templates/{template_id}/deactivate

Errors are raised as AppException subclasses and rendered as RFC 7807
problem details by the application's exception handlers.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Query, status

from notification_service.features.notifications.dependencies import (
    ChannelRegistryDep,
    DeliveryOrchestratorDep,
    PreferenceServiceDep,
    SessionDep,
    TemplateServiceDep,
)
from notification_service.features.notifications.enums import ChannelStatus, ChannelType
from notification_service.features.notifications.schemas import (
    BatchRequest,
    BatchResult,
    ChannelCreate,
    ChannelResponse,
    ChannelStats,
    ChannelTestResponse,
    ChannelUpdate,
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    PreferenceCheckRequest,
    PreferenceCheckResponse,
    PreferenceResponse,
    PushTokenRemoveRequest,
    PushTokenRequest,
    SkippedResponse,
    TemplateCreate,
    TemplatePreviewRequest,
    TemplatePreviewResponse,
    TemplateRenderRequest,
    TemplateResponse,
    TemplateVersionCreate,
    UnreadCountResponse,
    WebhookEndpointRemoveRequest,
    WebhookEndpointRequest,
)
from notification_service.infra.logging import get_lazy_logger

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])
preferences_router = APIRouter(prefix="/preferences", tags=["preferences"])
channels_router = APIRouter(prefix="/channels", tags=["channels"])
templates_router = APIRouter(prefix="/templates", tags=["templates"])


# ============================================================================
# Notifications
# ============================================================================


@router.post(
    "",
    response_model=NotificationResponse | SkippedResponse,
    summary="Send a notification",
    description="""
Process one notification request.

Either `template` or both `title` and `message` are required.

**Returns:**
- The persisted record (`sent`, `failed` or `scheduled`), or
- `{"skipped": true, "reason": ...}` when the recipient's preferences suppress it
""",
    responses={
        404: {"description": "Template not found"},
        422: {"description": "Invalid request or missing template variables"},
        503: {"description": "No active channel for the requested type"},
    },
)
async def send_notification(
    payload: Annotated[dict[str, Any], Body(description="Notification request")],
    session: SessionDep,
    orchestrator: DeliveryOrchestratorDep,
) -> NotificationResponse | SkippedResponse:
    """Process a single notification request."""
    outcome = await orchestrator.create_and_send(session, payload)
    if isinstance(outcome, SkippedResponse):
        return outcome

    await session.commit()
    return NotificationResponse.model_validate(outcome)


@router.post(
    "/batch",
    response_model=BatchResult,
    summary="Send a batch of notifications",
    description="Each item is processed independently; one failure never aborts the batch.",
)
async def send_batch(
    payload: BatchRequest,
    orchestrator: DeliveryOrchestratorDep,
) -> BatchResult:
    """Process a batch of notification requests."""
    return await orchestrator.send_batch(payload.notifications)


@router.get(
    "/recipients/{recipient_id}",
    response_model=NotificationListResponse,
    summary="List a recipient's notifications",
)
async def list_recipient_notifications(
    recipient_id: str,
    session: SessionDep,
    orchestrator: DeliveryOrchestratorDep,
    category: Annotated[str | None, Query(description="Filter by category")] = None,
    unread_only: Annotated[bool, Query(description="Only return unread notifications")] = False,
    limit: Annotated[int, Query(ge=1, le=100, description="Maximum results")] = 50,
    offset: Annotated[int, Query(ge=0, description="Pagination offset")] = 0,
) -> NotificationListResponse:
    """List non-archived notifications of a recipient, newest first."""
    notifications, total, unread_count = await orchestrator.list_for_recipient(
        session,
        recipient_id,
        unread_only=unread_only,
        category=category,
        limit=limit,
        offset=offset,
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        unread_count=unread_count,
    )


@router.get(
    "/recipients/{recipient_id}/unread-count",
    response_model=UnreadCountResponse,
    summary="Count unread notifications",
)
async def unread_count(
    recipient_id: str,
    session: SessionDep,
    orchestrator: DeliveryOrchestratorDep,
    category: Annotated[str | None, Query(description="Filter by category")] = None,
) -> UnreadCountResponse:
    count = await orchestrator.count_unread(session, recipient_id, category)
    return UnreadCountResponse(unread_count=count)


@router.post(
    "/recipients/{recipient_id}/read-all",
    response_model=MarkAllReadResponse,
    summary="Mark all notifications as read",
)
async def mark_all_read(
    recipient_id: str,
    session: SessionDep,
    orchestrator: DeliveryOrchestratorDep,
    category: Annotated[str | None, Query(description="Only this category")] = None,
) -> MarkAllReadResponse:
    updated = await orchestrator.mark_all_as_read(session, recipient_id, category)
    await session.commit()
    return MarkAllReadResponse(updated=updated)


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark a notification as read",
    responses={404: {"description": "Notification not found for the recipient"}},
)
async def mark_read(
    notification_id: UUID,
    session: SessionDep,
    orchestrator: DeliveryOrchestratorDep,
    recipient_id: Annotated[str, Query(description="Recipient owning the notification")],
) -> NotificationResponse:
    notification = await orchestrator.mark_as_read(session, notification_id, recipient_id)
    await session.commit()
    return NotificationResponse.model_validate(notification)


# ============================================================================
# Preferences
# ============================================================================


@preferences_router.get(
    "/{recipient_id}",
    response_model=PreferenceResponse,
    summary="Get a recipient's preferences",
    description="Recipients who never saved preferences get the default document.",
)
async def get_preferences(
    recipient_id: str,
    session: SessionDep,
    service: PreferenceServiceDep,
) -> PreferenceResponse:
    document = await service.get_document(session, recipient_id)
    return PreferenceResponse(recipient_id=recipient_id, preferences=document.to_storage())


@preferences_router.patch(
    "/{recipient_id}",
    response_model=PreferenceResponse,
    summary="Update a recipient's preferences",
    description="Deep-merges a partial preference document. Lists are replaced as a whole.",
)
async def update_preferences(
    recipient_id: str,
    changes: Annotated[dict[str, Any], Body(description="Partial preference document")],
    session: SessionDep,
    service: PreferenceServiceDep,
) -> PreferenceResponse:
    document = await service.update(session, recipient_id, changes)
    await session.commit()
    return PreferenceResponse(recipient_id=recipient_id, preferences=document.to_storage())


@preferences_router.delete(
    "/{recipient_id}",
    response_model=PreferenceResponse,
    summary="Reset a recipient's preferences to defaults",
)
async def reset_preferences(
    recipient_id: str,
    session: SessionDep,
    service: PreferenceServiceDep,
) -> PreferenceResponse:
    document = await service.reset(session, recipient_id)
    await session.commit()
    return PreferenceResponse(recipient_id=recipient_id, preferences=document.to_storage())


@preferences_router.post(
    "/{recipient_id}/check",
    response_model=PreferenceCheckResponse,
    summary="Check whether a notification would be delivered",
)
async def check_delivery(
    recipient_id: str,
    payload: PreferenceCheckRequest,
    session: SessionDep,
    service: PreferenceServiceDep,
) -> PreferenceCheckResponse:
    return await service.check_delivery(
        session,
        recipient_id,
        payload.category,
        payload.type,
        payload.channel,
        payload.priority,
        payload.template,
    )


@preferences_router.post(
    "/{recipient_id}/push-tokens",
    response_model=PreferenceResponse,
    summary="Register a push token",
)
async def add_push_token(
    recipient_id: str,
    payload: PushTokenRequest,
    session: SessionDep,
    service: PreferenceServiceDep,
) -> PreferenceResponse:
    document = await service.add_push_token(
        session,
        recipient_id,
        payload.token,
        payload.platform,
        payload.device,
    )
    await session.commit()
    return PreferenceResponse(recipient_id=recipient_id, preferences=document.to_storage())


@preferences_router.delete(
    "/{recipient_id}/push-tokens",
    response_model=PreferenceResponse,
    summary="Remove a push token",
)
async def remove_push_token(
    recipient_id: str,
    payload: PushTokenRemoveRequest,
    session: SessionDep,
    service: PreferenceServiceDep,
) -> PreferenceResponse:
    document = await service.remove_push_token(session, recipient_id, payload.token)
    await session.commit()
    return PreferenceResponse(recipient_id=recipient_id, preferences=document.to_storage())


@preferences_router.post(
    "/{recipient_id}/webhook-endpoints",
    response_model=PreferenceResponse,
    summary="Register a webhook endpoint",
)
async def add_webhook_endpoint(
    recipient_id: str,
    payload: WebhookEndpointRequest,
    session: SessionDep,
    service: PreferenceServiceDep,
) -> PreferenceResponse:
    document = await service.add_webhook_endpoint(
        session,
        recipient_id,
        payload.url,
        payload.secret,
        payload.description,
        payload.events,
    )
    await session.commit()
    return PreferenceResponse(recipient_id=recipient_id, preferences=document.to_storage())


@preferences_router.delete(
    "/{recipient_id}/webhook-endpoints",
    response_model=PreferenceResponse,
    summary="Remove a webhook endpoint",
)
async def remove_webhook_endpoint(
    recipient_id: str,
    payload: WebhookEndpointRemoveRequest,
    session: SessionDep,
    service: PreferenceServiceDep,
) -> PreferenceResponse:
    document = await service.remove_webhook_endpoint(session, recipient_id, payload.url)
    await session.commit()
    return PreferenceResponse(recipient_id=recipient_id, preferences=document.to_storage())


# ============================================================================
# Channels
# ============================================================================


@channels_router.get("", response_model=list[ChannelResponse], summary="List channels")
async def list_channels(
    session: SessionDep,
    registry: ChannelRegistryDep,
    channel_type: Annotated[ChannelType | None, Query(alias="type")] = None,
    channel_status: Annotated[ChannelStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[ChannelResponse]:
    channels = await registry.list_channels(
        session,
        channel_type=channel_type,
        status=channel_status,
        limit=limit,
        offset=offset,
    )
    return [ChannelResponse.model_validate(c) for c in channels]


@channels_router.post(
    "",
    response_model=ChannelResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a channel",
    responses={409: {"description": "Channel name already exists"}},
)
async def create_channel(
    payload: ChannelCreate,
    session: SessionDep,
    registry: ChannelRegistryDep,
) -> ChannelResponse:
    channel = await registry.create_channel(session, payload)
    await session.commit()
    return ChannelResponse.model_validate(channel)


@channels_router.get("/{channel_id}", response_model=ChannelResponse, summary="Get a channel")
async def get_channel(
    channel_id: UUID,
    session: SessionDep,
    registry: ChannelRegistryDep,
) -> ChannelResponse:
    channel = await registry.get_channel(session, channel_id)
    return ChannelResponse.model_validate(channel)


@channels_router.patch("/{channel_id}", response_model=ChannelResponse, summary="Update a channel")
async def update_channel(
    channel_id: UUID,
    payload: ChannelUpdate,
    session: SessionDep,
    registry: ChannelRegistryDep,
) -> ChannelResponse:
    channel = await registry.update_channel(session, channel_id, payload)
    await session.commit()
    return ChannelResponse.model_validate(channel)


@channels_router.post(
    "/{channel_id}/test",
    response_model=ChannelTestResponse,
    summary="Test a channel",
    description="Exercises the channel and stores the resulting status (active or error).",
)
async def test_channel(
    channel_id: UUID,
    session: SessionDep,
    registry: ChannelRegistryDep,
) -> ChannelTestResponse:
    channel = await registry.get_channel(session, channel_id)
    result = await registry.test(session, channel)
    await session.commit()
    return result


@channels_router.post(
    "/{channel_id}/default",
    response_model=ChannelResponse,
    summary="Make a channel the default of its type",
)
async def set_default_channel(
    channel_id: UUID,
    session: SessionDep,
    registry: ChannelRegistryDep,
) -> ChannelResponse:
    channel = await registry.set_as_default(session, channel_id)
    await session.commit()
    return ChannelResponse.model_validate(channel)


@channels_router.get("/{channel_id}/stats", response_model=ChannelStats, summary="Channel delivery statistics")
async def channel_stats(
    channel_id: UUID,
    session: SessionDep,
    registry: ChannelRegistryDep,
) -> ChannelStats:
    return await registry.get_stats(session, channel_id)


# ============================================================================
# Templates
# ============================================================================


@templates_router.get("", response_model=list[TemplateResponse], summary="List templates")
async def list_templates(
    session: SessionDep,
    service: TemplateServiceDep,
    active_only: Annotated[bool, Query(description="Only active templates")] = True,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[TemplateResponse]:
    templates = await service.list_templates(
        session,
        active_only=active_only,
        limit=limit,
        offset=offset,
    )
    return [TemplateResponse.model_validate(t) for t in templates]


@templates_router.post(
    "",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a template",
    responses={409: {"description": "An active template with this name exists"}},
)
async def create_template(
    payload: TemplateCreate,
    session: SessionDep,
    service: TemplateServiceDep,
) -> TemplateResponse:
    template = await service.create_template(session, payload)
    await session.commit()
    return TemplateResponse.model_validate(template)


@templates_router.get("/{template_id}", response_model=TemplateResponse, summary="Get a template")
async def get_template(
    template_id: UUID,
    session: SessionDep,
    service: TemplateServiceDep,
) -> TemplateResponse:
    template = await service.get_template(session, template_id)
    return TemplateResponse.model_validate(template)


@templates_router.post(
    "/{name}/render",
    response_model=dict[str, Any],
    summary="Render a template by name",
    description="""
Render the latest active version (or a pinned `version`) for one channel.

Fails with 422 listing every missing required variable, or when the
template does not support the channel.
""",
)
async def render_template(
    name: str,
    payload: TemplateRenderRequest,
    session: SessionDep,
    service: TemplateServiceDep,
) -> dict[str, Any]:
    return await service.render_template(
        session,
        name,
        payload.variables,
        payload.channel,
        version=payload.version,
    )


@templates_router.post(
    "/{template_id}/preview",
    response_model=TemplatePreviewResponse,
    summary="Preview a template with example values",
)
async def preview_template(
    template_id: UUID,
    payload: TemplatePreviewRequest,
    session: SessionDep,
    service: TemplateServiceDep,
) -> TemplatePreviewResponse:
    result = await service.preview_template(session, template_id, payload.variables, payload.channel)
    return TemplatePreviewResponse(**result)


@templates_router.post(
    "/{template_id}/versions",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new template version",
)
async def create_template_version(
    template_id: UUID,
    payload: TemplateVersionCreate,
    session: SessionDep,
    service: TemplateServiceDep,
) -> TemplateResponse:
    template = await service.create_new_version(session, template_id, payload)
    await session.commit()
    lazy_logger.debug(lambda: f"Template {template.name} now at v{template.version}")
    return TemplateResponse.model_validate(template)


@templates_router.post(
    "/{template_id}/deactivate",
    response_model=TemplateResponse,
    summary="Deactivate a template version",
)
async def deactivate_template(
    template_id: UUID,
    session: SessionDep,
    service: TemplateServiceDep,
) -> TemplateResponse:
    template = await service.deactivate_template(session, template_id)
    await session.commit()
    logger.info("Template deactivated via API", extra={"template_id": str(template_id)})
    return TemplateResponse.model_validate(template)


__all__ = ["channels_router", "preferences_router", "router", "templates_router"]
