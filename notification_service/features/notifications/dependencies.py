"""FastAPI dependencies for the notifications feature.

Provides Annotated type aliases for clean dependency injection in route handlers.

Example usage:
    from notification_service.features.notifications.dependencies import (
        DeliveryOrchestratorDep,
        SessionDep,
    )

    @router.post("/notifications")
    async def send_notification(
        payload: dict,
        session: SessionDep,
        orchestrator: DeliveryOrchestratorDep,
    ):
        outcome = await orchestrator.create_and_send(session, payload)
        await session.commit()
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notification_service.core.dependencies import get_db_session
from notification_service.features.notifications.channels.registry import (
    ChannelRegistry,
    get_channel_registry,
)
from notification_service.features.notifications.preferences.service import (
    PreferenceService,
    get_preference_service,
)
from notification_service.features.notifications.service import (
    DeliveryOrchestrator,
    get_delivery_orchestrator,
)
from notification_service.features.notifications.templates.service import (
    TemplateService,
    get_template_service,
)

# Database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_db_session)]

# Service dependencies
DeliveryOrchestratorDep = Annotated[DeliveryOrchestrator, Depends(get_delivery_orchestrator)]
PreferenceServiceDep = Annotated[PreferenceService, Depends(get_preference_service)]
ChannelRegistryDep = Annotated[ChannelRegistry, Depends(get_channel_registry)]
TemplateServiceDep = Annotated[TemplateService, Depends(get_template_service)]


__all__ = [
    "ChannelRegistryDep",
    "DeliveryOrchestratorDep",
    "PreferenceServiceDep",
    "SessionDep",
    "TemplateServiceDep",
]
