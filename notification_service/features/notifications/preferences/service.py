"""Service layer for recipient notification preferences."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError

from notification_service.core.exceptions import ConflictError, ValidationError
from notification_service.core.services import BaseService
from notification_service.features.notifications.enums import Priority
from notification_service.features.notifications.models import NotificationPreference
from notification_service.features.notifications.preferences import resolver
from notification_service.features.notifications.preferences.schemas import PreferenceDocument
from notification_service.features.notifications.repository import (
    PreferenceRepository,
    get_preference_repository,
)
from notification_service.features.notifications.schemas import PreferenceCheckResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession


def _deep_merge(base: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    """Merge ``changes`` into a copy of ``base``; nested dicts merge, everything else replaces."""
    merged = dict(base)
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def document_from_row(row: NotificationPreference | None) -> PreferenceDocument:
    """Validate a stored preference row into a document (defaults when absent)."""
    if row is None:
        return resolver.default_preferences()
    return PreferenceDocument.model_validate(
        {
            "global": row.global_settings or {},
            "channels": row.channels or {},
            "categories": row.categories or [],
            "types": row.types or [],
            "templates": row.templates or [],
        },
    )


def _store(row: NotificationPreference, document: PreferenceDocument) -> None:
    data = document.to_storage()
    row.global_settings = data["global"]
    row.channels = data["channels"]
    row.categories = data["categories"]
    row.types = data["types"]
    row.templates = data["templates"]


class PreferenceService(BaseService):
    """Service for per-recipient preference documents.

    A recipient without a stored row is treated as having the default
    document. Reads never create rows; every write goes through one locked
    read-modify-write of the single preference row.
    """

    def __init__(self, repository: PreferenceRepository | None = None) -> None:
        super().__init__()
        self._repository = repository or get_preference_repository()

    async def get_document(self, session: AsyncSession, recipient_id: str) -> PreferenceDocument:
        """Preference document of a recipient, defaults if none is stored."""
        row = await self._repository.get_for_recipient(session, recipient_id)
        return document_from_row(row)

    async def get_or_create(self, session: AsyncSession, recipient_id: str) -> NotificationPreference:
        """Get the recipient's preference row, materialising defaults if absent.

        Args:
            session: Database session
            recipient_id: Recipient identifier

        Returns:
            Existing or newly created preference row
        """
        row = await self._repository.get_for_recipient(session, recipient_id, for_update=True)
        if row is not None:
            return row

        row = NotificationPreference(recipient_id=recipient_id)
        _store(row, resolver.default_preferences())
        try:
            row = await self._repository.create(session, row)
        except IntegrityError as exc:
            raise ConflictError(
                detail=f"Preferences for recipient '{recipient_id}' were created concurrently",
                type="preference-conflict",
                extra={"recipient_id": recipient_id},
            ) from exc

        self.logger.info("Preferences created with defaults", extra={"recipient_id": recipient_id})
        return row

    async def _modify(
        self,
        session: AsyncSession,
        recipient_id: str,
        change: Callable[[PreferenceDocument], PreferenceDocument],
    ) -> PreferenceDocument:
        row = await self.get_or_create(session, recipient_id)
        updated = change(document_from_row(row))
        _store(row, updated)
        await self._repository.save(session, row)
        return updated

    async def update(
        self,
        session: AsyncSession,
        recipient_id: str,
        changes: dict[str, Any],
    ) -> PreferenceDocument:
        """Deep-merge a partial document into the stored preferences.

        Nested objects merge key by key; lists (categories, types, templates,
        push tokens, endpoints) are replaced as a whole.

        Raises:
            ValidationError: If the merged document is invalid, listing every problem
        """
        row = await self.get_or_create(session, recipient_id)
        merged = _deep_merge(document_from_row(row).to_storage(), changes)
        try:
            document = PreferenceDocument.model_validate(merged)
        except PydanticValidationError as exc:
            errors = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            ]
            raise ValidationError(
                detail="Invalid preference document",
                type="invalid-preferences",
                extra={"errors": errors},
            ) from exc

        _store(row, document)
        await self._repository.save(session, row)

        self.logger.info(
            "Preferences updated",
            extra={"recipient_id": recipient_id, "sections": sorted(changes)},
        )
        return document

    async def reset(self, session: AsyncSession, recipient_id: str) -> PreferenceDocument:
        """Replace the stored document with defaults."""
        document = await self._modify(session, recipient_id, lambda _: resolver.default_preferences())
        self.logger.info("Preferences reset", extra={"recipient_id": recipient_id})
        return document

    async def check_delivery(
        self,
        session: AsyncSession,
        recipient_id: str,
        category: str,
        notification_type: str,
        channel: str,
        priority: str = Priority.NORMAL,
        template: str | None = None,
        *,
        now: datetime | None = None,
    ) -> PreferenceCheckResponse:
        """Report whether a notification would be delivered, and which tier decided."""
        document = await self.get_document(session, recipient_id)
        decision = resolver.resolve_enablement(
            document,
            category,
            notification_type,
            channel,
            priority,
            template,
            now=now,
        )
        return PreferenceCheckResponse(would_deliver=decision.enabled, reason=decision.reason)

    async def add_push_token(
        self,
        session: AsyncSession,
        recipient_id: str,
        token: str,
        platform: str,
        device: str | None = None,
    ) -> PreferenceDocument:
        """Register or refresh a push token for the recipient."""
        document = await self._modify(
            session,
            recipient_id,
            lambda doc: resolver.add_push_token(doc, token, platform, device),
        )
        self.logger.info(
            "Push token registered",
            extra={"recipient_id": recipient_id, "platform": platform},
        )
        return document

    async def remove_push_token(
        self,
        session: AsyncSession,
        recipient_id: str,
        token: str,
    ) -> PreferenceDocument:
        document = await self._modify(
            session,
            recipient_id,
            lambda doc: resolver.remove_push_token(doc, token),
        )
        self.logger.info("Push token removed", extra={"recipient_id": recipient_id})
        return document

    async def add_webhook_endpoint(
        self,
        session: AsyncSession,
        recipient_id: str,
        url: str,
        secret: str | None = None,
        description: str | None = None,
        events: list[str] | None = None,
    ) -> PreferenceDocument:
        """Add an active webhook endpoint and switch the webhook channel on."""
        document = await self._modify(
            session,
            recipient_id,
            lambda doc: resolver.add_webhook_endpoint(doc, url, secret, description, events),
        )
        self.logger.info(
            "Webhook endpoint registered",
            extra={"recipient_id": recipient_id, "url": url},
        )
        return document

    async def remove_webhook_endpoint(
        self,
        session: AsyncSession,
        recipient_id: str,
        url: str,
    ) -> PreferenceDocument:
        document = await self._modify(
            session,
            recipient_id,
            lambda doc: resolver.remove_webhook_endpoint(doc, url),
        )
        self.logger.info(
            "Webhook endpoint removed",
            extra={"recipient_id": recipient_id, "url": url},
        )
        return document


_preference_service: PreferenceService | None = None


def get_preference_service() -> PreferenceService:
    """Get PreferenceService singleton instance."""
    global _preference_service
    if _preference_service is None:
        _preference_service = PreferenceService()
    return _preference_service


__all__ = ["PreferenceService", "document_from_row", "get_preference_service"]
