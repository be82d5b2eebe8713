"""Service layer for notification template management."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from notification_service.core.exceptions import ConflictError, NotFoundError
from notification_service.core.services import BaseService
from notification_service.features.notifications.models import NotificationTemplate
from notification_service.features.notifications.repository import (
    TemplateRepository,
    get_template_repository,
)
from notification_service.features.notifications.templates.renderer import (
    TemplateRenderer,
    get_template_renderer,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.features.notifications.schemas import (
        TemplateCreate,
        TemplateVersionCreate,
    )

# Fields carried from a source template into a new version
_VERSIONED_FIELDS = (
    "display_name",
    "description",
    "type",
    "category",
    "title_template",
    "message_template",
    "default_priority",
    "supported_channels",
    "default_actions",
    "variables",
    "tags",
)


class TemplateService(BaseService):
    """Service for template CRUD, versioning and rendering.

    Provides:
    - Template creation with active-name uniqueness
    - Versioning: new versions share the name and get the next version number
    - Rendering (latest active version unless a version is pinned)
    - Previews that never fail on missing variables
    """

    def __init__(
        self,
        repository: TemplateRepository | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        """Initialize with repository and renderer.

        Args:
            repository: Optional repository (defaults to singleton)
            renderer: Optional renderer (defaults to singleton)
        """
        super().__init__()
        self._repository = repository or get_template_repository()
        self._renderer = renderer or get_template_renderer()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_template(self, session: AsyncSession, template_id: UUID) -> NotificationTemplate:
        """Get a template row by id.

        Raises:
            NotFoundError: If the template does not exist
        """
        template = await self._repository.get(session, template_id)
        if template is None:
            raise NotFoundError(
                detail=f"Template {template_id} not found",
                type="template-not-found",
                extra={"template_id": str(template_id)},
            )
        return template

    async def get_latest(self, session: AsyncSession, name: str) -> NotificationTemplate:
        """Get the highest active version of a template.

        Raises:
            NotFoundError: If no active version exists
        """
        template = await self._repository.get_latest(session, name)
        if template is None:
            raise NotFoundError(
                detail=f"Template '{name}' not found",
                type="template-not-found",
                extra={"template": name},
            )
        return template

    async def get_version(self, session: AsyncSession, name: str, version: int) -> NotificationTemplate:
        """Get one specific version of a template.

        Raises:
            NotFoundError: If that version does not exist
        """
        template = await self._repository.get_version(session, name, version)
        if template is None:
            raise NotFoundError(
                detail=f"Template '{name}' version {version} not found",
                type="template-not-found",
                extra={"template": name, "version": version},
            )
        return template

    async def resolve(
        self,
        session: AsyncSession,
        name: str,
        version: int | None = None,
    ) -> NotificationTemplate:
        """Pinned version if given, otherwise the latest active version."""
        if version is not None:
            return await self.get_version(session, name, version)
        return await self.get_latest(session, name)

    async def list_templates(
        self,
        session: AsyncSession,
        *,
        active_only: bool = True,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[NotificationTemplate]:
        return await self._repository.list_templates(
            session,
            active_only=active_only,
            limit=limit,
            offset=offset,
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(
        self,
        template: NotificationTemplate,
        variables: dict[str, Any],
        channel: str,
    ) -> dict[str, Any]:
        """Render an already resolved template (validates required variables)."""
        return self._renderer.render(template, variables, channel)

    async def render_template(
        self,
        session: AsyncSession,
        name: str,
        variables: dict[str, Any],
        channel: str,
        *,
        version: int | None = None,
    ) -> dict[str, Any]:
        """Render a template by name for a channel.

        Args:
            session: Database session
            name: Template name
            variables: Variables for rendering
            channel: Channel type to render for
            version: Pin a version (defaults to latest active)

        Returns:
            Rendered content

        Raises:
            NotFoundError: If the template (version) does not exist
            ValidationError: Listing every missing required variable
            UnsupportedChannelError: If the template does not support ``channel``
        """
        template = await self.resolve(session, name, version)
        return self.render(template, variables, channel)

    async def preview_template(
        self,
        session: AsyncSession,
        template_id: UUID,
        variables: dict[str, Any],
        channel: str,
    ) -> dict[str, Any]:
        """Render a template with example values for missing variables.

        Missing required variables get their ``example_value``, or a
        ``[Example <name>]`` placeholder. Never raises for missing variables.

        Returns:
            ``{"preview": rendered, "variables": effective_variables}``

        Raises:
            NotFoundError: If the template does not exist
            UnsupportedChannelError: If the template does not support ``channel``
        """
        template = await self.get_template(session, template_id)
        effective = self._renderer.with_examples(template, variables)
        preview = self._renderer.render(template, effective, channel, validate=False)

        self._lazy.debug(lambda: f"Previewed template {template.name} v{template.version} for {channel}")
        return {"preview": preview, "variables": effective}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def create_template(self, session: AsyncSession, data: TemplateCreate) -> NotificationTemplate:
        """Create a template under a name that has no active version.

        Raises:
            ConflictError: If an active template with the name exists
        """
        if await self._repository.has_active(session, data.name):
            raise ConflictError(
                detail=f"An active template named '{data.name}' already exists",
                type="template-name-conflict",
                extra={"template": data.name},
            )

        payload = data.model_dump(mode="json")
        version = await self._repository.max_version(session, data.name) + 1
        template = NotificationTemplate(**payload, version=version, is_active=True)
        template = await self._repository.create(session, template)

        self.logger.info(
            "Template created",
            extra={"template": template.name, "version": template.version, "template_id": str(template.id)},
        )
        return template

    async def create_new_version(
        self,
        session: AsyncSession,
        template_id: UUID,
        data: TemplateVersionCreate,
    ) -> NotificationTemplate:
        """Derive a new version from an existing template row.

        Unspecified fields carry over from the source, which is left unchanged.
        The new row gets the next version number of the name and becomes the
        latest active version.

        Raises:
            NotFoundError: If the source template does not exist
        """
        source = await self.get_template(session, template_id)
        overrides = data.model_dump(mode="json", exclude_unset=True)

        fields = {name: getattr(source, name) for name in _VERSIONED_FIELDS}
        fields.update({k: v for k, v in overrides.items() if v is not None})

        version = await self._repository.max_version(session, source.name) + 1
        template = NotificationTemplate(
            name=source.name,
            version=version,
            previous_version_id=source.id,
            is_active=True,
            **fields,
        )
        template = await self._repository.create(session, template)

        self.logger.info(
            "Template version created",
            extra={
                "template": template.name,
                "version": template.version,
                "previous_version": source.version,
            },
        )
        return template

    async def deactivate_template(self, session: AsyncSession, template_id: UUID) -> NotificationTemplate:
        """Mark one template row inactive."""
        template = await self.get_template(session, template_id)
        template.is_active = False
        template = await self._repository.save(session, template)

        self.logger.info(
            "Template deactivated",
            extra={"template": template.name, "version": template.version},
        )
        return template


# Singleton instance
_service: TemplateService | None = None


def get_template_service() -> TemplateService:
    """Get or create the singleton TemplateService instance.

    Returns:
        TemplateService instance
    """
    global _service
    if _service is None:
        _service = TemplateService()
    return _service


__all__ = ["TemplateService", "get_template_service"]
