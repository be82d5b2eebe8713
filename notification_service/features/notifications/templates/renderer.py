"""Jinja2 template rendering for notifications with validation and security."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from jinja2 import TemplateError, select_autoescape
from jinja2.sandbox import SandboxedEnvironment

from notification_service.core.exceptions import UnsupportedChannelError, ValidationError
from notification_service.features.notifications.enums import ChannelType
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from notification_service.features.notifications.models import NotificationTemplate


class TemplateRenderError(ValidationError):
    """Raised when a template fails to compile or render."""

    def __init__(self, message: str, template_name: str | None = None) -> None:
        """Initialize render error with details.

        Args:
            message: Error description
            template_name: Name of template that failed
        """
        super().__init__(
            detail=message,
            type="template-render-error",
            extra={"template": template_name},
        )
        self.template_name = template_name


def example_placeholder(name: str) -> str:
    """Placeholder used in previews for variables without an example value."""
    return f"[Example {name}]"


class TemplateRenderer:
    """Jinja2 template renderer with security sandboxing and validation.

    Uses SandboxedEnvironment to prevent arbitrary code execution.
    Validates required variables before rendering and produces a
    channel-specific output shape:

    - email: subject, html_body, text_body
    - sms: text
    - push: title, body
    - webhook: payload
    - in-app / custom: title, message

    Every output also carries title, message, actions, type, category and priority.
    """

    def __init__(self) -> None:
        """Initialize with sandboxed Jinja2 environments."""
        self._logger = get_lazy_logger(__name__)

        # Plain text output, no escaping
        self._text_env = SandboxedEnvironment(autoescape=False, trim_blocks=True, lstrip_blocks=True)

        # HTML bodies
        self._html_env = SandboxedEnvironment(
            autoescape=select_autoescape(
                enabled_extensions=("html", "xml"),
                default_for_string=True,
            ),
            trim_blocks=True,
            lstrip_blocks=True,
        )

        for env in (self._text_env, self._html_env):
            env.filters["json"] = json.dumps

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def apply_defaults(
        self,
        template: NotificationTemplate,
        variables: dict[str, Any],
    ) -> dict[str, Any]:
        """Fill in declared ``default_value``s for variables the caller left out."""
        merged = dict(variables)
        for var in template.variables or []:
            name = var.get("name")
            if name and merged.get(name) is None and var.get("default_value") is not None:
                merged[name] = var["default_value"]
        return merged

    def missing_variables(
        self,
        template: NotificationTemplate,
        variables: dict[str, Any],
    ) -> list[str]:
        """Names of required variables absent (or None) in ``variables``."""
        return [
            var["name"]
            for var in template.variables or []
            if var.get("required") and variables.get(var["name"]) is None
        ]

    def validate_variables(
        self,
        template: NotificationTemplate,
        variables: dict[str, Any],
    ) -> None:
        """Check every required variable at once.

        Raises:
            ValidationError: Listing all missing variables
        """
        missing = self.missing_variables(template, variables)
        if missing:
            raise ValidationError(
                detail=f"Missing required variables for template '{template.name}': {', '.join(missing)}",
                type="missing-template-variables",
                extra={
                    "template": template.name,
                    "missing_variables": missing,
                    "errors": [f"{name}: required variable is missing" for name in missing],
                },
            )

    def with_examples(
        self,
        template: NotificationTemplate,
        variables: dict[str, Any],
    ) -> dict[str, Any]:
        """Fill every missing required variable with its example value or a placeholder."""
        merged = self.apply_defaults(template, variables)
        for var in template.variables or []:
            name = var.get("name")
            if name and var.get("required") and merged.get(name) is None:
                example = var.get("example_value")
                merged[name] = example if example is not None else example_placeholder(name)
        return merged

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def channel_content(
        self,
        template: NotificationTemplate,
        channel: str,
    ) -> dict[str, Any]:
        """Channel-specific content declared by the template.

        Raises:
            UnsupportedChannelError: If the template does not enable ``channel``
        """
        for entry in template.supported_channels or []:
            if entry.get("type") == channel and entry.get("enabled", True):
                return entry.get("content") or {}
        raise UnsupportedChannelError(
            detail=f"Template '{template.name}' does not support channel '{channel}'",
            extra={
                "template": template.name,
                "channel": channel,
                "supported": [
                    e.get("type") for e in template.supported_channels or [] if e.get("enabled", True)
                ],
            },
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(
        self,
        template: NotificationTemplate,
        variables: dict[str, Any],
        channel: str,
        *,
        validate: bool = True,
    ) -> dict[str, Any]:
        """Render a template for one channel.

        Args:
            template: NotificationTemplate instance
            variables: Variables for rendering
            channel: Channel type to render for
            validate: Enforce required variables (previews pass False)

        Returns:
            Rendered content dictionary

        Raises:
            ValidationError: If required variables are missing
            UnsupportedChannelError: If the channel is not supported
            TemplateRenderError: If Jinja2 fails to compile or render
        """
        context = self.apply_defaults(template, variables)
        if validate:
            self.validate_variables(template, context)
        content = self.channel_content(template, channel)

        try:
            title = self._render_string(template.title_template, context)
            message = self._render_string(template.message_template, context)
            rendered: dict[str, Any] = {
                "title": title,
                "message": message,
                "actions": [
                    {
                        "label": action.get("label"),
                        "url": self._render_string(action["url_template"], context)
                        if action.get("url_template")
                        else None,
                        "style": action.get("style", "primary"),
                    }
                    for action in template.default_actions or []
                ],
                "type": template.type,
                "category": template.category,
                "priority": template.default_priority,
            }
            rendered.update(self._render_channel(template, channel, content, context, title, message))
        except TemplateError as exc:
            msg = f"Failed to render template {template.name}: {exc}"
            raise TemplateRenderError(msg, template_name=template.name) from exc

        self._logger.debug(
            lambda: f"Rendered template {template.name} v{template.version} for channel {channel}",
        )
        return rendered

    def _render_channel(
        self,
        template: NotificationTemplate,
        channel: str,
        content: dict[str, Any],
        context: dict[str, Any],
        title: str,
        message: str,
    ) -> dict[str, Any]:
        if channel == ChannelType.EMAIL:
            return {
                "subject": self._render_string(content["subject"], context)
                if content.get("subject")
                else title,
                "html_body": self._render_string(content["html_body"], context, autoescape=True)
                if content.get("html_body")
                else None,
                "text_body": self._render_string(content["text_body"], context)
                if content.get("text_body")
                else message,
            }
        if channel == ChannelType.SMS:
            return {
                "text": self._render_string(content["text"], context) if content.get("text") else message,
            }
        if channel == ChannelType.PUSH:
            return {
                "title": self._render_string(content["title"], context) if content.get("title") else title,
                "body": self._render_string(content["body"], context) if content.get("body") else message,
            }
        if channel == ChannelType.WEBHOOK:
            payload = content.get("payload")
            if payload:
                return {"payload": self._render_dict_recursive(payload, context)}
            return {
                "payload": {
                    "title": title,
                    "message": message,
                    "type": template.type,
                    "category": template.category,
                },
            }
        return {}

    def _render_string(
        self,
        template_str: str,
        context: dict[str, Any],
        autoescape: bool = False,
    ) -> str:
        """Render a string template, HTML-escaped when ``autoescape`` is set."""
        env = self._html_env if autoescape else self._text_env
        return env.from_string(template_str).render(**context)

    def _render_dict_recursive(
        self,
        obj: Any,
        context: dict[str, Any],
    ) -> Any:
        """Recursively render Jinja2 expressions in nested dicts/lists.

        Args:
            obj: Object to render (dict, list, str, or primitive)
            context: Context variables

        Returns:
            Object with all Jinja2 expressions rendered
        """
        if isinstance(obj, dict):
            return {k: self._render_dict_recursive(v, context) for k, v in obj.items()}

        if isinstance(obj, list):
            return [self._render_dict_recursive(item, context) for item in obj]

        if isinstance(obj, str) and ("{{" in obj or "{%" in obj):
            return self._render_string(obj, context)

        # Primitives (int, float, bool, None) pass through
        return obj


# Singleton instance
_renderer: TemplateRenderer | None = None


def get_template_renderer() -> TemplateRenderer:
    """Get or create the singleton TemplateRenderer instance.

    Returns:
        TemplateRenderer instance
    """
    global _renderer
    if _renderer is None:
        _renderer = TemplateRenderer()
    return _renderer


__all__ = [
    "TemplateRenderError",
    "TemplateRenderer",
    "example_placeholder",
    "get_template_renderer",
]
