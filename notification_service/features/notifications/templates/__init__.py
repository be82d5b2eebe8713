"""Template rendering for notifications.

Jinja2 sandboxed rendering with per-channel output (email subject and
bodies, SMS text, push title and body, webhook payloads) plus versioned
template management.
"""

from __future__ import annotations

from notification_service.features.notifications.templates.renderer import (
    TemplateRenderer,
    TemplateRenderError,
)
from notification_service.features.notifications.templates.service import (
    TemplateService,
    get_template_service,
)

__all__ = [
    "TemplateRenderError",
    "TemplateRenderer",
    "TemplateService",
    "get_template_service",
]
