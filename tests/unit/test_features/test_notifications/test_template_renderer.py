"""Tests for the sandboxed Jinja2 template renderer."""

from __future__ import annotations

from typing import Any

import pytest

from notification_service.core.exceptions import UnsupportedChannelError, ValidationError
from notification_service.features.notifications.models import NotificationTemplate
from notification_service.features.notifications.templates.renderer import (
    TemplateRenderer,
    TemplateRenderError,
    example_placeholder,
)


def _template(**overrides: Any) -> NotificationTemplate:
    fields: dict[str, Any] = {
        "name": "order-shipped",
        "version": 2,
        "type": "order.shipped",
        "category": "orders",
        "default_priority": "high",
        "title_template": "Order {{ order_id }} shipped",
        "message_template": "Hi {{ name }}, your order is on its way.",
        "supported_channels": [
            {"type": "in-app", "enabled": True, "content": {}},
            {
                "type": "email",
                "enabled": True,
                "content": {"subject": "Shipped: {{ order_id }}", "html_body": "<p>{{ name }}</p>"},
            },
            {"type": "sms", "enabled": True, "content": {"text": "Order {{ order_id }} shipped"}},
            {"type": "push", "enabled": False, "content": {}},
            {
                "type": "webhook",
                "enabled": True,
                "content": {"payload": {"order": "{{ order_id }}", "count": 1, "tags": ["{{ name }}"]}},
            },
        ],
        "default_actions": [{"label": "Track", "url_template": "https://shop.example/{{ order_id }}"}],
        "variables": [
            {"name": "order_id", "required": True, "example_value": "A-1"},
            {"name": "name", "required": True, "default_value": "there"},
        ],
    }
    fields.update(overrides)
    return NotificationTemplate(**fields)


@pytest.fixture
def renderer() -> TemplateRenderer:
    return TemplateRenderer()


def test_render_common_fields(renderer: TemplateRenderer) -> None:
    rendered = renderer.render(_template(), {"order_id": "42", "name": "Ada"}, "in-app")

    assert rendered["title"] == "Order 42 shipped"
    assert rendered["message"] == "Hi Ada, your order is on its way."
    assert rendered["actions"] == [{"label": "Track", "url": "https://shop.example/42", "style": "primary"}]
    assert rendered["type"] == "order.shipped"
    assert rendered["category"] == "orders"
    assert rendered["priority"] == "high"


def test_render_email_escapes_html_body(renderer: TemplateRenderer) -> None:
    rendered = renderer.render(_template(), {"order_id": "42", "name": "<b>Ada</b>"}, "email")

    assert rendered["subject"] == "Shipped: 42"
    assert rendered["html_body"] == "<p>&lt;b&gt;Ada&lt;/b&gt;</p>"
    assert rendered["text_body"] == "Hi <b>Ada</b>, your order is on its way."


def test_render_sms_and_webhook(renderer: TemplateRenderer) -> None:
    variables = {"order_id": "42", "name": "Ada"}

    assert renderer.render(_template(), variables, "sms")["text"] == "Order 42 shipped"
    assert renderer.render(_template(), variables, "webhook")["payload"] == {
        "order": "42",
        "count": 1,
        "tags": ["Ada"],
    }


def test_default_value_fills_missing_variable(renderer: TemplateRenderer) -> None:
    rendered = renderer.render(_template(), {"order_id": "42"}, "in-app")

    assert rendered["message"] == "Hi there, your order is on its way."


def test_missing_required_variables_are_all_reported(renderer: TemplateRenderer) -> None:
    template = _template(
        variables=[
            {"name": "order_id", "required": True},
            {"name": "name", "required": True},
        ]
    )

    with pytest.raises(ValidationError) as exc_info:
        renderer.render(template, {}, "in-app")

    assert exc_info.value.extra["missing_variables"] == ["order_id", "name"]
    assert "order_id" in exc_info.value.detail


def test_disabled_or_unlisted_channel_is_unsupported(renderer: TemplateRenderer) -> None:
    with pytest.raises(UnsupportedChannelError):
        renderer.render(_template(), {"order_id": "1"}, "push")
    with pytest.raises(UnsupportedChannelError) as exc_info:
        renderer.render(_template(), {"order_id": "1"}, "custom")

    assert "push" not in exc_info.value.extra["supported"]


def test_with_examples_uses_example_or_placeholder(renderer: TemplateRenderer) -> None:
    template = _template(
        variables=[
            {"name": "order_id", "required": True, "example_value": "A-1"},
            {"name": "name", "required": True},
        ]
    )

    effective = renderer.with_examples(template, {})

    assert effective == {"order_id": "A-1", "name": example_placeholder("name")}
    assert effective["name"] == "[Example name]"


def test_sandbox_blocks_attribute_escape(renderer: TemplateRenderer) -> None:
    template = _template(title_template="{{ name.__class__.__mro__[1].__subclasses__() }}")

    with pytest.raises(TemplateRenderError):
        renderer.render(template, {"order_id": "1", "name": "x"}, "in-app")


def test_syntax_error_becomes_render_error(renderer: TemplateRenderer) -> None:
    with pytest.raises(TemplateRenderError) as exc_info:
        renderer.render(_template(message_template="{% if %}"), {"order_id": "1"}, "in-app")

    assert exc_info.value.template_name == "order-shipped"
