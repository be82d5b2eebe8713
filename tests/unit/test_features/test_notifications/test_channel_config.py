"""Tests for per-type channel provider configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from notification_service.features.notifications.channels.config import (
    CustomChannelConfig,
    EmailChannelConfig,
    InAppChannelConfig,
    WebhookChannelConfig,
    parse_channel_config,
)


def test_config_variant_follows_channel_type() -> None:
    assert isinstance(parse_channel_config("email", {"provider": "ses"}), EmailChannelConfig)
    assert isinstance(parse_channel_config("in-app", None), InAppChannelConfig)
    assert isinstance(parse_channel_config("custom", {"handler": "pager"}), CustomChannelConfig)


def test_stored_kind_is_overridden_by_channel_type() -> None:
    config = parse_channel_config("webhook", {"kind": "email", "default_headers": {"X-Env": "test"}})

    assert isinstance(config, WebhookChannelConfig)
    assert config.default_headers == {"X-Env": "test"}
    assert config.retry.max_attempts == 3


def test_invalid_provider_is_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_channel_config("sms", {"provider": "carrier-pigeon"})


def test_unknown_channel_type_is_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_channel_config("fax", {})
