"""HTTP tests for the notification, preference, channel and template routers."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from tests.conftest import RecordingSender

INBOX = {"name": "inbox", "display_name": "Inbox", "type": "in-app"}


def _notification(**overrides) -> dict:
    payload = {
        "recipient": "user-1",
        "type": "comment.created",
        "category": "social",
        "channel": "in-app",
        "title": "New comment",
        "message": "Someone replied",
    }
    payload.update(overrides)
    return payload


class TestNotificationEndpoints:
    @pytest.mark.asyncio
    async def test_send_notification(self, client: AsyncClient, in_app_sender: RecordingSender) -> None:
        created = await client.post("/channels", json=INBOX)
        response = await client.post("/notifications", json=_notification())

        assert created.status_code == 201
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "sent"
        assert body["channel_id"] == created.json()["id"]
        assert len(in_app_sender.calls) == 1

    @pytest.mark.asyncio
    async def test_skipped_notification(self, client: AsyncClient) -> None:
        await client.post("/channels", json={"name": "texts", "display_name": "Texts", "type": "sms"})

        response = await client.post("/notifications", json=_notification(channel="sms"))

        assert response.status_code == 200
        assert response.json() == {"skipped": True, "reason": "channel"}

    @pytest.mark.asyncio
    async def test_invalid_request_is_problem_details(self, client: AsyncClient) -> None:
        response = await client.post("/notifications", json={"type": "x", "category": "y"})

        assert response.status_code == 422
        assert response.headers["content-type"].startswith("application/json")
        body = response.json()
        assert body["type"] == "invalid-notification-request"
        assert body["errors"]

    @pytest.mark.asyncio
    async def test_no_channel_is_service_unavailable(self, client: AsyncClient) -> None:
        response = await client.post("/notifications", json=_notification())

        assert response.status_code == 503
        assert response.json()["channel"] == "in-app"

    @pytest.mark.asyncio
    async def test_batch_endpoint(self, client: AsyncClient) -> None:
        await client.post("/channels", json=INBOX)

        response = await client.post(
            "/notifications/batch",
            json={"notifications": [_notification(), {"type": "broken"}]},
        )

        assert response.status_code == 200
        body = response.json()
        assert (body["total"], body["sent"], body["failed"]) == (2, 1, 1)

    @pytest.mark.asyncio
    async def test_listing_and_read_tracking(self, client: AsyncClient) -> None:
        await client.post("/channels", json=INBOX)
        first = (await client.post("/notifications", json=_notification())).json()
        await client.post("/notifications", json=_notification())

        unread = await client.get("/notifications/recipients/user-1/unread-count")
        read = await client.post(f"/notifications/{first['id']}/read", params={"recipient_id": "user-1"})
        listing = await client.get("/notifications/recipients/user-1")

        assert unread.json()["unread_count"] == 2
        assert read.status_code == 200
        assert read.json()["read_at"] is not None
        assert listing.json()["total"] == 2
        assert listing.json()["unread_count"] == 1

    @pytest.mark.asyncio
    async def test_mark_read_unknown_is_not_found(self, client: AsyncClient) -> None:
        response = await client.post(
            "/notifications/0190a0a0-0000-7000-8000-000000000000/read",
            params={"recipient_id": "user-1"},
        )

        assert response.status_code == 404


class TestPreferenceEndpoints:
    @pytest.mark.asyncio
    async def test_defaults_then_merge(self, client: AsyncClient) -> None:
        defaults = await client.get("/preferences/user-1")
        updated = await client.patch(
            "/preferences/user-1",
            json={"global": {"quietHours": {"enabled": True}}, "channels": {"sms": {"enabled": True}}},
        )
        fetched = await client.get("/preferences/user-1")

        assert defaults.status_code == 200
        assert defaults.json()["preferences"]["channels"]["sms"]["enabled"] is False
        assert updated.status_code == 200
        prefs = fetched.json()["preferences"]
        assert prefs["global"]["quietHours"]["enabled"] is True
        assert prefs["global"]["quietHours"]["start"] == "22:00"
        assert prefs["channels"]["sms"]["enabled"] is True

    @pytest.mark.asyncio
    async def test_invalid_update_is_rejected(self, client: AsyncClient) -> None:
        response = await client.patch(
            "/preferences/user-1",
            json={"global": {"quietHours": {"timezone": "Mars/Olympus"}}},
        )

        assert response.status_code == 422
        assert response.json()["type"] == "invalid-preferences"

    @pytest.mark.asyncio
    async def test_check_delivery(self, client: AsyncClient) -> None:
        response = await client.post(
            "/preferences/user-1/check",
            json={"category": "social", "type": "comment.created", "channel": "sms"},
        )

        assert response.json() == {"would_deliver": False, "reason": "channel"}


class TestChannelEndpoints:
    @pytest.mark.asyncio
    async def test_duplicate_channel_conflicts(self, client: AsyncClient) -> None:
        await client.post("/channels", json=INBOX)

        response = await client.post("/channels", json=INBOX)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_test_and_stats(self, client: AsyncClient) -> None:
        channel = (await client.post("/channels", json=INBOX)).json()

        tested = await client.post(f"/channels/{channel['id']}/test")
        stats = await client.get(f"/channels/{channel['id']}/stats")

        assert tested.json()["success"] is True
        assert stats.json()["sent"] == 0
        assert stats.json()["success_rate"] == 100.0


class TestTemplateEndpoints:
    TEMPLATE = {
        "name": "welcome",
        "type": "account.welcome",
        "category": "account",
        "title_template": "Welcome {{ name }}",
        "message_template": "Hello {{ name }}",
        "supported_channels": [{"type": "in-app"}],
        "variables": [{"name": "name", "required": True, "example_value": "Ada"}],
    }

    @pytest.mark.asyncio
    async def test_create_and_render(self, client: AsyncClient) -> None:
        created = await client.post("/templates", json=self.TEMPLATE)
        rendered = await client.post("/templates/welcome/render", json={"variables": {"name": "Lin"}})
        missing = await client.post("/templates/welcome/render", json={"variables": {}})

        assert created.status_code == 201
        assert rendered.json()["title"] == "Welcome Lin"
        assert missing.status_code == 422
        assert missing.json()["missing_variables"] == ["name"]

    @pytest.mark.asyncio
    async def test_preview(self, client: AsyncClient) -> None:
        created = (await client.post("/templates", json=self.TEMPLATE)).json()

        response = await client.post(f"/templates/{created['id']}/preview", json={})

        assert response.json()["preview"]["title"] == "Welcome Ada"

    @pytest.mark.asyncio
    async def test_unknown_template_is_not_found(self, client: AsyncClient) -> None:
        response = await client.post("/templates/nope/render", json={})

        assert response.status_code == 404


@pytest.mark.asyncio
async def test_metrics_endpoint(client: AsyncClient) -> None:
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "notification" in response.text
