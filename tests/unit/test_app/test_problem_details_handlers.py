"""Tests for application exception handlers."""

from __future__ import annotations

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel
from starlette.requests import Request

from notification_service.app.exception_handlers import (
    app_exception_handler,
    configure_exception_handlers,
    generic_exception_handler,
)
from notification_service.core.exceptions import AppException, NotFoundError, RateLimitException


def _build_request(path: str = "/test") -> Request:
    """Create a minimal ASGI request for handler tests."""
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [],
        "query_string": b"",
        "client": ("test", 1234),
        "server": ("test", 80),
        "scheme": "http",
    }
    return Request(scope, lambda: None)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("exception_cls", "headers_expected"),
    [
        (AppException, False),
        (RateLimitException, True),
    ],
)
async def test_app_exception_handler_handles_problem_details(
    exception_cls: type[AppException], headers_expected: bool
) -> None:
    """App exceptions should produce RFC 7807 responses."""
    if exception_cls is RateLimitException:
        exc = RateLimitException(detail="oops", extra={"retry_after": 42})
    else:
        exc = AppException(status_code=400, detail="oops")

    response = await app_exception_handler(_build_request(), exc)

    assert response.status_code == exc.status_code
    body = json.loads(response.body)
    assert body["detail"] == "oops"
    assert body["type"] == exc.type
    assert body["instance"].endswith("/test")
    if headers_expected:
        assert response.headers["Retry-After"] == "42"
        assert body["retry_after"] == 42
    else:
        assert "Retry-After" not in response.headers


@pytest.mark.asyncio
async def test_generic_exception_handler_hides_details() -> None:
    response = await generic_exception_handler(_build_request(), RuntimeError("secret"))

    assert response.status_code == 500
    body = json.loads(response.body)
    assert body["type"] == "internal-error"
    assert "secret" not in body["detail"]


class _Item(BaseModel):
    count: int


def test_configured_handlers_render_problem_details() -> None:
    app = FastAPI()
    configure_exception_handlers(app)

    @app.get("/missing")
    async def missing() -> None:
        raise NotFoundError(detail="Template 'x' not found", type="template-not-found")

    @app.post("/items")
    async def create_item(item: _Item) -> _Item:
        return item

    client = TestClient(app)
    not_found = client.get("/missing")
    invalid = client.post("/items", json={"count": "many"})

    assert not_found.status_code == 404
    assert not_found.json()["type"] == "template-not-found"
    assert invalid.status_code == 422
    assert invalid.json()["type"] == "validation-error"
    assert invalid.json()["errors"][0]["field"] == "body.count"
