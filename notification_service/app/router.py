"""Router registry and setup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from notification_service.features.notifications.router import (
    channels_router,
    preferences_router,
    templates_router,
)
from notification_service.features.notifications.router import router as notifications_router

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)

metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics for scraping.

    Includes the delivery engine counters (processed, skipped, delivered,
    rate limited), delivery and sweep duration histograms, and the default
    process metrics.
    """
    data = generate_latest(REGISTRY)
    return Response(
        content=data,
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )


def setup_routers(app: FastAPI) -> None:
    """Register all feature routers with the application.

    Args:
        app: FastAPI application instance.
    """
    app.include_router(metrics_router)
    app.include_router(notifications_router)
    app.include_router(preferences_router)
    app.include_router(channels_router)
    app.include_router(templates_router)

    logger.info("Routers configured", extra={"routes": len(app.routes)})
