"""Application lifespan management.

Startup Order:
1. Logging
2. Database schema
3. Redis (shared channel rate limits, optional)

Shutdown Order: Reverse of startup (what starts first, shuts down last)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from notification_service.core.settings import get_db_settings
from notification_service.infra.logging.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    Configures logging, ensures the database schema exists, connects Redis
    when configured, and closes both on shutdown.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    _ = app

    setup_logging()

    from notification_service.infra.cache import start_redis, stop_redis
    from notification_service.infra.database import close_database, init_database

    db_settings = get_db_settings()
    await init_database()
    redis = await start_redis()
    logger.info(
        "Application started",
        extra={
            "database": "sqlite" if db_settings.is_sqlite else "postgresql",
            "redis": redis is not None,
        },
    )

    try:
        yield
    finally:
        await stop_redis()
        await close_database()
        logger.info("Application stopped")
