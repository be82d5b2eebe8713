"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from notification_service.app.exception_handlers import configure_exception_handlers
from notification_service.app.lifespan import lifespan
from notification_service.app.router import setup_routers


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="Notification Service",
        summary="Preference-driven notification delivery",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Configure exception handlers (must be before routers are used)
    configure_exception_handlers(app)

    setup_routers(app)

    return app


# Application instance for uvicorn
app = create_app()
