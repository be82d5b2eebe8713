"""Database session dependency for FastAPI route handlers.

Two ways to get a session:

1. `get_db_session()` (this module) - FastAPI dependency
   - Use in route handlers with `Depends(get_db_session)`
   - Session lifecycle tied to the HTTP request

2. `get_async_session()` (infra.database) - general context manager
   - Use in the CLI, sweeps and batch processing
   - Framework-agnostic async context manager
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from notification_service.infra.database import get_async_session


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency for database session.

    Yields:
        Database session that is automatically closed after request.

    Example:
        @router.get("/channels")
        async def list_channels(session: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with get_async_session() as session:
        yield session
