"""FastAPI dependencies shared by feature routers.

Usage:
    from notification_service.core.dependencies import get_db_session
"""

from notification_service.core.dependencies.database import get_db_session

__all__ = ["get_db_session"]
