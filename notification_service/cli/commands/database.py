"""Database management commands.

Example:bash
    # Create any missing tables
    notification-service db init
"""

import sys

import click

from notification_service.cli.utils import coro, error, info, success


@click.group(name="db")
def db() -> None:
    """Database management commands."""


@db.command()
@coro
async def init() -> None:
    """Create the notification tables if they do not exist."""
    from notification_service.infra.database import close_database, init_database

    info("Creating notification tables...")
    try:
        await init_database()
    except Exception as exc:  # noqa: BLE001
        error(f"Failed to initialize database: {exc}")
        sys.exit(1)
    finally:
        await close_database()
    success("Database schema is up to date")
