"""Periodic sweep commands for scheduled and expired notifications.

These are meant to be run by an external scheduler (cron, a Kubernetes
CronJob, systemd timers). Each run claims its own work, so overlapping
runs never deliver the same notification twice.

Example:bash
    notification-service sweep scheduled --limit 500
    notification-service sweep expired
"""

import click

from notification_service.cli.utils import coro, counts, header, info, success, warning
from notification_service.infra.cache import start_redis, stop_redis
from notification_service.infra.database import close_database


@click.group(name="sweep")
def sweep() -> None:
    """Process scheduled and expired notifications."""


@sweep.command()
@click.option("--limit", type=int, default=None, help="Maximum notifications to claim")
@coro
async def scheduled(limit: int | None) -> None:
    """Send scheduled notifications that are due."""
    from notification_service.features.notifications.service import get_delivery_orchestrator

    header("Processing scheduled notifications")
    await start_redis()
    try:
        result = await get_delivery_orchestrator().process_scheduled_notifications(limit)
    finally:
        await stop_redis()
        await close_database()

    if result.total == 0:
        info("No scheduled notifications are due")
        return
    success(f"Sent {result.sent} of {result.total}")
    counts(sent=result.sent, failed=result.failed)
    if result.failed:
        warning(f"{result.failed} notification(s) failed")


@sweep.command()
@click.option("--limit", type=int, default=None, help="Maximum notifications to archive")
@coro
async def expired(limit: int | None) -> None:
    """Archive notifications past their expiry time."""
    from notification_service.features.notifications.service import get_delivery_orchestrator

    header("Archiving expired notifications")
    try:
        result = await get_delivery_orchestrator().process_expired_notifications(limit)
    finally:
        await close_database()

    if result.total == 0:
        info("No expired notifications found")
        return
    success(f"Archived {result.archived} of {result.total}")
    counts(archived=result.archived, failed=result.failed)
    if result.failed:
        warning(f"{result.failed} notification(s) could not be archived")
