"""Channel inspection and test commands."""

import sys

import click

from notification_service.cli.utils import coro, error, header, info, success
from notification_service.infra.database import close_database, get_async_session


@click.group(name="channels")
def channels() -> None:
    """Delivery channel management."""


@channels.command(name="list")
@click.option("--type", "channel_type", default=None, help="Filter by channel type")
@coro
async def list_channels(channel_type: str | None) -> None:
    """List registered delivery channels."""
    from notification_service.features.notifications.channels.registry import get_channel_registry

    try:
        async with get_async_session() as session:
            items = await get_channel_registry().list_channels(session, channel_type=channel_type)
    finally:
        await close_database()

    if not items:
        info("No channels registered")
        return
    header(f"{len(items)} channel(s)")
    for channel in items:
        marker = "*" if channel.is_default else " "
        click.echo(f"{marker} {channel.name:<30} {channel.type:<10} {channel.status}")


@channels.command()
@click.argument("name")
@coro
async def test(name: str) -> None:
    """Send a test through channel NAME and record the result."""
    from notification_service.core.exceptions import NotFoundError
    from notification_service.features.notifications.channels.registry import get_channel_registry

    registry = get_channel_registry()
    try:
        async with get_async_session() as session:
            channel = await registry.get_channel_by_name(session, name)
            result = await registry.test(session, channel)
            await session.commit()
    except NotFoundError as exc:
        error(exc.detail)
        sys.exit(1)
    finally:
        await close_database()

    if result.success:
        success(f"{name}: {result.message}")
    else:
        error(f"{name}: {result.message}")
        sys.exit(1)
