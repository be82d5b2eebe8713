"""CLI command modules."""

from notification_service.cli.commands import channels, database, sweep

__all__ = [
    "channels",
    "database",
    "sweep",
]
