"""Main CLI entry point for notification-service management commands."""

import click

from notification_service.cli.commands import channels, database, sweep
from notification_service.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="notification-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Notification Service CLI - Management commands for the delivery engine.

    \b
    Command Groups:
      db        Database schema management
      sweep     Scheduled and expired notification sweeps
      channels  Delivery channel listing and testing

    \b
    Quick Start:
      notification-service db init              # Create tables
      notification-service sweep scheduled      # Send due notifications
      notification-service channels test ops    # Test a channel
    """
    ctx.ensure_object(dict)


cli.add_command(database.db)
cli.add_command(sweep.sweep)
cli.add_command(channels.channels)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
