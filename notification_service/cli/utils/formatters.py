"""Output formatting utilities for CLI commands."""

import click


def success(message: str) -> None:
    """Print a success message in green."""
    click.secho(f"✓ {message}", fg="green")


def error(message: str) -> None:
    """Print an error message in red."""
    click.secho(f"✗ {message}", fg="red", err=True)


def warning(message: str) -> None:
    """Print a warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def info(message: str) -> None:
    """Print an info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def header(message: str) -> None:
    """Print a header message in cyan bold."""
    click.secho(f"\n{message}", fg="cyan", bold=True)


def counts(**values: int) -> None:
    """Print outcome counts on one line, zero counts dimmed.

    Example:
        counts(sent=12, failed=1)  # sent=12  failed=1
    """
    parts = [
        click.style(f"{name}={value}", dim=value == 0, bold=value > 0) for name, value in values.items()
    ]
    click.echo("  ".join(parts))
