"""Configuration CLI commands."""

from __future__ import annotations

import click
from rich.table import Table

from reelrelay.cli.ui import console
from reelrelay.config import settings


def _redact(url: str) -> str:
    return url.split("@")[-1] if "@" in url else url


@click.group()
def config() -> None:
    """Inspect configuration."""


@config.command("show")
def config_show() -> None:
    """Show key configuration settings."""
    table = Table(title="ReelRelay Configuration", show_lines=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Environment", settings.environment)
    table.add_row("Database URL", _redact(settings.database_url))
    table.add_row("API Host", settings.api_host)
    table.add_row("API Port", str(settings.api_port))
    table.add_row("Video Provider", settings.video_provider)
    table.add_row("HeyGen API URL", settings.heygen_api_url)
    table.add_row("Callback Path", settings.provider_callback_path)
    table.add_row("Registry Refresh", f"{settings.registry_refresh_seconds:g}s")
    table.add_row("Refresh Enabled", str(settings.registry_refresh_enabled))
    table.add_row("Unmount Inactive", str(settings.registry_unmount_inactive))
    table.add_row("Stripe Webhook Secret", "set" if settings.stripe_webhook_secret else "unset")

    console.print(table)


def register(cli: click.Group) -> None:
    cli.add_command(config)
