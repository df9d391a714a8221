"""Shared CLI UI helpers (Rich formatting)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from rich.console import Console
from rich.table import Table

from reelrelay.storage.models import ContentStatus

console = Console()


def format_status(status: str) -> str:
    """Return colorized status string for terminal output."""
    colors = {
        ContentStatus.GENERATING.value: "yellow",
        ContentStatus.COMPLETED.value: "green",
        ContentStatus.FAILED.value: "red",
    }
    color = colors.get(status, "white")
    return f"[{color}]{status}[/{color}]"


def format_timestamp(value: Any) -> str:
    return value.isoformat(timespec="seconds") if isinstance(value, datetime) else "-"


def render_registrations_table(registrations: Iterable[Any]) -> None:
    table = Table(title="Webhook Registrations", show_lines=False)
    table.add_column("ID", style="white")
    table.add_column("Name", style="cyan")
    table.add_column("Kind", style="magenta")
    table.add_column("URL", style="white")
    table.add_column("Influencer", style="white")
    table.add_column("Active", style="bold")
    table.add_column("Created", style="white")

    for registration in registrations:
        influencer = registration.__dict__.get("influencer")
        table.add_row(
            str(registration.id),
            registration.name,
            registration.kind,
            registration.url,
            influencer.name if influencer is not None else str(registration.influencer_id),
            "[green]yes[/green]" if registration.active else "[grey62]no[/grey62]",
            format_timestamp(registration.created_at),
        )

    console.print(table)
