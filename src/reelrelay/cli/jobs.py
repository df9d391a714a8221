"""Generation job inspection commands."""

from __future__ import annotations

from typing import Any

import anyio
import click
from rich.table import Table

from reelrelay.cli.ui import console, format_status, format_timestamp
from reelrelay.storage.database import get_async_session_factory
from reelrelay.storage.repositories import ContentRepository


@click.group()
def jobs() -> None:
    """Inspect generation jobs."""


@jobs.command("show")
@click.argument("video_id")
@click.option("--json", "as_json", is_flag=True, help="Print the raw record as JSON")
def jobs_show(video_id: str, as_json: bool) -> None:
    """Show the content record for a provider VIDEO_ID."""

    async def _run() -> Any:
        SessionLocal = get_async_session_factory()
        async with SessionLocal() as session:
            return await ContentRepository(session).get_by_video_id_async(video_id)

    content = anyio.run(_run)
    if content is None:
        raise click.ClickException(f"No job found for video id {video_id}")

    if as_json:
        console.print_json(data=content.to_dict())
        return

    table = Table(title=f"Job {video_id}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Content ID", str(content.id))
    table.add_row("Influencer", str(content.influencer_id))
    table.add_row("Status", format_status(content.status))
    table.add_row("Title", content.title or "-")
    table.add_row("Video URL", content.video_url or "-")
    table.add_row("Error", content.error or "-")
    table.add_row("Created", format_timestamp(content.created_at))
    console.print(table)


def register(cli: click.Group) -> None:
    cli.add_command(jobs)
