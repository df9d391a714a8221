"""Registration inspection commands."""

from __future__ import annotations

from typing import Any

import anyio
import click
from rich.table import Table

from reelrelay.cli.ui import console, render_registrations_table
from reelrelay.config import settings
from reelrelay.registry import EndpointReconciler, EndpointRegistry, reserved_prefixes
from reelrelay.storage.database import get_async_session_factory
from reelrelay.storage.repositories import RegistrationRepository


@click.group()
def registrations() -> None:
    """Inspect webhook registrations."""


@registrations.command("list")
@click.option("--user-id", default=None, help="Only registrations owned by this user")
@click.option("--limit", default=50, show_default=True, type=int)
def registrations_list(user_id: str | None, limit: int) -> None:
    """List registrations, newest first."""

    async def _run() -> list[Any]:
        SessionLocal = get_async_session_factory()
        async with SessionLocal() as session:
            repo = RegistrationRepository(session)
            if user_id:
                return (await repo.list_by_user_async(user_id))[:limit]
            return await repo.list_all_async(limit=limit)

    rows = anyio.run(_run)
    if not rows:
        console.print("[yellow]No registrations found[/yellow]")
        return
    render_registrations_table(rows)


@registrations.command("paths")
def registrations_paths() -> None:
    """Show the paths a reconciliation pass would mount right now."""
    registry = EndpointRegistry(reserved_prefixes(settings.provider_callback_path))
    reconciler = EndpointReconciler(registry)

    active = anyio.run(reconciler.fetch_active_triggers)
    if active is None:
        raise click.ClickException("Could not read registrations from the database")

    planned = reconciler.plan(active)
    table = Table(title="Inbound Trigger Paths", show_lines=False)
    table.add_column("Path", style="cyan")
    table.add_column("Registration", style="white")
    table.add_column("User", style="white")
    table.add_column("Mountable", style="bold")

    for path in sorted(planned):
        endpoint = planned[path]
        mountable = "[red]reserved[/red]" if registry.is_reserved(path) else "[green]yes[/green]"
        table.add_row(path, str(endpoint.registration_id), endpoint.user_id, mountable)

    console.print(table)
    console.print(f"{len(active)} active inbound trigger(s), {len(planned)} distinct path(s)")


def register(cli: click.Group) -> None:
    cli.add_command(registrations)
