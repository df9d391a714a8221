"""Run the HTTP server."""

from __future__ import annotations

import click
import uvicorn

from reelrelay.config import settings


@click.command("serve")
@click.option("--host", default=None, help="Bind address (default: API_HOST)")
@click.option("--port", default=None, type=int, help="Bind port (default: API_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes (development only)")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Serve the API, inbound triggers and provider callbacks."""
    uvicorn.run(
        "reelrelay.api.server:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_config=None,
    )


def register(cli: click.Group) -> None:
    cli.add_command(serve)
