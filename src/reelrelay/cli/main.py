"""ReelRelay command-line interface.

Commands live in submodules under `reelrelay.cli.*`, each exposing a
``register(cli)`` hook.
"""

from __future__ import annotations

import click

from reelrelay.app_version import get_app_version
from reelrelay.observability import init_observability


@click.group()
@click.version_option(version=get_app_version(), prog_name="reelrelay")
def cli() -> None:
    """ReelRelay - webhook-triggered video generation."""
    init_observability()


def _register_commands() -> None:
    from reelrelay.cli import config, jobs, registrations, serve

    config.register(cli)
    jobs.register(cli)
    registrations.register(cli)
    serve.register(cli)


_register_commands()


if __name__ == "__main__":
    cli()
