from __future__ import annotations

from typing import Annotated

import typer

from fleetdash.utils.logging import setup_logging

from . import config as config_cmd
from .serve import register as register_serve

app = typer.Typer(help="fleetdash - operator dashboard for MQTT nodes", no_args_is_help=True)

app.add_typer(config_cmd.app, name="config")

register_serve(app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
) -> None:
    """fleetdash CLI."""
    setup_logging()

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"fleetdash version {get_version('fleetdash')}")
        raise typer.Exit()
