from __future__ import annotations

from typing import Annotated

import typer

from fleetdash.config import (
    MqttConfig,
    Settings,
    active_env_overrides,
    render_settings_toml,
    write_settings,
)
from fleetdash.transport.mqtt import parse_broker_url

from .common import load_settings_or_exit, resolve_config_path_or_exit

app = typer.Typer(no_args_is_help=True)

MASK = "********"


def _masked(settings: Settings) -> Settings:
    if not settings.mqtt.password:
        return settings
    mqtt = settings.mqtt.model_copy(update={"password": MASK})
    return settings.model_copy(update={"mqtt": mqtt})


@app.command("show")
def show_config(
    show_secrets: Annotated[
        bool,
        typer.Option("--show-secrets", help="Print the broker password in clear"),
    ] = False,
) -> None:
    """Show the effective configuration, including MQTT_* overrides."""
    settings = load_settings_or_exit()
    path, exists = resolve_config_path_or_exit(allow_missing=True)

    typer.echo(f"Config source: {path if exists else 'defaults'}")
    for name, field in active_env_overrides().items():
        typer.echo(f"Override: {name} -> mqtt.{field}")
    typer.echo(render_settings_toml(settings if show_secrets else _masked(settings)))


@app.command("init")
def init_config(
    broker: Annotated[
        str | None,
        typer.Option("--broker", "-b", help="Broker address, e.g. tcp://host:1883"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite existing config"),
    ] = False,
) -> None:
    """Write a config file with the dashboard defaults."""
    path, exists = resolve_config_path_or_exit(allow_missing=True)

    if exists and not force:
        typer.echo(f"Config already exists at {path}")
        return

    settings = Settings()
    if broker is not None:
        try:
            parse_broker_url(broker)
        except ValueError as exc:
            typer.echo(f"Invalid broker address: {broker}", err=True)
            raise typer.Exit(1) from exc
        settings = Settings(mqtt=MqttConfig(broker=broker))

    write_settings(settings, path)
    typer.echo(f"Wrote config to {path} (broker {settings.mqtt.broker})")
