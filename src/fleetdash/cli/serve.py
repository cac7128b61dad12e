from __future__ import annotations

import logging
from dataclasses import dataclass

import typer
from flask import Flask
from rich.console import Console

from fleetdash.config import Settings, uploads_dir_from_settings
from fleetdash.core import FileCatalog, Registry
from fleetdash.services import NodeService
from fleetdash.transport.mqtt import MqttBridge
from fleetdash.web.app import create_app

from .common import load_settings_or_exit

logger = logging.getLogger(__name__)


@dataclass
class Dashboard:
    registry: Registry
    catalog: FileCatalog
    bridge: MqttBridge
    app: Flask


def build_dashboard(settings: Settings) -> Dashboard:
    registry = Registry.from_config(settings.registry)
    catalog = FileCatalog(uploads_dir_from_settings(settings))
    catalog.ensure_dir()
    catalog.load_existing()

    bridge = MqttBridge(settings.mqtt, registry)
    service = NodeService(registry, bridge)
    app = create_app(service, catalog, broker=settings.mqtt.broker)
    return Dashboard(registry=registry, catalog=catalog, bridge=bridge, app=app)


def register(app: typer.Typer) -> None:
    @app.command()
    def serve(
        host: str | None = typer.Option(None, "--host", help="Bind address"),
        port: int | None = typer.Option(None, "--port", "-p", help="HTTP port"),
    ) -> None:
        """Run the dashboard: MQTT ingestion plus the HTTP API."""
        console = Console()
        settings = load_settings_or_exit()

        try:
            dashboard = build_dashboard(settings)
        except OSError as exc:
            console.print(f"[red]Error:[/red] cannot prepare upload directory: {exc}")
            raise typer.Exit(1) from None

        bind_host = host or settings.http.host
        bind_port = port or settings.http.port
        console.print(f"Broker: [cyan]{settings.mqtt.broker}[/cyan]")
        console.print(f"Firmware files: {dashboard.catalog.path}")
        console.print(f"Listening on [green]http://{bind_host}:{bind_port}[/green]")

        dashboard.bridge.start()
        try:
            dashboard.app.run(host=bind_host, port=bind_port, threaded=True)
        finally:
            logger.info("Shutting down MQTT bridge")
            dashboard.bridge.stop()
