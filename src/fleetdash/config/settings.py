from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .paths import default_config_path, expand_path

CONFIG_ENV_VAR = "FLEETDASH_CONFIG"

# Environment variables understood by the deployed dashboards, applied on top
# of the config file.
BROKER_ENV_VAR = "MQTT_BROKER"
USER_ENV_VAR = "MQTT_USER"
PASSWORD_ENV_VAR = "MQTT_PASS"


class MqttConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    broker: str = "tcp://172.20.100.11:1883"
    username: str = "cntrl"
    password: str = ""
    client_id_prefix: str = "web"
    publish_timeout: float = Field(default=5.0, gt=0)
    reconnect_delay: float = Field(default=2.0, gt=0)


class HttpConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    host: str = "0.0.0.0"
    port: int = Field(default=9999, ge=1, le=65535)


class StorageConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    uploads_dir: str = "static/uploads"


class RegistryConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    offline_after: float = Field(default=10.0, gt=0)
    log_lines: int = Field(default=3, ge=1)


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    mqtt: MqttConfig = Field(default_factory=MqttConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


MQTT_ENV_FIELDS = {
    BROKER_ENV_VAR: "broker",
    USER_ENV_VAR: "username",
    PASSWORD_ENV_VAR: "password",
}


def active_env_overrides() -> dict[str, str]:
    """Map each set ``MQTT_*`` variable to the ``[mqtt]`` field it replaces."""
    return {name: field for name, field in MQTT_ENV_FIELDS.items() if os.environ.get(name)}


def apply_env_overrides(settings: Settings) -> Settings:
    overrides = {field: os.environ[name] for name, field in active_env_overrides().items()}
    if not overrides:
        return settings
    mqtt = settings.mqtt.model_copy(update=overrides)
    return settings.model_copy(update={"mqtt": mqtt})


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    settings = load_settings(path) if exists else Settings()
    return apply_env_overrides(settings)


def uploads_dir_from_settings(settings: Settings) -> Path:
    return expand_path(settings.storage.uploads_dir)


def _toml_string(value: str) -> str:
    return json.dumps(value)


def render_settings_toml(settings: Settings) -> str:
    lines = [
        "# fleetdash configuration",
        "",
        "[mqtt]",
        f"broker = {_toml_string(settings.mqtt.broker)}",
        f"username = {_toml_string(settings.mqtt.username)}",
        f"password = {_toml_string(settings.mqtt.password)}",
        f"client_id_prefix = {_toml_string(settings.mqtt.client_id_prefix)}",
        f"publish_timeout = {settings.mqtt.publish_timeout}",
        f"reconnect_delay = {settings.mqtt.reconnect_delay}",
        "",
        "[http]",
        f"host = {_toml_string(settings.http.host)}",
        f"port = {settings.http.port}",
        "",
        "[storage]",
        f"uploads_dir = {_toml_string(settings.storage.uploads_dir)}",
        "",
        "[registry]",
        f"offline_after = {settings.registry.offline_after}",
        f"log_lines = {settings.registry.log_lines}",
        "",
    ]
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
