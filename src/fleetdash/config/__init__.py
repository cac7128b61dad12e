from __future__ import annotations

from .paths import APP_NAME, CONFIG_FILENAME, default_config_path, expand_path
from .settings import (
    CONFIG_ENV_VAR,
    MQTT_ENV_FIELDS,
    HttpConfig,
    MqttConfig,
    RegistryConfig,
    Settings,
    StorageConfig,
    active_env_overrides,
    apply_env_overrides,
    get_settings,
    load_settings,
    render_settings_toml,
    resolve_config_path,
    uploads_dir_from_settings,
    write_settings,
)

__all__ = [
    "APP_NAME",
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAME",
    "MQTT_ENV_FIELDS",
    "HttpConfig",
    "MqttConfig",
    "RegistryConfig",
    "Settings",
    "StorageConfig",
    "active_env_overrides",
    "apply_env_overrides",
    "default_config_path",
    "expand_path",
    "get_settings",
    "load_settings",
    "render_settings_toml",
    "resolve_config_path",
    "uploads_dir_from_settings",
    "write_settings",
]
