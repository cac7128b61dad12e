"""MQTT bridge between the node fleet and the registry."""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

from fleetdash.config import MqttConfig
from fleetdash.core.registry import Registry
from fleetdash.errors import CommandError

logger = logging.getLogger(__name__)

# Firmware publishes monitor data either as "nodes/<id>/monitor" or, on
# older builds, as "<id>/monitor".
SUBSCRIPTIONS = (
    "nodes/+/status",
    "nodes/+/monitor",
    "+/monitor",
    "nodes/+/log",
)

DEFAULT_PORT = 1883
DEFAULT_TLS_PORT = 8883
TLS_SCHEMES = frozenset({"ssl", "tls", "mqtts"})


def parse_topic(topic: str) -> tuple[str, str] | None:
    """Split a topic into ``(logical_id, suffix)``."""
    parts = topic.split("/")
    if len(parts) < 2:
        return None
    if parts[0] == "nodes" and len(parts) >= 3:
        return parts[1], parts[2]
    return parts[0], parts[1]


def command_topic(node_id: str) -> str:
    return f"nodes/{node_id}/command"


def retained_topics(node_id: str) -> list[str]:
    return [f"nodes/{node_id}/status", f"nodes/{node_id}/monitor"]


def parse_broker_url(url: str) -> tuple[str, int, bool]:
    """Parse ``tcp://host:port`` style broker addresses into host, port, tls."""
    if "://" not in url:
        url = f"tcp://{url}"
    parts = urlsplit(url)
    if not parts.hostname:
        raise ValueError(f"Invalid MQTT broker address: {url}")
    tls = parts.scheme in TLS_SCHEMES
    port = parts.port or (DEFAULT_TLS_PORT if tls else DEFAULT_PORT)
    return parts.hostname, port, tls


def _build_client(config: MqttConfig) -> mqtt.Client:
    client = mqtt.Client(
        mqtt.CallbackAPIVersion.VERSION2,
        client_id=f"{config.client_id_prefix}-{int(time.time())}",
    )
    if config.username:
        client.username_pw_set(config.username, config.password or None)
    delay = max(int(config.reconnect_delay), 1)
    client.reconnect_delay_set(min_delay=delay, max_delay=max(delay, 30))
    return client


class MqttBridge:
    """Feeds bus messages into a registry and publishes node commands."""

    def __init__(
        self,
        config: MqttConfig,
        registry: Registry,
        client: Any | None = None,
    ) -> None:
        self._config = config
        self._registry = registry
        self._client = client if client is not None else _build_client(config)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

    @property
    def broker(self) -> str:
        return self._config.broker

    def start(self) -> None:
        """Connect in the background; paho keeps retrying until the broker answers."""
        host, port, tls = parse_broker_url(self._config.broker)
        if tls:
            self._client.tls_set()
        logger.info("Connecting to MQTT broker %s:%d", host, port)
        self._client.connect_async(host, port)
        self._client.loop_start()

    def stop(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()

    def is_connected(self) -> bool:
        return bool(self._client.is_connected())

    def publish(self, topic: str, payload: bytes | str, retained: bool = False) -> None:
        """Publish and wait for the broker hand-off; raises CommandError."""
        if not self.is_connected():
            raise CommandError(topic, "not connected to broker")

        info = self._client.publish(topic, payload, qos=0, retain=retained)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise CommandError(topic, mqtt.error_string(info.rc))
        try:
            info.wait_for_publish(timeout=self._config.publish_timeout)
        except (ValueError, RuntimeError) as exc:
            raise CommandError(topic, str(exc)) from exc
        if not info.is_published():
            raise CommandError(topic, "timed out waiting for broker")
        logger.debug("Published %d bytes to %s (retain=%s)", len(payload), topic, retained)

    def handle_message(self, topic: str, payload: bytes) -> bool:
        route = parse_topic(topic)
        if route is None:
            logger.debug("Ignoring message on unroutable topic %r", topic)
            return False
        logical_id, suffix = route
        return self._registry.ingest(logical_id, suffix, payload)

    def _on_connect(
        self,
        client: Any,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any = None,
    ) -> None:
        if reason_code.is_failure:
            logger.warning("MQTT connection refused: %s", reason_code)
            return
        logger.info("MQTT connected to %s", self._config.broker)
        for pattern in SUBSCRIPTIONS:
            result, _mid = client.subscribe(pattern, qos=0)
            if result != mqtt.MQTT_ERR_SUCCESS:
                logger.warning("Subscribe %s failed: %s", pattern, mqtt.error_string(result))

    def _on_disconnect(
        self,
        _client: Any,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any = None,
    ) -> None:
        logger.warning("MQTT connection lost: %s", reason_code)

    def _on_message(self, _client: Any, _userdata: Any, message: Any) -> None:
        # paho re-raises callback errors and stops its network loop
        try:
            self.handle_message(message.topic, message.payload)
        except Exception:
            logger.exception("Failed to handle message on %s", message.topic)
