"""Operator-facing node operations used by the HTTP layer."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from fleetdash.core.identity import extract_physical_id
from fleetdash.core.registry import Registry
from fleetdash.errors import CommandError, NodeNotFoundError
from fleetdash.transport.mqtt import command_topic, retained_topics

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    def publish(self, topic: str, payload: bytes | str, retained: bool = False) -> None: ...


@dataclass
class DeleteResult:
    """Outcome of deleting a node by logical or hardware id."""

    physical_id: str
    nodes: list[str]
    uncleared: list[str] = field(default_factory=list)  # retained topics left behind

    @property
    def count(self) -> int:
        return len(self.nodes)


def _encode(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8")


class NodeService:
    def __init__(self, registry: Registry, publisher: Publisher) -> None:
        self._registry = registry
        self._publisher = publisher

    @property
    def registry(self) -> Registry:
        return self._registry

    def get_snapshot(self) -> dict[str, dict[str, Any]]:
        return {
            node_id: node.to_json()
            for node_id, node in self._registry.snapshot().items()
        }

    def get_logs(self, node_id: str) -> list[str]:
        logs = self._registry.get_logs(node_id)
        if logs is None:
            raise NodeNotFoundError(node_id)
        return logs

    def delete_node(self, id_or_mac: str) -> DeleteResult:
        removed = self._registry.delete_by_physical_id(id_or_mac)
        if not removed:
            raise NodeNotFoundError(id_or_mac)

        result = DeleteResult(physical_id=extract_physical_id(id_or_mac), nodes=removed)
        for node_id in removed:
            for topic in retained_topics(node_id):
                try:
                    self._publisher.publish(topic, b"", retained=True)
                except CommandError as exc:
                    logger.warning("Could not clear retained message: %s", exc)
                    result.uncleared.append(topic)
        logger.info("Deleted %d node(s) for %s", result.count, result.physical_id)
        return result

    def set_config(
        self,
        node_id: str,
        ck: str = "",
        area: str = "",
        no: str = "",
        min_value: float = 0.0,
        max_value: float = 0.0,
    ) -> str:
        """Record operator tags and push the threshold command to the node.

        Nodes that have not reported yet still receive the command.
        """
        if not self._registry.set_config(node_id, ck, area, no):
            logger.debug("Config for unseen node '%s' not stored", node_id)

        topic = command_topic(node_id)
        payload = {
            "cmd": "set_threshold",
            "min": min_value,
            "max": max_value,
            "ck": ck,
            "area": area,
            "no": no,
        }
        self._publisher.publish(topic, _encode(payload), retained=False)
        return topic

    def trigger_ota(self, node_id: str, url: str) -> str:
        topic = command_topic(node_id)
        self._publisher.publish(topic, _encode({"cmd": "ota", "url": url}), retained=False)
        logger.info("OTA triggered for '%s' from %s", node_id, url)
        return topic
