"""Exceptions raised by the fleetdash service layer."""

from __future__ import annotations


class FleetdashError(Exception):
    """Base class for fleetdash errors."""


class NodeNotFoundError(FleetdashError):
    """No node is registered under the given logical or physical id."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"node not found: {node_id}")
        self.node_id = node_id


class CommandError(FleetdashError):
    """A command could not be handed to the MQTT broker."""

    def __init__(self, topic: str, reason: str) -> None:
        super().__init__(f"failed to publish to {topic}: {reason}")
        self.topic = topic
        self.reason = reason


class FileCatalogError(FleetdashError):
    """Base class for firmware file catalog errors."""


class FileNotFoundInCatalogError(FileCatalogError):
    def __init__(self, name: str) -> None:
        super().__init__(f"file not found: {name}")
        self.name = name


class InvalidFileNameError(FileCatalogError):
    def __init__(self, name: str) -> None:
        super().__init__(f"invalid file name: {name!r}")
        self.name = name
