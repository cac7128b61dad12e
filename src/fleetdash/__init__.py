"""fleetdash - operator dashboard for a fleet of MQTT-connected nodes."""

from __future__ import annotations

from importlib.metadata import version

from .config import Settings, get_settings
from .core import FileCatalog, Registry
from .models import FileRecord, NodeRecord, PartialUpdate, ProjectedNode, SdState
from .services import NodeService

__all__ = [
    "FileCatalog",
    "FileRecord",
    "NodeRecord",
    "NodeService",
    "PartialUpdate",
    "ProjectedNode",
    "Registry",
    "SdState",
    "Settings",
    "__version__",
    "get_settings",
]

__version__ = version("fleetdash")
