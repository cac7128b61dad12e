from __future__ import annotations

from .files import FileCatalog
from .identity import extract_physical_id, has_physical_id, same_device
from .registry import Registry
from .snapshot import build_snapshot, deduplicate, is_stale
from .telemetry import normalize, parse_payload

__all__ = [
    "FileCatalog",
    "Registry",
    "build_snapshot",
    "deduplicate",
    "extract_physical_id",
    "has_physical_id",
    "is_stale",
    "normalize",
    "parse_payload",
    "same_device",
]
