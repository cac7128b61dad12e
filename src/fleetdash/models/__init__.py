"""Data models for fleetdash."""

from fleetdash.models.files import FileRecord
from fleetdash.models.node import (
    LOG_LINES,
    OFFLINE_STATUS,
    TIMESTAMP_FORMAT,
    NodeRecord,
    PartialUpdate,
    ProjectedNode,
    SdState,
)

__all__ = [
    "LOG_LINES",
    "OFFLINE_STATUS",
    "TIMESTAMP_FORMAT",
    "FileRecord",
    "NodeRecord",
    "PartialUpdate",
    "ProjectedNode",
    "SdState",
]
