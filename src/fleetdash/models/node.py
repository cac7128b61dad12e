"""Node models."""

from __future__ import annotations

import dataclasses
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel

LOG_LINES = 3
OFFLINE_STATUS = "offline"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class SdState(Enum):
    """SD card health as last reported by the node."""

    UNKNOWN = "unknown"
    TRUE = "true"
    FALSE = "false"

    @classmethod
    def from_bool(cls, value: bool) -> SdState:
        return cls.TRUE if value else cls.FALSE

    def as_bool(self) -> bool | None:
        if self is SdState.UNKNOWN:
            return None
        return self is SdState.TRUE


def _log_buffer() -> deque[str]:
    return deque(maxlen=LOG_LINES)


@dataclass
class NodeRecord:
    """Stored state for one logical node id."""

    status: str | None = None
    ram_free_bytes: int | None = None
    sd_ok: SdState = SdState.UNKNOWN
    ck: str | None = None  # operator tags, survive migration
    area: str | None = None
    no: str | None = None
    updated: str | None = None
    logs: deque[str] = field(default_factory=_log_buffer)

    @classmethod
    def empty(cls, log_lines: int = LOG_LINES) -> NodeRecord:
        return cls(logs=deque(maxlen=log_lines))

    def copy(self) -> NodeRecord:
        return dataclasses.replace(self, logs=deque(self.logs, maxlen=self.logs.maxlen))


@dataclass(frozen=True)
class PartialUpdate:
    """Fields decoded from a single telemetry message.

    ``None`` means the message did not carry the field.
    """

    touch: bool = False
    status: str | None = None
    ram_free_bytes: int | None = None
    sd_ok: SdState | None = None
    log_line: str | None = None


class ProjectedNode(BaseModel):
    """Read-only view of a node as served to dashboard clients."""

    model_config = {"frozen": True}

    status: str | None = None
    ram_free_bytes: int | None = None
    sd_ok: bool | None = None
    ck: str | None = None
    area: str | None = None
    no: str | None = None
    updated: str | None = None
    logs: list[str] | None = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
