"""Decode node telemetry payloads into partial updates."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any

from fleetdash.models import PartialUpdate, SdState

logger = logging.getLogger(__name__)

STATUS = "status"
MONITOR = "monitor"
LOG = "log"

KNOWN_SUFFIXES = frozenset({STATUS, MONITOR, LOG})


@dataclass(frozen=True)
class ParsedMapping:
    fields: dict[str, Any]


@dataclass(frozen=True)
class ParsedScalar:
    """Valid JSON that is not an object (string, number, list, ...)."""

    value: Any


@dataclass(frozen=True)
class ParseFailed:
    text: str


ParseResult = ParsedMapping | ParsedScalar | ParseFailed


def decode_text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


def parse_payload(raw: bytes) -> ParseResult:
    text = decode_text(raw)
    # deeply nested documents exhaust the decoder stack
    try:
        value = json.loads(text)
    except (ValueError, RecursionError):
        return ParseFailed(text)
    if isinstance(value, dict):
        return ParsedMapping(value)
    return ParsedScalar(value)


def render_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


def _status_update(raw: bytes) -> PartialUpdate:
    match parse_payload(raw):
        case ParsedMapping(fields) if "state" in fields:
            status = render_text(fields["state"])
        case ParsedMapping(fields):
            status = render_text(fields)
        case ParsedScalar(value):
            status = render_text(value)
        case ParseFailed(text):
            status = text
    return PartialUpdate(touch=True, status=status)


def _ram_free_bytes(fields: dict[str, Any]) -> int | None:
    value = fields.get("ram_free_bytes")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


def _sd_ok(fields: dict[str, Any]) -> SdState | None:
    value = fields.get("sd_ok")
    if isinstance(value, bool):
        return SdState.from_bool(value)
    return None


def _monitor_update(raw: bytes) -> PartialUpdate:
    parsed = parse_payload(raw)
    if not isinstance(parsed, ParsedMapping):
        # still a heartbeat
        logger.debug("Undecodable monitor payload: %r", raw[:64])
        return PartialUpdate(touch=True)
    return PartialUpdate(
        touch=True,
        ram_free_bytes=_ram_free_bytes(parsed.fields),
        sd_ok=_sd_ok(parsed.fields),
    )


def _log_update(raw: bytes) -> PartialUpdate | None:
    line = decode_text(raw).strip()
    if not line:
        return None
    return PartialUpdate(touch=True, log_line=line)


def normalize(topic_suffix: str, raw: bytes) -> PartialUpdate | None:
    """Turn one bus message into an update, or ``None`` to ignore it."""
    if topic_suffix == STATUS:
        return _status_update(raw)
    if topic_suffix == MONITOR:
        return _monitor_update(raw)
    if topic_suffix == LOG:
        return _log_update(raw)
    logger.debug("Ignoring message kind %r", topic_suffix)
    return None
