"""Deduplicated, staleness-annotated projection of the node map."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta

from fleetdash.core.identity import extract_physical_id
from fleetdash.models import (
    OFFLINE_STATUS,
    TIMESTAMP_FORMAT,
    NodeRecord,
    ProjectedNode,
)

DEFAULT_OFFLINE_AFTER = timedelta(seconds=10)


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime | None:
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        return None


def _recency(item: tuple[str, NodeRecord]) -> tuple[str, str]:
    logical_id, record = item
    return record.updated or "", logical_id


def deduplicate(records: Mapping[str, NodeRecord]) -> dict[str, NodeRecord]:
    """Keep only the most recently updated logical id per physical device.

    Ties on ``updated`` go to the greatest logical id.
    """
    winners: dict[str, tuple[str, NodeRecord]] = {}
    for item in records.items():
        physical_id = extract_physical_id(item[0])
        current = winners.get(physical_id)
        if current is None or _recency(item) > _recency(current):
            winners[physical_id] = item
    return dict(winners.values())


def is_stale(
    updated: str | None,
    now: datetime,
    offline_after: timedelta = DEFAULT_OFFLINE_AFTER,
) -> bool:
    if not updated:
        return False
    moment = parse_timestamp(updated)
    if moment is None:
        return False
    return now - moment > offline_after


def project(
    record: NodeRecord,
    now: datetime,
    offline_after: timedelta = DEFAULT_OFFLINE_AFTER,
) -> ProjectedNode:
    status = record.status
    if is_stale(record.updated, now, offline_after):
        status = OFFLINE_STATUS
    return ProjectedNode(
        status=status,
        ram_free_bytes=record.ram_free_bytes,
        sd_ok=record.sd_ok.as_bool(),
        ck=record.ck or None,
        area=record.area or None,
        no=record.no or None,
        updated=record.updated,
        logs=list(record.logs) or None,
    )


def build_snapshot(
    records: Mapping[str, NodeRecord],
    now: datetime,
    offline_after: timedelta = DEFAULT_OFFLINE_AFTER,
) -> dict[str, ProjectedNode]:
    return {
        logical_id: project(record, now, offline_after)
        for logical_id, record in sorted(deduplicate(records).items())
    }
