"""In-memory node registry shared by MQTT ingestion and HTTP readers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from fleetdash.config import RegistryConfig
from fleetdash.core.identity import extract_physical_id, has_physical_id
from fleetdash.core.snapshot import (
    DEFAULT_OFFLINE_AFTER,
    build_snapshot,
    format_timestamp,
)
from fleetdash.core.telemetry import normalize
from fleetdash.models import LOG_LINES, NodeRecord, PartialUpdate, ProjectedNode
from fleetdash.utils.rwlock import RWLock

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class Registry:
    """Map of logical node id to node record.

    Ingestion (``apply_update``, ``set_config``, deletions) runs under the
    write lock; snapshots and lookups share the read lock. Callers only ever
    see copies or projections of the stored records.
    """

    def __init__(
        self,
        clock: Clock = datetime.now,
        offline_after: timedelta = DEFAULT_OFFLINE_AFTER,
        log_lines: int = LOG_LINES,
    ) -> None:
        self._clock = clock
        self._offline_after = offline_after
        self._log_lines = log_lines
        self._nodes: dict[str, NodeRecord] = {}
        self._lock = RWLock()

    @classmethod
    def from_config(cls, config: RegistryConfig, clock: Clock = datetime.now) -> Registry:
        return cls(
            clock=clock,
            offline_after=timedelta(seconds=config.offline_after),
            log_lines=config.log_lines,
        )

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._nodes)

    def __contains__(self, logical_id: object) -> bool:
        with self._lock.read():
            return logical_id in self._nodes

    # ingestion

    def ingest(self, logical_id: str, topic_suffix: str, raw: bytes) -> bool:
        """Normalize and apply one bus message. Returns False if ignored."""
        update = normalize(topic_suffix, raw)
        if update is None:
            return False
        self.apply_update(logical_id, update)
        return True

    def apply_update(self, logical_id: str, update: PartialUpdate) -> None:
        with self._lock.write():
            now = format_timestamp(self._clock())
            record = self._nodes.get(logical_id)
            if record is None:
                record = self._adopt(logical_id)
            self._merge(record, update, now)
            self._nodes[logical_id] = record

    def _adopt(self, logical_id: str) -> NodeRecord:
        """Create the record for a new id, migrating config from its predecessor."""
        record = NodeRecord.empty(self._log_lines)
        if not has_physical_id(logical_id):
            return record

        physical_id = extract_physical_id(logical_id)
        previous = [
            (old_id, old)
            for old_id, old in self._nodes.items()
            if old_id != logical_id and extract_physical_id(old_id) == physical_id
        ]
        if not previous:
            return record

        old_id, old = max(previous, key=lambda item: (item[1].updated or "", item[0]))
        if len(previous) > 1:
            logger.warning(
                "Ambiguous migration for %s: %d old nodes share it, using '%s'",
                physical_id,
                len(previous),
                old_id,
            )
        logger.info("Migrating config from old node '%s' to new node '%s'", old_id, logical_id)
        record.ck, record.area, record.no = old.ck, old.area, old.no
        del self._nodes[old_id]
        return record

    @staticmethod
    def _merge(record: NodeRecord, update: PartialUpdate, now: str) -> None:
        if update.status is not None:
            record.status = update.status
        if update.ram_free_bytes is not None:
            record.ram_free_bytes = update.ram_free_bytes
        if update.sd_ok is not None:
            record.sd_ok = update.sd_ok
        if update.log_line is not None:
            record.logs.append(update.log_line)
        if update.touch:
            record.updated = max(record.updated or now, now)

    # operator actions

    def set_config(self, logical_id: str, ck: str, area: str, no: str) -> bool:
        """Store operator tags on a known node. Unknown nodes are left alone."""
        with self._lock.write():
            record = self._nodes.get(logical_id)
            if record is None:
                return False
            record.ck, record.area, record.no = ck, area, no
            return True

    def delete_by_logical_id(self, logical_id: str) -> bool:
        with self._lock.write():
            return self._nodes.pop(logical_id, None) is not None

    def delete_by_physical_id(self, node_id: str) -> list[str]:
        """Remove every logical id belonging to the device behind ``node_id``.

        ``node_id`` may be a logical id or a bare hardware id. Returns the
        removed logical ids; an empty list means nothing matched.
        """
        with self._lock.write():
            if not has_physical_id(node_id):
                if self._nodes.pop(node_id, None) is None:
                    return []
                return [node_id]

            physical_id = extract_physical_id(node_id)
            removed = sorted(
                logical_id
                for logical_id in self._nodes
                if has_physical_id(logical_id)
                and extract_physical_id(logical_id) == physical_id
            )
            for logical_id in removed:
                del self._nodes[logical_id]
            return removed

    # queries

    def get(self, logical_id: str) -> NodeRecord | None:
        with self._lock.read():
            record = self._nodes.get(logical_id)
            return record.copy() if record is not None else None

    def get_logs(self, logical_id: str) -> list[str] | None:
        with self._lock.read():
            record = self._nodes.get(logical_id)
            return list(record.logs) if record is not None else None

    def logical_ids(self) -> list[str]:
        with self._lock.read():
            return sorted(self._nodes)

    def snapshot(self, now: datetime | None = None) -> dict[str, ProjectedNode]:
        with self._lock.read():
            return build_snapshot(
                self._nodes,
                now if now is not None else self._clock(),
                self._offline_after,
            )
