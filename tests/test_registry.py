from __future__ import annotations

import threading
from datetime import datetime, timedelta

from fleetdash.core import Registry
from fleetdash.models import PartialUpdate, SdState

TOUCH = PartialUpdate(touch=True)


def test_first_event_creates_record(registry, clock):
    assert registry.ingest("esp-aabbccddeeff", "status", b'{"state": "ok"}')

    record = registry.get("esp-aabbccddeeff")
    assert record is not None
    assert record.status == "ok"
    assert record.updated == "2024-01-01 10:00:00"
    assert record.sd_ok is SdState.UNKNOWN


def test_ignored_message_creates_nothing(registry):
    assert not registry.ingest("node-1", "command", b"{}")
    assert not registry.ingest("node-1", "log", b"   ")
    assert len(registry) == 0


def test_partial_updates_never_clear_fields(registry):
    registry.ingest("node-1", "status", b'{"state": "ok"}')
    registry.ingest("node-1", "monitor", b'{"ram_free_bytes": 1000, "sd_ok": true}')
    registry.ingest("node-1", "monitor", b'{"sd_ok": false}')
    registry.ingest("node-1", "monitor", b"garbage")

    record = registry.get("node-1")
    assert record.status == "ok"
    assert record.ram_free_bytes == 1000
    assert record.sd_ok is SdState.FALSE


def test_updated_is_non_decreasing(registry, clock):
    stamps = []
    for step in (5, -30, 2, 0, 1):
        clock.advance(step)
        registry.apply_update("node-1", TOUCH)
        stamps.append(registry.get("node-1").updated)

    assert stamps == sorted(stamps)
    assert stamps[1] == stamps[0]


def test_monitor_update_is_idempotent(registry):
    payload = b'{"ram_free_bytes": 2048, "sd_ok": true}'
    registry.ingest("node-1", "monitor", payload)
    once = registry.get("node-1")
    registry.ingest("node-1", "monitor", payload)
    assert registry.get("node-1") == once


def test_sd_ok_false_is_distinct_from_never_reported(registry):
    registry.ingest("reported", "monitor", b'{"sd_ok": false}')
    registry.ingest("silent", "monitor", b'{"ram_free_bytes": 1}')

    assert registry.get("reported").sd_ok is SdState.FALSE
    assert registry.get("reported").sd_ok.as_bool() is False
    assert registry.get("silent").sd_ok is SdState.UNKNOWN
    assert registry.get("silent").sd_ok.as_bool() is None


def test_logs_keep_last_three_in_order(registry):
    for index in range(5):
        registry.ingest("node-1", "log", f"line {index}".encode())

    assert registry.get_logs("node-1") == ["line 2", "line 3", "line 4"]


def test_log_lines_are_configurable(clock):
    registry = Registry(clock=clock, log_lines=2)
    for index in range(3):
        registry.ingest("node-1", "log", f"line {index}".encode())
    assert registry.get_logs("node-1") == ["line 1", "line 2"]


def test_get_returns_copy(registry):
    registry.ingest("node-1", "log", b"first")
    record = registry.get("node-1")
    record.logs.append("tampered")
    record.status = "tampered"

    assert registry.get_logs("node-1") == ["first"]
    assert registry.get("node-1").status is None


def test_migration_carries_config_only(registry, clock):
    registry.ingest("esp-aabbccddeeff", "status", b'{"state": "old"}')
    registry.ingest("esp-aabbccddeeff", "log", b"old log")
    assert registry.set_config("esp-aabbccddeeff", "CK1", "Z1", "7")

    clock.advance(3)
    registry.ingest("aabbccddeeff-v2", "monitor", b'{"ram_free_bytes": 512}')

    assert "esp-aabbccddeeff" not in registry
    record = registry.get("aabbccddeeff-v2")
    assert (record.ck, record.area, record.no) == ("CK1", "Z1", "7")
    assert record.status is None
    assert list(record.logs) == []
    assert record.ram_free_bytes == 512
    assert record.updated == "2024-01-01 10:00:03"


def test_no_migration_without_hardware_id(registry):
    registry.ingest("kitchen", "status", b"ok")
    registry.set_config("kitchen", "a", "b", "c")
    registry.ingest("kitchen-2", "status", b"ok")

    assert registry.logical_ids() == ["kitchen", "kitchen-2"]
    assert registry.get("kitchen-2").area is None


def test_device_switching_names_back_and_forth_keeps_one_record(registry, clock):
    registry.ingest("a-112233445566", "status", b"ok")
    registry.set_config("a-112233445566", "ck", "area", "1")
    clock.advance(5)
    registry.ingest("b-112233445566", "status", b"ok")
    assert registry.logical_ids() == ["b-112233445566"]

    clock.advance(5)
    registry.apply_update("a-112233445566", TOUCH)

    assert registry.logical_ids() == ["a-112233445566"]
    assert registry.get("a-112233445566").area == "area"


def test_ambiguous_migration_is_deterministic(clock, caplog):
    registry = Registry(clock=clock)
    # seed two records for one device without triggering migration
    registry.apply_update("a-112233445566", TOUCH)
    registry._nodes["b-112233445566"] = registry._nodes["a-112233445566"].copy()
    registry._nodes["b-112233445566"].area = "newest"
    registry._nodes["b-112233445566"].updated = "2024-01-01 10:00:09"
    registry._nodes["a-112233445566"].area = "older"

    with caplog.at_level("WARNING"):
        registry.apply_update("c-112233445566", TOUCH)

    assert registry.get("c-112233445566").area == "newest"
    assert "b-112233445566" not in registry
    assert "a-112233445566" in registry
    assert "Ambiguous migration" in caplog.text


def test_set_config_on_unknown_node_is_noop(registry):
    assert not registry.set_config("ghost", "a", "b", "c")
    assert len(registry) == 0


def test_delete_by_logical_id(registry):
    registry.ingest("node-1", "status", b"ok")
    assert registry.delete_by_logical_id("node-1")
    assert not registry.delete_by_logical_id("node-1")


def test_delete_by_physical_id_cascades(registry):
    registry.apply_update("old-aabbccddeeff", TOUCH)
    registry._nodes["new-aabbccddeeff"] = registry._nodes["old-aabbccddeeff"].copy()
    registry.apply_update("other-112233445566", TOUCH)

    removed = registry.delete_by_physical_id("aabbccddeeff")

    assert removed == ["new-aabbccddeeff", "old-aabbccddeeff"]
    assert registry.logical_ids() == ["other-112233445566"]


def test_delete_by_physical_id_accepts_logical_id(registry):
    registry.apply_update("esp-aabbccddeeff", TOUCH)
    assert registry.delete_by_physical_id("other-name-aabbccddeeff") == ["esp-aabbccddeeff"]


def test_delete_unknown_reports_nothing(registry):
    registry.apply_update("kitchen", TOUCH)
    assert registry.delete_by_physical_id("garage") == []
    assert registry.delete_by_physical_id("ffffffffffff") == []
    assert registry.delete_by_physical_id("kitchen") == ["kitchen"]


def test_get_logs_unknown(registry):
    assert registry.get_logs("ghost") is None


def test_snapshot_does_not_mutate_state(registry, clock):
    registry.ingest("node-1", "status", b'{"state": "running"}')
    snapshot = registry.snapshot(clock.now + timedelta(seconds=30))

    assert snapshot["node-1"].status == "offline"
    assert registry.get("node-1").status == "running"


def test_concurrent_ingestion_and_reads():
    registry = Registry(clock=datetime.now)
    errors: list[Exception] = []

    def writer(index: int) -> None:
        for step in range(200):
            registry.ingest(f"node-{index}", "log", f"{step}".encode())

    def reader() -> None:
        try:
            for _ in range(200):
                for node in registry.snapshot().values():
                    assert node.logs is None or len(node.logs) <= 3
        except AssertionError as exc:
            errors.append(exc)

    threads = [threading.Thread(target=writer, args=(i,)) for i in range(4)]
    threads += [threading.Thread(target=reader) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(registry) == 4
    assert registry.get_logs("node-0") == ["197", "198", "199"]
