from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from fleetdash.config import get_settings
from fleetdash.core import Registry
from fleetdash.errors import CommandError


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch):
    for name in ("FLEETDASH_CONFIG", "MQTT_BROKER", "MQTT_USER", "MQTT_PASS"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 10, 0, 0))


@pytest.fixture
def registry(clock: FakeClock) -> Registry:
    return Registry(clock=clock)


class FakePublisher:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.published: list[tuple[str, bytes, bool]] = []

    def publish(self, topic, payload, retained=False):
        if self.fail:
            raise CommandError(topic, "not connected to broker")
        self.published.append((topic, payload, retained))


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture
def failing_publisher() -> FakePublisher:
    return FakePublisher(fail=True)
