"""Shared fixtures and fakes for the hivewatch tests."""

import threading

import pytest

from hivewatch.core import (
    NotFoundError,
    PlayerProfile,
    StatRecord,
    StatSnapshot,
    StatsProvider,
)


def make_snapshot(**families: dict) -> StatSnapshot:
    """make_snapshot(bed={"played": 3, "victories": 1}) -> StatSnapshot."""
    return {family: StatRecord(**values) for family, values in families.items()}


class FakeProvider(StatsProvider):
    """In-memory provider. Unknown players raise NotFoundError."""

    def __init__(self):
        self.snapshots: dict[str, StatSnapshot] = {}
        self.errors: dict[str, Exception] = {}
        self.display_names: dict[str, str] = {}
        self.calls: list[str] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "fake"

    def set_stats(self, username: str, **families: dict) -> None:
        self.snapshots[username.lower()] = make_snapshot(**families)

    def fetch_snapshot(self, username: str) -> StatSnapshot:
        key = username.lower()
        with self._lock:
            self.calls.append(key)
        if key in self.errors:
            raise self.errors[key]
        if key not in self.snapshots:
            raise NotFoundError(username)
        return dict(self.snapshots[key])

    def fetch_profile(self, username: str) -> PlayerProfile:
        snapshot = self.fetch_snapshot(username)
        return PlayerProfile(
            username=self.display_names.get(username.lower(), username),
            snapshot=snapshot,
        )


class RecordingSink:
    """Keeps every published record."""

    def __init__(self):
        self.records = []

    def publish(self, record) -> None:
        self.records.append(record)


class FakeClock:
    """Settable epoch-seconds clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def clock():
    return FakeClock()
