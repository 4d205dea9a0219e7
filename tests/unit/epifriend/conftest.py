"""Shared fixtures: in-memory storage and a controllable clock."""

from datetime import UTC, datetime, timedelta

import pytest

from epifriend.services.storage import MemoryStorage


class FakeClock:
    """Returns `start`, then advances by `step` on every call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(minutes=1)) -> None:
        self.now = start or datetime(2024, 1, 1, 9, 30, tzinfo=UTC)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


class FakeScheduler:
    """Captures scheduled callbacks instead of starting timers."""

    def __init__(self) -> None:
        self.pending: list[tuple[float, object]] = []

    def __call__(self, delay_seconds: float, callback) -> None:
        self.pending.append((delay_seconds, callback))

    def fire_all(self) -> None:
        pending, self.pending = self.pending, []
        for _, callback in pending:
            callback()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()
