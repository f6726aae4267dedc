"""Shared test fixtures.

The countdown never depends on wall-clock time in these tests: the engine is
built on a ``FakeScheduler`` whose ticks are fired by hand.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import pytest

from pomolog.core.config import Config
from pomolog.core.errors import PersistenceError
from pomolog.timer.coordinator import SessionCoordinator
from pomolog.timer.engine import TimerEngine
from pomolog.timer.models import SessionRecord


# ---------------------------------------------------------------------------
# Scheduler double
# ---------------------------------------------------------------------------


class FakeHandle:
    def __init__(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not self.cancelled


class FakeScheduler:
    """Records every repeating callback; ``advance`` fires the live ones."""

    def __init__(self):
        self.handles: list[FakeHandle] = []

    def call_every(self, interval: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(interval, callback)
        self.handles.append(handle)
        return handle

    @property
    def active_handles(self) -> list[FakeHandle]:
        return [h for h in self.handles if h.active]

    def advance(self, ticks: int = 1) -> None:
        for _ in range(ticks):
            for handle in self.active_handles:
                handle.callback()


# ---------------------------------------------------------------------------
# Store double
# ---------------------------------------------------------------------------


class MemoryStore:
    """In-memory SessionStore; set ``fail_with`` to make saves raise."""

    def __init__(self):
        self.saved: list[SessionRecord] = []
        self.fail_with: Exception | None = None
        self.save_calls = 0

    async def save(self, record: SessionRecord) -> SessionRecord:
        self.save_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        record.id = len(self.saved) + 1
        self.saved.append(record)
        return record

    async def list_sessions(
        self,
        user_id: str,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[SessionRecord]:
        rows = [r for r in self.saved if r.user_id == user_id]
        if since is not None:
            rows = [r for r in rows if r.created_at >= since]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return rows[:limit] if limit is not None else rows


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def engine(scheduler) -> TimerEngine:
    return TimerEngine(scheduler=scheduler)


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def identity() -> dict[str, str | None]:
    """Mutable signed-in user; tests flip ``identity['user_id']``."""
    return {"user_id": "user-1"}


@pytest.fixture()
def coordinator(engine, store, identity) -> SessionCoordinator:
    return SessionCoordinator(engine, store, identity=lambda: identity["user_id"])


@pytest.fixture()
def config(tmp_path) -> Config:
    """Config whose directories all live under *tmp_path*."""
    return Config(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        config_dir=tmp_path / "config",
        user_id="user-1",
    )


@pytest.fixture()
def failing_store(store) -> MemoryStore:
    store.fail_with = PersistenceError("backend unavailable")
    return store
