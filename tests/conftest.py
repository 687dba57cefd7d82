"""Pytest configuration and fixtures."""

import asyncio
from datetime import datetime, timedelta

import pytest

from homebills.config import get_settings
from homebills.scheduler import Clock
from homebills.service import BillService
from homebills.stores.memory import MemoryStore

NOW = datetime(2024, 3, 6, 8, 0)


async def settle(rounds: int = 20) -> None:
    """Let pending tasks on the loop run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock(Clock):
    """Manually advanced clock; ``sleep`` blocks until ``advance`` reaches it."""

    def __init__(self, start: datetime = NOW):
        self._now = start
        self._sleepers: list[tuple[datetime, asyncio.Future[None]]] = []

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    async def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._sleepers.append((self._now + timedelta(seconds=seconds), future))
        await future

    async def advance(self, delta: timedelta) -> None:
        """Move time forward, waking sleepers in order as their time comes."""
        await settle()
        target = self._now + delta
        while True:
            due = sorted(
                (s for s in self._sleepers if s[0] <= target and not s[1].done()),
                key=lambda s: s[0],
            )
            if not due:
                break
            wake_at, future = due[0]
            self._sleepers.remove(due[0])
            self._now = wake_at
            future.set_result(None)
            await settle()
        self._sleepers = [s for s in self._sleepers if not s[1].done()]
        self._now = target
        await settle()


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Reset cached settings around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock():
    """Fake clock starting 2024-03-06 08:00 local."""
    return FakeClock()


@pytest.fixture
def store(clock):
    """In-memory store sharing the fake clock."""
    return MemoryStore(now=clock.now)


@pytest.fixture
def service(store, clock):
    """BillService over the in-memory store."""
    return BillService.from_store(store, now=clock.now)
