"""Background scheduler for the daily bill cycle.

Jobs run at two triggers: immediately on activation and once a day at a
fixed local wall-clock time. Every run is fire-and-forget: failures are
logged and swallowed, and stopping the timer never cancels a run that has
already started.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any

import structlog

from homebills.config import get_settings

logger = structlog.get_logger(__name__)


class Clock(ABC):
    """Source of local wall-clock time and of waiting."""

    @abstractmethod
    def now(self) -> datetime:
        """Current local time (naive)."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend for ``seconds`` of this clock's time."""


class SystemClock(Clock):
    """Real time, via ``datetime.now`` and ``asyncio.sleep``."""

    def now(self) -> datetime:
        return datetime.now()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def next_run_at(now: datetime, at: time) -> datetime:
    """First moment strictly after ``now`` whose wall-clock time is ``at``."""
    candidate = datetime.combine(now.date(), at)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


@dataclass
class ScheduledJob:
    """A coroutine function run on every trigger."""

    name: str
    handler: Callable[[], Awaitable[Any]]
    enabled: bool = True


class BillScheduler:
    """Drives registered jobs at activation and daily at ``run_at``.

    The scheduler:
    1. Runs every enabled job once when started
    2. Sleeps on the injected clock until the next daily run time
    3. Spawns each job as its own task, so a slow or failing job never
       delays the timer or another job
    """

    def __init__(self, clock: Clock | None = None, run_at: time | None = None):
        self._clock = clock or SystemClock()
        self._run_at = run_at or get_settings().daily_run_time
        self._jobs: list[ScheduledJob] = []
        self._timer: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[None]] = set()
        self._runs = 0
        self._failures = 0
        self._last_run_at: datetime | None = None
        self._next_run_at: datetime | None = None
        self._logger = logger.bind(component="scheduler")

    @property
    def run_at(self) -> time:
        return self._run_at

    @property
    def is_running(self) -> bool:
        """True while the daily timer is active."""
        return self._timer is not None and not self._timer.done()

    @property
    def next_run(self) -> datetime | None:
        return self._next_run_at if self.is_running else None

    def add_job(self, name: str, handler: Callable[[], Awaitable[Any]]) -> ScheduledJob:
        """Register a coroutine function to run on every trigger."""
        job = ScheduledJob(name=name, handler=handler)
        self._jobs.append(job)
        self._logger.debug("job_registered", job=name)
        return job

    def remove_job(self, name: str) -> bool:
        """Remove a job by name.

        Returns:
            True if the job was found and removed.
        """
        original_len = len(self._jobs)
        self._jobs = [j for j in self._jobs if j.name != name]
        return len(self._jobs) < original_len

    def run_now(self) -> list[asyncio.Task[None]]:
        """Start every enabled job immediately without waiting for it.

        Must be called from a running event loop.
        """
        self._last_run_at = self._clock.now()
        tasks = []
        for job in self._jobs:
            if not job.enabled:
                continue
            task = asyncio.create_task(self._run_job(job), name=f"homebills:{job.name}")
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            tasks.append(task)
        return tasks

    async def _run_job(self, job: ScheduledJob) -> None:
        self._runs += 1
        try:
            result = await job.handler()
        except Exception as e:
            self._failures += 1
            self._logger.exception("job_failed", job=job.name, error=str(e))
            return
        self._logger.info("job_completed", job=job.name, result=repr(result))

    def run_daily(self, at: time | None = None) -> None:
        """Start (or restart) the daily timer."""
        if at is not None:
            self._run_at = at
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.create_task(self._daily_loop(), name="homebills:daily-timer")
        self._logger.info("daily_timer_started", run_at=self._run_at.isoformat())

    async def _daily_loop(self) -> None:
        target = next_run_at(self._clock.now(), self._run_at)
        while True:
            self._next_run_at = target
            delay = (target - self._clock.now()).total_seconds()
            await self._clock.sleep(max(0.0, delay))
            self._logger.info("daily_run_triggered", scheduled_for=target.isoformat())
            self.run_now()
            target = next_run_at(max(self._clock.now(), target), self._run_at)

    def start(self) -> list[asyncio.Task[None]]:
        """Activation: run every job now, then daily."""
        tasks = self.run_now()
        self.run_daily()
        return tasks

    def stop(self) -> None:
        """Stop the daily timer; runs already in flight finish on their own."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            self._logger.info("daily_timer_stopped", in_flight=len(self._in_flight))

    def reschedule(self, at: time) -> None:
        """Move the daily run to a new wall-clock time."""
        self.stop()
        self.run_daily(at)

    async def wait_idle(self) -> None:
        """Wait until every in-flight run has finished."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight))

    def get_status(self) -> dict[str, Any]:
        """Get current scheduler status."""
        return {
            "is_running": self.is_running,
            "run_at": self._run_at.isoformat(),
            "next_run_at": self.next_run.isoformat() if self.next_run else None,
            "last_run_at": self._last_run_at.isoformat() if self._last_run_at else None,
            "jobs": [j.name for j in self._jobs if j.enabled],
            "in_flight": len(self._in_flight),
            "runs": self._runs,
            "failures": self._failures,
        }
