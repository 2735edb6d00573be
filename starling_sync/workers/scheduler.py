"""Wall-clock scheduling for budget alerts and the monthly summary."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo

from starling_sync.core.utils import get_logger, utcnow
from starling_sync.services.budget_alerts import BudgetAlertEngine

logger = get_logger("starling-sync.scheduler")


def next_run_after(now: datetime, at: time, tz: tzinfo) -> datetime:
    """Return the first occurrence of local time ``at`` in ``tz`` strictly after ``now``."""
    local = now.astimezone(tz)
    candidate = datetime.combine(local.date(), at, tzinfo=tz)
    if candidate <= local:
        candidate = datetime.combine(local.date() + timedelta(days=1), at, tzinfo=tz)
    return candidate


@dataclass(frozen=True)
class ScheduledJob:
    """A callback fired daily at a local wall-clock time."""

    name: str
    at: time
    run: Callable[[datetime], Awaitable[None]]


class AlertScheduler:
    """Runs budget alerts at each configured time and the summary on the first of the month."""

    def __init__(
        self,
        engine: BudgetAlertEngine,
        alert_times: list[time],
        summary_time: time,
        tz: tzinfo,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the scheduler; nothing runs until ``start`` is called."""
        self.engine = engine
        self.alert_times = alert_times
        self.summary_time = summary_time
        self.tz = tz
        self.clock = clock
        self._tasks: list[asyncio.Task[None]] = []

    def jobs(self) -> list[ScheduledJob]:
        """Return the daily jobs this scheduler runs."""
        jobs = [ScheduledJob(f"budget-alerts@{at:%H:%M}", at, self.run_alerts) for at in self.alert_times]
        summary = ScheduledJob(f"monthly-summary@{self.summary_time:%H:%M}", self.summary_time, self.run_monthly_summary)
        jobs.append(summary)
        return jobs

    async def run_alerts(self, fired_at: datetime) -> None:
        """Evaluate the current month's budget; errors are logged."""
        try:
            outcome = await self.engine.evaluate()
        except Exception:
            logger.exception(f"Scheduled budget alerts at {fired_at.isoformat()} failed")
            return
        logger.info(f"Scheduled budget alerts {outcome.month}: {outcome.status}")

    async def run_monthly_summary(self, fired_at: datetime) -> None:
        """Send the monthly summary when ``fired_at`` falls on the first day of the month."""
        if fired_at.astimezone(self.tz).day != 1:
            return
        try:
            outcome = await self.engine.monthly_summary()
        except Exception:
            logger.exception(f"Scheduled monthly summary at {fired_at.isoformat()} failed")
            return
        logger.info(f"Scheduled monthly summary {outcome.month}: {outcome.status}")

    async def _loop(self, job: ScheduledJob) -> None:
        last = self.clock()
        while True:
            now = self.clock()
            due = next_run_after(max(now, last), job.at, self.tz)
            logger.debug(f"{job.name}: next run {due.isoformat()}")
            await asyncio.sleep(max((due - now).total_seconds(), 0))
            last = due
            await job.run(due)

    def start(self) -> None:
        """Start one background task per job."""
        if self._tasks:
            return
        self._tasks = [asyncio.create_task(self._loop(job), name=job.name) for job in self.jobs()]
        logger.info(f"Scheduler started: {', '.join(task.get_name() for task in self._tasks)} ({self.tz})")

    async def stop(self) -> None:
        """Cancel all scheduled jobs and wait for them to finish."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
