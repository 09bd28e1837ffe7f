"""
Scheduler for the daily savings goal progress recomputation.

Runs `recompute_all_goals` once a day at a configured UTC time, and can be
triggered on demand (for example right after a goal's linked accounts change).
"""

import asyncio
import logging
from datetime import datetime, time, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from budgeting.config import settings
from budgeting.services.savings_goal_service import (
    RecomputationReport,
    recompute_all_goals,
)

logger = logging.getLogger(__name__)

DAILY_RECOMPUTE_TIME = time(
    hour=settings.GOAL_RECOMPUTE_HOUR,
    minute=settings.GOAL_RECOMPUTE_MINUTE,
    tzinfo=timezone.utc,
)


def seconds_until(run_at: time, now: datetime | None = None) -> float:
    """Seconds from `now` until the next occurrence of `run_at`."""
    now = now or datetime.now(timezone.utc)
    if run_at.tzinfo is None:
        run_at = run_at.replace(tzinfo=timezone.utc)
    target = datetime.combine(now.date(), run_at)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class GoalProgressScheduler:
    """Scheduler for the daily savings goal snapshot."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        run_at: time = DAILY_RECOMPUTE_TIME,
        timeout: float | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            session_factory: Factory for the sessions each goal is recomputed in
            run_at: Time of day (UTC) for the daily run
            timeout: Per-goal timeout in seconds; defaults to settings
        """
        self.session_factory = session_factory
        self.run_at = run_at
        self.timeout = timeout
        self.last_report: RecomputationReport | None = None
        self._task: asyncio.Task | None = None
        self._run_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the daily loop on the running event loop."""
        if not self.running:
            self._task = asyncio.create_task(self._loop(), name="goal-progress-scheduler")
            logger.info(
                "Goal progress scheduler started. Will run at %s UTC daily.",
                self.run_at.strftime("%H:%M"),
            )

    async def stop(self) -> None:
        """Stop the loop; a batch in progress is cancelled between goals."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Goal progress scheduler stopped")

    async def run_once(self) -> RecomputationReport:
        """Recompute every goal now. Overlapping calls run one after another."""
        async with self._run_lock:
            report = await recompute_all_goals(self.session_factory, self.timeout)
        self.last_report = report
        for failure in report.failed:
            logger.warning("Goal %d skipped: %s", failure.goal_id, failure.cause)
        return report

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(seconds_until(self.run_at))
            try:
                await self.run_once()
            except Exception as e:
                # Keep the daily schedule alive; the next run starts fresh
                logger.error("Goal progress recomputation failed: %s", e, exc_info=True)
