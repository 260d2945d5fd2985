"""Scheduler service - drives periodic health checks.

A single job is kept in the scheduler at any time. Each run schedules its
successor one tick after it started, or immediately if it overran the tick,
so slow runs delay the next one instead of overlapping or skipping it.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from ..utils.time_utils import utcnow

logger = logging.getLogger(__name__)

# Scheduler tick interval in seconds
SCHEDULER_TICK_SECONDS = 30

JOB_ID = "check_all"


class SchedulerService:
    """Runs ``monitor.check_all`` every tick.

    Lifecycle: stopped -> start() -> running -> stop() -> stopped for good.
    """

    def __init__(self, monitor, tick_seconds: int = SCHEDULER_TICK_SECONDS, respect_check_interval: bool = False):
        self.monitor = monitor
        self.tick_seconds = tick_seconds
        self.respect_check_interval = respect_check_interval
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the scheduler. Must be called from within a running event loop."""
        if self._stopped:
            raise RuntimeError("Scheduler has been stopped; create a new instance")
        if self._running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._schedule_next(utcnow() + timedelta(seconds=self.tick_seconds))
        self.scheduler.start()
        self._running = True
        logger.info(f"Scheduler started - health checks will run every {self.tick_seconds} seconds")

    def stop(self):
        """Stop the scheduler. Safe to call at any time, including before start."""
        self._stopped = True
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Scheduler stopped")

    @property
    def next_run_time(self) -> Optional[datetime]:
        if not self.scheduler:
            return None
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def _schedule_next(self, run_date: datetime):
        self.scheduler.add_job(
            self._tick,
            trigger=DateTrigger(run_date=run_date),
            id=JOB_ID,
            replace_existing=True,
            # The successor is added while the current run is still finishing
            max_instances=2,
            misfire_grace_time=None,
        )

    async def _tick(self):
        started = utcnow()
        try:
            await self.run_once()
        finally:
            if self._running:
                self._schedule_next(max(started + timedelta(seconds=self.tick_seconds), utcnow()))

    async def run_once(self) -> int:
        """One scheduled pass over the endpoints."""
        logger.info("Running scheduled health checks")
        try:
            return await self.monitor.check_all(
                due_only=self.respect_check_interval,
                slack=self.tick_seconds / 2,
            )
        except Exception as e:
            logger.error(f"Error running checks: {e}")
            return 0
