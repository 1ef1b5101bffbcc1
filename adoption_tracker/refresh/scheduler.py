"""Daily refresh scheduling and the startup stale-data check.

The ``schedule`` library keeps the job table; an asyncio task ticks it
so scheduled refreshes run on the same event loop as the API.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import schedule
import structlog

from adoption_tracker.refresh.orchestrator import RefreshOrchestrator
from adoption_tracker.refresh.schemas import StartResult

logger = structlog.get_logger(__name__)


class RefreshScheduler:
    """Fires ``start_refresh("scheduled")`` once a day at a local ``HH:MM``."""

    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        daily_at: str = "03:00",
        poll_seconds: float = 30.0,
        scheduler: schedule.Scheduler | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._daily_at = daily_at
        self._poll_seconds = poll_seconds
        self._scheduler = scheduler or schedule.Scheduler()
        self._loop_task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        """Register the daily job and start ticking.

        Raises:
            schedule.ScheduleValueError: If ``daily_at`` is not a valid time.
        """
        if self.is_running:
            return
        self._scheduler.every().day.at(self._daily_at).do(self._fire)
        self._orchestrator.set_next_refresh_fn(self.next_run)
        self._loop_task = asyncio.create_task(self._loop(), name="refresh-scheduler")
        logger.info("Refresh scheduler started", daily_at=self._daily_at, next_run=self.next_run())

    async def stop(self) -> None:
        self._scheduler.clear()
        self._orchestrator.set_next_refresh_fn(None)
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        logger.info("Refresh scheduler stopped")

    def next_run(self) -> datetime | None:
        """Next scheduled refresh in UTC, or None when nothing is scheduled."""
        if not self._scheduler.jobs:
            return None
        next_run = self._scheduler.next_run
        if next_run is None:
            return None
        # schedule works in naive local time
        return next_run.astimezone(timezone.utc)

    def tick(self) -> None:
        """Run any due jobs. Called by the loop; exposed for tests."""
        self._scheduler.run_pending()

    async def check_stale(self, max_age: timedelta) -> StartResult | None:
        """Start a ``startup`` refresh if the last completed one is too old.

        Returns:
            The start result, or None if the data is fresh.
        """
        last = await self._orchestrator.last_refresh_time()
        if last is not None:
            age = datetime.now(timezone.utc) - last
            if age < max_age:
                logger.info("Data is fresh; skipping startup refresh", age_hours=round(age.total_seconds() / 3600, 1))
                return None
            logger.info("Data is stale; starting refresh", age_hours=round(age.total_seconds() / 3600, 1))
        else:
            logger.info("No completed refresh on record; starting refresh")
        return await self._orchestrator.start_refresh("startup")

    def _fire(self) -> None:
        task = asyncio.create_task(self._start_scheduled())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _start_scheduled(self) -> None:
        try:
            result = await self._orchestrator.start_refresh("scheduled")
        except Exception as e:
            logger.error("Scheduled refresh could not start", error=str(e))
            return
        if not result.started:
            logger.info("Scheduled refresh skipped", reason=result.message)

    async def _loop(self) -> None:
        while True:
            try:
                self.tick()
            except Exception as e:
                logger.error("Scheduler tick failed", error=str(e))
            await asyncio.sleep(self._poll_seconds)
