"""
Daily Payout Scheduler.

This service provides:
- Daily payout processing at a configurable UTC hour
- Manual runs for operators
- A single-run guard so overlapping runs in one process cannot double-pay
- Status and health reporting
"""

import asyncio
from dataclasses import dataclass, asdict
from datetime import date, datetime, timezone, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from marketplace_payouts.core.config import settings
from marketplace_payouts.core.exceptions import SchedulerError
from marketplace_payouts.models.base import utc_today
from marketplace_payouts.services.payout_service import (
    PayoutRunSummary,
    process_scheduled_payouts,
)


logger = structlog.get_logger(__name__)

PayoutRunner = Callable[[Optional[date]], Awaitable[PayoutRunSummary]]


class SchedulerStatus(Enum):
    """Status of the payout scheduler."""
    STOPPED = "stopped"
    WAITING = "waiting"
    PROCESSING = "processing"
    ERROR = "error"


@dataclass
class SchedulerStats:
    """Statistics for scheduler operations."""
    last_run: Optional[datetime] = None
    last_run_date: Optional[date] = None
    last_scheduled_date: Optional[date] = None
    next_run: Optional[datetime] = None
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    last_summary: Optional[Dict[str, Any]] = None
    uptime_start: Optional[datetime] = None


class PayoutScheduler:
    """
    Triggers the payout batch once per day at the configured UTC hour.

    Which vendors are actually paid on a given day is decided by their payout
    frequency; the scheduler only guarantees the batch runs daily.
    """

    def __init__(
        self,
        runner: Optional[PayoutRunner] = None,
        utc_hour: Optional[int] = None,
        poll_interval: Optional[int] = None,
        enabled: Optional[bool] = None
    ):
        self.logger = logger.bind(service="payout_scheduler")

        self.runner: PayoutRunner = runner or process_scheduled_payouts
        self.enabled = settings.scheduler_enabled if enabled is None else enabled
        self.utc_hour = settings.payout_schedule_utc_hour if utc_hour is None else utc_hour
        self.poll_interval = settings.scheduler_interval if poll_interval is None else poll_interval

        self.status = SchedulerStatus.STOPPED
        self.stats = SchedulerStats(uptime_start=datetime.now(timezone.utc))
        self._should_stop = False
        self._scheduler_task: Optional[asyncio.Task] = None
        self._run_lock = asyncio.Lock()

        self.logger.info(
            "Payout scheduler initialized",
            enabled=self.enabled,
            utc_hour=self.utc_hour,
            poll_interval=self.poll_interval
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    def _calculate_next_run_time(self, now: Optional[datetime] = None) -> datetime:
        """Next occurrence of the target hour."""
        now = now or datetime.now(timezone.utc)
        next_run = now.replace(hour=self.utc_hour, minute=0, second=0, microsecond=0)
        if next_run <= now:
            next_run += timedelta(days=1)
        return next_run

    def _should_run_payouts(self, now: Optional[datetime] = None) -> bool:
        """True within the first 30 minutes of the target hour if not yet triggered this UTC day."""
        now = now or datetime.now(timezone.utc)

        if now.hour != self.utc_hour or now.minute >= 30:
            return False

        if self.stats.last_scheduled_date is None:
            return True
        return self.stats.last_scheduled_date < now.date()

    async def _tick(self, now: Optional[datetime] = None) -> Optional[PayoutRunSummary]:
        """
        Run the batch if due. The UTC date is both the run date and the
        once-per-day marker, set before the run so a failed batch is not retried.
        """
        now = now or datetime.now(timezone.utc)
        if not self._should_run_payouts(now):
            return None

        self.stats.last_scheduled_date = now.date()
        return await self.run_payouts(today=now.date(), triggered_by="scheduler")

    async def start(self):
        """Start the payout scheduler."""
        if not self.enabled:
            self.logger.info("Payout scheduler is disabled")
            return

        if self.status != SchedulerStatus.STOPPED:
            self.logger.warning("Scheduler already running", current_status=self.status.value)
            return

        self.logger.info("Starting payout scheduler")
        self._should_stop = False
        self.status = SchedulerStatus.WAITING
        self.stats.next_run = self._calculate_next_run_time()
        self._scheduler_task = asyncio.create_task(self._scheduler_loop())

        self.logger.info("Payout scheduler started", next_run=self.stats.next_run.isoformat())

    async def stop(self):
        """Stop the payout scheduler."""
        if self.status == SchedulerStatus.STOPPED:
            return

        self.logger.info("Stopping payout scheduler")
        self._should_stop = True

        if self._scheduler_task and not self._scheduler_task.done():
            self._scheduler_task.cancel()
            try:
                await self._scheduler_task
            except asyncio.CancelledError:
                pass

        self.status = SchedulerStatus.STOPPED
        self.logger.info("Payout scheduler stopped")

    async def _scheduler_loop(self):
        """Main scheduler loop."""
        self.logger.info("Scheduler loop started")

        while not self._should_stop:
            try:
                await self._tick()

                self.stats.next_run = self._calculate_next_run_time()
                await asyncio.sleep(self.poll_interval)

            except asyncio.CancelledError:
                self.logger.info("Scheduler loop cancelled")
                break

            except Exception as e:
                self.logger.error("Error in scheduler loop", error=str(e))
                self.status = SchedulerStatus.ERROR
                await asyncio.sleep(self.poll_interval)
                self.status = SchedulerStatus.WAITING

        self.logger.info("Scheduler loop stopped")

    async def run_payouts(
        self,
        today: Optional[date] = None,
        triggered_by: str = "scheduler"
    ) -> PayoutRunSummary:
        """
        Run one payout batch.

        Raises:
            SchedulerError: another run is already in progress
        """
        if self._run_lock.locked():
            raise SchedulerError(
                "Payout processing already in progress",
                {"triggered_by": triggered_by}
            )

        async with self._run_lock:
            run_date = today or utc_today()
            previous_status = self.status
            self.status = SchedulerStatus.PROCESSING
            self.stats.total_runs += 1

            self.logger.info(
                "Starting payout processing",
                run_date=run_date.isoformat(),
                triggered_by=triggered_by
            )

            try:
                summary = await self.runner(run_date)
            except Exception as e:
                self.stats.failed_runs += 1
                self.status = SchedulerStatus.ERROR
                self.logger.error(
                    "Payout processing failed",
                    run_date=run_date.isoformat(),
                    triggered_by=triggered_by,
                    error=str(e),
                    total_runs=self.stats.total_runs,
                    failed_runs=self.stats.failed_runs
                )
                raise

            self.stats.last_run = datetime.now(timezone.utc)
            self.stats.last_run_date = run_date
            self.stats.last_summary = summary.to_dict()
            self.stats.successful_runs += 1
            self.status = (
                SchedulerStatus.WAITING
                if previous_status != SchedulerStatus.STOPPED
                else SchedulerStatus.STOPPED
            )

            self.logger.info(
                "Payout processing completed",
                run_date=run_date.isoformat(),
                triggered_by=triggered_by,
                completed=summary.payouts_completed,
                failed=summary.payouts_failed,
                errors=summary.errors,
                duration=f"{summary.duration_seconds or 0:.2f}s"
            )
            return summary

    async def trigger_manual_run(self, today: Optional[date] = None) -> PayoutRunSummary:
        """Manually trigger payout processing (for operators/admin)."""
        self.logger.info("Manual payout processing triggered")
        return await self.run_payouts(today=today, triggered_by="manual")

    def get_status(self) -> Dict[str, Any]:
        """Get current scheduler status."""
        return {
            "status": self.status.value,
            "enabled": self.enabled,
            "stats": asdict(self.stats),
            "next_run": self.stats.next_run.isoformat() if self.stats.next_run else None,
        }

    async def health_check(self) -> Dict[str, Any]:
        """Report scheduler health."""
        now = datetime.now(timezone.utc)
        uptime_seconds = (now - self.stats.uptime_start).total_seconds()
        loop_alive = self._scheduler_task is not None and not self._scheduler_task.done()

        return {
            "healthy": self.status != SchedulerStatus.ERROR and (
                loop_alive or self.status == SchedulerStatus.STOPPED
            ),
            "status": self.status.value,
            "enabled": self.enabled,
            "uptime_seconds": uptime_seconds,
            "scheduler_stats": asdict(self.stats),
            "configuration": {
                "utc_hour": self.utc_hour,
                "poll_interval": self.poll_interval,
            },
            "next_run_in_seconds": (
                (self.stats.next_run - now).total_seconds() if self.stats.next_run else None
            ),
        }


# Global scheduler instance
_payout_scheduler: Optional[PayoutScheduler] = None


async def get_payout_scheduler() -> PayoutScheduler:
    """Get or create global PayoutScheduler instance."""
    global _payout_scheduler
    if _payout_scheduler is None:
        _payout_scheduler = PayoutScheduler()
    return _payout_scheduler


async def start_payout_scheduler():
    """Start the global payout scheduler."""
    scheduler = await get_payout_scheduler()
    await scheduler.start()


async def stop_payout_scheduler():
    """Stop the global payout scheduler."""
    if _payout_scheduler:
        await _payout_scheduler.stop()


async def run_daily_payout_processing(today: Optional[date] = None) -> PayoutRunSummary:
    """Entry point for an external daily trigger (cron, job queue)."""
    scheduler = await get_payout_scheduler()
    return await scheduler.run_payouts(today=today, triggered_by="external")


async def trigger_payout_processing(today: Optional[date] = None) -> PayoutRunSummary:
    """Trigger manual payout processing."""
    scheduler = await get_payout_scheduler()
    return await scheduler.trigger_manual_run(today)
