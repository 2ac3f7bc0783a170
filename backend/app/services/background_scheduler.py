"""
Background scheduler service for periodic jobs.

Handles periodic auto-scheduling of pending tasks and daily report generation.
Uses APScheduler for in-process scheduling without external dependencies.
"""

from __future__ import annotations

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import Settings, get_settings
from app.core.logger import logger
from app.interfaces.task_repository import ITaskRepository
from app.interfaces.user_repository import IUserRepository
from app.services.reporting_service import generate_daily_report
from app.services.scheduler_service import SchedulerService
from app.utils.datetime_utils import get_user_today


class BackgroundScheduler:
    """
    Background scheduler for periodic jobs.

    Features:
    - Auto-scheduling of every user's PENDING tasks (every N minutes)
    - Daily report generation (logged)
    - Per-user isolation: one user's failure does not stop the job
    """

    def __init__(
        self,
        user_repo: IUserRepository,
        task_repo: ITaskRepository,
        scheduler_service: SchedulerService,
        settings: Optional[Settings] = None,
    ):
        self._user_repo = user_repo
        self._task_repo = task_repo
        self._scheduler_service = scheduler_service
        self._settings = settings or get_settings()
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def start(self):
        """Start the scheduler."""
        settings = self._settings

        # Only run scheduler in non-test environments
        if settings.is_test:
            logger.info("Background scheduler disabled in test environment")
            return

        self._scheduler = AsyncIOScheduler()
        jobs = []

        if settings.AUTO_SCHEDULE_INTERVAL_MINUTES > 0:
            self._scheduler.add_job(
                self._run_auto_scheduling,
                IntervalTrigger(minutes=settings.AUTO_SCHEDULE_INTERVAL_MINUTES),
                id="auto_scheduling",
                name="Auto-schedule Pending Tasks",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            jobs.append(f"  - Auto-scheduling: every {settings.AUTO_SCHEDULE_INTERVAL_MINUTES} minutes")

        if settings.DAILY_REPORT_HOUR >= 0:
            self._scheduler.add_job(
                self._run_daily_reports,
                CronTrigger(hour=settings.DAILY_REPORT_HOUR, minute=0),
                id="daily_report_generation",
                name="Daily Report Generation",
                replace_existing=True,
            )
            jobs.append(f"  - Daily reports: {settings.DAILY_REPORT_HOUR:02d}:00 UTC")

        self._scheduler.start()
        logger.info("Background scheduler started:\n" + "\n".join(jobs or ["  - no jobs"]))

    async def stop(self):
        """Stop the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Background scheduler stopped")

    async def _run_auto_scheduling(self):
        """Batch-schedule PENDING tasks for every user."""
        users = await self._user_repo.list_all()
        scheduled = failed = 0
        for user in users:
            try:
                result = await self._scheduler_service.schedule_all_pending_tasks(user.id)
            except Exception as e:
                logger.error(f"Auto-scheduling failed for user {user.id}: {e}")
                continue
            scheduled += result.scheduled
            failed += result.failed

        logger.info(
            f"Auto-scheduling run: {len(users)} user(s), {scheduled} scheduled, {failed} unplaced"
        )

    async def _run_daily_reports(self):
        """Generate and log each user's report for their current day."""
        for user in await self._user_repo.list_all():
            try:
                report = await generate_daily_report(
                    self._task_repo, user, get_user_today(user.timezone)
                )
            except Exception as e:
                logger.error(f"Daily report failed for user {user.id}: {e}")
                continue

            logger.info(
                f"Daily report {report.date} for {user.id}: "
                f"{report.summary.model_dump()} {' '.join(report.suggestions)}"
            )


# Global scheduler instance
_scheduler: Optional[BackgroundScheduler] = None


async def get_background_scheduler() -> BackgroundScheduler:
    """Get the global background scheduler instance."""
    global _scheduler
    if _scheduler is None:
        from app.api.deps import (
            get_scheduler_service,
            get_task_repository,
            get_user_repository,
        )

        _scheduler = BackgroundScheduler(
            user_repo=get_user_repository(),
            task_repo=get_task_repository(),
            scheduler_service=get_scheduler_service(),
        )
    return _scheduler


async def start_background_scheduler():
    """Start the global background scheduler."""
    scheduler = await get_background_scheduler()
    await scheduler.start()


async def stop_background_scheduler():
    """Stop the global background scheduler."""
    global _scheduler
    if _scheduler:
        await _scheduler.stop()
        _scheduler = None
