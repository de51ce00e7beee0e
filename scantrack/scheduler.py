"""Scheduled job execution for expiry reminders."""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """Runs the expiry reminder on a cron schedule.

    Uses APScheduler for cron-based scheduling.
    """

    def __init__(self, config, notifier=None) -> None:
        """Initialize scheduler with an AppConfig.

        Args:
            config: AppConfig instance.
            notifier: Notifier used by the reminder job. Defaults to LogNotifier.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger
        except ImportError:
            raise ImportError(
                "apscheduler が必要です: pip install apscheduler"
            )

        self._config = config
        self._notifier = notifier
        self._scheduler = AsyncIOScheduler()
        self._CronTrigger = CronTrigger
        self._running = False

    def setup_jobs(self) -> None:
        """Register scheduled jobs based on config."""
        trigger = self._parse_cron(self._config.reminder.schedule)
        self._scheduler.add_job(
            self._job_send_reminders,
            trigger=trigger,
            id="send_reminders",
            name="賞味期限リマインダー",
            replace_existing=True,
        )
        logger.info(
            "リマインダージョブ登録: %s", self._config.reminder.schedule
        )

    def start(self) -> None:
        """Start the scheduler. Must be called with a running event loop."""
        self.setup_jobs()
        self._scheduler.start()
        self._running = True
        logger.info("スケジューラー開始")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("スケジューラー停止")

    @property
    def running(self) -> bool:
        return self._running

    def get_jobs(self) -> list[dict]:
        """Return info about scheduled jobs."""
        jobs = []
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": str(next_run) if next_run else None,
            })
        return jobs

    def _parse_cron(self, expr: str):
        """Parse a cron expression into a CronTrigger."""
        parts = expr.split()
        if len(parts) == 5:
            return self._CronTrigger(
                minute=parts[0],
                hour=parts[1],
                day=parts[2],
                month=parts[3],
                day_of_week=parts[4],
            )
        raise ValueError(f"無効なcron式: {expr}")

    async def _job_send_reminders(self) -> None:
        """Notify members about items that expire soon."""
        logger.info("リマインダージョブ実行中...")

        try:
            await asyncio.to_thread(self._send_reminders)
        except Exception:
            logger.exception("リマインダージョブでエラーが発生しました")

    def _send_reminders(self) -> None:
        # The connection is opened, used and closed on the worker thread
        from .db import InventoryDB
        from .reminder import ExpiryReminder

        db = InventoryDB(self._config.database.path)
        try:
            ExpiryReminder(
                db,
                notifier=self._notifier,
                days_ahead=self._config.reminder.days_ahead,
            ).run()
        finally:
            db.close()
