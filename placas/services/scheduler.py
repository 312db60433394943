"""
services/scheduler.py
---------------------
Recurring trigger facility built on APScheduler's AsyncIOScheduler.

Jobs:
  daily-reconciliation  RECONCILE_CRON  → coordinator.run_daily_reconciliation()
  weekly-backup         BACKUP_CRON     → placeholder, no backup target yet

Cron expressions use the five-field crontab syntax. APScheduler numbers
day_of_week from monday=0, so prefer names (sun, mon, ...) in that field.
The reconciliation job runs with max_instances=1 and coalesce=True only to
avoid duplicate work; overlapping runs would still be correct.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.cron import CronTrigger  # type: ignore[import-untyped]

from placas.core.logging import get_logger
from placas.services.reconciliation import ReconciliationCoordinator

logger = get_logger(__name__)

RECONCILIATION_JOB_ID = "daily-reconciliation"
BACKUP_JOB_ID = "weekly-backup"


class ReconciliationScheduler:

    def __init__(
        self,
        coordinator: ReconciliationCoordinator,
        reconcile_cron: str,
        backup_cron: str,
        timezone: str = "UTC",
    ) -> None:
        self._coordinator = coordinator
        self.scheduler = AsyncIOScheduler(timezone=timezone)
        self.scheduler.add_job(
            self.run_reconciliation,
            CronTrigger.from_crontab(reconcile_cron, timezone=timezone),
            id=RECONCILIATION_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_backup,
            CronTrigger.from_crontab(backup_cron, timezone=timezone),
            id=BACKUP_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    async def run_reconciliation(self) -> None:
        logger.info("Scheduled reconciliation fired")
        await self._coordinator.run_daily_reconciliation()

    async def run_backup(self) -> None:
        # TODO: upload a database dump to object storage once a bucket is configured
        logger.warning("Scheduled backup fired but no backup target is configured")

    def start(self) -> None:
        self.scheduler.start()
        logger.info(
            "Scheduler started",
            jobs=[job.id for job in self.scheduler.get_jobs()],
        )

    def shutdown(self) -> None:
        """Stop firing new jobs and ask any running reconciliation to wind down."""
        self._coordinator.request_stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
