"""
services/reconciliation.py
--------------------------
ReconciliationCoordinator: the entry point the scheduler (or the manual
endpoint) calls once per run.

Runs the billing-period and asset reconcilers one after the other. Each job
is isolated: whatever one raises is captured in the report and logged with the
job name, and the other job still runs. run_daily_reconciliation() itself
never raises an Exception, so the trigger facility keeps running no matter
what a single run does.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import structlog

from placas.core.config import Settings
from placas.core.exceptions import ReconciliationAborted
from placas.core.logging import get_logger
from placas.db.base import as_utc
from placas.db.gateway import StoreGateway
from placas.services.asset_reconciler import AssetStatusReconciler
from placas.services.billing_reconciler import BillingPeriodReconciler
from placas.services.reconciler_base import ReconcileResult

logger = get_logger(__name__)


@dataclass
class JobOutcome:
    name: str
    ok: bool
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None


@dataclass
class ReconciliationReport:
    run_id: str
    now: datetime
    tenant_id: Optional[str] = None
    jobs: list[JobOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(job.ok for job in self.jobs)

    def job(self, name: str) -> JobOutcome:
        job = next((job for job in self.jobs if job.name == name), None)
        if job is None:
            raise KeyError(name)
        return job


class ReconciliationCoordinator:

    def __init__(
        self,
        billing: BillingPeriodReconciler,
        assets: AssetStatusReconciler,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        self._billing = billing
        self._assets = assets
        self._stop_event = stop_event or asyncio.Event()

    @classmethod
    def from_gateway(
        cls, gateway: StoreGateway, settings: Settings
    ) -> "ReconciliationCoordinator":
        stop_event = asyncio.Event()
        options = dict(
            batch_size=settings.RECONCILE_BATCH_SIZE,
            concurrency=settings.RECONCILE_CONCURRENCY,
            stop_event=stop_event,
        )
        return cls(
            BillingPeriodReconciler(gateway, **options),
            AssetStatusReconciler(gateway, **options),
            stop_event=stop_event,
        )

    def request_stop(self) -> None:
        """Stop issuing new reads; writes already in flight complete."""
        self._stop_event.set()

    async def run_daily_reconciliation(
        self,
        now: Optional[datetime] = None,
        tenant_id: Optional[str] = None,
    ) -> ReconciliationReport:
        report = ReconciliationReport(
            run_id=uuid.uuid4().hex,
            now=as_utc(now or datetime.now(timezone.utc)),
            tenant_id=tenant_id,
        )
        with structlog.contextvars.bound_contextvars(reconciliation_run=report.run_id):
            logger.info(
                "Reconciliation started",
                now=report.now.isoformat(),
                tenant_id=tenant_id,
            )
            for name, job in (
                (self._billing.name, self._billing.reconcile_overdue),
                (self._assets.name, self._assets.reconcile_availability),
            ):
                report.jobs.append(await self._run_job(name, job, report))

            logger.info(
                "Reconciliation completed",
                ok=report.ok,
                failed_jobs=[job.name for job in report.jobs if not job.ok],
            )
        return report

    async def _run_job(
        self,
        name: str,
        job: Callable[..., Awaitable[ReconcileResult]],
        report: ReconciliationReport,
    ) -> JobOutcome:
        try:
            result = await job(report.now, tenant_id=report.tenant_id)
        except Exception as exc:
            logger.error(
                "Reconciliation job failed",
                job=name,
                error=f"{type(exc).__name__}: {exc}",
                exc_info=True,
            )
            partial = exc.result.as_dict() if isinstance(exc, ReconciliationAborted) else None
            return JobOutcome(
                name=name, ok=False, result=partial, error=f"{type(exc).__name__}: {exc}"
            )
        return JobOutcome(name=name, ok=True, result=result.as_dict())
