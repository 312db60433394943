"""
services/billing_reconciler.py
------------------------------
Moves billing periods (PIs) whose end date has passed from 'in_progress' to
'overdue'. Completed and overdue periods are never touched, and the write
re-checks the status so a concurrent completion always wins.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from placas.core.exceptions import InvariantViolation
from placas.db.base import as_utc
from placas.models import BillingPeriod, BillingStatus
from placas.services.reconciler_base import BatchReconciler, ReconcileResult


@dataclass
class OverdueResult(ReconcileResult):
    transitioned: int = 0


class BillingPeriodReconciler(BatchReconciler):

    name = "billing_overdue"
    count_field = "transitioned"

    async def reconcile_overdue(
        self,
        now: Optional[datetime] = None,
        tenant_id: Optional[str] = None,
    ) -> OverdueResult:
        now = as_utc(now or datetime.now(timezone.utc))
        result = OverdueResult()

        async def fetch_page(after_id: Optional[str]) -> list[BillingPeriod]:
            return await self._gateway.list_overdue_candidates(
                now,
                limit=self._batch_size,
                after_id=after_id,
                tenant_id=tenant_id,
            )

        await self._scan(fetch_page, lambda period: self._mark_overdue(period, now), result)
        return result

    async def _mark_overdue(self, period: BillingPeriod, now: datetime) -> bool:
        if period.status != BillingStatus.in_progress.value:
            return False
        if as_utc(period.end_date) <= as_utc(period.start_date):
            raise InvariantViolation(
                "BillingPeriod", period.id, "end date is not after start date"
            )
        if as_utc(period.end_date) >= now:
            return False
        await self._gateway.mark_billing_period_overdue(period.id, now)
        return True
