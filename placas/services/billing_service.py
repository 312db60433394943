"""
services/billing_service.py
---------------------------
Business actions on billing periods (PIs). New periods always start
'in_progress'; 'completed' is set here, 'overdue' only by the reconciler.
"""

from typing import Optional

from placas.core.logging import get_logger
from placas.db.gateway import StoreGateway
from placas.models.billing_period import BillingPeriod, BillingStatus
from placas.schemas.billing_period import BillingPeriodCreate

logger = get_logger(__name__)


class BillingService:

    @staticmethod
    async def create_billing_period(
        gateway: StoreGateway, tenant_id: str, data: BillingPeriodCreate
    ) -> BillingPeriod:
        period = BillingPeriod(
            tenant_id=tenant_id,
            client_name=data.client_name.strip(),
            period_kind=data.period_kind.value,
            start_date=data.start_date,
            end_date=data.end_date,
            total_value=data.total_value,
            description=data.description.strip(),
            payment_method=data.payment_method,
            status=BillingStatus.in_progress.value,
        )
        period = await gateway.create_billing_period(period, asset_ids=data.asset_ids)
        logger.info("Billing period created", period_id=period.id, tenant_id=tenant_id)
        return period

    @staticmethod
    async def complete_billing_period(
        gateway: StoreGateway, tenant_id: str, period_id: str
    ) -> BillingPeriod:
        period = await gateway.complete_billing_period(period_id, tenant_id)
        logger.info("Billing period completed", period_id=period_id, tenant_id=tenant_id)
        return period

    @staticmethod
    async def list_billing_periods(
        gateway: StoreGateway,
        tenant_id: str,
        skip: int = 0,
        limit: int = 20,
        status: Optional[BillingStatus] = None,
    ) -> tuple[int, list[BillingPeriod]]:
        return await gateway.list_billing_periods(
            tenant_id, skip=skip, limit=limit, status=status
        )
