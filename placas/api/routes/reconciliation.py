"""
api/routes/reconciliation.py
----------------------------
Manual trigger for the reconciliation engine.

POST /reconciliation/run — Reconcile the API-key tenant's billing periods and
                           assets right now. Always answers 200 with the run
                           report; a failed job shows up as ok=false.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from placas.core.logging import get_logger
from placas.core.security import TenantContext
from placas.dependencies import get_api_key_tenant, get_coordinator
from placas.schemas.reconciliation import ReconciliationReportRead
from placas.services.reconciliation import ReconciliationCoordinator

logger = get_logger(__name__)

router = APIRouter(prefix="/reconciliation", tags=["Reconciliation"])


@router.post(
    "/run",
    response_model=ReconciliationReportRead,
    summary="Run reconciliation for the calling tenant",
)
async def run_reconciliation(
    tenant: Annotated[TenantContext, Depends(get_api_key_tenant)],
    coordinator: Annotated[ReconciliationCoordinator, Depends(get_coordinator)],
) -> ReconciliationReportRead:
    logger.info("Manual reconciliation requested", tenant_id=tenant.tenant_id)
    report = await coordinator.run_daily_reconciliation(tenant_id=tenant.tenant_id)
    return ReconciliationReportRead.model_validate(report)
