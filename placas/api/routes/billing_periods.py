"""
api/routes/billing_periods.py
-----------------------------
Billing period (PI) endpoints.

POST /billing-periods                       — Create a PI (starts in_progress).
GET  /billing-periods                       — List PIs (paginated, filterable).
GET  /billing-periods/{period_id}           — Read one PI.
POST /billing-periods/{period_id}/complete  — Mark a PI as completed.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status

from placas.db.gateway import StoreGateway
from placas.dependencies import get_current_user, get_gateway
from placas.models.billing_period import BillingStatus
from placas.models.user import User
from placas.schemas.billing_period import (
    BillingPeriodCreate,
    BillingPeriodListResponse,
    BillingPeriodRead,
)
from placas.services.billing_service import BillingService

router = APIRouter(prefix="/billing-periods", tags=["Billing periods"])


@router.post(
    "",
    response_model=BillingPeriodRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a billing period",
)
async def create_billing_period(
    body: BillingPeriodCreate,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> BillingPeriodRead:
    period = await BillingService.create_billing_period(gateway, current_user.tenant_id, body)
    return BillingPeriodRead.from_model(period)


@router.get(
    "",
    response_model=BillingPeriodListResponse,
    summary="List billing periods for the current tenant (paginated)",
)
async def list_billing_periods(
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
    skip: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=20, ge=1, le=100, description="Results per page"),
    status_filter: Optional[BillingStatus] = Query(default=None, alias="status"),
) -> BillingPeriodListResponse:
    total, periods = await BillingService.list_billing_periods(
        gateway, current_user.tenant_id, skip=skip, limit=limit, status=status_filter
    )
    return BillingPeriodListResponse(
        total=total,
        items=[BillingPeriodRead.from_model(p) for p in periods],
    )


@router.get(
    "/{period_id}",
    response_model=BillingPeriodRead,
    summary="Get a billing period",
)
async def get_billing_period(
    period_id: str,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> BillingPeriodRead:
    period = await gateway.get_billing_period(period_id, current_user.tenant_id)
    return BillingPeriodRead.from_model(period)


@router.post(
    "/{period_id}/complete",
    response_model=BillingPeriodRead,
    summary="Complete a billing period",
)
async def complete_billing_period(
    period_id: str,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> BillingPeriodRead:
    period = await BillingService.complete_billing_period(
        gateway, current_user.tenant_id, period_id
    )
    return BillingPeriodRead.from_model(period)
