"""
api/routes/assets.py
--------------------
Asset (placa) endpoints, scoped to the caller's tenant.

POST   /assets                        — Create an asset.
GET    /assets                        — List assets (paginated, filterable).
GET    /assets/available              — Assets free for a date range.
GET    /assets/{asset_id}             — Read one asset.
PATCH  /assets/{asset_id}             — Edit descriptive fields.
DELETE /assets/{asset_id}             — Delete an asset that is not rented.
GET    /assets/{asset_id}/contracts   — Contract history of one asset.
POST   /assets/{asset_id}/maintenance — Toggle the maintenance override.
"""

from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from placas.db.gateway import StoreGateway
from placas.dependencies import get_current_user, get_gateway
from placas.models.asset import AssetStatus
from placas.models.user import User
from placas.schemas.asset import AssetCreate, AssetListResponse, AssetRead, AssetUpdate
from placas.schemas.contract import ContractRead
from placas.services.asset_service import AssetService
from placas.services.contract_service import ContractService

router = APIRouter(prefix="/assets", tags=["Assets"])


@router.post(
    "",
    response_model=AssetRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create an asset",
)
async def create_asset(
    body: AssetCreate,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> AssetRead:
    asset = await AssetService.create_asset(gateway, current_user.tenant_id, body)
    return AssetRead.model_validate(asset)


@router.get(
    "",
    response_model=AssetListResponse,
    summary="List assets for the current tenant (paginated)",
)
async def list_assets(
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
    skip: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=20, ge=1, le=100, description="Results per page"),
    status_filter: Optional[AssetStatus] = Query(default=None, alias="status"),
    search: Optional[str] = Query(
        default=None, max_length=64, description="Matches code or street name"
    ),
) -> AssetListResponse:
    total, assets = await AssetService.list_assets(
        gateway,
        current_user.tenant_id,
        skip=skip,
        limit=limit,
        status=status_filter,
        search=search,
    )
    return AssetListResponse(
        total=total,
        items=[AssetRead.model_validate(a) for a in assets],
    )


@router.get(
    "/available",
    response_model=list[AssetRead],
    summary="Assets free for a whole date range",
)
async def list_available_assets(
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
    start_at: datetime = Query(...),
    end_at: datetime = Query(..., description="Exclusive end of the range"),
) -> list[AssetRead]:
    """
    Excludes assets in maintenance, assets with a contract overlapping the
    range and assets booked by an in-progress or completed billing period
    overlapping it.
    """
    try:
        assets = await AssetService.find_available_assets(
            gateway, current_user.tenant_id, start_at, end_at
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return [AssetRead.model_validate(a) for a in assets]


@router.get("/{asset_id}", response_model=AssetRead, summary="Get an asset")
async def get_asset(
    asset_id: str,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> AssetRead:
    asset = await gateway.get_asset(asset_id, current_user.tenant_id)
    return AssetRead.model_validate(asset)


@router.patch("/{asset_id}", response_model=AssetRead, summary="Edit an asset")
async def update_asset(
    asset_id: str,
    body: AssetUpdate,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> AssetRead:
    try:
        asset = await AssetService.update_asset(gateway, current_user.tenant_id, asset_id, body)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return AssetRead.model_validate(asset)


@router.delete(
    "/{asset_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an asset",
)
async def delete_asset(
    asset_id: str,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> Response:
    """409 while a contract covers the current moment."""
    await AssetService.delete_asset(gateway, current_user.tenant_id, asset_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{asset_id}/contracts",
    response_model=list[ContractRead],
    summary="Contracts of one asset",
)
async def list_asset_contracts(
    asset_id: str,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> list[ContractRead]:
    contracts = await ContractService.list_for_asset(gateway, current_user.tenant_id, asset_id)
    return [ContractRead.model_validate(c) for c in contracts]


@router.post(
    "/{asset_id}/maintenance",
    response_model=AssetRead,
    summary="Enter or leave maintenance",
)
async def toggle_maintenance(
    asset_id: str,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> AssetRead:
    """409 when trying to put an asset that is currently rented into maintenance."""
    asset = await AssetService.toggle_maintenance(gateway, current_user.tenant_id, asset_id)
    return AssetRead.model_validate(asset)
