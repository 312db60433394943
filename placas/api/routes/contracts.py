"""
api/routes/contracts.py
-----------------------
Rental contract endpoints.

POST /contracts                        — Rent an asset for [start_at, end_at).
POST /contracts/{contract_id}/cancel   — Cancel a contract.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from placas.db.gateway import StoreGateway
from placas.dependencies import get_current_user, get_gateway
from placas.models.user import User
from placas.schemas.contract import ContractCreate, ContractRead
from placas.services.contract_service import ContractService

router = APIRouter(prefix="/contracts", tags=["Contracts"])


@router.post(
    "",
    response_model=ContractRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a rental contract",
)
async def create_contract(
    body: ContractCreate,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> ContractRead:
    """409 when the interval intersects another live contract on the asset."""
    contract = await ContractService.create_contract(gateway, current_user.tenant_id, body)
    return ContractRead.model_validate(contract)


@router.post(
    "/{contract_id}/cancel",
    response_model=ContractRead,
    summary="Cancel a rental contract",
)
async def cancel_contract(
    contract_id: str,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> ContractRead:
    contract = await ContractService.cancel_contract(
        gateway, current_user.tenant_id, contract_id
    )
    return ContractRead.model_validate(contract)
