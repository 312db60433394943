"""
api/routes/tenants.py
---------------------
Tenant management endpoints.

GET  /tenants/me          — The caller's tenant (never exposes the key hash).
POST /tenants/me/api-key  — Admin-only: rotate the tenant's API key.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from placas.db.gateway import StoreGateway
from placas.dependencies import get_current_admin, get_current_user, get_gateway
from placas.models.user import User
from placas.schemas.tenant import ApiKeyResponse, ApiKeyRotate, TenantRead
from placas.services.tenant_service import TenantService

router = APIRouter(prefix="/tenants", tags=["Tenants"])


@router.get(
    "/me",
    response_model=TenantRead,
    summary="Get the authenticated user's tenant",
)
async def get_my_tenant(
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> TenantRead:
    tenant = await gateway.get_tenant(current_user.tenant_id)
    return TenantRead.model_validate(tenant)


@router.post(
    "/me/api-key",
    response_model=ApiKeyResponse,
    summary="Rotate the tenant API key (admin only)",
)
async def rotate_api_key(
    body: ApiKeyRotate,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
    admin: Annotated[User, Depends(get_current_admin)],
) -> ApiKeyResponse:
    """
    The admin re-enters their password. The returned key is shown once;
    only its prefix and a hash of the secret are stored.
    """
    try:
        key = await TenantService.rotate_api_key(gateway, admin, body.password)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    return ApiKeyResponse(api_key=key.full_key, api_key_prefix=key.prefix)
