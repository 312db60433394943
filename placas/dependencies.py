"""
dependencies.py
---------------
FastAPI dependency injection functions for the store gateway,
authentication and authorisation.

Flow (users):
  1. OAuth2PasswordBearer extracts the Bearer token from the Authorization header.
  2. decode_access_token validates and parses the JWT (no DB round-trip).
  3. get_current_user fetches the full User record through the gateway,
     verifying the token's sub (user_id) and tenant_id against persisted data.
  4. get_current_admin layers a role check on top of get_current_user.

Flow (integrations):
  get_api_key_tenant reads the x-api-key header and resolves it to a
  TenantContext. Nothing is attached to the request ad hoc.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader, OAuth2PasswordBearer
from jose import JWTError

from placas.core.exceptions import NotFound
from placas.core.logging import get_logger
from placas.core.security import TenantContext, decode_access_token
from placas.db.gateway import StoreGateway
from placas.models.user import User, UserRole
from placas.services.reconciliation import ReconciliationCoordinator
from placas.services.tenant_service import TenantService

logger = get_logger(__name__)

# tokenUrl must match the login endpoint path
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


def get_gateway(request: Request) -> StoreGateway:
    return request.app.state.gateway


def get_coordinator(request: Request) -> ReconciliationCoordinator:
    return request.app.state.coordinator


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
) -> User:
    """
    Decode the JWT, then load and return the full User from the database.
    Raises 401 if the token is invalid or the user no longer exists.
    """
    try:
        payload = decode_access_token(token)
        user_id: str = payload.get("sub")
        tenant_id: str = payload.get("tenant_id")
        if not user_id or not tenant_id:
            raise _CREDENTIALS_EXCEPTION
    except JWTError as exc:
        logger.warning("JWT decode failed", error=str(exc))
        raise _CREDENTIALS_EXCEPTION

    # Always re-verify against DB so revoked / deleted users are rejected
    try:
        return await gateway.get_user(user_id, tenant_id=tenant_id)
    except NotFound:
        logger.warning("User from valid JWT not found in DB", user_id=user_id)
        raise _CREDENTIALS_EXCEPTION


async def get_current_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Extends get_current_user with an admin role check.
    Raises 403 if the authenticated user is not an admin.
    """
    if current_user.role != UserRole.admin.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


async def get_api_key_tenant(
    api_key: Annotated[str | None, Depends(api_key_header)],
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
) -> TenantContext:
    """Resolve the x-api-key header; 401 when missing, 403 when invalid."""
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key",
        )
    context = await TenantService.validate_api_key(gateway, api_key)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )
    return context
