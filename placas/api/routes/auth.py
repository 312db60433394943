"""
api/routes/auth.py
------------------
Authentication endpoints.

POST /auth/register  — Register a company (tenant) with its first admin user.
POST /auth/login     — Exchange credentials for a JWT access token.
GET  /auth/me        — Return the authenticated user's profile.
"""

from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from placas.core.config import settings
from placas.core.security import create_access_token
from placas.db.gateway import StoreGateway
from placas.dependencies import get_current_user, get_gateway
from placas.models.user import User
from placas.schemas.tenant import RegistrationResponse, TenantRead, TenantRegister
from placas.schemas.user import TokenResponse, UserRead
from placas.services.tenant_service import TenantService
from placas.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a company and its first admin user",
)
async def register(
    body: TenantRegister,
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
) -> RegistrationResponse:
    """
    Public endpoint. The tenant and the admin user are created in a single
    transaction; a duplicate tax id, email or username yields 409.
    """
    tenant, user = await TenantService.register(gateway, body)
    return RegistrationResponse(
        tenant=TenantRead.model_validate(tenant),
        user=UserRead.model_validate(user),
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login and receive a JWT access token",
)
async def login(
    # The OAuth2 "username" field accepts either the email or the username.
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    gateway: Annotated[StoreGateway, Depends(get_gateway)],
) -> TokenResponse:
    user = await UserService.authenticate(gateway, form_data.username, form_data.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = create_access_token(
        subject=user.id,
        tenant_id=user.tenant_id,
        role=user.role,
        expires_delta=expires,
    )

    return TokenResponse(
        access_token=token,
        token_type="bearer",
        expires_in=int(expires.total_seconds()),
        user=UserRead.model_validate(user),
    )


@router.get(
    "/me",
    response_model=UserRead,
    summary="Get the currently authenticated user",
)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserRead:
    return UserRead.model_validate(current_user)
