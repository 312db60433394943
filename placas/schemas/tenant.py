"""
schemas/tenant.py
-----------------
Pydantic request/response models for Tenant.

Naming convention:
  TenantRegister → inbound request body
  TenantRead     → outbound response body (never exposes api_key_hash)
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from placas.schemas.user import UserRead


class TenantRegister(BaseModel):
    """Company sign-up: creates the tenant and its first admin user."""
    company_name: str = Field(..., min_length=2, max_length=255, examples=["Acme Outdoor"])
    tax_id: str = Field(..., min_length=11, max_length=32, description="CNPJ")
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: str = Field(..., min_length=1, max_length=120)

    @field_validator("company_name", "username", "first_name", "last_name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("tax_id")
    @classmethod
    def digits_only(cls, v: str) -> str:
        digits = "".join(ch for ch in v if ch.isdigit())
        if len(digits) != 14:
            raise ValueError("tax_id must contain 14 digits")
        return digits


class TenantRead(BaseModel):
    id: str
    name: str
    tax_id: str
    address: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None
    api_key_prefix: Optional[str] = None
    subscription_status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class RegistrationResponse(BaseModel):
    tenant: TenantRead
    user: UserRead


class ApiKeyRotate(BaseModel):
    password: str = Field(..., description="Admin password, re-entered for confirmation")


class ApiKeyResponse(BaseModel):
    api_key: str = Field(..., description="Full key; shown only once")
    api_key_prefix: str
