"""
schemas/asset.py
----------------
Pydantic models for assets (placas).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AssetCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64, examples=["PL-0042"])
    street_name: Optional[str] = Field(None, max_length=255)
    coordinates: Optional[str] = Field(None, max_length=64)
    size: Optional[str] = Field(None, max_length=32, examples=["9x3"])


class AssetRead(BaseModel):
    id: str
    tenant_id: str
    code: str
    street_name: Optional[str] = None
    coordinates: Optional[str] = None
    size: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AssetUpdate(BaseModel):
    """Partial update of descriptive fields; status has its own endpoints."""

    code: Optional[str] = Field(None, min_length=1, max_length=64)
    street_name: Optional[str] = Field(None, max_length=255)
    coordinates: Optional[str] = Field(None, max_length=64)
    size: Optional[str] = Field(None, max_length=32)


class AssetListResponse(BaseModel):
    total: int
    items: list[AssetRead]
