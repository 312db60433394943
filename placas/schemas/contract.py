"""
schemas/contract.py
-------------------
Pydantic models for rental contracts (aluguéis).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from placas.db.base import as_utc


class ContractCreate(BaseModel):
    asset_id: str
    client_name: str = Field(..., min_length=1, max_length=255)
    start_at: datetime
    end_at: datetime = Field(..., description="Exclusive end of the rental")

    @model_validator(mode="after")
    def check_interval(self) -> "ContractCreate":
        self.start_at, self.end_at = as_utc(self.start_at), as_utc(self.end_at)
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


class ContractRead(BaseModel):
    id: str
    tenant_id: str
    asset_id: str
    client_name: str
    start_at: datetime
    end_at: datetime
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
