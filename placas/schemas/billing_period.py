"""
schemas/billing_period.py
-------------------------
Pydantic models for billing periods (PIs).
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from placas.db.base import as_utc
from placas.models.billing_period import PeriodKind


class BillingPeriodCreate(BaseModel):
    client_name: str = Field(..., min_length=1, max_length=255)
    period_kind: PeriodKind
    start_date: datetime
    end_date: datetime
    total_value: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)
    description: str = Field(..., min_length=1)
    payment_method: Optional[str] = Field(None, max_length=60)
    asset_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_dates(self) -> "BillingPeriodCreate":
        self.start_date, self.end_date = as_utc(self.start_date), as_utc(self.end_date)
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class BillingPeriodRead(BaseModel):
    id: str
    tenant_id: str
    client_name: str
    period_kind: str
    start_date: datetime
    end_date: datetime
    total_value: Decimal
    description: str
    payment_method: Optional[str] = None
    status: str
    asset_ids: list[str]
    created_at: datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_model(cls, period) -> "BillingPeriodRead":
        return cls.model_validate(
            {
                **{name: getattr(period, name) for name in cls.model_fields if name != "asset_ids"},
                "asset_ids": [asset.id for asset in period.assets],
            }
        )


class BillingPeriodListResponse(BaseModel):
    total: int
    items: list[BillingPeriodRead]
