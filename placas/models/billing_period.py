"""
models/billing_period.py
------------------------
BillingPeriod (PI, insertion order) ORM model.

Status lifecycle:
  in_progress --[end_date < now, reconciler]--> overdue
  in_progress | overdue --[business action]--> completed
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from placas.db.base import Base, TimestampMixin, generate_uuid


class PeriodKind(str, PyEnum):
    biweekly = "biweekly"
    monthly = "monthly"


class BillingStatus(str, PyEnum):
    in_progress = "in_progress"
    completed = "completed"
    overdue = "overdue"


billing_period_assets = Table(
    "billing_period_assets",
    Base.metadata,
    Column(
        "billing_period_id",
        String(36),
        ForeignKey("billing_periods.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "asset_id",
        String(36),
        ForeignKey("assets.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class BillingPeriod(Base, TimestampMixin):
    __tablename__ = "billing_periods"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    period_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    total_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(60))
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BillingStatus.in_progress.value, index=True
    )

    assets: Mapped[list["Asset"]] = relationship(  # noqa: F821
        "Asset", secondary=billing_period_assets, lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<BillingPeriod id={self.id} status={self.status}>"
