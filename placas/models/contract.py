"""
models/contract.py
------------------
Contract (aluguel) ORM model: binds one asset to a client for the half-open
interval [start_at, end_at). Immutable once created except for cancellation.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from placas.db.base import Base, TimestampMixin, generate_uuid


class Contract(Base, TimestampMixin):
    __tablename__ = "contracts"
    __table_args__ = (
        Index("ix_contracts_asset_interval", "asset_id", "start_at", "end_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    asset_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
    )
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<Contract id={self.id} asset_id={self.asset_id}>"
