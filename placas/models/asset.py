"""
models/asset.py
---------------
Asset (placa) ORM model: a physical rentable advertising unit.

status is a projection of the tenant's current contracts ('available' /
'rented'), maintained by the asset reconciler. 'maintenance' is a manual
override that the reconciler never touches.
"""

from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from placas.db.base import Base, TimestampMixin, generate_uuid


class AssetStatus(str, PyEnum):
    available = "available"
    rented = "rented"
    maintenance = "maintenance"


class Asset(Base, TimestampMixin):
    __tablename__ = "assets"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_assets_tenant_code"),
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
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    street_name: Mapped[Optional[str]] = mapped_column(String(255))
    coordinates: Mapped[Optional[str]] = mapped_column(String(64))
    size: Mapped[Optional[str]] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AssetStatus.available.value, index=True
    )

    def __repr__(self) -> str:
        return f"<Asset id={self.id} code={self.code} status={self.status}>"
