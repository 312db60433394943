"""
models/tenant.py
----------------
Tenant (empresa) ORM model.

Each tenant is an isolated organisational unit. All data belonging to a tenant
is scoped by tenant_id at the query level — never trust application-level
filtering alone; always include tenant_id in WHERE clauses.

api_key_hash is deferred with raiseload: a plain SELECT never loads it and
touching the attribute raises instead of emitting SQL. It is only available
when a read explicitly asks for it (StoreGateway.get_tenant(include=...)).
"""

from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from placas.db.base import Base, TimestampMixin, generate_uuid


class SubscriptionStatus(str, PyEnum):
    active = "active"
    inactive = "inactive"
    pending = "pending"


class Tenant(Base, TimestampMixin):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tax_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)

    address: Mapped[Optional[str]] = mapped_column(String(255))
    district: Mapped[Optional[str]] = mapped_column(String(120))
    city: Mapped[Optional[str]] = mapped_column(String(120))
    phone: Mapped[Optional[str]] = mapped_column(String(40))

    api_key_hash: Mapped[Optional[str]] = mapped_column(
        String(255), deferred=True, deferred_raiseload=True
    )
    api_key_prefix: Mapped[Optional[str]] = mapped_column(
        String(32), unique=True, index=True
    )
    subscription_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SubscriptionStatus.pending.value
    )

    # Relationships
    users: Mapped[list["User"]] = relationship(  # noqa: F821
        "User", back_populates="tenant", cascade="all, delete-orphan"
    )

    # Columns that a generic read never returns
    SENSITIVE_FIELDS = frozenset({"api_key_hash"})

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} name={self.name}>"
