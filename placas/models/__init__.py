"""
models/__init__.py
------------------
Re-export all models so schema creation can import Base and discover
all tables via a single import:

    from placas.models import Base
"""

from placas.db.base import Base
from placas.models.tenant import SubscriptionStatus, Tenant
from placas.models.user import User, UserRole
from placas.models.asset import Asset, AssetStatus
from placas.models.contract import Contract
from placas.models.billing_period import (
    BillingPeriod,
    BillingStatus,
    PeriodKind,
    billing_period_assets,
)

__all__ = [
    "Base",
    "Tenant",
    "SubscriptionStatus",
    "User",
    "UserRole",
    "Asset",
    "AssetStatus",
    "Contract",
    "BillingPeriod",
    "BillingStatus",
    "PeriodKind",
    "billing_period_assets",
]
