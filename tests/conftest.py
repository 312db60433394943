"""Shared pytest fixtures.

Settings are read once at import time, so the environment is prepared
before anything from placas is imported.
"""

import itertools
import os
import tempfile
from datetime import datetime
from decimal import Decimal

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "placas-test.db"),
)
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from placas.db.gateway import StoreGateway  # noqa: E402
from placas.db.session import build_session_factory, create_schema  # noqa: E402
from placas.models import (  # noqa: E402
    Asset,
    AssetStatus,
    BillingPeriod,
    BillingStatus,
    Contract,
    PeriodKind,
    Tenant,
    User,
    UserRole,
)


@pytest.fixture
async def engine(tmp_path):
    # NullPool: every checkout opens a fresh aiosqlite connection on the current loop
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'store.db'}", poolclass=NullPool
    )
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def gateway(engine) -> StoreGateway:
    return StoreGateway(build_session_factory(engine))


@pytest.fixture
def make_tenant(gateway):
    counter = itertools.count(1)

    async def factory(name: str = "Acme Outdoor") -> Tenant:
        n = next(counter)
        tenant, _ = await gateway.create_tenant_with_admin(
            Tenant(name=name, tax_id=f"{n:014d}"),
            User(
                username=f"admin{n}",
                email=f"admin{n}@example.com",
                hashed_password="not-a-real-hash",
                first_name="Ada",
                last_name="Admin",
                role=UserRole.admin.value,
            ),
        )
        return tenant

    return factory


@pytest.fixture
def make_asset(gateway):
    counter = itertools.count(1)

    async def factory(tenant_id: str, status: str = AssetStatus.available.value) -> Asset:
        return await gateway.create_asset(
            Asset(tenant_id=tenant_id, code=f"PL-{next(counter):04d}", status=status)
        )

    return factory


@pytest.fixture
def make_contract(gateway):
    async def factory(
        tenant_id: str,
        asset_id: str,
        start_at: datetime,
        end_at: datetime,
        cancelled_at: datetime | None = None,
    ) -> Contract:
        return await gateway.create_contract(
            Contract(
                tenant_id=tenant_id,
                asset_id=asset_id,
                client_name="Padaria Central",
                start_at=start_at,
                end_at=end_at,
                cancelled_at=cancelled_at,
            )
        )

    return factory


@pytest.fixture
def make_period(gateway):
    async def factory(
        tenant_id: str,
        start_date: datetime,
        end_date: datetime,
        status: str = BillingStatus.in_progress.value,
        asset_ids=(),
    ) -> BillingPeriod:
        return await gateway.create_billing_period(
            BillingPeriod(
                tenant_id=tenant_id,
                client_name="Padaria Central",
                period_kind=PeriodKind.biweekly.value,
                start_date=start_date,
                end_date=end_date,
                total_value=Decimal("1500.00"),
                description="Two boards, downtown",
                status=status,
            ),
            asset_ids=asset_ids,
        )

    return factory
