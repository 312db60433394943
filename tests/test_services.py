"""Business services: registration, API keys, contracts and maintenance."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from placas.core.exceptions import Conflict, NotFound
from placas.models import AssetStatus, BillingStatus, PeriodKind
from placas.schemas.asset import AssetCreate, AssetUpdate
from placas.schemas.billing_period import BillingPeriodCreate
from placas.schemas.contract import ContractCreate
from placas.schemas.tenant import TenantRegister
from placas.services.asset_service import AssetService
from placas.services.billing_service import BillingService
from placas.services.contract_service import ContractService
from placas.services.tenant_service import TenantService
from placas.services.user_service import UserService


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


NOW = utc(2024, 2, 5)


def _registration(**overrides) -> TenantRegister:
    data = dict(
        company_name="Acme Outdoor",
        tax_id="12.345.678/0001-90",
        username="Ada",
        email="Ada@Acme.com.br",
        password="correct-horse",
        first_name="Ada",
        last_name="Lovelace",
    )
    data.update(overrides)
    return TenantRegister(**data)


@pytest.fixture
async def registered(gateway):
    return await TenantService.register(gateway, _registration())


# ── Tenants ───────────────────────────────────────────────────────────────────


async def test_register_creates_admin_with_normalised_login(gateway, registered):
    tenant, admin = registered

    assert tenant.tax_id == "12345678000190"
    assert admin.role == "admin"
    assert admin.username == "ada"
    assert admin.email == "ada@acme.com.br"
    assert await UserService.authenticate(gateway, "ADA@acme.com.br", "correct-horse")


async def test_register_duplicate_tax_id_conflicts(gateway, registered):
    with pytest.raises(Conflict, match="already registered"):
        await TenantService.register(
            gateway, _registration(username="bob", email="bob@acme.com.br")
        )


async def test_authenticate_rejects_wrong_password(gateway, registered):
    assert await UserService.authenticate(gateway, "ada", "wrong-password") is None
    assert await UserService.authenticate(gateway, "nobody", "correct-horse") is None


async def test_rotated_key_resolves_to_tenant(gateway, registered):
    tenant, admin = registered

    key = await TenantService.rotate_api_key(gateway, admin, "correct-horse")
    context = await TenantService.validate_api_key(gateway, key.full_key)

    assert context is not None
    assert context.tenant_id == tenant.id
    assert context.tenant_name == "Acme Outdoor"


async def test_rotation_invalidates_previous_key(gateway, registered):
    _, admin = registered

    old = await TenantService.rotate_api_key(gateway, admin, "correct-horse")
    new = await TenantService.rotate_api_key(gateway, admin, "correct-horse")

    assert await TenantService.validate_api_key(gateway, old.full_key) is None
    assert await TenantService.validate_api_key(gateway, new.full_key) is not None


async def test_rotation_requires_password(gateway, registered):
    _, admin = registered

    with pytest.raises(ValueError):
        await TenantService.rotate_api_key(gateway, admin, "wrong-password")


@pytest.mark.parametrize("api_key", ["garbage", "zzzz_0000_secret"])
async def test_invalid_keys_resolve_to_nothing(gateway, registered, api_key):
    assert await TenantService.validate_api_key(gateway, api_key) is None


async def test_wrong_secret_resolves_to_nothing(gateway, registered):
    _, admin = registered
    key = await TenantService.rotate_api_key(gateway, admin, "correct-horse")

    assert await TenantService.validate_api_key(gateway, f"{key.prefix}_not-the-secret") is None


# ── Assets ────────────────────────────────────────────────────────────────────


async def test_duplicate_asset_code_is_reported(gateway, make_tenant):
    tenant = await make_tenant()
    await AssetService.create_asset(gateway, tenant.id, AssetCreate(code="PL-1"))

    with pytest.raises(Conflict, match="PL-1"):
        await AssetService.create_asset(gateway, tenant.id, AssetCreate(code="PL-1"))


async def test_maintenance_round_trip(gateway, make_tenant, make_asset):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)

    entered = await AssetService.toggle_maintenance(gateway, tenant.id, asset.id, NOW)
    left = await AssetService.toggle_maintenance(gateway, tenant.id, asset.id, NOW)

    assert entered.status == AssetStatus.maintenance.value
    assert left.status == AssetStatus.available.value


async def test_rented_asset_cannot_enter_maintenance(
    gateway, make_tenant, make_asset, make_contract
):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)
    await make_contract(tenant.id, asset.id, utc(2024, 2, 1), utc(2024, 2, 10))

    with pytest.raises(Conflict):
        await AssetService.toggle_maintenance(gateway, tenant.id, asset.id, NOW)


async def test_leaving_maintenance_restores_rented(
    gateway, make_tenant, make_asset, make_contract
):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id, status=AssetStatus.maintenance.value)
    await make_contract(tenant.id, asset.id, utc(2024, 2, 1), utc(2024, 2, 10))

    left = await AssetService.toggle_maintenance(gateway, tenant.id, asset.id, NOW)

    assert left.status == AssetStatus.rented.value


async def test_update_trims_code_and_reports_duplicates(gateway, make_tenant):
    tenant = await make_tenant()
    asset = await AssetService.create_asset(gateway, tenant.id, AssetCreate(code="PL-1"))
    await AssetService.create_asset(gateway, tenant.id, AssetCreate(code="PL-2"))

    renamed = await AssetService.update_asset(
        gateway, tenant.id, asset.id, AssetUpdate(code="  PL-9 ", size="9x3")
    )
    assert renamed.code == "PL-9"
    assert renamed.size == "9x3"

    with pytest.raises(Conflict, match="PL-2"):
        await AssetService.update_asset(gateway, tenant.id, asset.id, AssetUpdate(code="PL-2"))
    with pytest.raises(ValueError):
        await AssetService.update_asset(gateway, tenant.id, asset.id, AssetUpdate(code=None))


async def test_rented_asset_cannot_be_deleted(gateway, make_tenant, make_asset, make_contract):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)
    await make_contract(tenant.id, asset.id, utc(2024, 2, 1), utc(2024, 2, 10))

    with pytest.raises(Conflict, match="rented asset cannot be deleted"):
        await AssetService.delete_asset(gateway, tenant.id, asset.id, NOW)

    await AssetService.delete_asset(gateway, tenant.id, asset.id, utc(2024, 3, 1))
    with pytest.raises(NotFound):
        await gateway.get_asset(asset.id)


async def test_availability_needs_a_positive_range(gateway, make_tenant):
    tenant = await make_tenant()

    with pytest.raises(ValueError):
        await AssetService.find_available_assets(
            gateway, tenant.id, utc(2024, 3, 1), utc(2024, 3, 1)
        )


async def test_availability_treats_naive_bounds_as_utc(
    gateway, make_tenant, make_asset, make_contract
):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)
    await make_contract(tenant.id, asset.id, utc(2024, 3, 1), utc(2024, 3, 10))

    inside = await AssetService.find_available_assets(
        gateway, tenant.id, datetime(2024, 3, 9), datetime(2024, 3, 12)
    )
    after = await AssetService.find_available_assets(
        gateway, tenant.id, datetime(2024, 3, 10), datetime(2024, 3, 12)
    )

    assert inside == []
    assert [a.id for a in after] == [asset.id]


# ── Contracts ─────────────────────────────────────────────────────────────────


def _contract(asset_id: str, start: datetime, end: datetime) -> ContractCreate:
    return ContractCreate(asset_id=asset_id, client_name="Padaria Central", start_at=start, end_at=end)


async def test_contract_covering_now_rents_asset(gateway, make_tenant, make_asset):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)

    await ContractService.create_contract(
        gateway, tenant.id, _contract(asset.id, utc(2024, 2, 1), utc(2024, 2, 10)), NOW
    )

    assert (await gateway.get_asset(asset.id)).status == AssetStatus.rented.value


async def test_future_contract_leaves_asset_available(gateway, make_tenant, make_asset):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)

    await ContractService.create_contract(
        gateway, tenant.id, _contract(asset.id, utc(2024, 3, 1), utc(2024, 3, 10)), NOW
    )

    assert (await gateway.get_asset(asset.id)).status == AssetStatus.available.value


async def test_double_booking_is_rejected(gateway, make_tenant, make_asset):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)
    await ContractService.create_contract(
        gateway, tenant.id, _contract(asset.id, utc(2024, 2, 1), utc(2024, 2, 10)), NOW
    )

    with pytest.raises(Conflict, match="already rented"):
        await ContractService.create_contract(
            gateway, tenant.id, _contract(asset.id, utc(2024, 2, 9), utc(2024, 2, 20)), NOW
        )

    back_to_back = await ContractService.create_contract(
        gateway, tenant.id, _contract(asset.id, utc(2024, 2, 10), utc(2024, 2, 20)), NOW
    )
    assert back_to_back.id


async def test_contract_on_foreign_asset_is_not_found(gateway, make_tenant, make_asset):
    tenant = await make_tenant()
    other = await make_tenant()
    asset = await make_asset(other.id)

    with pytest.raises(NotFound):
        await ContractService.create_contract(
            gateway, tenant.id, _contract(asset.id, utc(2024, 2, 1), utc(2024, 2, 10)), NOW
        )


async def test_cancelling_active_contract_frees_asset(gateway, make_tenant, make_asset):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)
    contract = await ContractService.create_contract(
        gateway, tenant.id, _contract(asset.id, utc(2024, 2, 1), utc(2024, 2, 10)), NOW
    )

    cancelled = await ContractService.cancel_contract(gateway, tenant.id, contract.id, NOW)

    assert cancelled.cancelled_at is not None
    assert (await gateway.get_asset(asset.id)).status == AssetStatus.available.value


def test_contract_interval_must_be_positive():
    with pytest.raises(ValueError):
        _contract("asset", utc(2024, 2, 10), utc(2024, 2, 10))


# ── Billing periods ───────────────────────────────────────────────────────────


async def test_new_billing_period_starts_in_progress(gateway, make_tenant, make_asset):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)

    period = await BillingService.create_billing_period(
        gateway,
        tenant.id,
        BillingPeriodCreate(
            client_name="Padaria Central",
            period_kind=PeriodKind.monthly,
            start_date=utc(2024, 2, 1),
            end_date=utc(2024, 3, 1),
            total_value=Decimal("3200.00"),
            description="Main avenue board",
            asset_ids=[asset.id],
        ),
    )

    assert period.status == BillingStatus.in_progress.value
    assert [a.id for a in period.assets] == [asset.id]


async def test_list_for_asset_returns_history(gateway, make_tenant, make_asset):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)
    first = await ContractService.create_contract(
        gateway, tenant.id, _contract(asset.id, utc(2024, 1, 1), utc(2024, 1, 10)), NOW
    )
    second = await ContractService.create_contract(
        gateway, tenant.id, _contract(asset.id, utc(2024, 2, 1), utc(2024, 2, 10)), NOW
    )

    history = await ContractService.list_for_asset(gateway, tenant.id, asset.id)

    assert [c.id for c in history] == [second.id, first.id]


async def test_billing_periods_listing_is_tenant_scoped(gateway, make_tenant, make_period):
    tenant = await make_tenant()
    other = await make_tenant()
    mine = await make_period(tenant.id, utc(2024, 1, 1), utc(2024, 1, 15))
    await make_period(other.id, utc(2024, 1, 1), utc(2024, 1, 15))

    total, periods = await BillingService.list_billing_periods(gateway, tenant.id)

    assert total == 1
    assert [p.id for p in periods] == [mine.id]
