"""StoreGateway error contract and conditional writes against a real SQLite store."""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, inspect, select

from placas.core.exceptions import Conflict, NotFound
from placas.models import (
    Asset,
    AssetStatus,
    BillingPeriod,
    BillingStatus,
    Contract,
    Tenant,
    User,
    UserRole,
)


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


async def _count(gateway, model) -> int:
    async with gateway.transaction() as session:
        return await session.scalar(select(func.count()).select_from(model))


def _admin(username: str, email: str) -> User:
    return User(
        username=username,
        email=email,
        hashed_password="not-a-real-hash",
        first_name="Ada",
        last_name="Admin",
        role=UserRole.admin.value,
    )


# ── Tenants & users ───────────────────────────────────────────────────────────


async def test_registration_with_taken_username_leaves_no_tenant(gateway):
    await gateway.create_tenant_with_admin(
        Tenant(name="Acme", tax_id="11111111000111"), _admin("ada", "ada@acme.com")
    )

    with pytest.raises(Conflict):
        await gateway.create_tenant_with_admin(
            Tenant(name="Other", tax_id="22222222000122"), _admin("ada", "ada@other.com")
        )

    assert await _count(gateway, Tenant) == 1
    assert await _count(gateway, User) == 1


async def test_registration_with_taken_tax_id_leaves_no_user(gateway):
    await gateway.create_tenant_with_admin(
        Tenant(name="Acme", tax_id="11111111000111"), _admin("ada", "ada@acme.com")
    )

    with pytest.raises(Conflict):
        await gateway.create_tenant_with_admin(
            Tenant(name="Clone", tax_id="11111111000111"), _admin("bob", "bob@clone.com")
        )

    assert await gateway.find_user_by_login("bob") is None


async def test_get_tenant_never_loads_key_hash_unless_asked(gateway, make_tenant):
    tenant = await make_tenant()
    await gateway.update_tenant_api_key(tenant.id, "acme_ab12", "stored-hash")

    plain = await gateway.get_tenant(tenant.id)
    assert plain.api_key_prefix == "acme_ab12"
    assert "api_key_hash" in inspect(plain).unloaded

    with_hash = await gateway.get_tenant(tenant.id, include=("api_key_hash",))
    assert with_hash.api_key_hash == "stored-hash"


async def test_get_tenant_rejects_unknown_include(gateway, make_tenant):
    tenant = await make_tenant()
    with pytest.raises(ValueError):
        await gateway.get_tenant(tenant.id, include=("name",))


async def test_get_missing_tenant_raises_not_found(gateway):
    with pytest.raises(NotFound) as exc_info:
        await gateway.get_tenant("missing")
    assert exc_info.value.entity == "Tenant"


async def test_find_user_by_login_matches_email_or_username(gateway, make_tenant):
    await make_tenant()
    by_name = await gateway.find_user_by_login("ADMIN1")
    by_email = await gateway.find_user_by_login(" admin1@example.com ")
    assert by_name is not None and by_email is not None
    assert by_name.id == by_email.id


async def test_get_user_is_tenant_scoped(gateway, make_tenant):
    await make_tenant()
    other = await make_tenant()
    user = await gateway.find_user_by_login("admin1")

    with pytest.raises(NotFound):
        await gateway.get_user(user.id, tenant_id=other.id)


# ── Assets ────────────────────────────────────────────────────────────────────


async def test_duplicate_asset_code_within_tenant_conflicts(gateway, make_tenant, make_asset):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)

    with pytest.raises(Conflict):
        await gateway.create_asset(Asset(tenant_id=tenant.id, code=asset.code))


async def test_update_asset_status_is_compare_and_set(gateway, make_tenant, make_asset):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)

    updated = await gateway.update_asset_status(
        asset.id, expected=AssetStatus.available.value, target=AssetStatus.rented
    )
    assert updated.status == AssetStatus.rented.value

    with pytest.raises(Conflict):
        await gateway.update_asset_status(
            asset.id, expected=AssetStatus.available.value, target=AssetStatus.rented
        )
    with pytest.raises(NotFound):
        await gateway.update_asset_status(
            "missing", expected=AssetStatus.available.value, target=AssetStatus.rented
        )


async def test_new_rows_get_uuid_ids(gateway, make_tenant, make_asset):
    tenant = await make_tenant()
    first = await make_asset(tenant.id)
    second = await make_asset(tenant.id)

    assert str(uuid.UUID(tenant.id)) == tenant.id
    assert str(uuid.UUID(first.id)) == first.id
    assert first.id != second.id


async def test_list_assets_for_reconciliation_skips_maintenance_and_pages(
    gateway, make_tenant, make_asset
):
    tenant = await make_tenant()
    kept = [await make_asset(tenant.id) for _ in range(3)]
    await make_asset(tenant.id, status=AssetStatus.maintenance.value)

    first = await gateway.list_assets_for_reconciliation(limit=2)
    second = await gateway.list_assets_for_reconciliation(limit=2, after_id=first[-1].id)

    assert len(first) == 2 and len(second) == 1
    assert sorted(a.id for a in first + second) == sorted(a.id for a in kept)


async def _asset(gateway, tenant_id: str, code: str, street=None) -> Asset:
    return await gateway.create_asset(
        Asset(tenant_id=tenant_id, code=code, street_name=street)
    )


async def test_list_assets_counts_filters_and_pages(gateway, make_tenant, make_asset):
    tenant = await make_tenant()
    other = await make_tenant()
    await _asset(gateway, tenant.id, "PL-1", "Avenida Paulista")
    await _asset(gateway, tenant.id, "PL-2", "Rua Augusta")
    await _asset(gateway, tenant.id, "OUT-9_%", "Avenida Brasil")
    await make_asset(tenant.id, status=AssetStatus.maintenance.value)
    await make_asset(other.id)

    total, page = await gateway.list_assets(tenant.id, skip=0, limit=2)
    assert total == 4
    assert len(page) == 2
    _, rest = await gateway.list_assets(tenant.id, skip=2, limit=2)
    assert {a.id for a in page}.isdisjoint(a.id for a in rest)

    total, by_street = await gateway.list_assets(tenant.id, search="avenida")
    assert total == 2
    assert sorted(a.code for a in by_street) == ["OUT-9_%", "PL-1"]

    total, literal = await gateway.list_assets(tenant.id, search="_%")
    assert [a.code for a in literal] == ["OUT-9_%"]

    total, in_maintenance = await gateway.list_assets(tenant.id, status=AssetStatus.maintenance)
    assert total == 1
    assert in_maintenance[0].status == AssetStatus.maintenance.value


async def test_available_assets_excludes_contracts_bookings_and_maintenance(
    gateway, make_tenant, make_asset, make_contract, make_period
):
    tenant = await make_tenant()
    free = await make_asset(tenant.id)
    rented = await make_asset(tenant.id)
    booked = await make_asset(tenant.id)
    overdue_booking = await make_asset(tenant.id)
    adjacent = await make_asset(tenant.id)
    cancelled = await make_asset(tenant.id)
    await make_asset(tenant.id, status=AssetStatus.maintenance.value)
    await make_contract(tenant.id, rented.id, utc(2024, 3, 5), utc(2024, 3, 20))
    await make_contract(tenant.id, adjacent.id, utc(2024, 2, 1), utc(2024, 3, 1))
    await make_contract(
        tenant.id, cancelled.id, utc(2024, 3, 1), utc(2024, 3, 31), cancelled_at=utc(2024, 2, 1)
    )
    await make_period(tenant.id, utc(2024, 3, 10), utc(2024, 4, 10), asset_ids=[booked.id])
    await make_period(
        tenant.id,
        utc(2024, 3, 1),
        utc(2024, 3, 15),
        status=BillingStatus.overdue.value,
        asset_ids=[overdue_booking.id],
    )

    available = await gateway.find_available_assets(tenant.id, utc(2024, 3, 1), utc(2024, 4, 1))

    assert sorted(a.id for a in available) == sorted(
        [free.id, overdue_booking.id, adjacent.id, cancelled.id]
    )


async def test_update_asset_edits_fields_and_reports_clashes(gateway, make_tenant):
    tenant = await make_tenant()
    other = await make_tenant()
    asset = await _asset(gateway, tenant.id, "PL-1")
    await _asset(gateway, tenant.id, "PL-2")

    updated = await gateway.update_asset(asset.id, tenant.id, {"street_name": "Rua Augusta"})
    assert updated.street_name == "Rua Augusta"
    assert updated.status == AssetStatus.available.value

    with pytest.raises(Conflict):
        await gateway.update_asset(asset.id, tenant.id, {"code": "PL-2"})
    with pytest.raises(NotFound):
        await gateway.update_asset(asset.id, other.id, {"size": "9x3"})
    with pytest.raises(ValueError):
        await gateway.update_asset(asset.id, tenant.id, {"status": "rented"})


async def test_delete_asset_refuses_while_rented(
    gateway, make_tenant, make_asset, make_contract, make_period
):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)
    await make_contract(tenant.id, asset.id, utc(2024, 2, 1), utc(2024, 2, 10))
    period = await make_period(tenant.id, utc(2024, 1, 1), utc(2024, 1, 15), asset_ids=[asset.id])

    with pytest.raises(Conflict):
        await gateway.delete_asset(asset.id, tenant.id, utc(2024, 2, 5))

    await gateway.delete_asset(asset.id, tenant.id, utc(2024, 2, 10))

    with pytest.raises(NotFound):
        await gateway.get_asset(asset.id)
    with pytest.raises(NotFound):
        await gateway.delete_asset(asset.id, tenant.id, utc(2024, 2, 10))
    assert await _count(gateway, Contract) == 0
    assert (await gateway.get_billing_period(period.id)).assets == []


# ── Contracts ─────────────────────────────────────────────────────────────────


async def test_overlap_check_treats_end_as_exclusive(
    gateway, make_tenant, make_asset, make_contract
):
    tenant = await make_tenant()
    asset = await make_asset(tenant.id)
    await make_contract(tenant.id, asset.id, utc(2024, 2, 1), utc(2024, 2, 10))

    adjacent = await gateway.find_overlapping_contract(
        asset.id, tenant.id, utc(2024, 2, 10), utc(2024, 2, 20)
    )
    clash = await gateway.find_overlapping_contract(
        asset.id, tenant.id, utc(2024, 2, 9), utc(2024, 2, 20)
    )
    assert adjacent is None
    assert clash is not None


async def test_cancel_contract_twice_conflicts(gateway, make_tenant, make_asset, make_contract):
    tenant = await make_tenant()
    other = await make_tenant()
    asset = await make_asset(tenant.id)
    contract = await make_contract(tenant.id, asset.id, utc(2024, 2, 1), utc(2024, 2, 10))

    with pytest.raises(NotFound):
        await gateway.cancel_contract(contract.id, other.id, utc(2024, 2, 5))

    cancelled = await gateway.cancel_contract(contract.id, tenant.id, utc(2024, 2, 5))
    assert cancelled.cancelled_at is not None

    with pytest.raises(Conflict):
        await gateway.cancel_contract(contract.id, tenant.id, utc(2024, 2, 6))


async def test_contracts_for_asset_include_cancelled_newest_first(
    gateway, make_tenant, make_asset, make_contract
):
    tenant = await make_tenant()
    other = await make_tenant()
    asset = await make_asset(tenant.id)
    older = await make_contract(tenant.id, asset.id, utc(2024, 1, 1), utc(2024, 1, 10))
    newer = await make_contract(
        tenant.id, asset.id, utc(2024, 2, 1), utc(2024, 2, 10), cancelled_at=utc(2024, 1, 20)
    )

    contracts = await gateway.list_contracts_for_asset(asset.id, tenant.id)

    assert [c.id for c in contracts] == [newer.id, older.id]
    with pytest.raises(NotFound):
        await gateway.list_contracts_for_asset(asset.id, other.id)


# ── Billing periods ───────────────────────────────────────────────────────────


async def test_billing_period_cannot_reference_foreign_asset(
    gateway, make_tenant, make_asset, make_period
):
    tenant = await make_tenant()
    other = await make_tenant()
    foreign = await make_asset(other.id)

    with pytest.raises(NotFound):
        await make_period(tenant.id, utc(2024, 1, 1), utc(2024, 1, 15), asset_ids=[foreign.id])

    assert await _count(gateway, BillingPeriod) == 0


async def test_billing_period_keeps_asset_links(gateway, make_tenant, make_asset, make_period):
    tenant = await make_tenant()
    assets = [await make_asset(tenant.id) for _ in range(2)]

    period = await make_period(
        tenant.id, utc(2024, 1, 1), utc(2024, 1, 15), asset_ids=[a.id for a in assets]
    )
    loaded = await gateway.get_billing_period(period.id, tenant.id)

    assert sorted(a.id for a in loaded.assets) == sorted(a.id for a in assets)


async def test_mark_overdue_rechecks_status_at_write_time(gateway, make_tenant, make_period):
    tenant = await make_tenant()
    period = await make_period(tenant.id, utc(2024, 1, 1), utc(2024, 1, 15))
    await gateway.complete_billing_period(period.id, tenant.id)

    with pytest.raises(Conflict):
        await gateway.mark_billing_period_overdue(period.id, utc(2024, 1, 16))
    with pytest.raises(NotFound):
        await gateway.mark_billing_period_overdue("missing", utc(2024, 1, 16))

    reloaded = await gateway.get_billing_period(period.id)
    assert reloaded.status == BillingStatus.completed.value


async def test_complete_allows_overdue_and_rejects_completed(gateway, make_tenant, make_period):
    tenant = await make_tenant()
    period = await make_period(tenant.id, utc(2024, 1, 1), utc(2024, 1, 15))
    await gateway.mark_billing_period_overdue(period.id, utc(2024, 1, 16))

    completed = await gateway.complete_billing_period(period.id, tenant.id)
    assert completed.status == BillingStatus.completed.value

    with pytest.raises(Conflict):
        await gateway.complete_billing_period(period.id, tenant.id)


async def test_transaction_rolls_back_every_write(gateway, make_tenant):
    tenant = await make_tenant()
    with pytest.raises(RuntimeError):
        async with gateway.transaction() as session:
            await gateway.create_asset(Asset(tenant_id=tenant.id, code="PL-X"), session=session)
            raise RuntimeError("abort")

    assert await _count(gateway, Asset) == 0


async def test_mark_overdue_returns_the_updated_period(gateway, make_tenant, make_period):
    tenant = await make_tenant()
    period = await make_period(tenant.id, utc(2024, 1, 1), utc(2024, 1, 15))

    marked = await gateway.mark_billing_period_overdue(period.id, utc(2024, 1, 16))

    assert marked.id == period.id
    assert marked.status == BillingStatus.overdue.value


async def test_list_billing_periods_filters_by_status(gateway, make_tenant, make_period):
    tenant = await make_tenant()
    other = await make_tenant()
    early = await make_period(tenant.id, utc(2024, 1, 1), utc(2024, 1, 15))
    late = await make_period(tenant.id, utc(2024, 2, 1), utc(2024, 2, 15))
    done = await make_period(
        tenant.id, utc(2024, 1, 1), utc(2024, 1, 20), status=BillingStatus.completed.value
    )
    await make_period(other.id, utc(2024, 1, 1), utc(2024, 1, 15))

    total, periods = await gateway.list_billing_periods(tenant.id)
    assert total == 3
    assert [p.id for p in periods] == [late.id, done.id, early.id]

    total, page = await gateway.list_billing_periods(tenant.id, skip=1, limit=1)
    assert total == 3
    assert [p.id for p in page] == [done.id]

    total, completed = await gateway.list_billing_periods(
        tenant.id, status=BillingStatus.completed
    )
    assert total == 1
    assert [p.id for p in completed] == [done.id]
