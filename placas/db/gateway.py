"""
db/gateway.py
-------------
StoreGateway: the only component that talks to the database.

Every public operation either runs standalone (opens its own session and
commits on exit) or, when a `session=` is passed, is enlisted in an explicit
transaction opened with `gateway.transaction()`. Nothing is cached; every call
round-trips to the store and consistency relies on the store's atomicity.

Error contract:
  - missing target id                   → NotFound
  - uniqueness violation                → Conflict
  - optimistic condition failed         → Conflict
  - connection / pool failure           → StoreUnavailable
  - any other driver error              → StoreError

Status transitions are single-statement compare-and-set UPDATEs
(WHERE id = :id AND status = :expected), so concurrent writers never
double-apply a transition and nobody holds a lock across a scan.
"""

import functools
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable, Optional, TypeVar

from sqlalchemy import delete, exists, func, or_, select, update
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import raiseload, undefer

from placas.core.exceptions import Conflict, NotFound, StoreError, StoreUnavailable
from placas.core.logging import get_logger
from placas.db.base import as_utc, generate_uuid
from placas.models import (
    Asset,
    AssetStatus,
    BillingPeriod,
    BillingStatus,
    Contract,
    Tenant,
    User,
)
from placas.models.billing_period import billing_period_assets

logger = get_logger(__name__)

T = TypeVar("T")


def _translate(exc: BaseException) -> StoreError:
    if isinstance(exc, IntegrityError):
        return Conflict(str(exc.orig))
    if isinstance(exc, (OperationalError, InterfaceError, PoolTimeoutError, OSError)):
        return StoreUnavailable(str(exc))
    if isinstance(exc, DBAPIError):
        return StoreError(str(exc.orig))
    return StoreError(str(exc))


def _store_errors(fn):
    """Re-raise SQLAlchemy / socket failures as the store error taxonomy."""

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except (SQLAlchemyError, OSError) as exc:
            raise _translate(exc) from exc

    return wrapper


class StoreGateway:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ── Sessions & transactions ───────────────────────────────────────────────

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        All-or-nothing unit of work spanning several gateway operations.

            async with gateway.transaction() as session:
                await gateway.create_asset(asset, session=session)
                ...
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except (SQLAlchemyError, OSError) as exc:
            raise _translate(exc) from exc

    @asynccontextmanager
    async def _session(self, session: Optional[AsyncSession]) -> AsyncIterator[AsyncSession]:
        if session is not None:
            yield session
            return
        async with self._session_factory() as own:
            try:
                yield own
                await own.commit()
            except BaseException:
                await own.rollback()
                raise

    async def _reload(self, session: AsyncSession, model: type[T], entity_id: str) -> T:
        entity = await session.get(model, entity_id, populate_existing=True)
        if entity is None:
            raise NotFound(model.__name__, entity_id)
        return entity

    async def _missing_or_conflict(
        self, session: AsyncSession, model, entity_id: str, reason: str
    ) -> StoreError:
        found = await session.scalar(select(exists().where(model.id == entity_id)))
        if not found:
            return NotFound(model.__name__, entity_id)
        return Conflict(f"{model.__name__} '{entity_id}': {reason}")

    # ── Tenants & users ───────────────────────────────────────────────────────

    @staticmethod
    def _tenant_fields(include: Iterable[str]) -> list:
        include = tuple(include)
        unknown = set(include) - Tenant.SENSITIVE_FIELDS
        if unknown:
            raise ValueError(f"Unknown selectable tenant field(s): {sorted(unknown)}")
        return [undefer(getattr(Tenant, field)) for field in include]

    @_store_errors
    async def create_tenant_with_admin(
        self,
        tenant: Tenant,
        admin: User,
        session: Optional[AsyncSession] = None,
    ) -> tuple[Tenant, User]:
        """
        Insert a tenant and its first user together. Without an explicit
        session this opens its own transaction, so either both rows exist
        afterwards or neither does.
        """
        tenant.id = tenant.id or generate_uuid()
        admin.tenant_id = tenant.id
        async with self._session(session) as s:
            s.add(tenant)
            await s.flush()
            s.add(admin)
            await s.flush()
            await s.refresh(tenant)
            await s.refresh(admin)
        logger.info("Tenant registered", tenant_id=tenant.id, admin_id=admin.id)
        return tenant, admin

    @_store_errors
    async def get_tenant(
        self,
        tenant_id: str,
        include: Iterable[str] = (),
        session: Optional[AsyncSession] = None,
    ) -> Tenant:
        options = self._tenant_fields(include)
        async with self._session(session) as s:
            tenant = await s.scalar(
                select(Tenant).where(Tenant.id == tenant_id).options(*options)
            )
        if tenant is None:
            raise NotFound("Tenant", tenant_id)
        return tenant

    @_store_errors
    async def find_tenant_by_key_prefix(
        self,
        prefix: str,
        include: Iterable[str] = (),
        session: Optional[AsyncSession] = None,
    ) -> Optional[Tenant]:
        options = self._tenant_fields(include)
        async with self._session(session) as s:
            return await s.scalar(
                select(Tenant).where(Tenant.api_key_prefix == prefix).options(*options)
            )

    @_store_errors
    async def update_tenant_api_key(
        self,
        tenant_id: str,
        prefix: str,
        secret_hash: str,
        session: Optional[AsyncSession] = None,
    ) -> Tenant:
        async with self._session(session) as s:
            result = await s.execute(
                update(Tenant)
                .where(Tenant.id == tenant_id)
                .values(api_key_prefix=prefix, api_key_hash=secret_hash)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFound("Tenant", tenant_id)
            return await self._reload(s, Tenant, tenant_id)

    @_store_errors
    async def get_user(
        self,
        user_id: str,
        tenant_id: Optional[str] = None,
        session: Optional[AsyncSession] = None,
    ) -> User:
        stmt = select(User).where(User.id == user_id)
        if tenant_id is not None:
            stmt = stmt.where(User.tenant_id == tenant_id)
        async with self._session(session) as s:
            user = await s.scalar(stmt)
        if user is None:
            raise NotFound("User", user_id)
        return user

    @_store_errors
    async def find_user_by_login(
        self, login: str, session: Optional[AsyncSession] = None
    ) -> Optional[User]:
        """Case-insensitive lookup by email or username."""
        login = login.strip().lower()
        async with self._session(session) as s:
            return await s.scalar(
                select(User).where(or_(User.email == login, User.username == login))
            )

    # ── Assets ────────────────────────────────────────────────────────────────

    @_store_errors
    async def create_asset(
        self, asset: Asset, session: Optional[AsyncSession] = None
    ) -> Asset:
        async with self._session(session) as s:
            s.add(asset)
            await s.flush()
            await s.refresh(asset)
        return asset

    @_store_errors
    async def get_asset(
        self,
        asset_id: str,
        tenant_id: Optional[str] = None,
        session: Optional[AsyncSession] = None,
    ) -> Asset:
        stmt = select(Asset).where(Asset.id == asset_id)
        if tenant_id is not None:
            stmt = stmt.where(Asset.tenant_id == tenant_id)
        async with self._session(session) as s:
            asset = await s.scalar(stmt)
        if asset is None:
            raise NotFound("Asset", asset_id)
        return asset

    @_store_errors
    async def list_assets_for_reconciliation(
        self,
        limit: int,
        after_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        session: Optional[AsyncSession] = None,
    ) -> list[Asset]:
        """Keyset page (ordered by id) of assets outside maintenance."""
        stmt = (
            select(Asset)
            .where(Asset.status != AssetStatus.maintenance.value)
            .order_by(Asset.id)
            .limit(limit)
        )
        if after_id is not None:
            stmt = stmt.where(Asset.id > after_id)
        if tenant_id is not None:
            stmt = stmt.where(Asset.tenant_id == tenant_id)
        async with self._session(session) as s:
            return list((await s.scalars(stmt)).all())

    @_store_errors
    async def update_asset_status(
        self,
        asset_id: str,
        expected: str,
        target: AssetStatus,
        tenant_id: Optional[str] = None,
        session: Optional[AsyncSession] = None,
    ) -> Asset:
        """Set status to `target` only if it is still `expected`."""
        stmt = (
            update(Asset)
            .where(Asset.id == asset_id, Asset.status == expected)
            .values(status=target.value)
            .execution_options(synchronize_session=False)
        )
        if tenant_id is not None:
            stmt = stmt.where(Asset.tenant_id == tenant_id)
        async with self._session(session) as s:
            result = await s.execute(stmt)
            if result.rowcount == 0:
                raise await self._missing_or_conflict(
                    s, Asset, asset_id, f"status is no longer '{expected}'"
                )
            return await self._reload(s, Asset, asset_id)

    @_store_errors
    async def has_active_contract(
        self,
        asset_id: str,
        tenant_id: str,
        now: datetime,
        session: Optional[AsyncSession] = None,
    ) -> bool:
        """True when a non-cancelled contract covers `now` (start <= now < end)."""
        now = as_utc(now)
        stmt = select(
            exists().where(
                Contract.asset_id == asset_id,
                Contract.tenant_id == tenant_id,
                Contract.cancelled_at.is_(None),
                Contract.start_at <= now,
                Contract.end_at > now,
            )
        )
        async with self._session(session) as s:
            return bool(await s.scalar(stmt))

    @_store_errors
    async def list_assets(
        self,
        tenant_id: str,
        skip: int = 0,
        limit: int = 20,
        status: Optional[AssetStatus] = None,
        search: Optional[str] = None,
        session: Optional[AsyncSession] = None,
    ) -> tuple[int, list[Asset]]:
        """
        Offset page of a tenant's assets, newest first.

        `search` matches code or street name, case-insensitively.

        Returns:
            (total_count, page_of_assets)
        """
        base_filter = [Asset.tenant_id == tenant_id]
        if status is not None:
            base_filter.append(Asset.status == status.value)
        if search:
            term = search.strip()
            base_filter.append(
                or_(
                    Asset.code.icontains(term, autoescape=True),
                    Asset.street_name.icontains(term, autoescape=True),
                )
            )
        async with self._session(session) as s:
            total = await s.scalar(select(func.count()).select_from(Asset).where(*base_filter))
            assets = await s.scalars(
                select(Asset)
                .where(*base_filter)
                .order_by(Asset.created_at.desc(), Asset.id)
                .offset(skip)
                .limit(limit)
            )
            return total, list(assets.all())

    @_store_errors
    async def find_available_assets(
        self,
        tenant_id: str,
        start_at: datetime,
        end_at: datetime,
        session: Optional[AsyncSession] = None,
    ) -> list[Asset]:
        """
        Assets free for the whole of [start_at, end_at).

        Excluded: assets in maintenance, assets with a live contract that
        overlaps the interval, and assets linked to an in-progress or
        completed billing period that overlaps it.
        """
        start_at, end_at = as_utc(start_at), as_utc(end_at)
        rented = select(Contract.asset_id).where(
            Contract.tenant_id == tenant_id,
            Contract.cancelled_at.is_(None),
            Contract.start_at < end_at,
            Contract.end_at > start_at,
        )
        booked = (
            select(billing_period_assets.c.asset_id)
            .join(BillingPeriod, BillingPeriod.id == billing_period_assets.c.billing_period_id)
            .where(
                BillingPeriod.tenant_id == tenant_id,
                BillingPeriod.status.in_(
                    [BillingStatus.in_progress.value, BillingStatus.completed.value]
                ),
                BillingPeriod.start_date < end_at,
                BillingPeriod.end_date > start_at,
            )
        )
        stmt = (
            select(Asset)
            .where(
                Asset.tenant_id == tenant_id,
                Asset.status != AssetStatus.maintenance.value,
                Asset.id.not_in(rented),
                Asset.id.not_in(booked),
            )
            .order_by(Asset.code)
        )
        async with self._session(session) as s:
            return list((await s.scalars(stmt)).all())

    @_store_errors
    async def update_asset(
        self,
        asset_id: str,
        tenant_id: str,
        values: dict,
        session: Optional[AsyncSession] = None,
    ) -> Asset:
        """Overwrite descriptive fields. Status is never written here."""
        if "status" in values:
            raise ValueError("Asset status is not updatable through update_asset")
        if not values:
            return await self.get_asset(asset_id, tenant_id, session=session)
        async with self._session(session) as s:
            result = await s.execute(
                update(Asset)
                .where(Asset.id == asset_id, Asset.tenant_id == tenant_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFound("Asset", asset_id)
            return await self._reload(s, Asset, asset_id)

    @_store_errors
    async def delete_asset(
        self,
        asset_id: str,
        tenant_id: str,
        now: datetime,
        session: Optional[AsyncSession] = None,
    ) -> None:
        """
        Delete an asset with its contracts and billing-period links.
        Refused with Conflict while a live contract covers `now`.
        """
        async with self._session(session) as s:
            asset = await s.scalar(
                select(Asset).where(Asset.id == asset_id, Asset.tenant_id == tenant_id)
            )
            if asset is None:
                raise NotFound("Asset", asset_id)
            if await self.has_active_contract(asset_id, tenant_id, now, session=s):
                raise Conflict(f"Asset '{asset_id}' is currently rented")
            await s.execute(delete(Contract).where(Contract.asset_id == asset_id))
            await s.execute(
                delete(billing_period_assets).where(billing_period_assets.c.asset_id == asset_id)
            )
            await s.delete(asset)

    # ── Contracts ─────────────────────────────────────────────────────────────

    @_store_errors
    async def create_contract(
        self, contract: Contract, session: Optional[AsyncSession] = None
    ) -> Contract:
        async with self._session(session) as s:
            s.add(contract)
            await s.flush()
            await s.refresh(contract)
        return contract

    @_store_errors
    async def get_contract(
        self,
        contract_id: str,
        tenant_id: Optional[str] = None,
        session: Optional[AsyncSession] = None,
    ) -> Contract:
        stmt = select(Contract).where(Contract.id == contract_id)
        if tenant_id is not None:
            stmt = stmt.where(Contract.tenant_id == tenant_id)
        async with self._session(session) as s:
            contract = await s.scalar(stmt)
        if contract is None:
            raise NotFound("Contract", contract_id)
        return contract

    @_store_errors
    async def list_contracts_for_asset(
        self,
        asset_id: str,
        tenant_id: str,
        session: Optional[AsyncSession] = None,
    ) -> list[Contract]:
        """Every contract of one asset, cancelled ones included, newest start first."""
        async with self._session(session) as s:
            owned = await s.scalar(
                select(exists().where(Asset.id == asset_id, Asset.tenant_id == tenant_id))
            )
            if not owned:
                raise NotFound("Asset", asset_id)
            contracts = await s.scalars(
                select(Contract)
                .where(Contract.asset_id == asset_id, Contract.tenant_id == tenant_id)
                .order_by(Contract.start_at.desc(), Contract.id)
            )
            return list(contracts.all())

    @_store_errors
    async def find_overlapping_contract(
        self,
        asset_id: str,
        tenant_id: str,
        start_at: datetime,
        end_at: datetime,
        session: Optional[AsyncSession] = None,
    ) -> Optional[Contract]:
        """First live contract whose interval intersects [start_at, end_at)."""
        stmt = (
            select(Contract)
            .where(
                Contract.asset_id == asset_id,
                Contract.tenant_id == tenant_id,
                Contract.cancelled_at.is_(None),
                Contract.start_at < as_utc(end_at),
                Contract.end_at > as_utc(start_at),
            )
            .limit(1)
        )
        async with self._session(session) as s:
            return await s.scalar(stmt)

    @_store_errors
    async def cancel_contract(
        self,
        contract_id: str,
        tenant_id: str,
        now: datetime,
        session: Optional[AsyncSession] = None,
    ) -> Contract:
        async with self._session(session) as s:
            result = await s.execute(
                update(Contract)
                .where(
                    Contract.id == contract_id,
                    Contract.tenant_id == tenant_id,
                    Contract.cancelled_at.is_(None),
                )
                .values(cancelled_at=as_utc(now))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                owned = await s.scalar(
                    select(
                        exists().where(
                            Contract.id == contract_id, Contract.tenant_id == tenant_id
                        )
                    )
                )
                if not owned:
                    raise NotFound("Contract", contract_id)
                raise Conflict(f"Contract '{contract_id}' is already cancelled")
            return await self._reload(s, Contract, contract_id)

    # ── Billing periods ───────────────────────────────────────────────────────

    @_store_errors
    async def create_billing_period(
        self,
        period: BillingPeriod,
        asset_ids: Iterable[str] = (),
        session: Optional[AsyncSession] = None,
    ) -> BillingPeriod:
        """
        Insert a billing period referencing `asset_ids`. Every referenced
        asset must belong to the same tenant, otherwise NotFound.
        """
        asset_ids = list(dict.fromkeys(asset_ids))
        async with self._session(session) as s:
            if asset_ids:
                assets = list(
                    (
                        await s.scalars(
                            select(Asset).where(
                                Asset.id.in_(asset_ids),
                                Asset.tenant_id == period.tenant_id,
                            )
                        )
                    ).all()
                )
                missing = set(asset_ids) - {a.id for a in assets}
                if missing:
                    raise NotFound("Asset", sorted(missing)[0])
                period.assets = assets
            else:
                period.assets = []
            s.add(period)
            await s.flush()
            period_id = period.id
            return await self._reload(s, BillingPeriod, period_id)

    @_store_errors
    async def get_billing_period(
        self,
        period_id: str,
        tenant_id: Optional[str] = None,
        session: Optional[AsyncSession] = None,
    ) -> BillingPeriod:
        stmt = select(BillingPeriod).where(BillingPeriod.id == period_id)
        if tenant_id is not None:
            stmt = stmt.where(BillingPeriod.tenant_id == tenant_id)
        async with self._session(session) as s:
            period = await s.scalar(stmt)
        if period is None:
            raise NotFound("BillingPeriod", period_id)
        return period

    @_store_errors
    async def list_billing_periods(
        self,
        tenant_id: str,
        skip: int = 0,
        limit: int = 20,
        status: Optional[BillingStatus] = None,
        session: Optional[AsyncSession] = None,
    ) -> tuple[int, list[BillingPeriod]]:
        """
        Offset page of a tenant's billing periods, latest end date first.

        Returns:
            (total_count, page_of_periods)
        """
        base_filter = [BillingPeriod.tenant_id == tenant_id]
        if status is not None:
            base_filter.append(BillingPeriod.status == status.value)
        async with self._session(session) as s:
            total = await s.scalar(
                select(func.count()).select_from(BillingPeriod).where(*base_filter)
            )
            periods = await s.scalars(
                select(BillingPeriod)
                .where(*base_filter)
                .order_by(BillingPeriod.end_date.desc(), BillingPeriod.id)
                .offset(skip)
                .limit(limit)
            )
            return total, list(periods.all())

    @_store_errors
    async def complete_billing_period(
        self,
        period_id: str,
        tenant_id: str,
        session: Optional[AsyncSession] = None,
    ) -> BillingPeriod:
        async with self._session(session) as s:
            result = await s.execute(
                update(BillingPeriod)
                .where(
                    BillingPeriod.id == period_id,
                    BillingPeriod.tenant_id == tenant_id,
                    BillingPeriod.status.in_(
                        [BillingStatus.in_progress.value, BillingStatus.overdue.value]
                    ),
                )
                .values(status=BillingStatus.completed.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                owned = await s.scalar(
                    select(
                        exists().where(
                            BillingPeriod.id == period_id,
                            BillingPeriod.tenant_id == tenant_id,
                        )
                    )
                )
                if not owned:
                    raise NotFound("BillingPeriod", period_id)
                raise Conflict(f"BillingPeriod '{period_id}' is already completed")
            return await self._reload(s, BillingPeriod, period_id)

    @_store_errors
    async def list_overdue_candidates(
        self,
        now: datetime,
        limit: int,
        after_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        session: Optional[AsyncSession] = None,
    ) -> list[BillingPeriod]:
        """Keyset page of in-progress periods whose end date has passed."""
        stmt = (
            select(BillingPeriod)
            .where(
                BillingPeriod.status == BillingStatus.in_progress.value,
                BillingPeriod.end_date < as_utc(now),
            )
            .options(raiseload(BillingPeriod.assets))
            .order_by(BillingPeriod.id)
            .limit(limit)
        )
        if after_id is not None:
            stmt = stmt.where(BillingPeriod.id > after_id)
        if tenant_id is not None:
            stmt = stmt.where(BillingPeriod.tenant_id == tenant_id)
        async with self._session(session) as s:
            return list((await s.scalars(stmt)).all())

    @_store_errors
    async def mark_billing_period_overdue(
        self,
        period_id: str,
        now: datetime,
        session: Optional[AsyncSession] = None,
    ) -> BillingPeriod:
        """
        in_progress → overdue, re-checking status and end date at write time.
        Raises Conflict when the period was completed (or already marked)
        after it was read.
        """
        async with self._session(session) as s:
            result = await s.execute(
                update(BillingPeriod)
                .where(
                    BillingPeriod.id == period_id,
                    BillingPeriod.status == BillingStatus.in_progress.value,
                    BillingPeriod.end_date < as_utc(now),
                )
                .values(status=BillingStatus.overdue.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise await self._missing_or_conflict(
                    s, BillingPeriod, period_id, "no longer in progress"
                )
            return await self._reload(s, BillingPeriod, period_id)
