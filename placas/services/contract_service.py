"""
services/contract_service.py
----------------------------
Contract (aluguel) creation, cancellation and per-asset history.

Double-booking is prevented here, at write time: a new contract may not
intersect a live contract on the same asset. The reconciler never checks
this; it only projects whatever contracts exist.

When the affected contract covers the current moment the asset status is
updated in the same transaction, so reads are right before the next
reconciliation run. A status that changed concurrently is left for the
reconciler.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from placas.core.exceptions import Conflict
from placas.core.logging import get_logger
from placas.db.base import as_utc
from placas.db.gateway import StoreGateway
from placas.models.asset import Asset, AssetStatus
from placas.models.contract import Contract
from placas.schemas.contract import ContractCreate

logger = get_logger(__name__)


def _covers(contract: Contract, now: datetime) -> bool:
    return as_utc(contract.start_at) <= now < as_utc(contract.end_at)


class ContractService:

    @staticmethod
    async def _project_status(
        gateway: StoreGateway,
        session: AsyncSession,
        asset: Asset,
        target: AssetStatus,
    ) -> None:
        if asset.status == target.value or asset.status == AssetStatus.maintenance.value:
            return
        try:
            await gateway.update_asset_status(
                asset.id, expected=asset.status, target=target, session=session
            )
        except Conflict:
            logger.info("Asset status changed concurrently; left to reconciler", asset_id=asset.id)

    @staticmethod
    async def create_contract(
        gateway: StoreGateway,
        tenant_id: str,
        data: ContractCreate,
        now: Optional[datetime] = None,
    ) -> Contract:
        now = as_utc(now or datetime.now(timezone.utc))
        async with gateway.transaction() as session:
            asset = await gateway.get_asset(data.asset_id, tenant_id, session=session)
            clash = await gateway.find_overlapping_contract(
                asset.id, tenant_id, data.start_at, data.end_at, session=session
            )
            if clash is not None:
                raise Conflict(
                    f"Asset '{asset.code}' is already rented between "
                    f"{clash.start_at:%Y-%m-%d} and {clash.end_at:%Y-%m-%d}"
                )
            contract = await gateway.create_contract(
                Contract(
                    tenant_id=tenant_id,
                    asset_id=asset.id,
                    client_name=data.client_name.strip(),
                    start_at=data.start_at,
                    end_at=data.end_at,
                ),
                session=session,
            )
            if _covers(contract, now):
                await ContractService._project_status(
                    gateway, session, asset, AssetStatus.rented
                )

        logger.info(
            "Contract created",
            contract_id=contract.id,
            asset_id=asset.id,
            tenant_id=tenant_id,
        )
        return contract

    @staticmethod
    async def cancel_contract(
        gateway: StoreGateway,
        tenant_id: str,
        contract_id: str,
        now: Optional[datetime] = None,
    ) -> Contract:
        now = as_utc(now or datetime.now(timezone.utc))
        async with gateway.transaction() as session:
            contract = await gateway.cancel_contract(contract_id, tenant_id, now, session=session)
            if _covers(contract, now):
                still_rented = await gateway.has_active_contract(
                    contract.asset_id, tenant_id, now, session=session
                )
                if not still_rented:
                    asset = await gateway.get_asset(contract.asset_id, tenant_id, session=session)
                    await ContractService._project_status(
                        gateway, session, asset, AssetStatus.available
                    )

        logger.info("Contract cancelled", contract_id=contract_id, tenant_id=tenant_id)
        return contract

    @staticmethod
    async def list_for_asset(
        gateway: StoreGateway, tenant_id: str, asset_id: str
    ) -> list[Contract]:
        return await gateway.list_contracts_for_asset(asset_id, tenant_id)
