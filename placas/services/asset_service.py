"""
services/asset_service.py
-------------------------
Business actions on assets (placas) that happen outside the reconciler:
creation, listing, edits, deletion, the availability query for a date
range and the manual maintenance override.
"""

from datetime import datetime, timezone
from typing import Optional

from placas.core.exceptions import Conflict
from placas.core.logging import get_logger
from placas.db.base import as_utc
from placas.db.gateway import StoreGateway
from placas.models.asset import Asset, AssetStatus
from placas.schemas.asset import AssetCreate, AssetUpdate

logger = get_logger(__name__)


class AssetService:

    @staticmethod
    async def create_asset(gateway: StoreGateway, tenant_id: str, data: AssetCreate) -> Asset:
        asset = Asset(
            tenant_id=tenant_id,
            code=data.code.strip(),
            street_name=data.street_name,
            coordinates=data.coordinates,
            size=data.size,
            status=AssetStatus.available.value,
        )
        try:
            asset = await gateway.create_asset(asset)
        except Conflict as exc:
            raise Conflict(f"Asset code '{data.code}' already exists") from exc
        logger.info("Asset created", asset_id=asset.id, tenant_id=tenant_id, code=asset.code)
        return asset

    @staticmethod
    async def toggle_maintenance(
        gateway: StoreGateway,
        tenant_id: str,
        asset_id: str,
        now: Optional[datetime] = None,
    ) -> Asset:
        """
        Enter or leave maintenance.

        Entering is refused while a contract covers `now`. Leaving restores
        the status the reconciler would compute, so the asset does not read
        'available' until the next run while it is actually rented.
        """
        now = now or datetime.now(timezone.utc)
        asset = await gateway.get_asset(asset_id, tenant_id)
        rented = await gateway.has_active_contract(asset.id, tenant_id, now)

        if asset.status == AssetStatus.maintenance.value:
            target = AssetStatus.rented if rented else AssetStatus.available
        else:
            if rented:
                raise Conflict("A rented asset cannot be put into maintenance")
            target = AssetStatus.maintenance

        asset = await gateway.update_asset_status(
            asset.id, expected=asset.status, target=target, tenant_id=tenant_id
        )
        logger.info("Asset maintenance toggled", asset_id=asset.id, status=asset.status)
        return asset

    @staticmethod
    async def list_assets(
        gateway: StoreGateway,
        tenant_id: str,
        skip: int = 0,
        limit: int = 20,
        status: Optional[AssetStatus] = None,
        search: Optional[str] = None,
    ) -> tuple[int, list[Asset]]:
        return await gateway.list_assets(
            tenant_id, skip=skip, limit=limit, status=status, search=search
        )

    @staticmethod
    async def update_asset(
        gateway: StoreGateway, tenant_id: str, asset_id: str, data: AssetUpdate
    ) -> Asset:
        values = data.model_dump(exclude_unset=True)
        if "code" in values:
            if values["code"] is None:
                raise ValueError("Asset code cannot be empty")
            values["code"] = values["code"].strip()
        try:
            asset = await gateway.update_asset(asset_id, tenant_id, values)
        except Conflict as exc:
            raise Conflict(f"Asset code '{values.get('code')}' already exists") from exc
        logger.info("Asset updated", asset_id=asset_id, fields=sorted(values))
        return asset

    @staticmethod
    async def delete_asset(
        gateway: StoreGateway,
        tenant_id: str,
        asset_id: str,
        now: Optional[datetime] = None,
    ) -> None:
        """Refused with Conflict while the asset is rented."""
        now = now or datetime.now(timezone.utc)
        try:
            await gateway.delete_asset(asset_id, tenant_id, now)
        except Conflict as exc:
            raise Conflict("A rented asset cannot be deleted") from exc
        logger.info("Asset deleted", asset_id=asset_id, tenant_id=tenant_id)

    @staticmethod
    async def find_available_assets(
        gateway: StoreGateway, tenant_id: str, start_at: datetime, end_at: datetime
    ) -> list[Asset]:
        start_at, end_at = as_utc(start_at), as_utc(end_at)
        if end_at <= start_at:
            raise ValueError("end_at must be after start_at")
        return await gateway.find_available_assets(tenant_id, start_at, end_at)
