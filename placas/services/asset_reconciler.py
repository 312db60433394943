"""
services/asset_reconciler.py
----------------------------
Derives each asset's status from its contracts:

  rented     at least one live contract covers now (start <= now < end)
  available  otherwise

Assets in 'maintenance' are a manual override and are left alone. Overlapping
contracts are not an error here; one covering contract is enough.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from placas.core.exceptions import InvariantViolation
from placas.db.base import as_utc
from placas.models import Asset, AssetStatus
from placas.services.reconciler_base import BatchReconciler, ReconcileResult

_ENGINE_STATUSES = {AssetStatus.available.value, AssetStatus.rented.value}


@dataclass
class AvailabilityResult(ReconcileResult):
    changed: int = 0


class AssetStatusReconciler(BatchReconciler):

    name = "asset_availability"
    count_field = "changed"

    async def reconcile_availability(
        self,
        now: Optional[datetime] = None,
        tenant_id: Optional[str] = None,
    ) -> AvailabilityResult:
        now = as_utc(now or datetime.now(timezone.utc))
        result = AvailabilityResult()

        async def fetch_page(after_id: Optional[str]) -> list[Asset]:
            return await self._gateway.list_assets_for_reconciliation(
                limit=self._batch_size,
                after_id=after_id,
                tenant_id=tenant_id,
            )

        await self._scan(fetch_page, lambda asset: self._sync_status(asset, now), result)
        return result

    async def _sync_status(self, asset: Asset, now: datetime) -> bool:
        if asset.status == AssetStatus.maintenance.value:
            return False
        if asset.status not in _ENGINE_STATUSES:
            raise InvariantViolation("Asset", asset.id, f"unknown status '{asset.status}'")

        active = await self._gateway.has_active_contract(asset.id, asset.tenant_id, now)
        target = AssetStatus.rented if active else AssetStatus.available
        if asset.status == target.value:
            return False

        await self._gateway.update_asset_status(asset.id, expected=asset.status, target=target)
        return True
