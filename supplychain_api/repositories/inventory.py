from __future__ import annotations

from typing import Optional

from sqlalchemy import select, update

from supplychain_api.db.base import utcnow
from supplychain_api.db.models.inventory import InventoryItem
from .base import BaseRepository


class InventoryRepository(BaseRepository):
    """
    Repository for inventory items.

    Mutators do not commit; the webhook service commits once per delivery.
    """

    async def get_by_sku(self, sku: str) -> Optional[InventoryItem]:
        stmt = select(InventoryItem).where(InventoryItem.sku == sku)
        return await self.scalar_one_or_none(stmt)

    async def get_by_sap_item_id(self, sap_item_id: str) -> Optional[InventoryItem]:
        stmt = select(InventoryItem).where(InventoryItem.sap_item_id == sap_item_id)
        return await self.scalar_one_or_none(stmt)

    async def apply_snapshot(
        self,
        sap_item_id: str,
        *,
        quantity: int,
        price: float,
        unit_cost: float,
    ) -> Optional[InventoryItem]:
        """Overwrite quantity/price/cost with the ERP's authoritative values."""
        now = utcnow()
        stmt = (
            update(InventoryItem)
            .where(InventoryItem.sap_item_id == sap_item_id)
            .values(
                quantity=quantity,
                price=price,
                unit_cost=unit_cost,
                last_sap_sync_at=now,
                updated_at=now,
            )
            .returning(InventoryItem)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.execute(stmt)
        return result.scalar_one_or_none()

    async def apply_delta(self, sku: str, delta: int) -> Optional[InventoryItem]:
        """Atomically add a signed delta to the item's quantity."""
        stmt = (
            update(InventoryItem)
            .where(InventoryItem.sku == sku)
            .values(quantity=InventoryItem.quantity + delta, updated_at=utcnow())
            .returning(InventoryItem)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.execute(stmt)
        return result.scalar_one_or_none()
