from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update

from supplychain_api.db.base import utcnow
from supplychain_api.db.models.warehouse import Warehouse, WarehouseZone
from .base import BaseRepository


class WarehouseRepository(BaseRepository):
    """Repository for warehouses and their monitored zones."""

    async def get_by_iot_device_id(self, iot_device_id: str) -> Optional[Warehouse]:
        stmt = select(Warehouse).where(Warehouse.iot_device_id == iot_device_id)
        return await self.scalar_one_or_none(stmt)

    async def record_temperature(
        self,
        warehouse_id: UUID,
        sensor_id: str,
        temperature: float,
        at: Optional[datetime] = None,
    ) -> Optional[WarehouseZone]:
        """
        Store a temperature reading on the single zone registered for sensor_id.

        Returns None without touching any row when no zone of the warehouse
        carries that sensor. Does not commit.
        """
        at = at or utcnow()
        target = (
            select(WarehouseZone.id)
            .where(
                WarehouseZone.warehouse_id == warehouse_id,
                WarehouseZone.temperature_sensor_id == sensor_id,
            )
            .order_by(WarehouseZone.created_at)
            .limit(1)
            .scalar_subquery()
        )
        stmt = (
            update(WarehouseZone)
            .where(WarehouseZone.id == target)
            .values(
                temperature=temperature,
                last_reading_temperature=temperature,
                last_reading_at=at,
                updated_at=at,
            )
            .returning(WarehouseZone)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.execute(stmt)
        return result.scalar_one_or_none()
