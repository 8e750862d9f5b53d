from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from supplychain_api.db.base import Base, UUIDPkMixin, TimestampMixin


class Warehouse(UUIDPkMixin, TimestampMixin, Base):
    """Warehouse with IoT-monitored zones."""
    __tablename__ = "warehouses"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    iot_device_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)

    zones: Mapped[list["WarehouseZone"]] = relationship(
        "WarehouseZone", back_populates="warehouse", lazy="selectin", order_by="WarehouseZone.name"
    )


class WarehouseZone(UUIDPkMixin, TimestampMixin, Base):
    """Storage zone; its temperature sensor id maps IoT readings to it."""
    __tablename__ = "warehouse_zones"

    warehouse_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    temperature_sensor_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    temperature: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    last_reading_temperature: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    last_reading_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    warehouse: Mapped["Warehouse"] = relationship("Warehouse", back_populates="zones")
