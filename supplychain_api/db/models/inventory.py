from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from supplychain_api.db.base import Base, UUIDPkMixin, TimestampMixin


class InventoryItem(UUIDPkMixin, TimestampMixin, Base):
    """Stock-keeping item; mutated by e-commerce orders and ERP snapshots."""
    __tablename__ = "inventory_items"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    sku: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    sap_item_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[float] = mapped_column(Numeric(18, 4, asdecimal=False), nullable=False, default=0)
    unit_cost: Mapped[float] = mapped_column(Numeric(18, 4, asdecimal=False), nullable=False, default=0)
    last_sap_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
