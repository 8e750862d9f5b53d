from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from supplychain_api.db.base import Base, UUIDPkMixin, TimestampMixin, utcnow


# Known services per integration category (one service per category).
INTEGRATION_SERVICES: dict[str, tuple[str, ...]] = {
    "ecommerce": ("shopify",),
    "erp_crm": ("sap",),
    "iot": ("iot_monitoring",),
    "bi_tools": ("power_bi",),
}


class UserIntegration(UUIDPkMixin, TimestampMixin, Base):
    """A user's registration for one integration category."""
    __tablename__ = "user_integrations"
    __table_args__ = (
        UniqueConstraint("user_id", "category", name="uq_user_integrations_user_category"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category: Mapped[str] = mapped_column(Text, nullable=False)
    service: Mapped[str] = mapped_column(Text, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    api_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    store_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Automatic order sync (Shopify orders/create processing)
    sync_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)


class BiDataset(UUIDPkMixin, TimestampMixin, Base):
    """A BI dataset tracked for a user, with the outcome of its last refresh."""
    __tablename__ = "bi_datasets"
    __table_args__ = (
        UniqueConstraint("user_id", "dataset_id", name="uq_bi_datasets_user_dataset"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    dataset_id: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_refresh_status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_refresh_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_refresh_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_refresh_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class WebhookDelivery(UUIDPkMixin, Base):
    """Dedupe ledger: one row per processed (provider, event_id)."""
    __tablename__ = "webhook_deliveries"
    __table_args__ = (
        UniqueConstraint("provider", "event_id", name="uq_webhook_deliveries_provider_event"),
    )

    provider: Mapped[str] = mapped_column(Text, nullable=False)
    event_id: Mapped[str] = mapped_column(Text, nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
