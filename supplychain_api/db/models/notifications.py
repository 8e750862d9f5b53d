from __future__ import annotations

import enum
import uuid
from typing import Optional

from sqlalchemy import Boolean, Enum, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from supplychain_api.db.base import Base, JsonType, UUIDPkMixin, TimestampMixin


class NotificationType(str, enum.Enum):
    """Kinds of user-facing notifications. Determines the payload shape."""

    GENERAL = "GENERAL"
    ORDER_UPDATE = "ORDER_UPDATE"
    INVENTORY_ALERT = "INVENTORY_ALERT"
    INVENTORY_UPDATE = "INVENTORY_UPDATE"
    WAREHOUSE_UPDATE = "WAREHOUSE_UPDATE"
    STOCK_MOVEMENT = "STOCK_MOVEMENT"
    MANUFACTURING_ORDER = "MANUFACTURING_ORDER"
    INTEGRATION_SYNC = "INTEGRATION_SYNC"
    INTEGRATION_STATUS = "INTEGRATION_STATUS"


class Notification(UUIDPkMixin, TimestampMixin, Base):
    """Persisted per-user notification with read/unread state."""
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
        Index("ix_notifications_user_type_created", "user_id", "type", "created_at"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, name="notification_type", native_enum=False, length=32),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict] = mapped_column(JsonType, nullable=False, default=dict)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
