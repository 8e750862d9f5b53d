from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union
from uuid import UUID

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from supplychain_api.db.models.notifications import Notification, NotificationType
from supplychain_api.repositories.notifications import NotificationRepository
from supplychain_api.schemas.notifications import (
    InventoryAlertData,
    IntegrationStatusData,
    NotificationRead,
    OrderUpdateData,
    parse_payload,
)
from supplychain_api.services.base import BaseService
from supplychain_api.services.realtime import BroadcastManager

logger = logging.getLogger(__name__)


@dataclass
class EmitResult:
    """Outcome of a notification emission. Emission never raises."""

    success: bool
    notification: Optional[Notification] = None
    error: Optional[str] = None


class NotificationEmitter(BaseService):
    """
    Creates notification records and pushes them to realtime subscribers.

    Every call inserts a new row with read=False; nothing is de-duplicated or updated.
    Persistence failures are logged and returned as EmitResult(success=False) so
    callers whose own work already committed are not affected.
    """

    def __init__(self, session: AsyncSession, broadcasts: Optional[BroadcastManager] = None) -> None:
        super().__init__(session)
        self.repo = NotificationRepository(session)
        self.broadcasts = broadcasts

    # PUBLIC_INTERFACE
    async def emit(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        payload: Union[BaseModel, Dict[str, Any], None] = None,
        *,
        created_by: Optional[UUID] = None,
    ) -> EmitResult:
        """
        Persist one notification for user_id.

        Parameters:
            user_id: recipient
            type: notification type; selects the payload variant
            title: short title
            message: human-readable text
            payload: variant model instance or a dict validated against the variant
            created_by: admin user id for manually created notifications
        Returns:
            EmitResult with the created Notification on success.
        """
        try:
            data = parse_payload(type, payload).model_dump(mode="json", exclude_none=True)
        except (ValueError, ValidationError) as exc:
            logger.error("Rejected %s notification payload for user=%s: %s", type.value, user_id, exc)
            return EmitResult(success=False, error="Invalid notification payload")

        try:
            notification = await self.repo.create(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                data=data,
                created_by=created_by,
            )
        except Exception:
            # Driver errors such as connection resets are not SQLAlchemyError subclasses.
            logger.exception("Error creating %s notification for user=%s", type.value, user_id)
            await self._rollback_quietly()
            return EmitResult(success=False, error="Failed to create notification")

        logger.info("Notification created id=%s type=%s user=%s", notification.id, type.value, user_id)
        await self._publish([notification])
        return EmitResult(success=True, notification=notification)

    # PUBLIC_INTERFACE
    async def emit_many(
        self,
        rows: Sequence[Dict[str, Any]],
        *,
        created_by: Optional[UUID] = None,
    ) -> List[Notification]:
        """
        Persist several notifications in one transaction.

        Each row carries user_id, type, title, message and data. Payloads are
        validated up front; invalid input raises before anything is written, and
        persistence errors propagate to the caller.
        """
        prepared = []
        for row in rows:
            notification_type = NotificationType(row["type"])
            data = parse_payload(notification_type, row.get("data")).model_dump(mode="json", exclude_none=True)
            prepared.append(
                {
                    "user_id": row["user_id"],
                    "type": notification_type,
                    "title": row["title"],
                    "message": row["message"],
                    "data": data,
                    "created_by": created_by,
                }
            )
        notifications = await self.repo.create_many(prepared)
        logger.info("Created %d notifications in bulk", len(notifications))
        await self._publish(notifications)
        return notifications

    async def _publish(self, notifications: Sequence[Notification]) -> None:
        if self.broadcasts is None:
            return
        for notification in notifications:
            try:
                await self.broadcasts.publish_notification(NotificationRead.model_validate(notification))
            except Exception:
                logger.exception("Failed to publish notification id=%s", notification.id)

    # Convenience emitters

    # PUBLIC_INTERFACE
    async def order_status_changed(
        self, user_id: UUID, order_id: str, order_number: str, status: str
    ) -> EmitResult:
        """Emit ORDER_UPDATE for an order status transition."""
        title = f"Order {order_number} Updated"
        message = f"Your order status has been updated to {status}"
        if status == "SHIPPED":
            title = f"Order {order_number} Shipped"
            message = "Your order has been shipped and is on its way!"
        elif status == "DELIVERED":
            title = f"Order {order_number} Delivered"
            message = "Your order has been delivered. Enjoy!"
        return await self.emit(
            user_id,
            NotificationType.ORDER_UPDATE,
            title,
            message,
            OrderUpdateData(order_id=order_id, order_number=order_number, status=status),
        )

    # PUBLIC_INTERFACE
    async def low_stock(
        self, user_id: UUID, item_id: UUID, name: str, sku: str, current_quantity: int, min_amount: int, source: str
    ) -> EmitResult:
        """Emit INVENTORY_ALERT for an item at or below its minimum stock."""
        return await self.emit(
            user_id,
            NotificationType.INVENTORY_ALERT,
            "Low Stock Alert",
            f"{name} (SKU: {sku}) is running low on stock after {source}.",
            InventoryAlertData(
                item_id=item_id, sku=sku, current_quantity=current_quantity, min_amount=min_amount
            ),
        )

    # PUBLIC_INTERFACE
    async def integration_status(
        self, user_id: UUID, category: str, service: Optional[str], enabled: bool, details: Optional[str] = None
    ) -> EmitResult:
        """Emit INTEGRATION_STATUS after an integration is (re)configured."""
        state = "enabled" if enabled else "disabled"
        return await self.emit(
            user_id,
            NotificationType.INTEGRATION_STATUS,
            f"{category.upper()} Integration Updated",
            details or f"Your {category} integration has been {state}.",
            IntegrationStatusData(category=category, service=service, enabled=enabled, details=details),
        )
