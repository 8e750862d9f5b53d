from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Type, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from supplychain_api.db.models.notifications import NotificationType


# Payload variants, one per notification type. The stored `data` column is the
# JSON dump of the variant selected by the row's `type`.


class OrderUpdateData(BaseModel):
    """Payload for ORDER_UPDATE."""
    order_id: Union[int, str] = Field(..., description="External order id")
    order_number: Union[int, str, None] = Field(default=None, description="Human-facing order number")
    total_price: Optional[Decimal] = Field(default=None, description="Order total, serialized as a decimal string")
    customer_name: Optional[str] = Field(default=None)
    line_item_count: int = Field(default=0, ge=0)
    status: Optional[str] = Field(default=None, description="Order status, when the event is a status change")


class InventoryAlertData(BaseModel):
    """Payload for INVENTORY_ALERT (low stock)."""
    item_id: UUID
    sku: str
    current_quantity: int
    min_amount: int


class InventoryUpdateData(BaseModel):
    """Payload for INVENTORY_UPDATE (ERP snapshot applied)."""
    item_id: UUID
    sku: str
    old_quantity: int
    new_quantity: int
    sap_item_id: Optional[str] = None


class WarehouseUpdateData(BaseModel):
    """Payload for WAREHOUSE_UPDATE (temperature alert)."""
    warehouse_id: UUID
    warehouse_name: str
    zone_name: str
    temperature: float
    threshold: Optional[float] = None
    alert_type: Literal["HIGH", "LOW"]
    timestamp: datetime


class IntegrationSyncData(BaseModel):
    """Payload for INTEGRATION_SYNC (BI dataset refresh)."""
    dataset_id: str
    dataset_name: Optional[str] = None
    refresh_type: Optional[str] = None
    status: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_ms: Optional[int] = None
    error: Optional[Any] = None


class IntegrationStatusData(BaseModel):
    """Payload for INTEGRATION_STATUS."""
    category: str
    service: Optional[str] = None
    enabled: bool
    details: Optional[str] = None


class GeneralData(BaseModel):
    """Free-form payload for GENERAL, STOCK_MOVEMENT and MANUFACTURING_ORDER."""
    model_config = ConfigDict(extra="allow")


NotificationPayload = Union[
    OrderUpdateData,
    InventoryAlertData,
    InventoryUpdateData,
    WarehouseUpdateData,
    IntegrationSyncData,
    IntegrationStatusData,
    GeneralData,
]

PAYLOAD_MODELS: Dict[NotificationType, Type[BaseModel]] = {
    NotificationType.GENERAL: GeneralData,
    NotificationType.ORDER_UPDATE: OrderUpdateData,
    NotificationType.INVENTORY_ALERT: InventoryAlertData,
    NotificationType.INVENTORY_UPDATE: InventoryUpdateData,
    NotificationType.WAREHOUSE_UPDATE: WarehouseUpdateData,
    NotificationType.STOCK_MOVEMENT: GeneralData,
    NotificationType.MANUFACTURING_ORDER: GeneralData,
    NotificationType.INTEGRATION_SYNC: IntegrationSyncData,
    NotificationType.INTEGRATION_STATUS: IntegrationStatusData,
}

# Types a user may create directly through the admin endpoints.
MANUAL_NOTIFICATION_TYPES = frozenset(
    {
        NotificationType.GENERAL,
        NotificationType.ORDER_UPDATE,
        NotificationType.INVENTORY_ALERT,
        NotificationType.INTEGRATION_STATUS,
    }
)


# PUBLIC_INTERFACE
def parse_payload(
    notification_type: NotificationType,
    payload: Union[BaseModel, Dict[str, Any], None],
) -> BaseModel:
    """
    Validate a payload against the variant registered for notification_type.

    Raises:
        ValueError: payload model does not belong to this type.
        pydantic.ValidationError: dict payload does not match the variant.
    """
    model = PAYLOAD_MODELS[notification_type]
    if isinstance(payload, BaseModel):
        if not isinstance(payload, model):
            raise ValueError(
                f"{type(payload).__name__} is not a valid payload for {notification_type.value}"
            )
        return payload
    return model.model_validate(payload or {})


class NotificationRead(BaseModel):
    """Read model for a notification."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Notification ID")
    user_id: UUID = Field(..., description="Owning user ID")
    type: NotificationType = Field(..., description="Notification type; selects the payload shape")
    title: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict, description="Type-specific payload")
    read: bool
    created_by: Optional[UUID] = Field(default=None, description="Admin who created the notification, if manual")
    created_at: datetime
    updated_at: datetime


class NotificationList(BaseModel):
    """Page of notifications plus the caller's unread count."""
    notifications: List[NotificationRead]
    unread_count: int
    has_more: bool


class UnreadCount(BaseModel):
    """Unread badge count."""
    count: int = Field(..., ge=0)


class ReadAllResponse(BaseModel):
    """Result of marking every notification as read."""
    success: bool = True
    count: int = Field(..., ge=0, description="Number of notifications flipped to read")


class NotificationCreate(BaseModel):
    """Admin request to create a notification for one recipient."""
    recipient_id: UUID
    type: NotificationType
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)


class BulkNotificationItem(BaseModel):
    """One entry of a bulk create request."""
    user_id: UUID
    type: NotificationType
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)


class BulkNotificationCreate(BaseModel):
    """Admin request to create many notifications at once."""
    notifications: List[BulkNotificationItem] = Field(..., min_length=1)


class BulkCreateResponse(BaseModel):
    success: bool = True
    count: int
    notifications: List[NotificationRead]


class SystemNotificationCreate(BaseModel):
    """Admin request to notify every active user, or every user with target_role."""
    type: NotificationType
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)
    target_role: Optional[str] = None


class SystemNotificationResponse(BaseModel):
    success: bool = True
    count: int
    recipient_count: int
