from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

CENTS = Decimal("0.01")


class _ProviderPayload(BaseModel):
    # Providers send camelCase; unknown keys are ignored.
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ShopifyCustomer(_ProviderPayload):
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def full_name(self) -> Optional[str]:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or None


class ShopifyLineItem(_ProviderPayload):
    sku: Optional[str] = None
    quantity: int = Field(..., ge=0)
    title: Optional[str] = None


class ShopifyOrderCreated(_ProviderPayload):
    """Shopify `orders/create` webhook body (only the fields used here)."""
    id: Union[int, str]
    order_number: Union[int, str, None] = None
    # Kept exact; "59.90" must not become 59.9.
    total_price: Optional[Decimal] = Field(default=None, max_digits=20)
    customer: Optional[ShopifyCustomer] = None
    line_items: List[ShopifyLineItem] = Field(default_factory=list)

    @field_validator("total_price")
    @classmethod
    def _to_cents(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return None if v is None else v.quantize(CENTS)


class SapInventoryUpdate(_ProviderPayload):
    """SAP inventory snapshot for one item."""
    sap_item_id: str = Field(..., alias="sapItemId", min_length=1)
    quantity: int
    price: float = Field(..., ge=0)
    unit_cost: float = Field(..., alias="unitCost", ge=0)


class IotTemperatureAlert(_ProviderPayload):
    """IoT platform temperature threshold alert."""
    sensor_id: str = Field(..., alias="sensorId", min_length=1)
    temperature: float
    threshold: Optional[float] = None
    warehouse_id: str = Field(..., alias="warehouseId", min_length=1)
    zone_name: str = Field(..., alias="zoneName")
    alert_type: Literal["HIGH", "LOW"] = Field(..., alias="alertType")


class PowerBiRefreshComplete(_ProviderPayload):
    """Power BI dataset refresh completion callback."""
    dataset_id: str = Field(..., alias="datasetId", min_length=1)
    dataset_name: Optional[str] = Field(default=None, alias="datasetName")
    refresh_type: Optional[str] = Field(default=None, alias="refreshType")
    status: str
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")
    error: Optional[Any] = None

    @property
    def completed(self) -> bool:
        return self.status == "Completed"

    @property
    def duration_ms(self) -> Optional[int]:
        if self.start_time is None or self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds() * 1000)


class WebhookAck(BaseModel):
    """Response body returned to webhook callers."""
    success: bool = True
    message: Optional[str] = None
