"""
Webhook processing: locate the affected user, apply the domain mutation, notify.

Each delivery runs as one transaction: the dedupe marker and every mutation are
committed together, so a redelivery either finds its marker and is ignored, or
finds nothing applied and is processed in full. Notifications are emitted after
the commit and never fail the delivery.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import status
from sqlalchemy.exc import IntegrityError

from supplychain_api.core.errors import ApiError, ErrorCode, not_found
from supplychain_api.db.base import utcnow
from supplychain_api.db.models.integrations import UserIntegration
from supplychain_api.db.models.inventory import InventoryItem
from supplychain_api.db.models.notifications import NotificationType
from supplychain_api.repositories.integrations import (
    BiDatasetRepository,
    IntegrationLookup,
    IntegrationRepository,
    WebhookDeliveryRepository,
)
from supplychain_api.repositories.inventory import InventoryRepository
from supplychain_api.repositories.warehouse import WarehouseRepository
from supplychain_api.schemas.notifications import (
    IntegrationSyncData,
    InventoryUpdateData,
    OrderUpdateData,
    WarehouseUpdateData,
)
from supplychain_api.schemas.webhooks import (
    IotTemperatureAlert,
    PowerBiRefreshComplete,
    SapInventoryUpdate,
    ShopifyOrderCreated,
    WebhookAck,
)
from supplychain_api.services.base import BaseService
from supplychain_api.services.notifications import NotificationEmitter

logger = logging.getLogger(__name__)

SHOPIFY_LOOKUP = IntegrationLookup(category="ecommerce", service="shopify", enabled=True, sync_enabled=True)
SAP_LOOKUP = IntegrationLookup(category="erp_crm", service="sap", enabled=True)
IOT_LOOKUP = IntegrationLookup(category="iot", service="iot_monitoring", enabled=True)
POWERBI_LOOKUP = IntegrationLookup(category="bi_tools", service="power_bi", enabled=True)

DUPLICATE_MESSAGE = "Duplicate delivery ignored"


def _audit(provider: str, event: str, outcome: str, event_id: Optional[str] = None, **fields) -> None:
    extra = " ".join(f"{k}={v}" for k, v in fields.items())
    logger.info("webhook provider=%s event=%s event_id=%s outcome=%s %s", provider, event, event_id, outcome, extra)


class WebhookService(BaseService):
    """Orchestrates the four provider webhooks on top of the repositories."""

    def __init__(self, session, emitter: NotificationEmitter) -> None:
        super().__init__(session)
        self.emitter = emitter
        self.integrations = IntegrationRepository(session)
        self.deliveries = WebhookDeliveryRepository(session)
        self.inventory = InventoryRepository(session)
        self.warehouses = WarehouseRepository(session)
        self.datasets = BiDatasetRepository(session)

    async def _locate_integration(self, lookup: IntegrationLookup, label: str) -> UserIntegration:
        """
        Find the registration a delivery belongs to.

        Raises:
            ApiError 404 INTEGRATION_NOT_FOUND: nobody registered this service.
            ApiError 403 INTEGRATION_DISABLED: registered but switched off.
            ApiError 403 MISSING_CREDENTIALS: enabled without an API key.
        """
        integration = await self.integrations.find_first(lookup)
        if integration is None:
            if await self.integrations.find_first(lookup.relaxed()) is None:
                raise not_found(
                    f"No user found with active {label} integration", code=ErrorCode.INTEGRATION_NOT_FOUND
                )
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                ErrorCode.INTEGRATION_DISABLED,
                f"{label} integration is not enabled",
            )
        if not integration.has_credentials:
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                ErrorCode.MISSING_CREDENTIALS,
                f"{label} integration has no API credentials configured",
            )
        return integration

    async def _claim_delivery(self, provider: str, event_id: Optional[str]) -> bool:
        """Record the delivery in the dedupe ledger. False means it was already processed."""
        if not event_id:
            return True
        try:
            await self.deliveries.claim(provider, event_id)
        except IntegrityError:
            await self._rollback_quietly()
            return False
        return True

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except Exception:
            await self._rollback_quietly()
            raise

    # PUBLIC_INTERFACE
    async def process_shopify_order(self, order: ShopifyOrderCreated, event_id: Optional[str]) -> WebhookAck:
        """
        Handle Shopify orders/create.

        Decrements stock for every line item whose SKU is known, raises a low stock
        alert for each item left at or below its minimum, then reports the order.
        """
        integration = await self._locate_integration(SHOPIFY_LOOKUP, "Shopify")
        if not await self._claim_delivery("shopify", event_id):
            _audit("shopify", "orders/create", "duplicate", event_id)
            return WebhookAck(message=DUPLICATE_MESSAGE)

        low_stock: List[InventoryItem] = []
        try:
            for line_item in order.line_items:
                if not line_item.sku:
                    continue
                item = await self.inventory.apply_delta(line_item.sku, -line_item.quantity)
                if item is None:
                    logger.warning("Shopify order %s references unknown SKU %s; skipped", order.id, line_item.sku)
                    continue
                if item.quantity <= item.min_amount:
                    low_stock.append(item)
        except Exception:
            await self._rollback_quietly()
            raise
        await self._commit()
        _audit("shopify", "orders/create", "processed", event_id, order=order.id, low_stock=len(low_stock))

        for item in low_stock:
            await self.emitter.low_stock(
                integration.user_id, item.id, item.name, item.sku, item.quantity, item.min_amount, "a Shopify order"
            )

        customer_name = order.customer.full_name if order.customer else None
        total = f"${order.total_price}" if order.total_price is not None else "an unknown amount"
        await self.emitter.emit(
            integration.user_id,
            NotificationType.ORDER_UPDATE,
            "New Shopify Order",
            f"New order #{order.order_number or order.id} received from Shopify for {total}.",
            OrderUpdateData(
                order_id=order.id,
                order_number=order.order_number,
                total_price=order.total_price,
                customer_name=customer_name,
                line_item_count=len(order.line_items),
            ),
        )
        return WebhookAck()

    # PUBLIC_INTERFACE
    async def process_sap_inventory(self, update: SapInventoryUpdate, event_id: Optional[str]) -> WebhookAck:
        """Apply an SAP inventory snapshot to the matching item."""
        integration = await self._locate_integration(SAP_LOOKUP, "SAP")
        if not await self._claim_delivery("sap", event_id):
            _audit("sap", "inventory", "duplicate", event_id)
            return WebhookAck(message=DUPLICATE_MESSAGE)

        try:
            existing = await self.inventory.get_by_sap_item_id(update.sap_item_id)
            if existing is None:
                raise not_found("Inventory item not found")
            old_quantity = existing.quantity
            item = await self.inventory.apply_snapshot(
                update.sap_item_id,
                quantity=update.quantity,
                price=update.price,
                unit_cost=update.unit_cost,
            )
            if item is None:
                raise not_found("Inventory item not found")
        except Exception:
            await self._rollback_quietly()
            raise
        await self._commit()
        _audit("sap", "inventory", "processed", event_id, sap_item_id=update.sap_item_id)

        await self.emitter.emit(
            integration.user_id,
            NotificationType.INVENTORY_UPDATE,
            "Inventory Updated from SAP",
            f"{item.name} (SKU: {item.sku}) has been updated from SAP.",
            InventoryUpdateData(
                item_id=item.id,
                sku=item.sku,
                old_quantity=old_quantity,
                new_quantity=item.quantity,
                sap_item_id=update.sap_item_id,
            ),
        )
        return WebhookAck()

    # PUBLIC_INTERFACE
    async def process_iot_alert(self, alert: IotTemperatureAlert, event_id: Optional[str]) -> WebhookAck:
        """Record a zone temperature reading and raise a temperature alert."""
        integration = await self._locate_integration(IOT_LOOKUP, "IoT")
        if not await self._claim_delivery("iot", event_id):
            _audit("iot", "temperature-alert", "duplicate", event_id)
            return WebhookAck(message=DUPLICATE_MESSAGE)

        read_at = utcnow()
        try:
            warehouse = await self.warehouses.get_by_iot_device_id(alert.warehouse_id)
            if warehouse is None:
                raise not_found("Warehouse not found")
            zone = await self.warehouses.record_temperature(warehouse.id, alert.sensor_id, alert.temperature, read_at)
            if zone is None:
                raise not_found("Zone not found")
        except Exception:
            await self._rollback_quietly()
            raise
        await self._commit()
        _audit("iot", "temperature-alert", "processed", event_id, warehouse=warehouse.id, sensor=alert.sensor_id)

        zone_name = zone.name
        direction = "high" if alert.alert_type == "HIGH" else "low"
        await self.emitter.emit(
            integration.user_id,
            NotificationType.WAREHOUSE_UPDATE,
            "Temperature Alert",
            f"Temperature too {direction} ({alert.temperature}°C) in {zone_name} at {warehouse.name}.",
            WarehouseUpdateData(
                warehouse_id=warehouse.id,
                warehouse_name=warehouse.name,
                zone_name=zone_name,
                temperature=alert.temperature,
                threshold=alert.threshold,
                alert_type=alert.alert_type,
                timestamp=read_at,
            ),
        )
        return WebhookAck()

    # PUBLIC_INTERFACE
    async def process_powerbi_refresh(self, refresh: PowerBiRefreshComplete, event_id: Optional[str]) -> WebhookAck:
        """
        Store the outcome of a dataset refresh and notify the dataset owner.

        A dataset the user does not track is not an error: nothing is stored but the
        notification is still sent.
        """
        integration = await self._locate_integration(POWERBI_LOOKUP, "Power BI")
        if not await self._claim_delivery("powerbi", event_id):
            _audit("powerbi", "refresh-complete", "duplicate", event_id)
            return WebhookAck(message=DUPLICATE_MESSAGE)

        error_text = None if refresh.error is None else str(refresh.error)
        try:
            dataset = await self.datasets.record_refresh(
                integration.user_id,
                refresh.dataset_id,
                status=refresh.status,
                started_at=refresh.start_time,
                ended_at=refresh.end_time,
                error=error_text,
            )
        except Exception:
            await self._rollback_quietly()
            raise
        await self._commit()
        if dataset is None:
            logger.info("Power BI dataset %s is not tracked for user=%s", refresh.dataset_id, integration.user_id)
        _audit("powerbi", "refresh-complete", "processed", event_id, dataset=refresh.dataset_id, status=refresh.status)

        dataset_name = refresh.dataset_name or (dataset.name if dataset else None) or refresh.dataset_id
        payload = IntegrationSyncData(
            dataset_id=refresh.dataset_id,
            dataset_name=dataset_name,
            refresh_type=refresh.refresh_type,
            status=refresh.status,
            start_time=refresh.start_time,
            end_time=refresh.end_time,
            duration_ms=refresh.duration_ms if refresh.completed else None,
            error=None if refresh.completed else refresh.error,
        )
        if refresh.completed:
            title = "Power BI Refresh Complete"
            message = f"The {dataset_name} dataset in Power BI has been refreshed successfully."
        else:
            title = "Power BI Refresh Failed"
            message = f"The {dataset_name} dataset in Power BI failed to refresh."
            if error_text:
                message = f"{message} Error: {error_text}"
        await self.emitter.emit(integration.user_id, NotificationType.INTEGRATION_SYNC, title, message, payload)
        return WebhookAck()
