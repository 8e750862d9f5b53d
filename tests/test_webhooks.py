# tests/test_webhooks.py
"""
Tests for the webhook receivers under /api/v1/webhooks.

Each receiver is exercised end to end against SQLite:
signature gate, payload validation, integration lookup gates, the domain
mutation, duplicate deliveries and the emitted notifications.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from supplychain_api.core.deps import get_webhook_verifier
from supplychain_api.api.main import app
from supplychain_api.db.models import (
    BiDataset,
    InventoryItem,
    Notification,
    NotificationType,
    WarehouseZone,
    WebhookDelivery,
)
from supplychain_api.repositories.notifications import NotificationRepository
from supplychain_api.services.webhook_verification import WebhookVerifier

from conftest import signed_request

SHOPIFY_URL = "/api/v1/webhooks/shopify/orders/create"
SAP_URL = "/api/v1/webhooks/sap/inventory"
IOT_URL = "/api/v1/webhooks/iot/temperature-alert"
POWERBI_URL = "/api/v1/webhooks/powerbi/refresh-complete"


def shopify_order(order_id=5001, sku="SKU-1", quantity=6):
    return {
        "id": order_id,
        "order_number": 1042,
        "total_price": "59.90",
        "customer": {"first_name": "Ada", "last_name": "Lovelace"},
        "line_items": [{"sku": sku, "quantity": quantity, "title": "Widget"}],
    }


IOT_ALERT = {
    "sensorId": "S-1",
    "temperature": 31.5,
    "threshold": 25,
    "warehouseId": "WH-DEVICE-1",
    "zoneName": "Cold Room",
    "alertType": "HIGH",
}


@pytest.fixture
async def shop_owner(make_user, make_integration):
    user = await make_user("shop@example.com")
    await make_integration(user, "ecommerce", "shopify")
    return user


@pytest.fixture
async def sap_owner(make_user, make_integration):
    user = await make_user("erp@example.com")
    await make_integration(user, "erp_crm", "sap")
    return user


@pytest.fixture
async def iot_owner(make_user, make_integration):
    user = await make_user("iot@example.com")
    await make_integration(user, "iot", "iot_monitoring")
    return user


@pytest.fixture
async def bi_owner(make_user, make_integration):
    user = await make_user("bi@example.com")
    await make_integration(user, "bi_tools", "power_bi")
    return user


# =============================================================================
# SIGNATURE AND PAYLOAD GATES
# =============================================================================

class TestGates:
    async def test_bad_signature_returns_401(self, client, shop_owner, make_item, fetch):
        await make_item()
        kwargs = signed_request("shopify", shopify_order())
        kwargs["headers"]["X-Shopify-Hmac-SHA256"] = "bm90LWEtc2lnbmF0dXJl"

        resp = await client.post(SHOPIFY_URL, **kwargs)

        assert resp.status_code == 401
        assert resp.json()["code"] == "INVALID_SIGNATURE"
        item = (await fetch(InventoryItem, sku="SKU-1"))[0]
        assert item.quantity == 10

    async def test_missing_signature_returns_401(self, client):
        resp = await client.post(SAP_URL, json={"sapItemId": "SAP-1", "quantity": 1, "price": 1, "unitCost": 1})
        assert resp.status_code == 401
        assert resp.json()["code"] == "INVALID_SIGNATURE"

    async def test_missing_secret_rejects_every_delivery(self, client, shop_owner):
        app.dependency_overrides[get_webhook_verifier] = lambda: WebhookVerifier({})
        resp = await client.post(SHOPIFY_URL, **signed_request("shopify", shopify_order()))
        assert resp.status_code == 401

    async def test_invalid_payload_returns_400(self, client):
        resp = await client.post(SAP_URL, **signed_request("sap", {"sapItemId": "SAP-1"}))
        body = resp.json()
        assert resp.status_code == 400
        assert body["code"] == "VALIDATION_ERROR"
        assert body["success"] is False
        assert {tuple(e["loc"]) for e in body["details"]} >= {("quantity",), ("price",), ("unitCost",)}

    async def test_iot_alert_type_must_be_high_or_low(self, client):
        resp = await client.post(IOT_URL, **signed_request("iot", {**IOT_ALERT, "alertType": "MEDIUM"}))
        assert resp.status_code == 400


# =============================================================================
# INTEGRATION LOOKUP
# =============================================================================

class TestIntegrationLookup:
    async def test_no_registration_returns_404(self, client, make_item):
        await make_item()
        resp = await client.post(SHOPIFY_URL, **signed_request("shopify", shopify_order()))
        assert resp.status_code == 404
        assert resp.json()["code"] == "INTEGRATION_NOT_FOUND"

    async def test_disabled_registration_returns_403(self, client, make_user, make_integration):
        user = await make_user()
        await make_integration(user, "erp_crm", "sap", enabled=False)
        resp = await client.post(
            SAP_URL, **signed_request("sap", {"sapItemId": "SAP-1", "quantity": 1, "price": 1, "unitCost": 1})
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "INTEGRATION_DISABLED"

    async def test_shopify_sync_disabled_returns_403(self, client, make_user, make_integration, make_item, fetch):
        user = await make_user()
        await make_integration(user, "ecommerce", "shopify", sync_enabled=False)
        await make_item()

        resp = await client.post(SHOPIFY_URL, **signed_request("shopify", shopify_order()))

        assert resp.status_code == 403
        assert resp.json()["code"] == "INTEGRATION_DISABLED"
        assert (await fetch(InventoryItem, sku="SKU-1"))[0].quantity == 10

    async def test_enabled_without_credentials_returns_403(self, client, make_user, make_integration):
        user = await make_user()
        await make_integration(user, "iot", "iot_monitoring", api_key=None)
        resp = await client.post(IOT_URL, **signed_request("iot", IOT_ALERT))
        assert resp.status_code == 403
        assert resp.json()["code"] == "MISSING_CREDENTIALS"


# =============================================================================
# SHOPIFY
# =============================================================================

class TestShopifyOrders:
    async def test_order_decrements_stock_and_alerts_once(self, client, shop_owner, make_item, fetch):
        await make_item(sku="SKU-1", quantity=10, min_amount=5)

        resp = await client.post(SHOPIFY_URL, **signed_request("shopify", shopify_order(quantity=6)))

        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert (await fetch(InventoryItem, sku="SKU-1"))[0].quantity == 4

        alerts = await fetch(Notification, user_id=shop_owner.id, type=NotificationType.INVENTORY_ALERT)
        assert len(alerts) == 1
        assert alerts[0].read is False
        assert alerts[0].data["current_quantity"] == 4
        assert alerts[0].data["min_amount"] == 5

        orders = await fetch(Notification, user_id=shop_owner.id, type=NotificationType.ORDER_UPDATE)
        assert len(orders) == 1
        assert orders[0].title == "New Shopify Order"
        assert orders[0].message == "New order #1042 received from Shopify for $59.90."
        assert orders[0].data["total_price"] == "59.90"
        assert orders[0].data["customer_name"] == "Ada Lovelace"
        assert orders[0].data["line_item_count"] == 1

    async def test_no_alert_above_minimum(self, client, shop_owner, make_item, fetch):
        await make_item(quantity=20, min_amount=5)
        resp = await client.post(SHOPIFY_URL, **signed_request("shopify", shopify_order(quantity=6)))
        assert resp.status_code == 200
        assert await fetch(Notification, type=NotificationType.INVENTORY_ALERT) == []

    async def test_unknown_sku_is_skipped(self, client, shop_owner, make_item, fetch):
        await make_item(sku="SKU-1", quantity=10)
        order = shopify_order()
        order["line_items"].append({"sku": "UNKNOWN", "quantity": 3})
        order["line_items"].append({"sku": None, "quantity": 1, "title": "Gift card"})

        resp = await client.post(SHOPIFY_URL, **signed_request("shopify", order))

        assert resp.status_code == 200
        assert (await fetch(InventoryItem, sku="SKU-1"))[0].quantity == 4
        orders = await fetch(Notification, type=NotificationType.ORDER_UPDATE)
        assert orders[0].data["line_item_count"] == 3

    async def test_duplicate_delivery_applies_once(self, client, shop_owner, make_item, fetch):
        await make_item(quantity=10, min_amount=5)
        kwargs = signed_request("shopify", shopify_order(), **{"X-Shopify-Webhook-Id": "evt-1"})

        first = await client.post(SHOPIFY_URL, **kwargs)
        second = await client.post(SHOPIFY_URL, **kwargs)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json() == {"success": True, "message": "Duplicate delivery ignored"}
        assert (await fetch(InventoryItem, sku="SKU-1"))[0].quantity == 4
        assert len(await fetch(Notification, type=NotificationType.INVENTORY_ALERT)) == 1
        assert len(await fetch(WebhookDelivery, provider="shopify")) == 1

    async def test_redelivery_without_header_dedupes_on_order_id(self, client, shop_owner, make_item, fetch):
        await make_item(quantity=10, min_amount=1)
        kwargs = signed_request("shopify", shopify_order(quantity=2))

        await client.post(SHOPIFY_URL, **kwargs)
        await client.post(SHOPIFY_URL, **kwargs)

        assert (await fetch(InventoryItem, sku="SKU-1"))[0].quantity == 8

    async def test_distinct_orders_both_apply(self, client, shop_owner, make_item, fetch):
        await make_item(quantity=10, min_amount=1)
        await client.post(SHOPIFY_URL, **signed_request("shopify", shopify_order(order_id=1, quantity=2)))
        await client.post(SHOPIFY_URL, **signed_request("shopify", shopify_order(order_id=2, quantity=3)))
        assert (await fetch(InventoryItem, sku="SKU-1"))[0].quantity == 5

    async def test_notification_failure_does_not_fail_webhook(self, client, shop_owner, make_item, fetch):
        await make_item(quantity=10, min_amount=5)
        with patch.object(
            NotificationRepository, "create", new=AsyncMock(side_effect=SQLAlchemyError("store down"))
        ):
            resp = await client.post(SHOPIFY_URL, **signed_request("shopify", shopify_order(quantity=6)))

        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert (await fetch(InventoryItem, sku="SKU-1"))[0].quantity == 4
        assert await fetch(Notification) == []

    async def test_connection_reset_in_notification_store_does_not_fail_webhook(
        self, client, shop_owner, make_item, fetch
    ):
        await make_item(quantity=10, min_amount=5)
        with patch.object(
            NotificationRepository, "create", new=AsyncMock(side_effect=ConnectionResetError("peer reset"))
        ):
            resp = await client.post(SHOPIFY_URL, **signed_request("shopify", shopify_order(quantity=6)))

        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert (await fetch(InventoryItem, sku="SKU-1"))[0].quantity == 4
        assert await fetch(Notification) == []

    async def test_numeric_total_rendered_with_cents(self, client, shop_owner, make_item, fetch):
        await make_item(quantity=10, min_amount=1)
        order = {**shopify_order(quantity=1), "total_price": 12.5}

        resp = await client.post(SHOPIFY_URL, **signed_request("shopify", order))

        assert resp.status_code == 200
        placed = (await fetch(Notification, type=NotificationType.ORDER_UPDATE))[0]
        assert placed.message.endswith("for $12.50.")
        assert placed.data["total_price"] == "12.50"

    async def test_oldest_registration_receives_notifications(
        self, client, make_user, make_integration, make_item, fetch
    ):
        first = await make_user("first@example.com")
        second = await make_user("second@example.com")
        await make_integration(first, "ecommerce", "shopify")
        await make_integration(second, "ecommerce", "shopify")
        await make_item(quantity=50)

        await client.post(SHOPIFY_URL, **signed_request("shopify", shopify_order(quantity=1)))

        assert len(await fetch(Notification, user_id=first.id)) == 1
        assert await fetch(Notification, user_id=second.id) == []


# =============================================================================
# SAP
# =============================================================================

class TestSapInventory:
    SNAPSHOT = {"sapItemId": "SAP-1", "quantity": 50, "price": 12.5, "unitCost": 7.25}

    async def test_snapshot_overwrites_item(self, client, sap_owner, make_item, fetch):
        await make_item(sku="SKU-9", quantity=10, sap_item_id="SAP-1")

        resp = await client.post(SAP_URL, **signed_request("sap", self.SNAPSHOT))

        assert resp.status_code == 200
        item = (await fetch(InventoryItem, sku="SKU-9"))[0]
        assert item.quantity == 50
        assert item.price == pytest.approx(12.5)
        assert item.unit_cost == pytest.approx(7.25)
        assert item.last_sap_sync_at is not None

        updates = await fetch(Notification, user_id=sap_owner.id, type=NotificationType.INVENTORY_UPDATE)
        assert len(updates) == 1
        assert updates[0].title == "Inventory Updated from SAP"
        assert updates[0].data["old_quantity"] == 10
        assert updates[0].data["new_quantity"] == 50
        assert updates[0].data["sap_item_id"] == "SAP-1"

    async def test_unknown_item_returns_404(self, client, sap_owner, fetch):
        resp = await client.post(SAP_URL, **signed_request("sap", self.SNAPSHOT, **{"X-SAP-Event-Id": "sap-1"}))
        assert resp.status_code == 404
        assert resp.json()["code"] == "NOT_FOUND"
        assert await fetch(Notification) == []
        # A failed delivery leaves no dedupe marker, so a retry is processed
        assert await fetch(WebhookDelivery) == []


# =============================================================================
# IOT
# =============================================================================

class TestIotTemperatureAlert:
    async def test_reading_recorded_and_alert_sent(self, client, iot_owner, make_warehouse, fetch):
        warehouse, zone = await make_warehouse()

        resp = await client.post(IOT_URL, **signed_request("iot", IOT_ALERT))

        assert resp.status_code == 200
        stored = (await fetch(WarehouseZone, id=zone.id))[0]
        assert stored.temperature == pytest.approx(31.5)
        assert stored.last_reading_temperature == pytest.approx(31.5)
        assert stored.last_reading_at is not None

        alerts = await fetch(Notification, user_id=iot_owner.id, type=NotificationType.WAREHOUSE_UPDATE)
        assert len(alerts) == 1
        assert alerts[0].title == "Temperature Alert"
        assert alerts[0].message == "Temperature too high (31.5°C) in Cold Room at Main Warehouse."
        assert alerts[0].data["alert_type"] == "HIGH"
        assert alerts[0].data["warehouse_name"] == "Main Warehouse"

    async def test_low_alert_wording(self, client, iot_owner, make_warehouse, fetch):
        await make_warehouse()
        resp = await client.post(IOT_URL, **signed_request("iot", {**IOT_ALERT, "temperature": -4, "alertType": "LOW"}))
        assert resp.status_code == 200
        alert = (await fetch(Notification, type=NotificationType.WAREHOUSE_UPDATE))[0]
        assert alert.message.startswith("Temperature too low (-4.0°C)")

    async def test_alert_names_zone_mapped_to_sensor(self, client, iot_owner, make_warehouse, fetch):
        await make_warehouse(zone_name="Cold Room")

        resp = await client.post(IOT_URL, **signed_request("iot", {**IOT_ALERT, "zoneName": "Freezer"}))

        assert resp.status_code == 200
        alert = (await fetch(Notification, type=NotificationType.WAREHOUSE_UPDATE))[0]
        assert alert.message == "Temperature too high (31.5°C) in Cold Room at Main Warehouse."
        assert alert.data["zone_name"] == "Cold Room"

    async def test_unknown_warehouse_returns_404(self, client, iot_owner):
        resp = await client.post(IOT_URL, **signed_request("iot", IOT_ALERT))
        assert resp.status_code == 404
        assert resp.json()["message"] == "Warehouse not found"

    async def test_unknown_sensor_returns_404_and_leaves_zone(self, client, iot_owner, make_warehouse, fetch):
        _, zone = await make_warehouse()

        resp = await client.post(IOT_URL, **signed_request("iot", {**IOT_ALERT, "sensorId": "S-404"}))

        assert resp.status_code == 404
        assert resp.json()["message"] == "Zone not found"
        stored = (await fetch(WarehouseZone, id=zone.id))[0]
        assert stored.temperature == pytest.approx(4.0)
        assert stored.last_reading_at is None
        assert await fetch(Notification) == []


# =============================================================================
# POWER BI
# =============================================================================

class TestPowerBiRefresh:
    COMPLETED = {
        "datasetId": "ds-1",
        "datasetName": "Sales",
        "refreshType": "Scheduled",
        "status": "Completed",
        "startTime": "2026-10-01T10:00:00Z",
        "endTime": "2026-10-01T10:00:42Z",
    }

    async def test_completed_refresh_recorded(self, client, bi_owner, make_dataset, fetch):
        await make_dataset(bi_owner)

        resp = await client.post(POWERBI_URL, **signed_request("powerbi", self.COMPLETED))

        assert resp.status_code == 200
        dataset = (await fetch(BiDataset, dataset_id="ds-1"))[0]
        assert dataset.last_refresh_status == "Completed"
        assert dataset.last_refresh_at is not None
        assert dataset.last_refresh_error is None

        syncs = await fetch(Notification, user_id=bi_owner.id, type=NotificationType.INTEGRATION_SYNC)
        assert len(syncs) == 1
        assert syncs[0].title == "Power BI Refresh Complete"
        assert syncs[0].data["duration_ms"] == 42000

    async def test_failed_refresh_carries_error(self, client, bi_owner, make_dataset, fetch):
        await make_dataset(bi_owner)
        payload = {**self.COMPLETED, "status": "Failed", "error": "Credentials expired"}

        resp = await client.post(POWERBI_URL, **signed_request("powerbi", payload))

        assert resp.status_code == 200
        dataset = (await fetch(BiDataset, dataset_id="ds-1"))[0]
        assert dataset.last_refresh_status == "Failed"
        assert dataset.last_refresh_error == "Credentials expired"
        sync = (await fetch(Notification, type=NotificationType.INTEGRATION_SYNC))[0]
        assert sync.title == "Power BI Refresh Failed"
        assert "Credentials expired" in sync.message
        assert sync.data["error"] == "Credentials expired"

    async def test_unknown_dataset_still_notifies(self, client, bi_owner, fetch):
        resp = await client.post(POWERBI_URL, **signed_request("powerbi", {**self.COMPLETED, "datasetId": "ds-x"}))
        assert resp.status_code == 200
        assert await fetch(BiDataset) == []
        assert len(await fetch(Notification, type=NotificationType.INTEGRATION_SYNC)) == 1

    async def test_same_refresh_redelivered_is_ignored(self, client, bi_owner, make_dataset, fetch):
        await make_dataset(bi_owner)
        kwargs = signed_request("powerbi", self.COMPLETED)
        await client.post(POWERBI_URL, **kwargs)
        resp = await client.post(POWERBI_URL, **kwargs)
        assert resp.json()["message"] == "Duplicate delivery ignored"
        assert len(await fetch(Notification, type=NotificationType.INTEGRATION_SYNC)) == 1
