"""
Inbound webhook receivers.

Every receiver reads the raw body once, verifies its signature against that exact
byte string, then validates it against the provider's payload schema before any
database work happens.
"""

from __future__ import annotations

import logging
from typing import Optional, Type, TypeVar

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ValidationError

from supplychain_api.core.deps import get_webhook_service, get_webhook_verifier
from supplychain_api.core.errors import ApiError, ErrorCode, bad_request
from supplychain_api.schemas.webhooks import (
    IotTemperatureAlert,
    PowerBiRefreshComplete,
    SapInventoryUpdate,
    ShopifyOrderCreated,
    WebhookAck,
)
from supplychain_api.services.webhook_verification import WebhookVerifier
from supplychain_api.services.webhooks import WebhookService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

P = TypeVar("P", bound=BaseModel)

# Header carrying the provider's delivery id, used for duplicate detection
EVENT_ID_HEADERS = {
    "shopify": "X-Shopify-Webhook-Id",
    "sap": "X-SAP-Event-Id",
    "iot": "X-IoT-Event-Id",
    "powerbi": "X-PowerBI-Event-Id",
}


async def _verified_payload(
    request: Request, provider: str, model: Type[P], verifier: WebhookVerifier
) -> P:
    body = await request.body()
    if not verifier.verify(provider, body, request.headers):
        raise ApiError(status.HTTP_401_UNAUTHORIZED, ErrorCode.INVALID_SIGNATURE, "Invalid webhook signature")
    try:
        return model.model_validate_json(body)
    except ValidationError as exc:
        logger.info("Rejected %s webhook payload: %d validation errors", provider, exc.error_count())
        raise bad_request(
            ErrorCode.VALIDATION_ERROR,
            f"Invalid {provider} webhook payload",
            details=exc.errors(include_url=False, include_context=False),
        )


def _event_id(request: Request, provider: str, fallback: Optional[str] = None) -> Optional[str]:
    value = request.headers.get(EVENT_ID_HEADERS[provider])
    return value.strip() if value and value.strip() else fallback


# PUBLIC_INTERFACE
@router.post(
    "/shopify/orders/create",
    response_model=WebhookAck,
    summary="Shopify order created",
    description="Decrement stock for the order's line items and notify the store owner.",
)
async def shopify_order_created(
    request: Request,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    service: WebhookService = Depends(get_webhook_service),
) -> WebhookAck:
    order = await _verified_payload(request, "shopify", ShopifyOrderCreated, verifier)
    event_id = _event_id(request, "shopify", fallback=f"order:{order.id}")
    return await service.process_shopify_order(order, event_id)


# PUBLIC_INTERFACE
@router.post(
    "/sap/inventory",
    response_model=WebhookAck,
    summary="SAP inventory update",
    description="Overwrite an item's quantity, price and cost with SAP's values.",
)
async def sap_inventory_update(
    request: Request,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    service: WebhookService = Depends(get_webhook_service),
) -> WebhookAck:
    update = await _verified_payload(request, "sap", SapInventoryUpdate, verifier)
    return await service.process_sap_inventory(update, _event_id(request, "sap"))


# PUBLIC_INTERFACE
@router.post(
    "/iot/temperature-alert",
    response_model=WebhookAck,
    summary="IoT temperature alert",
    description="Record a zone temperature reading and raise a temperature alert.",
)
async def iot_temperature_alert(
    request: Request,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    service: WebhookService = Depends(get_webhook_service),
) -> WebhookAck:
    alert = await _verified_payload(request, "iot", IotTemperatureAlert, verifier)
    return await service.process_iot_alert(alert, _event_id(request, "iot"))


# PUBLIC_INTERFACE
@router.post(
    "/powerbi/refresh-complete",
    response_model=WebhookAck,
    summary="Power BI refresh complete",
    description="Store a dataset refresh outcome and notify the dataset owner.",
)
async def powerbi_refresh_complete(
    request: Request,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    service: WebhookService = Depends(get_webhook_service),
) -> WebhookAck:
    refresh = await _verified_payload(request, "powerbi", PowerBiRefreshComplete, verifier)
    fallback = None
    if refresh.end_time is not None:
        fallback = f"{refresh.dataset_id}:{refresh.end_time.isoformat()}"
    return await service.process_powerbi_refresh(refresh, _event_id(request, "powerbi", fallback=fallback))
