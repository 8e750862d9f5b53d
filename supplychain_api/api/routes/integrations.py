from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from supplychain_api.core.deps import get_current_active_user, get_notification_emitter
from supplychain_api.core.errors import ErrorCode, bad_request
from supplychain_api.db.models.integrations import INTEGRATION_SERVICES, UserIntegration
from supplychain_api.db.models.security import User
from supplychain_api.db.session import get_async_session
from supplychain_api.repositories.integrations import IntegrationRepository
from supplychain_api.schemas.integrations import IntegrationRead, IntegrationResponse, IntegrationUpdate
from supplychain_api.services.notifications import NotificationEmitter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["Integrations"])


def _check_category(category: str) -> str:
    if category not in INTEGRATION_SERVICES:
        raise bad_request(
            ErrorCode.INVALID_CATEGORY,
            "Invalid integration category",
            details={"allowed": sorted(INTEGRATION_SERVICES)},
        )
    return category


def _to_read(category: str, integration: Optional[UserIntegration]) -> IntegrationRead:
    if integration is None:
        return IntegrationRead(category=category)
    return IntegrationRead(
        category=integration.category,
        service=integration.service,
        enabled=integration.enabled,
        store_url=integration.store_url,
        sync_enabled=integration.sync_enabled,
        has_credentials=integration.has_credentials,
    )


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[IntegrationRead],
    summary="List integrations",
    description="Return the caller's configuration for every integration category.",
)
async def list_integrations(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> List[IntegrationRead]:
    repo = IntegrationRepository(session)
    return [_to_read(category, await repo.get_for_user(user.id, category)) for category in INTEGRATION_SERVICES]


# PUBLIC_INTERFACE
@router.get(
    "/{category}",
    response_model=IntegrationRead,
    summary="Get an integration",
)
async def get_integration(
    category: str,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> IntegrationRead:
    """Return the caller's configuration for one category; unconfigured categories read as disabled."""
    _check_category(category)
    integration = await IntegrationRepository(session).get_for_user(user.id, category)
    return _to_read(category, integration)


# PUBLIC_INTERFACE
@router.put(
    "/{category}",
    response_model=IntegrationResponse,
    summary="Configure an integration",
)
async def update_integration(
    category: str,
    body: IntegrationUpdate,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
) -> IntegrationResponse:
    """
    Create or update the caller's integration for category and notify them.

    An omitted api_key keeps the stored one. Raises 400 INVALID_CATEGORY or
    INVALID_INPUT when the category or service is unknown.
    """
    _check_category(category)
    known = INTEGRATION_SERVICES[category]
    service = body.service or known[0]
    if service not in known:
        raise bad_request(
            ErrorCode.INVALID_INPUT,
            f"Unsupported service for {category}",
            details={"allowed": list(known)},
        )

    repo = IntegrationRepository(session)
    existing = await repo.get_for_user(user.id, category)
    api_key = body.api_key if body.api_key is not None else (existing.api_key if existing else None)
    store_url = body.store_url if category == "ecommerce" else None
    integration = await repo.upsert(
        user.id,
        category,
        service=service,
        enabled=body.enabled,
        api_key=api_key,
        store_url=store_url,
        sync_enabled=body.sync_enabled,
    )
    logger.info("Integration %s/%s updated (enabled=%s)", category, service, body.enabled)

    await emitter.integration_status(user.id, category, service, integration.enabled)
    return IntegrationResponse(
        integration=_to_read(category, integration),
        message=f"{category} integration updated successfully",
    )
