from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update

from supplychain_api.db.base import utcnow
from supplychain_api.db.models.integrations import BiDataset, UserIntegration, WebhookDelivery
from .base import BaseRepository


@dataclass(frozen=True)
class IntegrationLookup:
    """
    Predicate used to find the registration a webhook belongs to.

    None means "do not filter on this attribute".
    """

    category: str
    service: str
    enabled: Optional[bool] = True
    sync_enabled: Optional[bool] = None

    def relaxed(self) -> "IntegrationLookup":
        """Same category/service without the state flags."""
        return IntegrationLookup(category=self.category, service=self.service, enabled=None, sync_enabled=None)


class IntegrationRepository(BaseRepository):
    """Repository for per-user integration registrations."""

    async def get_for_user(self, user_id: UUID, category: str) -> Optional[UserIntegration]:
        stmt = select(UserIntegration).where(
            UserIntegration.user_id == user_id, UserIntegration.category == category
        )
        return await self.scalar_one_or_none(stmt)

    async def find_first(self, lookup: IntegrationLookup) -> Optional[UserIntegration]:
        """Return the oldest registration matching the lookup predicate."""
        stmt = select(UserIntegration).where(
            UserIntegration.category == lookup.category,
            UserIntegration.service == lookup.service,
        )
        if lookup.enabled is not None:
            stmt = stmt.where(UserIntegration.enabled.is_(lookup.enabled))
        if lookup.sync_enabled is not None:
            stmt = stmt.where(UserIntegration.sync_enabled.is_(lookup.sync_enabled))
        stmt = stmt.order_by(UserIntegration.created_at, UserIntegration.id).limit(1)
        return await self.scalar_one_or_none(stmt)

    async def upsert(
        self,
        user_id: UUID,
        category: str,
        *,
        service: str,
        enabled: bool,
        api_key: Optional[str],
        store_url: Optional[str],
        sync_enabled: Optional[bool] = None,
    ) -> UserIntegration:
        integration = await self.get_for_user(user_id, category)
        if integration is None:
            integration = UserIntegration(user_id=user_id, category=category)
            await self.add(integration)
        integration.service = service
        integration.enabled = enabled
        integration.api_key = api_key
        integration.store_url = store_url
        if sync_enabled is not None:
            integration.sync_enabled = sync_enabled
        elif integration.sync_enabled is None:
            integration.sync_enabled = True
        await self.commit()
        return integration


class BiDatasetRepository(BaseRepository):
    """Repository for BI datasets tracked per user."""

    async def record_refresh(
        self,
        user_id: UUID,
        dataset_id: str,
        *,
        status: str,
        started_at: Optional[datetime],
        ended_at: Optional[datetime],
        error: Optional[str] = None,
    ) -> Optional[BiDataset]:
        """
        Store the outcome of a dataset refresh.

        Returns None (and changes nothing) when the user does not track this dataset.
        Does not commit; the caller owns the transaction.
        """
        stmt = (
            update(BiDataset)
            .where(BiDataset.user_id == user_id, BiDataset.dataset_id == dataset_id)
            .values(
                last_refresh_status=status,
                last_refresh_started_at=started_at,
                last_refresh_at=ended_at,
                last_refresh_error=error,
                updated_at=utcnow(),
            )
            .returning(BiDataset)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.execute(stmt)
        return result.scalar_one_or_none()


class WebhookDeliveryRepository(BaseRepository):
    """Dedupe ledger for inbound webhook deliveries."""

    async def claim(self, provider: str, event_id: str) -> None:
        """
        Insert the delivery marker and flush.

        Raises sqlalchemy.exc.IntegrityError when (provider, event_id) was already processed.
        """
        await self.add(WebhookDelivery(provider=provider, event_id=event_id))
        await self.flush()
