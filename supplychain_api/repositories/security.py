from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from supplychain_api.db.models.security import User
from .base import BaseRepository


class UserRepository(BaseRepository):
    """Repository for dashboard users."""

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email)
        return await self.scalar_one_or_none(stmt)

    async def list_user_ids(self, *, role: Optional[str] = None, active_only: bool = True) -> List[UUID]:
        stmt = select(User.id)
        if role:
            stmt = stmt.where(User.role == role)
        if active_only:
            stmt = stmt.where(User.is_active.is_(True))
        stmt = stmt.order_by(User.created_at)
        result = await self.scalars(stmt)
        return list(result)
