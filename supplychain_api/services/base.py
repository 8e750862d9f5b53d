from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class BaseService:
    """
    Base class for services. Holds a session for use across multiple repositories.

    Services should keep business logic and orchestration, delegating data access
    to repositories. A service owns the transaction boundaries of the operations it
    orchestrates.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _rollback_quietly(self) -> None:
        """Roll back after a failed step; a failing rollback is logged, not raised."""
        try:
            await self.session.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed")
