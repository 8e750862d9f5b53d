from __future__ import annotations

from typing import Any, Iterable, Optional

from sqlalchemy import Executable, Result, ScalarResult
from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """
    Thin wrapper over an AsyncSession shared with the other repositories of a request.

    Nothing is scoped implicitly: per-user queries take the owning user id as an
    argument and filter on it.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None) -> Result:
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable) -> ScalarResult:
        return (await self.execute(statement)).scalars()

    async def scalar_one_or_none(self, statement: Executable) -> Any:
        return (await self.execute(statement)).scalar_one_or_none()

    async def add(self, entity: Any) -> None:
        self.session.add(entity)

    async def add_all(self, entities: Iterable[Any]) -> None:
        self.session.add_all(list(entities))

    async def flush(self) -> None:
        """Send pending INSERT/UPDATEs so constraint violations surface now."""
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()
