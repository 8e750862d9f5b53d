from __future__ import annotations

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings


class _Database:
    """Engine and session factory, created on first use."""

    def __init__(self) -> None:
        self.engine: Optional[AsyncEngine] = None
        self.sessions: Optional[async_sessionmaker[AsyncSession]] = None

    def init(self) -> None:
        if self.engine is not None:
            return
        settings = get_settings()
        self.engine = create_async_engine(settings.async_database_url, **settings.engine_options())
        # Objects stay usable after commit; routes serialize them after the transaction ends.
        self.sessions = async_sessionmaker(bind=self.engine, expire_on_commit=False, autoflush=False)


_db = _Database()


# PUBLIC_INTERFACE
def get_engine() -> AsyncEngine:
    """Return the process-wide AsyncEngine."""
    _db.init()
    return _db.engine


# PUBLIC_INTERFACE
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return the session factory bound to the process-wide engine."""
    _db.init()
    return _db.sessions


# PUBLIC_INTERFACE
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one AsyncSession per request.

    FastAPI caches the dependency within a request, so every repository and
    service built for that request shares this session and its transaction.
    """
    async with get_session_maker()() as session:
        yield session
