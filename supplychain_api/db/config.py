from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url

# Driver used for each backend by the async engine and by Alembic offline mode.
_ASYNC_DRIVERS = {"postgresql": "postgresql+asyncpg", "sqlite": "sqlite+aiosqlite"}
_SYNC_DRIVERS = {"postgresql": "postgresql", "sqlite": "sqlite"}


class Settings(BaseSettings):
    """
    Database connection settings.

    DATABASE_URL wins when set; otherwise the URL is assembled from the
    POSTGRES_* parts. The driver in the URL is normalized, so
    `postgresql://...` and `postgresql+psycopg2://...` both work.
    """

    DATABASE_URL: Optional[str] = Field(default=None, description="Full SQLAlchemy URL")

    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_DB: Optional[str] = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432

    SQL_ECHO: bool = Field(default=False, description="Log every SQL statement")
    DB_POOL_SIZE: int = Field(default=5, ge=1)
    DB_MAX_OVERFLOW: int = Field(default=10, ge=0)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def url(self) -> URL:
        if self.DATABASE_URL:
            return make_url(self.DATABASE_URL)
        if not (self.POSTGRES_USER and self.POSTGRES_PASSWORD and self.POSTGRES_DB):
            raise ValueError(
                "Database configuration missing: set DATABASE_URL or "
                "POSTGRES_USER, POSTGRES_PASSWORD and POSTGRES_DB."
            )
        return URL.create(
            "postgresql",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_HOST,
            port=self.POSTGRES_PORT,
            database=self.POSTGRES_DB,
        )

    def _with_driver(self, drivers: Dict[str, str]) -> URL:
        url = self.url
        backend = url.get_backend_name()
        if backend in drivers:
            url = url.set(drivername=drivers[backend])
        return url

    @property
    def async_database_url(self) -> str:
        """URL for the AsyncEngine (asyncpg / aiosqlite)."""
        return self._with_driver(_ASYNC_DRIVERS).render_as_string(hide_password=False)

    @property
    def sync_database_url(self) -> str:
        """URL for Alembic offline mode."""
        return self._with_driver(_SYNC_DRIVERS).render_as_string(hide_password=False)

    def engine_options(self) -> Dict[str, Any]:
        """Keyword arguments for create_async_engine. SQLite takes no pool sizing."""
        options: Dict[str, Any] = {"echo": self.SQL_ECHO, "pool_pre_ping": True}
        if self.url.get_backend_name() != "sqlite":
            options.update(pool_size=self.DB_POOL_SIZE, max_overflow=self.DB_MAX_OVERFLOW)
        return options


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return database settings read from the environment."""
    return Settings()
