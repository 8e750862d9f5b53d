from __future__ import annotations

import json
from typing import Annotated, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

WEBHOOK_PROVIDERS = ("shopify", "sap", "powerbi", "iot")


class AppSettings(BaseSettings):
    """
    Service settings read from the environment (or .env).

    Database connection settings live separately in supplychain_api.db.config.
    """

    APP_NAME: str = "Supply Chain Events API"
    APP_DESCRIPTION: str = (
        "Receives signed integration webhooks (Shopify, SAP, Power BI, IoT), applies "
        "inventory and warehouse updates, and delivers per-user notifications."
    )
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Optional[str] = Field(default=None, description="dev / test / prod")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level (DEBUG, INFO, WARNING, ...)")

    # CORS. List settings accept a JSON array or a comma-separated string.
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])

    RUN_MIGRATIONS_ON_STARTUP: bool = Field(default=True, description="Run `alembic upgrade head` at startup")

    # Access tokens
    JWT_SECRET_KEY: str = Field(default="change-me", description="HMAC key used to sign access tokens")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60, ge=1)

    # Webhook shared secrets. An empty secret rejects every delivery for that provider.
    SHOPIFY_WEBHOOK_SECRET: str = ""
    SAP_WEBHOOK_SECRET: str = ""
    POWERBI_WEBHOOK_SECRET: str = ""
    IOT_WEBHOOK_SECRET: str = ""

    # Fixed-window rate limiting; disabled when REDIS_URL is unset.
    REDIS_URL: Optional[str] = Field(default=None, description="redis:// URL for rate-limit counters")
    NOTIFICATIONS_RATE_LIMIT: int = Field(default=100, ge=1)
    NOTIFICATIONS_RATE_WINDOW_SECONDS: int = Field(default=3600, ge=1)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("CORS_ORIGINS", "CORS_ALLOW_METHODS", "CORS_ALLOW_HEADERS", mode="before")
    @classmethod
    def _split_list(cls, v):
        if v is None:
            return ["*"]
        if isinstance(v, str):
            text = v.strip()
            if text.startswith("["):
                v = json.loads(text)
            else:
                v = [part.strip() for part in text.split(",") if part.strip()]
        return list(v) or ["*"]

    def webhook_secrets(self) -> Dict[str, str]:
        """Provider name -> shared secret."""
        return {provider: getattr(self, f"{provider.upper()}_WEBHOOK_SECRET") for provider in WEBHOOK_PROVIDERS}


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Build AppSettings from the current environment.

    Not cached: each call re-reads the environment, so a changed variable takes
    effect on the next request.
    """
    return AppSettings()
