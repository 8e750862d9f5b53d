from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class IntegrationRead(BaseModel):
    """A user's integration registration for one category. Credentials are never echoed."""
    category: str = Field(..., description="ecommerce | erp_crm | iot | bi_tools")
    service: Optional[str] = Field(default=None, description="Configured service, if any")
    enabled: bool = Field(False)
    store_url: Optional[str] = Field(default=None, description="Store URL (ecommerce only)")
    sync_enabled: bool = Field(True, description="Automatic sync of inbound events")
    has_credentials: bool = Field(False, description="Whether an API key is stored")


class IntegrationUpdate(BaseModel):
    """Request to configure an integration category."""
    service: Optional[str] = Field(default=None, description="Service identifier for the category")
    enabled: bool = Field(True)
    api_key: Optional[str] = Field(default=None)
    store_url: Optional[str] = Field(default=None)
    sync_enabled: Optional[bool] = Field(default=None)


class IntegrationResponse(BaseModel):
    success: bool = True
    integration: IntegrationRead
    message: Optional[str] = None
