from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    """Standard message response."""
    message: str = Field(..., description="Human readable message")
    details: Optional[dict] = Field(default=None, description="Optional extra data")


class SuccessResponse(BaseModel):
    """Acknowledgement returned by mutations and webhook receivers."""
    success: bool = Field(True, description="Whether the operation completed")
    message: Optional[str] = Field(default=None, description="Optional human readable message")


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """
    Standardized API error envelope returned by exception handlers.

    Clients branch on `code`; `message` is for humans.
    """
    success: bool = Field(False, description="Always false for errors")
    code: str = Field(..., description="Machine-readable error code (e.g. NOT_FOUND, INVALID_ID)")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(default=None, description="Optional error details (e.g., validation issues)")
    correlation_id: Optional[str] = Field(default=None, description="Request correlation ID")
    path: Optional[str] = Field(default=None, description="Request path")
    method: Optional[str] = Field(default=None, description="HTTP method")
    timestamp: datetime = Field(..., description="Error timestamp (UTC)")
