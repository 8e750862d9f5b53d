"""
Public Pydantic schemas used by FastAPI routes, services, and tests.

Schemas are grouped by area (notifications, integrations, webhook payloads)
and also include common reusable models such as the error envelope.
"""

from .common import ErrorResponse, MessageResponse, SuccessResponse  # noqa: F401
