from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from supplychain_api.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class ErrorCode:
    """Machine-readable error codes shared by the REST API and webhook receivers."""

    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_ID = "INVALID_ID"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_TYPE = "INVALID_TYPE"
    INVALID_CATEGORY = "INVALID_CATEGORY"
    NOT_FOUND = "NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    INTEGRATION_NOT_FOUND = "INTEGRATION_NOT_FOUND"
    INTEGRATION_DISABLED = "INTEGRATION_DISABLED"
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    NO_RECIPIENTS = "NO_RECIPIENTS"
    RATE_LIMIT = "RATE_LIMIT"
    SERVER_ERROR = "SERVER_ERROR"


# Fallback codes for HTTPExceptions raised without an explicit code (e.g. by FastAPI security helpers)
STATUS_CODE_DEFAULTS = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.INVALID_INPUT,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_429_TOO_MANY_REQUESTS: ErrorCode.RATE_LIMIT,
}


class ApiError(HTTPException):
    """
    HTTPException carrying a machine-readable code.

    Rendered by the global exception handler as {"code": ..., "message": ...}.
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[Any] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code = code
        self.message = message
        self.details = details


# PUBLIC_INTERFACE
def not_found(message: str = "Resource not found", code: str = ErrorCode.NOT_FOUND) -> ApiError:
    """Build a 404 ApiError."""
    return ApiError(status.HTTP_404_NOT_FOUND, code, message)


# PUBLIC_INTERFACE
def bad_request(code: str, message: str, details: Optional[Any] = None) -> ApiError:
    """Build a 400 ApiError."""
    return ApiError(status.HTTP_400_BAD_REQUEST, code, message, details=details)


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[Any] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorResponse(
        code=code,
        message=message,
        details=details,
        correlation_id=getattr(request.state, "correlation_id", None),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed with %s: %s", exc.code, exc.message)
    return _error_response(request, exc.status_code, exc.code, exc.message, exc.details, exc.headers)


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, str):
        message, details = exc.detail, None
    else:
        message, details = "HTTP Error", exc.detail
    fallback = ErrorCode.SERVER_ERROR if exc.status_code >= 500 else ErrorCode.INVALID_INPUT
    code = STATUS_CODE_DEFAULTS.get(exc.status_code, fallback)
    return _error_response(request, exc.status_code, code, message, details, getattr(exc, "headers", None))


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        ErrorCode.VALIDATION_ERROR,
        "Request validation failed",
        jsonable_encoder(exc.errors()),
    )


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error processing %s %s", request.method, request.url.path)
    return _error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.SERVER_ERROR, "An unexpected error occurred"
    )


# PUBLIC_INTERFACE
def install_exception_handlers(app: FastAPI) -> None:
    """
    Render every error as the ErrorResponse envelope.

    ApiError keeps its own code; other HTTP errors get the default code for their
    status; request validation failures become 400 VALIDATION_ERROR; anything else
    is logged and answered with 500 SERVER_ERROR without a stack trace.
    """
    app.add_exception_handler(ApiError, _api_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unhandled_error)
