from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from supplychain_api.core.errors import ApiError, ErrorCode
from supplychain_api.core.logging import user_id_var
from supplychain_api.core.security import decode_access_token
from supplychain_api.core.settings import AppSettings, get_app_settings
from supplychain_api.db.models.security import User
from supplychain_api.db.session import get_async_session
from supplychain_api.repositories.security import UserRepository
from supplychain_api.services.notifications import NotificationEmitter
from supplychain_api.services.rate_limit import RateLimiter
from supplychain_api.services.realtime import BroadcastManager
from supplychain_api.services.webhook_verification import WebhookVerifier
from supplychain_api.services.webhooks import WebhookService

logger = logging.getLogger(__name__)

# Bearer scheme (used by docs); missing credentials are reported through ApiError
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(message: str) -> ApiError:
    return ApiError(
        status.HTTP_401_UNAUTHORIZED,
        ErrorCode.UNAUTHORIZED,
        message,
        headers={"WWW-Authenticate": "Bearer"},
    )


# PUBLIC_INTERFACE
async def authenticate_token(token: Optional[str], session: AsyncSession) -> User:
    """
    Resolve the user a bearer token was issued to.

    Raises:
        ApiError 401: token missing, invalid, expired, or for an unknown user.
    """
    if not token:
        raise _unauthorized("Not authenticated")
    try:
        claims = decode_access_token(token)
    except JWTError:
        raise _unauthorized("Invalid token")

    user = await UserRepository(session).get_user_by_id(claims.user_id)
    if not user:
        raise _unauthorized("User not found")
    return user


# PUBLIC_INTERFACE
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_async_session),
) -> User:
    """
    Resolve and return the current user from the Authorization bearer token.

    Also binds the user id to the logging context for the rest of the request.
    """
    user = await authenticate_token(credentials.credentials if credentials else None, session)
    user_id_var.set(str(user.id))
    return user


# PUBLIC_INTERFACE
async def get_current_active_user(user: User = Depends(get_current_user)) -> User:
    """Ensure user is active."""
    if not user.is_active:
        raise ApiError(status.HTTP_403_FORBIDDEN, ErrorCode.FORBIDDEN, "Inactive user")
    return user


# PUBLIC_INTERFACE
def require_roles(*required: str):
    """
    Create a dependency that requires the current user to have one of the specified roles.
    """

    async def _dep(user: User = Depends(get_current_active_user)) -> User:
        if user.role not in set(required):
            raise ApiError(status.HTTP_403_FORBIDDEN, ErrorCode.FORBIDDEN, "Insufficient role")
        return user

    return _dep


# PUBLIC_INTERFACE
def get_broadcast_manager(request: Request) -> Optional[BroadcastManager]:
    """Return the application's broadcast manager, if one was installed."""
    return getattr(request.app.state, "broadcasts", None)


# PUBLIC_INTERFACE
def get_notification_emitter(
    session: AsyncSession = Depends(get_async_session),
    broadcasts: Optional[BroadcastManager] = Depends(get_broadcast_manager),
) -> NotificationEmitter:
    """Build a request-scoped notification emitter."""
    return NotificationEmitter(session, broadcasts)


# PUBLIC_INTERFACE
def get_webhook_verifier(settings: AppSettings = Depends(get_app_settings)) -> WebhookVerifier:
    """Build a verifier from the configured webhook secrets."""
    return WebhookVerifier(settings.webhook_secrets())


# PUBLIC_INTERFACE
def get_webhook_service(
    session: AsyncSession = Depends(get_async_session),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
) -> WebhookService:
    """Build a request-scoped webhook service sharing the request session."""
    return WebhookService(session, emitter)


# PUBLIC_INTERFACE
def get_rate_limiter(request: Request) -> RateLimiter:
    """Return the application's rate limiter; a disabled one when none is installed."""
    limiter = getattr(request.app.state, "rate_limiter", None)
    return limiter if limiter is not None else RateLimiter(None)


# PUBLIC_INTERFACE
def rate_limit(name: str):
    """
    Create a dependency counting requests per (name, current user).

    Raises:
        ApiError 429 RATE_LIMIT once the user exceeds the configured window budget.
    """

    async def _dep(
        user: User = Depends(get_current_active_user),
        limiter: RateLimiter = Depends(get_rate_limiter),
        settings: AppSettings = Depends(get_app_settings),
    ) -> None:
        result = await limiter.hit(
            name,
            str(user.id),
            settings.NOTIFICATIONS_RATE_LIMIT,
            settings.NOTIFICATIONS_RATE_WINDOW_SECONDS,
        )
        if not result.allowed:
            raise ApiError(
                status.HTTP_429_TOO_MANY_REQUESTS,
                ErrorCode.RATE_LIMIT,
                "Too many requests. Please try again later.",
                headers=result.to_headers(),
            )

    return _dep
