from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from jose import JWTError, jwt

from supplychain_api.core.settings import get_app_settings

ACCESS_TOKEN_TYPE = "access"


@dataclass(frozen=True)
class TokenClaims:
    """Claims carried by a dashboard access token."""

    user_id: UUID
    roles: List[str] = field(default_factory=list)
    expires_at: Optional[datetime] = None


# PUBLIC_INTERFACE
def create_access_token(
    subject: str,
    roles: list[str] | None = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Sign an access token whose `sub` is the user id."""
    settings = get_app_settings()
    now = datetime.now(tz=timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims: Dict[str, Any] = {
        "sub": subject,
        "roles": roles or [],
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


# PUBLIC_INTERFACE
def decode_access_token(token: str) -> TokenClaims:
    """
    Verify signature and expiry, then extract the claims.

    Raises:
        JWTError: bad signature, expired, not an access token, or `sub` is not a UUID.
    """
    settings = get_app_settings()
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("type", ACCESS_TOKEN_TYPE) != ACCESS_TOKEN_TYPE:
        raise JWTError("Not an access token")
    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise JWTError("Invalid subject")

    exp = payload.get("exp")
    return TokenClaims(
        user_id=user_id,
        roles=list(payload.get("roles") or []),
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
    )
