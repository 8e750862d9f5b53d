from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    """Outcome of one rate-limit check."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def to_headers(self) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, self.remaining)),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(max(1, int(self.reset_at - time.time())))
        return headers


class RateLimiter:
    """
    Fixed-window request counter stored in Redis.

    The counter key expires with its window, so a key never outlives the window
    it counts. Without a client every request is allowed, and Redis errors fail open.
    """

    def __init__(self, redis_client: Optional[Any] = None, prefix: str = "ratelimit") -> None:
        self._redis = redis_client
        self._prefix = prefix

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    def _key(self, name: str, identifier: str, window: int) -> str:
        bucket = int(time.time() // window)
        return f"{self._prefix}:{name}:{identifier}:{bucket}"

    # PUBLIC_INTERFACE
    async def hit(self, name: str, identifier: str, limit: int, window: int) -> RateLimitResult:
        """
        Count one request for (name, identifier) in the current window.

        Returns:
            RateLimitResult; allowed is False once the count exceeds limit.
        """
        now = time.time()
        reset_at = (int(now // window) + 1) * window
        if self._redis is None:
            return RateLimitResult(allowed=True, limit=limit, remaining=limit, reset_at=reset_at)

        key = self._key(name, identifier, window)
        try:
            count = await self._redis.incr(key)
            if count == 1:
                await self._redis.expire(key, window)
        except RedisError:
            logger.exception("Rate limiter unavailable; allowing request for %s", name)
            return RateLimitResult(allowed=True, limit=limit, remaining=limit, reset_at=reset_at)

        remaining = limit - int(count)
        allowed = remaining >= 0
        if not allowed:
            logger.warning("Rate limit exceeded for %s by %s (%d/%d)", name, identifier, count, limit)
        return RateLimitResult(allowed=allowed, limit=limit, remaining=remaining, reset_at=reset_at)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
