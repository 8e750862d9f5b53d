# tests/test_rate_limit.py
"""
Tests for the Redis-backed fixed-window rate limiter and the notification list limit.
"""

from typing import Dict

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from supplychain_api.api.main import app
from supplychain_api.services.rate_limit import RateLimiter

from conftest import auth_headers


class FakeRedis:
    """Minimal async stand-in for the INCR/EXPIRE calls the limiter makes."""

    def __init__(self) -> None:
        self.counts: Dict[str, int] = {}
        self.expiries: Dict[str, int] = {}
        self.closed = False

    async def incr(self, key: str) -> int:
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.expiries[key] = seconds
        return True

    async def aclose(self) -> None:
        self.closed = True


class BrokenRedis(FakeRedis):
    async def incr(self, key: str) -> int:
        raise RedisConnectionError("connection refused")


class TestRateLimiter:
    async def test_allows_up_to_limit_then_blocks(self):
        limiter = RateLimiter(FakeRedis())

        results = [await limiter.hit("list", "u1", limit=3, window=60) for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results[:3]] == [2, 1, 0]

    async def test_expiry_set_once_per_window(self):
        redis = FakeRedis()
        limiter = RateLimiter(redis)

        await limiter.hit("list", "u1", limit=5, window=30)
        await limiter.hit("list", "u1", limit=5, window=30)

        assert len(redis.expiries) == 1
        assert list(redis.expiries.values()) == [30]

    async def test_identifiers_counted_separately(self):
        limiter = RateLimiter(FakeRedis())
        await limiter.hit("list", "u1", limit=1, window=60)
        assert (await limiter.hit("list", "u2", limit=1, window=60)).allowed is True
        assert (await limiter.hit("list", "u1", limit=1, window=60)).allowed is False

    async def test_disabled_without_client(self):
        limiter = RateLimiter(None)
        assert limiter.enabled is False
        for _ in range(5):
            assert (await limiter.hit("list", "u1", limit=1, window=60)).allowed is True

    async def test_redis_errors_fail_open(self):
        limiter = RateLimiter(BrokenRedis())
        result = await limiter.hit("list", "u1", limit=1, window=60)
        assert result.allowed is True

    async def test_blocked_headers_include_retry_after(self):
        limiter = RateLimiter(FakeRedis())
        await limiter.hit("list", "u1", limit=1, window=60)
        headers = (await limiter.hit("list", "u1", limit=1, window=60)).to_headers()

        assert headers["X-RateLimit-Limit"] == "1"
        assert headers["X-RateLimit-Remaining"] == "0"
        assert 1 <= int(headers["Retry-After"]) <= 60

    async def test_close(self):
        redis = FakeRedis()
        await RateLimiter(redis).close()
        assert redis.closed is True


class TestNotificationListLimit:
    @pytest.fixture
    def limited(self, client, monkeypatch):
        monkeypatch.setenv("NOTIFICATIONS_RATE_LIMIT", "2")
        app.state.rate_limiter = RateLimiter(FakeRedis())
        return client

    async def test_third_request_in_window_is_rejected(self, limited, make_user):
        user = await make_user("busy@example.com")

        codes = [
            (await limited.get("/api/v1/notifications", headers=auth_headers(user))).status_code
            for _ in range(3)
        ]

        assert codes == [200, 200, 429]

    async def test_rejection_envelope(self, limited, make_user):
        user = await make_user("busy@example.com")
        for _ in range(2):
            await limited.get("/api/v1/notifications", headers=auth_headers(user))

        resp = await limited.get("/api/v1/notifications", headers=auth_headers(user))

        assert resp.json()["code"] == "RATE_LIMIT"
        assert "Retry-After" in resp.headers

    async def test_unread_count_is_not_limited(self, limited, make_user):
        user = await make_user("busy@example.com")
        codes = {
            (await limited.get("/api/v1/notifications/unread", headers=auth_headers(user))).status_code
            for _ in range(4)
        }
        assert codes == {200}
