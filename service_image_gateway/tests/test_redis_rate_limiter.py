"""
Unit tests for the Redis-backed fixed window rate limiter.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from service_image_gateway.app.ratelimit.redis_window import RedisFixedWindowRateLimiter


class TestRedisFixedWindowRateLimiter:
    """Test cases for RedisFixedWindowRateLimiter."""

    @pytest.fixture
    def rate_limiter(self):
        """Create RedisFixedWindowRateLimiter instance."""
        return RedisFixedWindowRateLimiter("redis://localhost:6379/0", max_requests=5, window_seconds=60)

    @pytest.fixture
    def mock_redis(self):
        """Redis client double with a pipeline context manager."""
        redis_client = MagicMock()
        redis_client.get = AsyncMock(return_value=None)
        pipeline = MagicMock()
        pipeline.execute = AsyncMock(return_value=[True, 1])
        redis_client.pipeline.return_value.__aenter__.return_value = pipeline
        redis_client.pipeline.return_value.__aexit__.return_value = False
        return redis_client

    def test_make_key(self, rate_limiter):
        """Test rate limit key generation."""
        assert rate_limiter._make_key("127.0.0.1") == "image_rate_limit:127.0.0.1"

    @pytest.mark.asyncio
    async def test_not_limited_without_key(self, rate_limiter, mock_redis):
        """No counter means not limited."""
        with patch.object(rate_limiter, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.return_value = mock_redis

            assert await rate_limiter.is_rate_limited("127.0.0.1") is False
            mock_redis.get.assert_awaited_once_with("image_rate_limit:127.0.0.1")

    @pytest.mark.asyncio
    async def test_limited_at_max_requests(self, rate_limiter, mock_redis):
        """A counter at the limit blocks the client."""
        mock_redis.get.return_value = b"5"
        with patch.object(rate_limiter, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.return_value = mock_redis

            assert await rate_limiter.is_rate_limited("127.0.0.1") is True

    @pytest.mark.asyncio
    async def test_below_limit(self, rate_limiter, mock_redis):
        """A counter below the limit admits the client."""
        mock_redis.get.return_value = b"4"
        with patch.object(rate_limiter, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.return_value = mock_redis

            assert await rate_limiter.is_rate_limited("127.0.0.1") is False

    @pytest.mark.asyncio
    async def test_increment_anchors_window_then_increments(self, rate_limiter, mock_redis):
        """Increment sets the TTL only on the first request of a window."""
        with patch.object(rate_limiter, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.return_value = mock_redis

            await rate_limiter.increment_counter("127.0.0.1")

        pipeline = mock_redis.pipeline.return_value.__aenter__.return_value
        pipeline.set.assert_called_once_with("image_rate_limit:127.0.0.1", 0, ex=60, nx=True)
        pipeline.incr.assert_called_once_with("image_rate_limit:127.0.0.1")
        pipeline.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_redis_connection_error_degrades_to_not_limited(self, rate_limiter):
        """Redis outages never block traffic."""
        with patch.object(rate_limiter, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.side_effect = Exception("Redis connection failed")

            assert await rate_limiter.is_rate_limited("127.0.0.1") is False
            await rate_limiter.increment_counter("127.0.0.1")

    @pytest.mark.asyncio
    async def test_corrupt_counter_degrades_to_not_limited(self, rate_limiter, mock_redis):
        """A non-numeric value is ignored."""
        mock_redis.get.return_value = b"garbage"
        with patch.object(rate_limiter, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.return_value = mock_redis

            assert await rate_limiter.is_rate_limited("127.0.0.1") is False

    @pytest.mark.asyncio
    async def test_stats_when_unavailable(self, rate_limiter):
        """Stats report the outage instead of raising."""
        with patch.object(rate_limiter, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.side_effect = Exception("Redis connection failed")

            stats = await rate_limiter.stats()

        assert stats["backend"] == "redis"
        assert stats["error"] == "Redis unavailable"

    def test_sweep_is_noop(self, rate_limiter):
        """Expiry is delegated to Redis TTLs."""
        assert rate_limiter.sweep() == 0
