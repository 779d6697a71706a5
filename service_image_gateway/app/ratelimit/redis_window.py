"""
Redis-backed fixed window rate limiter for multi-instance deployments.
"""

from typing import Dict, Any, Optional
import redis.asyncio as redis

from shared.logging import get_logger


class RedisFixedWindowRateLimiter:
    """Fixed window counter shared by every gateway instance through Redis.

    Windows are anchored on the first increment (``SET NX EX``) and expire
    through the key TTL, so there is nothing to sweep locally. Any Redis
    failure degrades to "not limited".
    """

    def __init__(self, redis_url: str, max_requests: int, window_seconds: int):
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.redis_url = redis_url
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.logger = get_logger("image_gateway.redis_rate_limiter")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, client_id: str) -> str:
        """Generate rate limit key."""
        return f"image_rate_limit:{client_id}"

    async def is_rate_limited(self, client_id: str) -> bool:
        """Return True when the client has used up its current window."""
        if not client_id:
            return False

        try:
            redis_client = await self._get_redis()
            current_value = await redis_client.get(self._make_key(client_id))
        except Exception as e:
            self.logger.error("Rate limit check error", error=str(e))
            return False

        if isinstance(current_value, bytes):
            current_value = current_value.decode("utf-8")
        try:
            current_count = int(current_value) if current_value is not None else 0
        except ValueError:
            return False
        return current_count >= self.max_requests

    async def increment_counter(self, client_id: str) -> None:
        """Record one successfully served request for the client."""
        if not client_id:
            return

        key = self._make_key(client_id)
        try:
            redis_client = await self._get_redis()
            async with redis_client.pipeline(transaction=True) as pipeline:
                pipeline.set(key, 0, ex=self.window_seconds, nx=True)
                pipeline.incr(key)
                await pipeline.execute()
        except Exception as e:
            self.logger.error("Rate limit increment error", error=str(e))

    def sweep(self) -> int:
        """Expiry is handled by Redis TTLs."""
        return 0

    def start(self) -> None:
        """Nothing to schedule; kept for interface parity with the in-memory limiter."""

    async def stop(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def stats(self) -> Dict[str, Any]:
        """Aggregate statistics across all instances."""
        result: Dict[str, Any] = {
            "backend": "redis",
            "max_requests": self.max_requests,
            "window_seconds": self.window_seconds,
        }
        try:
            redis_client = await self._get_redis()
            tracked = 0
            async for _ in redis_client.scan_iter(match="image_rate_limit:*"):
                tracked += 1
            result["tracked_clients"] = tracked
        except Exception as e:
            self.logger.error("Rate limit stats error", error=str(e))
            result["error"] = "Redis unavailable"
        return result

    async def ping(self) -> bool:
        """Report whether Redis answers."""
        try:
            redis_client = await self._get_redis()
            return bool(await redis_client.ping())
        except Exception as e:
            self.logger.warning("Redis ping failed", error=str(e))
            return False
