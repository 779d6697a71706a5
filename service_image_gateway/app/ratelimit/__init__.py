"""
Rate limiting package for the image gateway.

Holds fixed window counter implementations that enforce per-identity
request budgets: an in-process limiter (the default) and a Redis-backed
one sharing windows across instances.
"""

from typing import Union

from shared.config import ServiceConfig

from .fixed_window import ClientWindowRecord, FixedWindowRateLimiter
from .redis_window import RedisFixedWindowRateLimiter

RateLimiter = Union[FixedWindowRateLimiter, RedisFixedWindowRateLimiter]


def build_rate_limiter(config: ServiceConfig) -> RateLimiter:
    """Create the limiter selected by ``rate_limit_backend``."""
    if config.rate_limit_backend == "redis":
        return RedisFixedWindowRateLimiter(
            config.redis_url,
            max_requests=config.rate_limit_max_requests,
            window_seconds=config.rate_limit_window_seconds,
        )
    return FixedWindowRateLimiter(
        max_requests=config.rate_limit_max_requests,
        window_seconds=config.rate_limit_window_seconds,
        sweep_interval_seconds=config.rate_limit_sweep_interval_seconds,
    )


__all__ = [
    "ClientWindowRecord",
    "FixedWindowRateLimiter",
    "RedisFixedWindowRateLimiter",
    "RateLimiter",
    "build_rate_limiter",
]
