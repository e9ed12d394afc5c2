"""Resilience patterns for the model router."""

from model_router.resilience.rate_limiter import (
    FixedWindowRateLimiter,
    RateLimiter,
    RateLimitExceeded,
    RateLimitInfo,
    RateLimitRecord,
    SlidingWindowRateLimiter,
    create_rate_limiter,
)

__all__ = [
    "RateLimiter",
    "FixedWindowRateLimiter",
    "SlidingWindowRateLimiter",
    "RateLimitExceeded",
    "RateLimitInfo",
    "RateLimitRecord",
    "create_rate_limiter",
]
