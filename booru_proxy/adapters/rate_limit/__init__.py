"""Rate limiting adapters.

The orchestrator depends on ``AbstractRateLimiter`` only, so the in-memory
fixed-window limiter can be swapped for a shared store without touching the
request pipeline.
"""

from booru_proxy.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from booru_proxy.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitResult",
]
