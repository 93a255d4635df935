"""Rate limiting wiring for FastAPI.

Builds the process-wide limiter from settings and derives the opaque client
key the limiter counts against. The admission decision itself is made by the
image search service, so the HTTP layer only supplies the key.

Client identity:
- First ``X-Forwarded-For`` entry when forwarded headers are trusted (opt-in)
- Otherwise the socket peer address
"""

from __future__ import annotations

from fastapi import Request

from booru_proxy.adapters.rate_limit.base import AbstractRateLimiter
from booru_proxy.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from booru_proxy.core.config import AppSettings


def create_rate_limiter(app_settings: AppSettings) -> AbstractRateLimiter | None:
    """Build the limiter described by settings, or None when disabled."""

    if not app_settings.rate_limit_enabled:
        return None

    return InMemoryFixedWindowRateLimiter(
        limit=app_settings.rate_limit_requests,
        window_seconds=app_settings.rate_limit_window_seconds,
        max_keys=app_settings.rate_limit_max_keys,
    )


def build_client_key(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Build the limiter key for the current request.

    Args:
        request: FastAPI request.
        trust_forwarded_for: Prefer the proxy-supplied client address.

    Returns:
        str: Namespaced client key.
    """

    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return f"ip:{first_hop}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"
