"""Image search orchestration: admission, caching, upstream call, mapping.

This service owns the request lifecycle shared by every source:
- Per-client admission through the rate limiter
- Normalization of raw query parameters into a CanonicalQuery
- Cache lookup keyed by the canonical query (source included)
- Adapter resolution, URL construction and a single deadline-bound fetch
- Classification of upstream failures into the error taxonomy
- Mapping of the upstream body into canonical posts, stored in the cache
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Literal, Mapping

from booru_proxy.adapters.http.fetcher import CancellationToken, Deadline, UpstreamFetcher
from booru_proxy.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from booru_proxy.adapters.sources.registry import SourceRegistry
from booru_proxy.core.errors import (
    InternalError,
    RateLimitExceeded,
    UpstreamParseFailure,
    UpstreamRejected,
)
from booru_proxy.schemas.posts import CanonicalResult
from booru_proxy.schemas.query import CanonicalQuery
from booru_proxy.utils.query_normalizer import normalize_query
from booru_proxy.utils.simple_cache import SimpleTTLCache, build_cache_key

logger = logging.getLogger(__name__)

CacheStatus = Literal["HIT", "MISS"]


@dataclass(frozen=True)
class SearchOutcome:
    """Result of one search plus how it was served."""

    query: CanonicalQuery
    result: CanonicalResult
    cache_status: CacheStatus


def hash_client_key(client_key: str) -> str:
    """Hash the client key for logging without exposing addresses."""
    return hashlib.sha256(client_key.encode()).hexdigest()[:16]


def _excerpt(body: bytes, max_chars: int) -> str:
    return body[:max_chars * 4].decode("utf-8", errors="replace")[:max_chars]


class ImageSearchService:
    """Runs the search pipeline for one client request.

    Attributes:
        registry: Source adapters keyed by source name.
        fetcher: Deadline-bound upstream HTTP fetcher.
        cache: TTL cache of mapped results.
        limiter: Per-client admission control (None disables limiting).
        timeout_seconds: Upstream deadline budget per request.
    """

    def __init__(
        self,
        *,
        registry: SourceRegistry,
        fetcher: UpstreamFetcher,
        cache: SimpleTTLCache,
        limiter: AbstractRateLimiter | None,
        timeout_seconds: float = 8.0,
        rate_limit_headers: bool = True,
        body_excerpt_chars: int = 200,
    ) -> None:
        self.registry = registry
        self.fetcher = fetcher
        self.cache = cache
        self.limiter = limiter
        self.timeout_seconds = timeout_seconds
        self.rate_limit_headers = rate_limit_headers
        self.body_excerpt_chars = body_excerpt_chars

    def normalize(self, params: Mapping[str, Any]) -> CanonicalQuery:
        return normalize_query(params, sources=tuple(self.registry))

    def _throttle_headers(self, result: RateLimitResult) -> dict[str, str] | None:
        if not self.rate_limit_headers:
            return None
        return {
            "Retry-After": str(result.retry_after_seconds or 0),
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(result.reset_at),
        }

    def check_rate_limit(self, client_key: str) -> None:
        """Count the request against ``client_key``'s budget.

        Raises:
            RateLimitExceeded: If the client is over its limit for this window.
        """
        if self.limiter is None:
            return

        result = self.limiter.consume(client_key)
        if result.allowed:
            return

        logger.info(
            "rate_limit.exceeded",
            extra={
                "key_hash": hash_client_key(client_key),
                "limit": result.limit,
                "retry_after_s": result.retry_after_seconds,
            },
        )
        raise RateLimitExceeded(
            code="rate_limited",
            message="Too many requests. Try again later.",
            details={
                "limit": result.limit,
                "remaining": result.remaining,
                "reset_at": result.reset_at,
                "retry_after": result.retry_after_seconds or 0,
            },
            headers=self._throttle_headers(result),
        )

    async def search(self, params: Mapping[str, Any], *, client_key: str) -> SearchOutcome:
        """Serve one image search.

        Args:
            params: Raw query parameters as received.
            client_key: Opaque client identifier used for rate limiting.

        Returns:
            SearchOutcome with the canonical result and its cache status.

        Raises:
            RateLimitExceeded: Client is over its request budget.
            UpstreamTimeout: Upstream did not answer within the deadline.
            UpstreamTransportError: Upstream could not be reached.
            UpstreamRejected: Upstream answered with a non-success status.
            UpstreamParseFailure: Upstream body is not valid JSON.
            InternalError: A successful body could not be mapped.
        """
        self.check_rate_limit(client_key)

        query = self.normalize(params)
        cache_key = build_cache_key(query)

        cached = self.cache.get(cache_key)
        if cached is not None:
            return SearchOutcome(query=query, result=cached, cache_status="HIT")

        result = await self._fetch_and_map(query)
        self.cache.put(cache_key, result)
        return SearchOutcome(query=query, result=result, cache_status="MISS")

    async def _fetch_and_map(self, query: CanonicalQuery) -> CanonicalResult:
        adapter = self.registry.resolve(query.source)
        url = adapter.build_url(query)

        response = await self.fetcher.fetch(
            url,
            Deadline.after(self.timeout_seconds),
            CancellationToken(),
        )

        if not response.ok:
            excerpt = _excerpt(response.body, self.body_excerpt_chars)
            logger.warning(
                "upstream.rejected",
                extra={
                    "source": query.source,
                    "upstream_status": response.status_code,
                    "body_excerpt": excerpt,
                },
            )
            raise UpstreamRejected(
                code="upstream_rejected",
                message=f"Failed to fetch from {query.source} (status {response.status_code})",
                details={
                    "source": query.source,
                    "url": str(url),
                    "upstream_status": response.status_code,
                    "body_excerpt": excerpt,
                },
                upstream_status=response.status_code,
            )

        try:
            body = json.loads(response.body)
        except ValueError as exc:
            excerpt = _excerpt(response.body, self.body_excerpt_chars)
            logger.warning(
                "upstream.parse_failed",
                extra={
                    "source": query.source,
                    "error_msg": str(exc),
                    "body_excerpt": excerpt,
                },
            )
            raise UpstreamParseFailure(
                code="upstream_invalid_json",
                message=f"Invalid response from {query.source}",
                details={"source": query.source, "url": str(url), "body_excerpt": excerpt},
            ) from exc

        try:
            result = adapter.map_result(body)
        except ValueError as exc:
            logger.error(
                "upstream.mapping_failed",
                extra={
                    "source": query.source,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise InternalError(
                code="mapping_failed",
                message="Internal server error",
                details={"source": query.source, "url": str(url)},
            ) from exc

        logger.info(
            "upstream.mapped",
            extra={
                "source": query.source,
                "posts": len(result.posts),
                "elapsed_ms": round(response.elapsed_seconds * 1000, 2),
            },
        )
        return result
