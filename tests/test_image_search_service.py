"""Tests for the image search orchestrator."""

import httpx
import pytest

from booru_proxy.adapters.http.fetcher import UpstreamFetcher
from booru_proxy.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from booru_proxy.adapters.sources.registry import create_source_registry
from booru_proxy.core.config import UpstreamSettings
from booru_proxy.core.errors import (
    RateLimitExceeded,
    UpstreamParseFailure,
    UpstreamRejected,
    UpstreamTimeout,
)
from booru_proxy.services.image_search_service import ImageSearchService
from booru_proxy.utils.simple_cache import SimpleTTLCache


def _service(upstream, *, limit: int = 100, timeout_seconds: float = 1.0) -> ImageSearchService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    return ImageSearchService(
        registry=create_source_registry(UpstreamSettings()),
        fetcher=UpstreamFetcher(client=client),
        cache=SimpleTTLCache(ttl_seconds=60),
        limiter=InMemoryFixedWindowRateLimiter(limit=limit, window_seconds=60),
        timeout_seconds=timeout_seconds,
    )


@pytest.mark.asyncio
async def test_miss_then_hit_calls_upstream_once(upstream):
    upstream.json_body = {"post": [{"id": 1, "tags": "a b", "file_url": "http://x/f.jpg"}]}
    service = _service(upstream)

    first = await service.search({"tags": "a"}, client_key="ip:1")
    second = await service.search({"tags": " A "}, client_key="ip:1")

    assert first.cache_status == "MISS"
    assert second.cache_status == "HIT"
    assert second.result == first.result
    assert len(upstream.requests) == 1


@pytest.mark.asyncio
async def test_sources_do_not_share_cache_entries(upstream):
    upstream.json_body = []
    service = _service(upstream)

    await service.search({"tags": "cat", "source": "danbooru"}, client_key="ip:1")
    upstream.json_body = {"post": []}
    outcome = await service.search({"tags": "cat", "source": "gelbooru"}, client_key="ip:1")

    assert outcome.cache_status == "MISS"
    assert len(upstream.requests) == 2
    assert upstream.requests[0].url.host == "danbooru.donmai.us"
    assert upstream.requests[1].url.host == "gelbooru.com"


@pytest.mark.asyncio
async def test_query_is_normalized_before_upstream_call(upstream):
    upstream.json_body = []
    service = _service(upstream)

    outcome = await service.search(
        {"tags": "cat dog!!", "page": "-1", "limit": "500", "sort": "bogus", "source": "danbooru"},
        client_key="ip:1",
    )

    assert outcome.query.tags == ("cat", "dog")
    assert outcome.query.page == 0
    assert outcome.query.limit == 100
    assert outcome.query.sort == "date"
    assert outcome.query.source == "danbooru"

    sent = upstream.last_url
    assert sent.params["tags"] == "cat dog order:id"
    assert sent.params["page"] == "1"
    assert sent.params["limit"] == "100"


@pytest.mark.asyncio
async def test_rate_limit_is_checked_before_cache(upstream):
    service = _service(upstream, limit=1)

    await service.search({}, client_key="ip:1")
    with pytest.raises(RateLimitExceeded) as exc_info:
        await service.search({}, client_key="ip:1")

    assert exc_info.value.status_code == 429
    assert exc_info.value.headers["Retry-After"]
    assert len(upstream.requests) == 1


@pytest.mark.asyncio
async def test_disabled_limiter_admits_everything(upstream):
    service = _service(upstream)
    service.limiter = None

    for _ in range(5):
        await service.search({}, client_key="ip:1")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 429, 503])
async def test_upstream_error_status_is_preserved(upstream, status):
    upstream.status_code = status
    service = _service(upstream)

    with pytest.raises(UpstreamRejected) as exc_info:
        await service.search({}, client_key="ip:1")

    assert exc_info.value.status_code == status
    assert exc_info.value.details["upstream_status"] == status


@pytest.mark.asyncio
async def test_non_error_non_success_status_becomes_500(upstream):
    upstream.status_code = 304
    upstream.raw_body = b""
    service = _service(upstream)

    with pytest.raises(UpstreamRejected) as exc_info:
        await service.search({}, client_key="ip:1")

    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_failures_are_not_cached(upstream):
    upstream.status_code = 500
    service = _service(upstream)

    with pytest.raises(UpstreamRejected):
        await service.search({}, client_key="ip:1")

    upstream.status_code = 200
    upstream.json_body = {"post": [{"id": 9}]}
    outcome = await service.search({}, client_key="ip:1")

    assert outcome.cache_status == "MISS"
    assert outcome.result.posts[0].id == 9


@pytest.mark.asyncio
async def test_invalid_json_is_a_parse_failure(upstream):
    upstream.raw_body = b"<html>Cloudflare</html>"
    service = _service(upstream)

    with pytest.raises(UpstreamParseFailure) as exc_info:
        await service.search({}, client_key="ip:1")

    assert exc_info.value.status_code == 502
    assert "Cloudflare" in exc_info.value.details["body_excerpt"]
    assert "Cloudflare" not in exc_info.value.message


@pytest.mark.asyncio
async def test_empty_body_is_a_parse_failure_and_not_cached(upstream):
    upstream.raw_body = b""
    service = _service(upstream)

    with pytest.raises(UpstreamParseFailure) as exc_info:
        await service.search({}, client_key="ip:1")

    assert exc_info.value.status_code == 502
    assert len(service.cache) == 0

    upstream.raw_body = None
    upstream.json_body = {"post": [{"id": 7}]}
    outcome = await service.search({}, client_key="ip:1")

    assert outcome.cache_status == "MISS"
    assert outcome.result.posts[0].id == 7
    assert len(upstream.requests) == 2


@pytest.mark.asyncio
async def test_slow_upstream_times_out(upstream):
    upstream.delay_seconds = 5
    service = _service(upstream, timeout_seconds=0.05)

    with pytest.raises(UpstreamTimeout):
        await service.search({}, client_key="ip:1")

    assert upstream.cancelled is True
