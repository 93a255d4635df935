from __future__ import annotations

"""Application factory for the FastAPI app.

Builds the long-lived services (rate limiter, cache, source registry,
upstream fetcher) once per app and hands them to the routes through
``app.state``; nothing in the request pipeline reaches for module globals.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from booru_proxy.adapters.http.fetcher import UpstreamFetcher
from booru_proxy.adapters.sources.registry import SourceRegistry, create_source_registry
from booru_proxy.api.routes import health_router, images_router
from booru_proxy.core.config import Settings, settings as default_settings
from booru_proxy.core.exception_handlers import setup_exception_handlers
from booru_proxy.core.logging import configure_logging
from booru_proxy.core.middleware import request_id_middleware
from booru_proxy.core.openapi import apply_openapi_customizations
from booru_proxy.core.rate_limit import create_rate_limiter
from booru_proxy.services.image_search_service import ImageSearchService
from booru_proxy.utils.simple_cache import SimpleTTLCache


def build_image_search_service(
    config: Settings,
    *,
    fetcher: UpstreamFetcher | None = None,
    registry: SourceRegistry | None = None,
) -> ImageSearchService:
    """Wire the search pipeline from configuration.

    Args:
        config: Resolved settings.
        fetcher: Optional fetcher (tests inject one backed by a mock transport).
        registry: Optional adapter registry; defaults to every supported board.

    Returns:
        Ready-to-use ImageSearchService.
    """
    return ImageSearchService(
        registry=registry or create_source_registry(config.upstream),
        fetcher=fetcher or UpstreamFetcher(user_agent=config.upstream.user_agent),
        cache=SimpleTTLCache(
            ttl_seconds=config.app.cache_ttl_seconds,
            max_entries=config.app.cache_max_entries,
        ),
        limiter=create_rate_limiter(config.app),
        timeout_seconds=config.upstream.timeout_seconds,
        rate_limit_headers=config.app.rate_limit_include_headers,
        body_excerpt_chars=config.upstream.body_excerpt_chars,
    )


def create_app(
    config: Settings | None = None,
    *,
    fetcher: UpstreamFetcher | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Settings to use; defaults to the environment-derived settings.
        fetcher: Optional upstream fetcher override.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    config = config or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(config.log)

    service = build_image_search_service(config, fetcher=fetcher)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await service.fetcher.aclose()

    app = FastAPI(
        title="Booru Proxy",
        description=(
            "Normalized image search across image boards (Gelbooru, Danbooru). "
            "Queries are sanitized and defaulted, rate limited per client, cached "
            "for a short TTL and answered in a single canonical post shape."
        ),
        version="0.1.0",
        debug=config.app.debug,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.image_search_service = service

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(images_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
