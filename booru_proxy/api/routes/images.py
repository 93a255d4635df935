from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request, Response

from booru_proxy.core.rate_limit import build_client_key
from booru_proxy.schemas.posts import ImageSearchResponse
from booru_proxy.services.image_search_service import ImageSearchService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Images"])


def get_image_search_service(request: Request) -> ImageSearchService:
    """Return the search service built by the app factory."""
    return request.app.state.image_search_service


def get_client_key(request: Request) -> str:
    trust_forwarded_for = request.app.state.settings.app.trust_forwarded_for
    return build_client_key(request, trust_forwarded_for=trust_forwarded_for)


@router.get(
    "/api/images",
    response_model=ImageSearchResponse,
    responses={
        429: {"description": "Rate limit exceeded"},
        502: {"description": "Upstream returned an unparseable body"},
        504: {"description": "Upstream timed out"},
    },
)
async def search_images(
    response: Response,
    tags: str | None = Query(None, description="Space-separated tags (max 6 are used)."),
    page: str | None = Query(None, description="0-based page number."),
    limit: str | None = Query(None, description="Posts per page, 1-100 (default 20)."),
    sort: str | None = Query(None, description="date, popular or random."),
    source: str | None = Query(None, description="gelbooru or danbooru."),
    service: ImageSearchService = Depends(get_image_search_service),
    client_key: str = Depends(get_client_key),
) -> ImageSearchResponse:
    """Search an image board and return its posts in the canonical shape.

    Parameters are never rejected: malformed values fall back to defaults or
    are clamped into range. The ``X-Cache`` header reports ``HIT`` or ``MISS``.
    """
    outcome = await service.search(
        {"tags": tags, "page": page, "limit": limit, "sort": sort, "source": source},
        client_key=client_key,
    )

    response.headers["X-Cache"] = outcome.cache_status
    logger.info(
        "images.served",
        extra={
            "source": outcome.query.source,
            "tag_count": len(outcome.query.tags),
            "page": outcome.query.page,
            "limit": outcome.query.limit,
            "sort": outcome.query.sort,
            "cache_status": outcome.cache_status,
            "posts": len(outcome.result.posts),
        },
    )
    return ImageSearchResponse.from_result(outcome.result)
