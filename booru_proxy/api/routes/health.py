from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check for load balancers.

    Also lists the registered image board sources so a deploy with a broken
    registry is visible at a glance.
    """

    service = request.app.state.image_search_service
    return {"status": "ok", "sources": sorted(service.registry)}
