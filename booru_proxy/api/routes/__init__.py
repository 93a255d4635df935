from __future__ import annotations

from booru_proxy.api.routes.health import router as health_router
from booru_proxy.api.routes.images import router as images_router

__all__ = ["health_router", "images_router"]
