"""Global exception handlers for consistent error responses.

Every failure leaves the service as ``{"error": "<message>"}`` with the
status code of its error kind:
- AppError subclasses → their own status (429, 502, 504, upstream status, 500)
- Starlette HTTPException (404, 405) → its status with the detail as message
- Unexpected Exception → generic 500 (safety net)

Internal detail (stack traces, upstream bodies) is logged, never returned.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from booru_proxy.core.errors import AppError, RateLimitExceeded
from booru_proxy.core.logging import get_request_id

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors.

    Rate limit rejections are expected traffic and are not logged here;
    ``ImageSearchService.check_rate_limit`` already records them. Other errors
    are logged with their structured details, which stay server-side.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the error's status code and message.
    """
    status_code = exc.status_code

    if not isinstance(exc, RateLimitExceeded):
        logger.warning(
            "app_error_handled",
            extra={
                "error_code": exc.code,
                "error_message": exc.message,
                "status_code": status_code,
                "details": exc.details or {},
                "request_path": request.url.path,
                "request_id": get_request_id(),
            },
        )

    return JSONResponse(
        status_code=status_code,
        content={"error": exc.message},
        headers=exc.headers or None,
    )


HTTP_ERROR_MESSAGES = {405: "Method not allowed"}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Reshape routing errors (unknown path, wrong method) into the error contract."""
    message = HTTP_ERROR_MESSAGES.get(exc.status_code, str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
