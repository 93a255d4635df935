"""Application-level exception types.

Every failure the image search pipeline can surface to a client is an
``AppError`` subclass carrying its HTTP status, so the exception handlers can
translate it into the ``{"error": "<message>"}`` response contract.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for server-side observability.

    Never serialized into client responses.
    """

    url: str
    source: str
    elapsed_ms: float
    timeout_seconds: float
    upstream_status: int
    body_excerpt: str
    retry_after: int
    limit: int
    remaining: int
    reset_at: int
    context: dict[str, Any]


@dataclass(eq=False)
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Client-safe, human-readable error message.
        details: Optional structured details for logs only.
        headers: Optional extra response headers.
    """

    code: str
    message: str
    details: ErrorDetails | None = None
    headers: dict[str, str] | None = None

    http_status: ClassVar[int] = 500

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.http_status


class RateLimitExceeded(AppError):
    """Client exceeded its request budget for the current window."""

    http_status = 429


class UpstreamTimeout(AppError):
    """Upstream call did not complete before its deadline."""

    http_status = 504


class UpstreamParseFailure(AppError):
    """Upstream answered successfully but the body is not valid JSON."""

    http_status = 502


class UpstreamTransportError(AppError):
    """Upstream could not be reached (DNS, connection, protocol failure)."""

    http_status = 500


class InternalError(AppError):
    """Unexpected failure inside the pipeline."""

    http_status = 500


@dataclass(eq=False)
class UpstreamRejected(AppError):
    """Upstream answered with a non-success status.

    The upstream status is passed through when it is an HTTP error status
    (400-599); anything else is reported as a generic 500.
    """

    upstream_status: int | None = None

    @property
    def status_code(self) -> int:
        status = self.upstream_status
        if status is not None and 400 <= status <= 599:
            return status
        return self.http_status
