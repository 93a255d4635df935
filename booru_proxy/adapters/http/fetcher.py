"""Deadline-bounded upstream HTTP fetcher.

One ``fetch`` is exactly one outbound GET. The call runs under
``asyncio.wait_for`` with the deadline's remaining budget, so when the budget
runs out the in-flight request task is cancelled (and its connection released)
instead of being left running in the background.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum

import httpx

from booru_proxy.core.errors import UpstreamTimeout, UpstreamTransportError

logger = logging.getLogger(__name__)


class CancelReason(str, Enum):
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class CancellationToken:
    """Records why an upstream call ended without a response, if it did."""

    reason: CancelReason | None = None

    @property
    def cancelled(self) -> bool:
        return self.reason is not None

    @property
    def timed_out(self) -> bool:
        return self.reason is CancelReason.TIMED_OUT

    def cancel(self, reason: CancelReason) -> None:
        # First reason wins; later signals don't rewrite history.
        if self.reason is None:
            self.reason = reason


@dataclass(frozen=True)
class Deadline:
    """Absolute point in (monotonic) time by which a call must finish."""

    budget_seconds: float
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(budget_seconds=seconds)

    @property
    def expires_at(self) -> float:
        return self.started_at + self.budget_seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0


@dataclass(frozen=True)
class UpstreamResponse:
    """Status and raw body of a completed upstream call."""

    status_code: int
    body: bytes
    elapsed_seconds: float

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class UpstreamFetcher:
    """Issues single GET requests against upstream boards.

    The underlying ``httpx.AsyncClient`` is owned by the fetcher unless one is
    injected; ``aclose`` only closes a client the fetcher created.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        user_agent: str | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if user_agent:
            headers["User-Agent"] = user_agent

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True)
        self._headers = headers

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, url: httpx.URL | str) -> httpx.Response:
        # httpx's own timeouts are disabled; the deadline governs the whole call.
        return await self._client.get(url, headers=self._headers, timeout=None)

    async def fetch(
        self,
        url: httpx.URL | str,
        deadline: Deadline,
        token: CancellationToken | None = None,
    ) -> UpstreamResponse:
        """GET ``url`` and return its status and body, bounded by ``deadline``.

        Args:
            url: Fully built upstream URL.
            deadline: Time budget for the whole call (connect + read).
            token: Optional token updated with the reason the call ended early.

        Returns:
            UpstreamResponse with the upstream status code and raw body.

        Raises:
            UpstreamTimeout: If the deadline passes before the body is read.
            UpstreamTransportError: If the upstream cannot be reached.
            asyncio.CancelledError: If the caller cancels the request.
        """
        token = token if token is not None else CancellationToken()
        url_str = str(url)

        try:
            if deadline.expired:
                raise asyncio.TimeoutError
            response = await asyncio.wait_for(self._get(url), timeout=deadline.remaining())
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            token.cancel(CancelReason.TIMED_OUT)
            elapsed_ms = round(deadline.elapsed() * 1000, 2)
            logger.warning(
                "upstream.timeout",
                extra={
                    "url": url_str,
                    "elapsed_ms": elapsed_ms,
                    "timeout_seconds": deadline.budget_seconds,
                },
            )
            raise UpstreamTimeout(
                code="upstream_timeout",
                message="Request to upstream timed out",
                details={
                    "url": url_str,
                    "elapsed_ms": elapsed_ms,
                    "timeout_seconds": deadline.budget_seconds,
                },
            ) from exc
        except httpx.HTTPError as exc:
            token.cancel(CancelReason.FAILED)
            logger.warning(
                "upstream.transport_error",
                extra={
                    "url": url_str,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise UpstreamTransportError(
                code="upstream_unreachable",
                message="Failed to reach upstream",
                details={"url": url_str, "context": {"error_type": type(exc).__name__}},
            ) from exc
        except asyncio.CancelledError:
            token.cancel(CancelReason.CANCELLED)
            raise

        return UpstreamResponse(
            status_code=response.status_code,
            body=response.content,
            elapsed_seconds=deadline.elapsed(),
        )
