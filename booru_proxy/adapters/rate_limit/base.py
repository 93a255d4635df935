"""Rate limiter interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one admission check.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        remaining: Requests left in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the client's window ends.
        retry_after_seconds: Suggested wait in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for per-client admission control."""

    @abstractmethod
    def consume(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and decide whether it is admitted.

        Args:
            key: Opaque client identifier; never interpreted by the limiter.

        Returns:
            RateLimitResult describing the decision.
        """
        raise NotImplementedError

    def admit(self, key: str) -> bool:
        """Shorthand for ``consume(key).allowed``."""
        return self.consume(key).allowed
