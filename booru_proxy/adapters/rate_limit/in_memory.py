"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Windows are anchored at each client's first request, not at wall-clock
  boundaries.
"""

from __future__ import annotations

import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from booru_proxy.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class RateRecord:
    """Request counter for a single client window."""

    count: int
    window_start: float


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per client inside a fixed window.

    On a client's first request, or once ``now - window_start`` exceeds the
    window length, the counter restarts at 1 and the request is allowed.
    Otherwise the counter is incremented and the request is allowed only while
    it stays at or below ``limit``.

    Records expire logically when their window passes; they are physically
    replaced on the client's next request, or dropped least-recently-seen first
    once ``max_keys`` clients are tracked.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        max_keys: int | None = 10_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of admitted requests per window.
            window_seconds: Window length in seconds.
            max_keys: Upper bound on tracked clients (None for unbounded).
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If limit, window_seconds or max_keys are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if max_keys is not None and max_keys < 1:
            raise ValueError("max_keys must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._max_keys = max_keys
        self._clock = clock
        self._lock = threading.Lock()
        self._records: OrderedDict[str, RateRecord] = OrderedDict()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _window_elapsed(self, record: RateRecord, now: float) -> bool:
        return now - record.window_start > self._window_seconds

    def _reset_at(self, record: RateRecord) -> int:
        return int(math.ceil(record.window_start + self._window_seconds))

    def _evict_locked(self, now: float) -> None:
        """Make room for one more client, preferring stale records."""
        if self._max_keys is None or len(self._records) < self._max_keys:
            return

        stale = [k for k, r in self._records.items() if self._window_elapsed(r, now)]
        for key in stale:
            del self._records[key]

        while len(self._records) >= self._max_keys:
            self._records.popitem(last=False)

    def consume(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and decide admission.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            record = self._records.get(key)
            if record is None:
                self._evict_locked(now)
                record = RateRecord(count=1, window_start=now)
                self._records[key] = record
            elif self._window_elapsed(record, now):
                record.count = 1
                record.window_start = now
            else:
                record.count += 1
            self._records.move_to_end(key)

            count = record.count
            reset_at = self._reset_at(record)
            window_end = record.window_start + self._window_seconds

        remaining = max(0, self._limit - count)
        if count <= self._limit:
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=remaining,
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            remaining=0,
            reset_at=reset_at,
            retry_after_seconds=max(1, int(math.ceil(window_end - now))),
        )
