"""Per-caller rate limiting.

The default limiter is a fixed-window counter: each caller gets ``limit``
requests per window, and the count restarts once the window is older
than ``window_seconds``. A caller can therefore get up to twice the limit
across a window boundary. The sliding-window limiter avoids that burst at
the cost of keeping one timestamp per admitted request.

Rejections are reported as values, never raised.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

from model_router.config import RateLimitStrategy, RouterSettings
from shared.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]

DEFAULT_MAX_TRACKED_KEYS = 10_000


@dataclass(frozen=True)
class RateLimitExceeded:
    """A rejected admission."""

    caller_id: str
    limit: int
    retry_after: float

    def to_detail(self) -> dict[str, Any]:
        """Structured detail for API error responses."""
        return {
            "caller_id": self.caller_id,
            "limit": self.limit,
            "retry_after": round(self.retry_after, 3),
        }


@dataclass
class RateLimitInfo:
    """Information about current rate limit state."""

    remaining: int
    limit: int
    reset_at: float  # Unix timestamp

    @property
    def is_allowed(self) -> bool:
        """Check if another request would be admitted."""
        return self.remaining > 0


@dataclass
class RateLimitRecord:
    """Counter for one caller's current window."""

    window_start: float
    count: int = 0


class RateLimiter(ABC):
    """Abstract base class for rate limiters."""

    limit: int
    window_seconds: float

    @abstractmethod
    async def admit(self, key: str) -> bool:
        """Admit one request for a caller, counting it if admitted.

        Args:
            key: Caller identity (API key, client address).

        Returns:
            False if the caller is over its limit.
        """
        ...

    @abstractmethod
    async def check(self, key: str) -> RateLimitInfo:
        """Check rate limit status without consuming capacity."""
        ...

    @abstractmethod
    async def retry_after(self, key: str) -> float:
        """Seconds until the caller would be admitted again."""
        ...

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Forget all state for a caller."""
        ...

    @abstractmethod
    async def sweep(self) -> int:
        """Drop state for callers whose window has expired.

        Returns:
            Number of records removed.
        """
        ...

    async def exceeded(self, key: str) -> RateLimitExceeded:
        """Describe a rejection for a caller."""
        return RateLimitExceeded(
            caller_id=key,
            limit=self.limit,
            retry_after=await self.retry_after(key),
        )


class FixedWindowRateLimiter(RateLimiter):
    """Fixed-window counter per caller."""

    def __init__(
        self,
        limit: int = 100,
        window_seconds: float = 60.0,
        clock: Clock = time.time,
        max_tracked_keys: int = DEFAULT_MAX_TRACKED_KEYS,
    ) -> None:
        """Initialize fixed window rate limiter.

        Args:
            limit: Requests admitted per window.
            window_seconds: Window length in seconds.
            clock: Source of the current time.
            max_tracked_keys: Record count above which expired
                records are swept on admission.
        """
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._max_tracked_keys = max_tracked_keys
        self._records: dict[str, RateLimitRecord] = {}
        self._lock = asyncio.Lock()

    def _expired(self, record: RateLimitRecord, now: float) -> bool:
        return now - record.window_start > self.window_seconds

    async def admit(self, key: str) -> bool:
        async with self._lock:
            now = self._clock()
            record = self._records.get(key)

            if record is None or self._expired(record, now):
                if record is None and len(self._records) >= self._max_tracked_keys:
                    self._sweep_locked(now)
                self._records[key] = RateLimitRecord(window_start=now, count=1)
                return True

            if record.count >= self.limit:
                return False

            record.count += 1
            return True

    async def check(self, key: str) -> RateLimitInfo:
        async with self._lock:
            now = self._clock()
            record = self._records.get(key)
            if record is None or self._expired(record, now):
                return RateLimitInfo(
                    remaining=self.limit,
                    limit=self.limit,
                    reset_at=now + self.window_seconds,
                )
            return RateLimitInfo(
                remaining=max(0, self.limit - record.count),
                limit=self.limit,
                reset_at=record.window_start + self.window_seconds,
            )

    async def retry_after(self, key: str) -> float:
        async with self._lock:
            now = self._clock()
            record = self._records.get(key)
            if record is None or self._expired(record, now) or record.count < self.limit:
                return 0.0
            return max(0.0, record.window_start + self.window_seconds - now)

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._records.pop(key, None)

    async def sweep(self) -> int:
        async with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        stale = [k for k, r in self._records.items() if self._expired(r, now)]
        for key in stale:
            del self._records[key]
        if stale:
            logger.debug(f"Swept {len(stale)} expired rate limit records")
        return len(stale)

    def __len__(self) -> int:
        return len(self._records)


class SlidingWindowRateLimiter(RateLimiter):
    """Sliding window rate limiter.

    More accurate than the fixed window but uses more memory.
    Tracks individual request timestamps.
    """

    def __init__(
        self,
        limit: int = 100,
        window_seconds: float = 60.0,
        clock: Clock = time.time,
        max_tracked_keys: int = DEFAULT_MAX_TRACKED_KEYS,
    ) -> None:
        """Initialize sliding window rate limiter.

        Args:
            limit: Maximum requests per window.
            window_seconds: Window size in seconds.
            clock: Source of the current time.
            max_tracked_keys: Caller count above which callers with no
                requests left in the window are swept on admission.
        """
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._max_tracked_keys = max_tracked_keys
        self._requests: dict[str, list[float]] = {}
        self._lock = asyncio.Lock()

    def _cleanup_old_requests(self, key: str, now: float) -> list[float]:
        """Remove requests outside the current window.

        A caller left with no requests is forgotten. Unknown callers are
        never added.
        """
        timestamps = self._requests.get(key)
        if timestamps is None:
            return []
        cutoff = now - self.window_seconds
        timestamps = [t for t in timestamps if t > cutoff]
        if timestamps:
            self._requests[key] = timestamps
        else:
            del self._requests[key]
        return timestamps

    async def admit(self, key: str) -> bool:
        async with self._lock:
            now = self._clock()
            timestamps = self._cleanup_old_requests(key, now)
            if len(timestamps) >= self.limit:
                return False
            if key not in self._requests and len(self._requests) >= self._max_tracked_keys:
                self._sweep_locked(now)
            timestamps.append(now)
            self._requests[key] = timestamps
            return True

    async def check(self, key: str) -> RateLimitInfo:
        async with self._lock:
            now = self._clock()
            timestamps = self._cleanup_old_requests(key, now)
            reset_at = (timestamps[0] if timestamps else now) + self.window_seconds
            return RateLimitInfo(
                remaining=max(0, self.limit - len(timestamps)),
                limit=self.limit,
                reset_at=reset_at,
            )

    async def retry_after(self, key: str) -> float:
        async with self._lock:
            now = self._clock()
            timestamps = self._cleanup_old_requests(key, now)
            if len(timestamps) < self.limit:
                return 0.0
            # Calculate when oldest request will expire
            return max(0.0, timestamps[0] + self.window_seconds - now)

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._requests.pop(key, None)

    async def sweep(self) -> int:
        async with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        stale = [
            key
            for key in list(self._requests)
            if not self._cleanup_old_requests(key, now)
        ]
        if stale:
            logger.debug(f"Swept {len(stale)} idle rate limit callers")
        return len(stale)

    def __len__(self) -> int:
        return len(self._requests)


def create_rate_limiter(
    settings: RouterSettings,
    clock: Clock = time.time,
) -> RateLimiter | None:
    """Build the configured rate limiter.

    Returns:
        The limiter, or None when rate limiting is disabled.
    """
    if not settings.rate_limit_enabled:
        return None
    if settings.rate_limit_strategy == RateLimitStrategy.SLIDING:
        return SlidingWindowRateLimiter(
            limit=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
            clock=clock,
        )
    return FixedWindowRateLimiter(
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        clock=clock,
    )
