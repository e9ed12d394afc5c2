"""Tests for rate limiting."""

import pytest

from model_router.config import RateLimitStrategy, RouterSettings
from model_router.resilience import (
    FixedWindowRateLimiter,
    RateLimitExceeded,
    SlidingWindowRateLimiter,
    create_rate_limiter,
)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestFixedWindowRateLimiter:
    """Tests for FixedWindowRateLimiter."""

    @pytest.mark.asyncio
    async def test_rejects_request_over_limit(self, clock):
        """The N+1th request within a window is rejected."""
        limiter = FixedWindowRateLimiter(limit=5, window_seconds=60, clock=clock)

        for _ in range(5):
            assert await limiter.admit("caller")
        assert not await limiter.admit("caller")

    @pytest.mark.asyncio
    async def test_window_resets_after_expiry(self, clock):
        """Just past the window, the count restarts at one."""
        limiter = FixedWindowRateLimiter(limit=5, window_seconds=60, clock=clock)
        for _ in range(5):
            await limiter.admit("caller")

        clock.advance(60.001)
        assert await limiter.admit("caller")

        info = await limiter.check("caller")
        assert info.remaining == 4

    @pytest.mark.asyncio
    async def test_window_not_reset_at_boundary(self, clock):
        limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
        assert await limiter.admit("caller")
        clock.advance(60)
        assert not await limiter.admit("caller")

    @pytest.mark.asyncio
    async def test_boundary_burst(self, clock):
        """A caller can get up to twice the limit across a window boundary."""
        limiter = FixedWindowRateLimiter(limit=3, window_seconds=60, clock=clock)
        assert await limiter.admit("caller")

        clock.advance(59)
        assert await limiter.admit("caller")
        assert await limiter.admit("caller")

        clock.advance(2)
        for _ in range(3):
            assert await limiter.admit("caller")
        assert not await limiter.admit("caller")

    @pytest.mark.asyncio
    async def test_rejection_does_not_count(self, clock):
        limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
        await limiter.admit("caller")
        for _ in range(3):
            await limiter.admit("caller")

        info = await limiter.check("caller")
        assert info.remaining == 0
        assert not info.is_allowed

    @pytest.mark.asyncio
    async def test_callers_are_independent(self, clock):
        limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
        assert await limiter.admit("a")
        assert await limiter.admit("b")
        assert not await limiter.admit("a")

    @pytest.mark.asyncio
    async def test_retry_after(self, clock):
        limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
        assert await limiter.retry_after("caller") == 0.0

        await limiter.admit("caller")
        clock.advance(20)
        assert await limiter.retry_after("caller") == pytest.approx(40.0)

    @pytest.mark.asyncio
    async def test_exceeded_value(self, clock):
        limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
        await limiter.admit("caller")
        clock.advance(10)

        rejection = await limiter.exceeded("caller")
        assert isinstance(rejection, RateLimitExceeded)
        assert rejection.caller_id == "caller"
        assert rejection.limit == 1
        assert rejection.retry_after == pytest.approx(50.0)
        assert rejection.to_detail()["retry_after"] == pytest.approx(50.0)

    @pytest.mark.asyncio
    async def test_reset(self, clock):
        limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
        await limiter.admit("caller")
        await limiter.reset("caller")
        assert await limiter.admit("caller")

    @pytest.mark.asyncio
    async def test_sweep_drops_expired_records(self, clock):
        limiter = FixedWindowRateLimiter(limit=5, window_seconds=60, clock=clock)
        await limiter.admit("old")
        clock.advance(61)
        await limiter.admit("new")

        assert await limiter.sweep() == 1
        assert len(limiter) == 1

    @pytest.mark.asyncio
    async def test_sweeps_automatically_past_bound(self, clock):
        limiter = FixedWindowRateLimiter(
            limit=5,
            window_seconds=60,
            clock=clock,
            max_tracked_keys=2,
        )
        await limiter.admit("a")
        await limiter.admit("b")
        clock.advance(61)
        await limiter.admit("c")

        assert len(limiter) == 1


class TestSlidingWindowRateLimiter:
    """Tests for SlidingWindowRateLimiter."""

    @pytest.mark.asyncio
    async def test_allows_within_limit(self, clock):
        limiter = SlidingWindowRateLimiter(limit=5, window_seconds=60, clock=clock)
        for _ in range(5):
            assert await limiter.admit("caller")
        assert not await limiter.admit("caller")

    @pytest.mark.asyncio
    async def test_no_boundary_burst(self, clock):
        limiter = SlidingWindowRateLimiter(limit=3, window_seconds=60, clock=clock)
        assert await limiter.admit("caller")
        clock.advance(59)
        assert await limiter.admit("caller")
        assert await limiter.admit("caller")

        clock.advance(2)
        assert await limiter.admit("caller")
        assert not await limiter.admit("caller")

    @pytest.mark.asyncio
    async def test_retry_after_tracks_oldest_request(self, clock):
        limiter = SlidingWindowRateLimiter(limit=2, window_seconds=60, clock=clock)
        await limiter.admit("caller")
        clock.advance(10)
        await limiter.admit("caller")

        assert await limiter.retry_after("caller") == pytest.approx(50.0)

    @pytest.mark.asyncio
    async def test_sweep(self, clock):
        limiter = SlidingWindowRateLimiter(limit=2, window_seconds=60, clock=clock)
        await limiter.admit("caller")
        clock.advance(61)
        assert await limiter.sweep() == 1

    @pytest.mark.asyncio
    async def test_reads_do_not_track_unknown_callers(self, clock):
        limiter = SlidingWindowRateLimiter(limit=2, window_seconds=60, clock=clock)

        info = await limiter.check("stranger")
        assert info.remaining == 2
        assert await limiter.retry_after("other") == 0.0
        assert len(limiter) == 0

    @pytest.mark.asyncio
    async def test_sweeps_automatically_past_bound(self, clock):
        limiter = SlidingWindowRateLimiter(
            limit=5,
            window_seconds=60,
            clock=clock,
            max_tracked_keys=2,
        )
        await limiter.admit("a")
        await limiter.admit("b")
        clock.advance(61)
        await limiter.admit("c")

        assert len(limiter) == 1


class TestCreateRateLimiter:
    """Tests for building the configured limiter."""

    def test_disabled(self):
        settings = RouterSettings(_env_file=None, rate_limit_enabled=False)
        assert create_rate_limiter(settings) is None

    def test_fixed_by_default(self):
        settings = RouterSettings(_env_file=None, rate_limit_requests=7)
        limiter = create_rate_limiter(settings)
        assert isinstance(limiter, FixedWindowRateLimiter)
        assert limiter.limit == 7

    def test_sliding(self):
        settings = RouterSettings(
            _env_file=None,
            rate_limit_strategy=RateLimitStrategy.SLIDING,
        )
        assert isinstance(create_rate_limiter(settings), SlidingWindowRateLimiter)
