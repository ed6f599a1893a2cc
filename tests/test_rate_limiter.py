"""
Tests for the minimum-interval rate limiter.
"""

import pytest

from price_sentinel.utils.rate_limiter import MinIntervalLimiter


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class TestMinIntervalLimiter:
    """Test cases for MinIntervalLimiter."""

    @pytest.mark.asyncio
    async def test_first_call_does_not_wait(self, recording_sleep):
        limiter = MinIntervalLimiter(3.0, clock=FakeClock(), sleep=recording_sleep)

        waited = await limiter.wait()

        assert waited == 0.0
        assert recording_sleep.calls == []

    @pytest.mark.asyncio
    async def test_waits_for_remaining_interval(self, recording_sleep):
        clock = FakeClock()
        limiter = MinIntervalLimiter(3.0, clock=clock, sleep=recording_sleep)

        await limiter.wait()
        clock.now += 1.0
        waited = await limiter.wait()

        assert waited == pytest.approx(2.0)
        assert recording_sleep.calls == [pytest.approx(2.0)]

    @pytest.mark.asyncio
    async def test_no_wait_after_interval_elapsed(self, recording_sleep):
        clock = FakeClock()
        limiter = MinIntervalLimiter(2.0, clock=clock, sleep=recording_sleep)

        await limiter.wait()
        clock.now += 5.0
        waited = await limiter.wait()

        assert waited == 0.0
        assert recording_sleep.calls == []

    @pytest.mark.asyncio
    async def test_reset_forgets_last_request(self, recording_sleep):
        limiter = MinIntervalLimiter(2.0, clock=FakeClock(), sleep=recording_sleep)

        await limiter.wait()
        limiter.reset()
        await limiter.wait()

        assert recording_sleep.calls == []
        assert limiter.last_acquired == 100.0

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            MinIntervalLimiter(-1)
