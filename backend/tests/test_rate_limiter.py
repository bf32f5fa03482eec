"""Tests for RateLimiter and RetryPolicy."""

import asyncio

import pytest

from services.errors import PermanentBackendError, TransientBackendError
from services.rate_limiter import RateLimiter, RetryPolicy


class FakeTime:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class Flaky:
    """Raise the scripted exceptions in order, then return "ok"."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_dispatches_are_spaced(self):
        fake = FakeTime()
        limiter = RateLimiter(max_concurrent=5, min_interval=0.2, clock=fake.clock, sleep=fake.sleep)
        dispatched = []
        for _ in range(3):
            async with limiter.slot():
                dispatched.append(fake.now)

        assert dispatched == pytest.approx([0.0, 0.2, 0.4])
        assert fake.sleeps == pytest.approx([0.2, 0.2])

    @pytest.mark.asyncio
    async def test_no_wait_when_interval_already_elapsed(self):
        fake = FakeTime()
        limiter = RateLimiter(max_concurrent=1, min_interval=0.2, clock=fake.clock, sleep=fake.sleep)
        async with limiter.slot():
            pass
        fake.now += 5
        async with limiter.slot():
            pass
        assert fake.sleeps == []

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        limiter = RateLimiter(max_concurrent=3, min_interval=0.0)
        peak = 0

        async def call():
            nonlocal peak
            async with limiter.slot():
                peak = max(peak, limiter.active)
                await asyncio.sleep(0.01)

        await asyncio.gather(*(call() for _ in range(10)))
        assert peak == 3
        assert limiter.active == 0

    @pytest.mark.asyncio
    async def test_slot_released_on_error(self):
        limiter = RateLimiter(max_concurrent=1, min_interval=0.0)
        with pytest.raises(RuntimeError):
            async with limiter.slot():
                raise RuntimeError("boom")
        async with limiter.slot():
            assert limiter.active == 1
        assert limiter.active == 0

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            RateLimiter(max_concurrent=0)


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_transient_failure_is_attempted_three_times(self):
        fake = FakeTime()
        policy = RetryPolicy(max_attempts=3, base_delay=1.0, jitter=False, sleep=fake.sleep)
        operation = Flaky(*(TransientBackendError("rate limited", status_code=429) for _ in range(5)))

        with pytest.raises(TransientBackendError):
            await policy.run(operation)

        assert operation.calls == 3
        assert fake.sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_permanent_failure_is_attempted_once(self):
        fake = FakeTime()
        policy = RetryPolicy(jitter=False, sleep=fake.sleep)
        operation = Flaky(PermanentBackendError("invalid api key", status_code=401))

        with pytest.raises(PermanentBackendError, match="invalid api key"):
            await policy.run(operation)

        assert operation.calls == 1
        assert fake.sleeps == []

    @pytest.mark.asyncio
    async def test_unclassified_errors_are_not_retried(self):
        policy = RetryPolicy(jitter=False, sleep=FakeTime().sleep)
        operation = Flaky(KeyError("choices"))
        with pytest.raises(KeyError):
            await policy.run(operation)
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self):
        fake = FakeTime()
        policy = RetryPolicy(jitter=False, sleep=fake.sleep)
        operation = Flaky(TransientBackendError("503", status_code=503))

        assert await policy.run(operation) == "ok"
        assert operation.calls == 2
        assert fake.sleeps == [1.0]

    def test_delay_doubles_and_is_capped(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=3.0, jitter=False)
        assert [policy.delay_for(n) for n in range(1, 5)] == [1.0, 2.0, 3.0, 3.0]

    def test_jitter_stays_within_a_quarter(self):
        policy = RetryPolicy(base_delay=2.0, max_delay=30.0, jitter=True)
        for _ in range(20):
            assert 4.0 <= policy.delay_for(2) <= 5.0

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
