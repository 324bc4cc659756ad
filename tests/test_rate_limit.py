"""
Fixed-window rate limiter with an injected clock.
"""
import asyncio
import threading

import pytest

from app.core.rate_limit import RateLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(clock=clock)


class TestAllow:
    def test_limit_then_deny(self, limiter):
        assert [limiter.allow("1.2.3.4", 3, 60_000) for _ in range(4)] == [True, True, True, False]

    def test_window_restarts(self, limiter, clock):
        for _ in range(3):
            limiter.allow("1.2.3.4", 3, 60_000)
        assert not limiter.allow("1.2.3.4", 3, 60_000)

        clock.advance(60.001)
        assert limiter.allow("1.2.3.4", 3, 60_000)
        assert limiter.allow("1.2.3.4", 3, 60_000)
        assert limiter.allow("1.2.3.4", 3, 60_000)
        assert not limiter.allow("1.2.3.4", 3, 60_000)

    def test_window_edge_is_inclusive(self, limiter, clock):
        for _ in range(3):
            limiter.allow("ip", 3, 60_000)
        # exactamente en el borde todavía cuenta la ventana vieja
        clock.advance(60.0)
        assert not limiter.allow("ip", 3, 60_000)

    def test_denied_calls_do_not_extend_window(self, limiter, clock):
        for _ in range(3):
            limiter.allow("ip", 3, 60_000)
        for _ in range(5):
            clock.advance(10)
            limiter.allow("ip", 3, 60_000)
        clock.advance(10.5)
        assert limiter.allow("ip", 3, 60_000)

    def test_identifiers_are_independent(self, limiter):
        for _ in range(10):
            limiter.allow("auth-1.2.3.4", 10, 60_000)
        assert not limiter.allow("auth-1.2.3.4", 10, 60_000)
        assert limiter.allow("1.2.3.4", 100, 60_000)
        assert limiter.allow("admin-1.2.3.4", 20, 60_000)
        assert limiter.allow("auth-5.6.7.8", 10, 60_000)


class TestAcquire:
    """Several budgets counted together or not at all."""

    def test_all_or_nothing(self, limiter):
        budgets = [("1.2.3.4", 5), ("auth-1.2.3.4", 2)]
        assert limiter.acquire(budgets, 60_000) is None
        assert limiter.acquire(budgets, 60_000) is None
        for _ in range(4):
            assert limiter.acquire(budgets, 60_000) == "auth-1.2.3.4"
        # los rechazos no gastaron el presupuesto general
        assert limiter._entries["1.2.3.4"].count == 2
        assert [limiter.allow("1.2.3.4", 5, 60_000) for _ in range(4)] == [True, True, True, False]

    def test_zero_limit_denies_everything(self, limiter):
        assert not limiter.allow("ip", 0, 60_000)
        assert limiter.tracked() == 0

    def test_concurrent_callers_never_exceed_limit(self, limiter):
        limit, workers = 25, 64
        barrier = threading.Barrier(workers)
        results: list[bool] = []
        results_lock = threading.Lock()

        def hit():
            barrier.wait()
            allowed = limiter.allow("ip", limit, 60_000)
            with results_lock:
                results.append(allowed)

        threads = [threading.Thread(target=hit) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == workers
        assert results.count(True) == limit
        assert limiter._entries["ip"].count == limit


class TestRetryAfter:
    def test_seconds_left_in_window(self, limiter, clock):
        limiter.allow("ip", 1, 60_000)
        clock.advance(20.5)
        assert limiter.retry_after("ip", 60_000) == 40

    def test_unknown_identifier(self, limiter):
        assert limiter.retry_after("nobody", 60_000) == 1


class TestSweep:
    def test_evicts_idle_entries(self, limiter, clock):
        limiter.allow("old", 10, 60_000)
        clock.advance(50)
        limiter.allow("recent", 10, 60_000)
        clock.advance(20)

        assert limiter.tracked() == 2
        assert limiter.sweep(60_000) == 1
        assert limiter.tracked() == 1

        # el que quedó sigue contando
        assert limiter.allow("recent", 2, 60_000)
        assert not limiter.allow("recent", 2, 60_000)

    def test_reset(self, limiter):
        limiter.allow("a", 1, 60_000)
        limiter.reset()
        assert limiter.tracked() == 0
        assert limiter.allow("a", 1, 60_000)

    async def test_run_sweeper_can_be_cancelled(self, limiter):
        task = asyncio.create_task(limiter.run_sweeper(0.01, 60_000))
        await asyncio.sleep(0.03)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
