"""Tests for rate limiting, deadlines and the circuit breaker."""

from __future__ import annotations

import asyncio
import threading
import time

import pytest

from library_search.shared.async_utils import (
    CircuitBreaker,
    LoopLocalLock,
    MinIntervalLimiter,
    call_maybe_async,
    run_with_deadline,
)
from library_search.shared.exceptions import RateLimitError

# ============================================================
# MinIntervalLimiter
# ============================================================


class TestMinIntervalLimiter:
    async def test_first_call_is_immediate(self):
        limiter = MinIntervalLimiter(min_interval=1.0)
        start = time.monotonic()
        await limiter.acquire()
        assert time.monotonic() - start < 0.5

    async def test_concurrent_callers_are_spaced(self):
        limiter = MinIntervalLimiter(min_interval=0.05)
        stamps: list[float] = []

        async def call():
            async with limiter:
                stamps.append(time.monotonic())

        await asyncio.gather(*(call() for _ in range(4)))
        stamps.sort()
        gaps = [b - a for a, b in zip(stamps, stamps[1:])]
        assert all(gap >= 0.045 for gap in gaps)

    def test_reused_across_event_loops(self):
        limiter = MinIntervalLimiter(min_interval=0.01)

        async def burst():
            await asyncio.gather(*(limiter.acquire() for _ in range(3)))

        asyncio.run(burst())
        asyncio.run(burst())


class TestLoopLocalLock:
    async def test_same_lock_within_a_loop(self):
        lock = LoopLocalLock()
        assert lock.get() is lock.get()

    def test_new_lock_per_loop(self):
        lock = LoopLocalLock()

        async def grab():
            return lock.get()

        assert asyncio.run(grab()) is not asyncio.run(grab())


# ============================================================
# Deadlines
# ============================================================


class TestRunWithDeadline:
    async def test_returns_result_in_time(self):
        async def quick():
            return 42

        assert await run_with_deadline(quick(), 1.0) == 42

    async def test_times_out_without_waiting_for_inner_call(self):
        cancelled = asyncio.Event()

        async def stubborn():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        start = time.monotonic()
        with pytest.raises(TimeoutError):
            await run_with_deadline(stubborn(), 0.05)
        assert time.monotonic() - start < 1.0
        await asyncio.wait_for(cancelled.wait(), 1.0)

    async def test_propagates_errors(self):
        async def broken():
            raise ValueError("nope")

        with pytest.raises(ValueError, match="nope"):
            await run_with_deadline(broken(), 1.0)


class TestCallMaybeAsync:
    async def test_coroutine_function(self):
        async def add(a, b):
            return a + b

        assert await call_maybe_async(add, 1, 2) == 3

    async def test_plain_function_runs_in_thread(self):
        def add(a, b):
            return a + b

        assert await call_maybe_async(add, 2, 3) == 5

    async def test_plain_function_returning_awaitable(self):
        async def inner():
            return "late"

        def wrapper():
            return inner()

        assert await call_maybe_async(wrapper) == "late"

    async def test_plain_function_errors_propagate(self):
        def explode():
            raise KeyError("isbn")

        with pytest.raises(KeyError):
            await call_maybe_async(explode)

    def test_hung_call_does_not_block_loop_shutdown(self):
        release = threading.Event()

        async def search():
            with pytest.raises(TimeoutError):
                await run_with_deadline(call_maybe_async(release.wait, 10.0), 0.05)

        start = time.monotonic()
        try:
            asyncio.run(search())
            assert time.monotonic() - start < 2.0
        finally:
            release.set()


# ============================================================
# Circuit Breaker
# ============================================================


class TestCircuitBreaker:
    async def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60.0)
        for _ in range(2):
            with pytest.raises(ValueError):
                async with breaker:
                    raise ValueError("fail")
        assert breaker.state == "open"
        with pytest.raises(RateLimitError):
            async with breaker:
                pass

    async def test_success_keeps_closed(self):
        breaker = CircuitBreaker(failure_threshold=2)
        async with breaker:
            pass
        assert breaker.state == "closed"
        assert not breaker.is_open

    async def test_half_open_recovers(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0.01)
        with pytest.raises(ValueError):
            async with breaker:
                raise ValueError("fail")
        await asyncio.sleep(0.02)
        async with breaker:
            pass
        assert breaker.state == "closed"
