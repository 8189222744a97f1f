"""
Async Utilities for Fan-Out Calls.

Provides:
- Minimum-interval rate limiting shared across concurrent callers
- Hard deadlines that abandon (rather than await) a slow call
- Circuit breaker for HTTP clients
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import inspect
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeVar

from .exceptions import RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Locks
# =============================================================================


class LoopLocalLock:
    """
    An asyncio.Lock per event loop.

    A plain asyncio.Lock binds itself to the first loop that waits on it, so a
    long-lived object (a container singleton) fails under a second
    ``asyncio.run``. This one hands out a fresh lock whenever the running loop
    changes.

        async with lock.get():
            ...
    """

    def __init__(self) -> None:
        self._lock: asyncio.Lock | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def get(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not loop:
            self._lock = asyncio.Lock()
            self._loop = loop
        return self._lock


# =============================================================================
# Rate Limiter (minimum spacing)
# =============================================================================


@dataclass
class MinIntervalLimiter:
    """
    Enforce a minimum spacing between successive requests to one provider.

    The clock is shared by every task that holds a reference to the limiter
    and is protected by a LoopLocalLock, so concurrent callers are serialized
    into slots at least ``min_interval`` seconds apart.

    Example:
        limiter = MinIntervalLimiter(min_interval=0.1)
        async with limiter:
            await make_api_call()
    """

    min_interval: float = 0.1
    _last_request: float = field(init=False, default=float("-inf"))
    _lock: LoopLocalLock = field(init=False, default_factory=LoopLocalLock, repr=False)

    async def acquire(self) -> None:
        """Wait until the next slot is free and claim it."""
        async with self._lock.get():
            now = time.monotonic()
            wait_time = self._last_request + self.min_interval - now
            if wait_time > 0:
                logger.debug(f"Rate limit: waiting {wait_time:.3f}s")
                await asyncio.sleep(wait_time)
            self._last_request = time.monotonic()

    async def __aenter__(self) -> MinIntervalLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


# =============================================================================
# Deadlines
# =============================================================================


def _discard_result(task: asyncio.Future[Any]) -> None:
    """Retrieve and drop the outcome of an abandoned task."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Abandoned call finished late with {type(exc).__name__}: {exc}")


def _settle(future: asyncio.Future[Any], result: Any, error: Exception | None) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


async def _run_in_daemon_thread(call: Callable[[], Any]) -> Any:
    """
    Run a blocking ``call`` on its own daemon thread.

    Neither ``asyncio.run`` (which joins the default executor) nor
    interpreter shutdown waits for it, so an abandoned call that never
    returns cannot hold up exit.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[Any] = loop.create_future()
    context = contextvars.copy_context()

    def runner() -> None:
        result, error = None, None
        try:
            result = context.run(call)
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(_settle, future, result, error)
        except RuntimeError:
            logger.debug("Blocking call finished after its event loop closed")

    threading.Thread(target=runner, name="library-search-sync-call", daemon=True).start()
    return await future


async def call_maybe_async(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Await ``func`` if it is a coroutine function, otherwise run it on a daemon thread."""
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    result = await _run_in_daemon_thread(functools.partial(func, *args, **kwargs))
    if inspect.isawaitable(result):
        return await result
    return result


async def run_with_deadline(awaitable: Awaitable[T], timeout: float) -> T:
    """
    Await ``awaitable`` for at most ``timeout`` seconds.

    Unlike ``asyncio.wait_for``, the caller never waits for the inner call to
    acknowledge cancellation: on expiry the task is cancelled, detached, and
    ``TimeoutError`` is raised immediately. A late result is dropped.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        done, _pending = await asyncio.wait({task}, timeout=max(timeout, 0.0))
    except asyncio.CancelledError:
        task.cancel()
        task.add_done_callback(_discard_result)
        raise
    if task in done:
        return task.result()
    task.cancel()
    task.add_done_callback(_discard_result)
    raise TimeoutError(f"call exceeded {timeout:.3f}s")


# =============================================================================
# Circuit Breaker
# =============================================================================


class BreakerState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """
    Stop calling a service that keeps failing.

    After ``failure_threshold`` failures (each success
    forgives one) the breaker opens and every entry raises RateLimitError.
    Once ``recovery_timeout`` seconds have passed it lets up to
    ``half_open_max_calls`` trial calls through; a successful trial closes
    it again.

        breaker = CircuitBreaker(failure_threshold=5)
        async with breaker:
            await call_service()
    """

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 3

    _state: BreakerState = field(init=False, default=BreakerState.CLOSED)
    _failures: int = field(init=False, default=0)
    _opened_at: float = field(init=False, default=0.0)
    _trial_calls: int = field(init=False, default=0)
    _lock: LoopLocalLock = field(init=False, default_factory=LoopLocalLock, repr=False)

    @property
    def state(self) -> str:
        return self._state.value

    @property
    def is_open(self) -> bool:
        return self._state == BreakerState.OPEN and not self._cooled_down()

    def _cooled_down(self) -> bool:
        return time.monotonic() - self._opened_at > self.recovery_timeout

    def _admit(self) -> None:
        if self._state == BreakerState.OPEN:
            if not self._cooled_down():
                raise RateLimitError("Circuit breaker is open", retry_after=self.recovery_timeout)
            self._state = BreakerState.HALF_OPEN
            self._trial_calls = 0
        if self._state == BreakerState.HALF_OPEN:
            if self._trial_calls >= self.half_open_max_calls:
                raise RateLimitError("Circuit breaker is half-open", retry_after=self.recovery_timeout / 2)
            self._trial_calls += 1

    def record_success(self) -> None:
        if self._state == BreakerState.HALF_OPEN:
            logger.info("Circuit breaker closed after a successful trial call")
            self._state = BreakerState.CLOSED
            self._failures = 0
        else:
            self._failures = max(0, self._failures - 1)

    def record_failure(self) -> None:
        self._failures += 1
        if self._state == BreakerState.HALF_OPEN or self._failures >= self.failure_threshold:
            if self._state != BreakerState.OPEN:
                logger.warning(f"Circuit breaker opened after {self._failures} failures")
            self._state = BreakerState.OPEN
            self._opened_at = time.monotonic()

    async def __aenter__(self) -> CircuitBreaker:
        async with self._lock.get():
            self._admit()
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: Any) -> None:
        async with self._lock.get():
            if exc is None:
                self.record_success()
            else:
                self.record_failure()
