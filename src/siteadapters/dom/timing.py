"""Debounce and throttle helpers for change-driven callbacks.

Both helpers read time from a ``Clock`` so collaborators reacting to
content-change notifications can be tested without real timers.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

from siteadapters.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class Debouncer:
    """Delay calls to *func* until *wait_ms* passes without another call.

    Each call cancels the pending one; only the last arguments are used.
    *func* may be a plain function or a coroutine function.
    """

    def __init__(self, func: Callable[..., Any], wait_ms: float, *, clock: Clock | None = None) -> None:
        self._func = func
        self._wait = wait_ms / 1000.0
        self._clock = clock or SystemClock()
        self._pending: asyncio.Task[None] | None = None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._run(args, kwargs))

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def flush(self) -> None:
        """Wait for the pending call, if any, to run."""
        if self._pending is not None:
            try:
                await self._pending
            except asyncio.CancelledError:
                pass

    async def _run(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        await self._clock.sleep(self._wait)
        try:
            result = self._func(*args, **kwargs)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Debounced call to %s failed", getattr(self._func, "__qualname__", self._func))


class Throttler:
    """Invoke *func* at most once per *limit_ms*; calls inside the window are dropped."""

    def __init__(self, func: Callable[..., Any], limit_ms: float, *, clock: Clock | None = None) -> None:
        self._func = func
        self._limit = limit_ms / 1000.0
        self._clock = clock or SystemClock()
        self._last: float | None = None

    def __call__(self, *args: Any, **kwargs: Any) -> bool:
        now = self._clock.monotonic()
        if self._last is not None and now - self._last < self._limit:
            return False
        self._last = now
        self._func(*args, **kwargs)
        return True

    def reset(self) -> None:
        self._last = None


def debounce(wait_ms: float, *, clock: Clock | None = None) -> Callable[[Callable[..., Any]], Debouncer]:
    """Decorator form of ``Debouncer``."""

    def wrap(func: Callable[..., Any]) -> Debouncer:
        return Debouncer(func, wait_ms, clock=clock)

    return wrap


def throttle(limit_ms: float, *, clock: Clock | None = None) -> Callable[[Callable[..., Any]], Throttler]:
    """Decorator form of ``Throttler``."""

    def wrap(func: Callable[..., Any]) -> Throttler:
        return Throttler(func, limit_ms, clock=clock)

    return wrap
