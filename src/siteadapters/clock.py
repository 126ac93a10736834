"""Clock abstraction used for every delay and deadline.

Retry backoff, node waits and detection cache expiry all read time through a
``Clock`` so tests can drive them deterministically without real timers.
"""

from __future__ import annotations

import asyncio
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Monotonic time source plus a cooperative sleep."""

    def monotonic(self) -> float:
        """Return monotonic time in seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the current task for *seconds*."""
        ...


class SystemClock:
    """Real clock backed by ``time.monotonic`` and ``asyncio.sleep``."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


def elapsed_ms(clock: Clock, started: float) -> float:
    """Milliseconds elapsed on *clock* since *started*."""
    return (clock.monotonic() - started) * 1000.0
