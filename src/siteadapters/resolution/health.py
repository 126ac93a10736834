"""Expression health checks: how reliably and quickly an expression matches."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from siteadapters.clock import Clock, SystemClock, elapsed_ms
from siteadapters.exceptions import InvalidExpressionError

if TYPE_CHECKING:
    from siteadapters.document.base import DocumentHost

logger = logging.getLogger(__name__)


class ExpressionHealth(BaseModel):
    """Aggregate of repeated queries for one expression."""

    expression: str
    iterations: int
    success_rate: float = Field(ge=0.0, le=1.0)
    average_time_ms: float = 0.0
    errors: list[str] = Field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return self.success_rate == 1.0 and not self.errors


async def check_expression(
    host: DocumentHost,
    expression: str,
    *,
    iterations: int = 10,
    delay_ms: float = 100,
    clock: Clock | None = None,
) -> ExpressionHealth:
    """Query *expression* ``iterations`` times, ``delay_ms`` apart.

    Args:
        host: Document to query.
        expression: Query expression to exercise.
        iterations: Number of queries (at least 1).
        delay_ms: Pause between consecutive queries.
        clock: Time source (defaults to the system clock).

    Returns:
        Success rate, mean query time and the distinct error messages seen.
    """
    if iterations < 1:
        raise ValueError("iterations must be >= 1")
    clock = clock or SystemClock()
    successes = 0
    total_time = 0.0
    errors: list[str] = []

    for i in range(iterations):
        started = clock.monotonic()
        try:
            node = await host.query(expression)
            if node is not None:
                successes += 1
        except InvalidExpressionError as exc:
            if str(exc) not in errors:
                errors.append(str(exc))
        total_time += elapsed_ms(clock, started)
        if i < iterations - 1:
            await clock.sleep(delay_ms / 1000.0)

    health = ExpressionHealth(
        expression=expression,
        iterations=iterations,
        success_rate=successes / iterations,
        average_time_ms=total_time / iterations,
        errors=errors,
    )
    logger.debug("Health for %r: %.0f%% in %.2fms avg", expression, health.success_rate * 100, health.average_time_ms)
    return health


async def within_time_limit(
    host: DocumentHost,
    expression: str,
    max_time_ms: float = 50,
    *,
    clock: Clock | None = None,
) -> bool:
    """True if a single query of *expression* is valid and completes within *max_time_ms*."""
    clock = clock or SystemClock()
    started = clock.monotonic()
    try:
        await host.query(expression)
    except InvalidExpressionError:
        return False
    return elapsed_ms(clock, started) <= max_time_ms
