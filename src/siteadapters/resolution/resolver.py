"""Fallback resolver: locate a node through an ordered chain of expressions.

The resolver walks ``spec.primary`` and then each fallback in declared
order (never reordered). Each expression gets up to ``max_attempts`` tries,
separated by a flat or exponential backoff delay capped at ``max_delay_ms``.
A candidate is accepted only when it is visible, interactable and passes the
node spec's validator.

The whole call is bounded by ``max_timeout_ms`` measured from the first
attempt. Delays are clipped to the remaining budget, so a call never sleeps
past its deadline; once the budget is spent the remaining expressions are
skipped and a failed result is returned.

Failures are results, not exceptions: an exhausted chain yields
``NodeResolutionResult(node=None, is_valid=False)`` carrying an
``ElementNotFoundError`` with the diagnostics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from siteadapters.clock import Clock, SystemClock, elapsed_ms
from siteadapters.dom.query import is_interactable, is_visible
from siteadapters.exceptions import (
    AdapterErrorType,
    ElementNotFoundError,
    InvalidExpressionError,
)
from siteadapters.models import FallbackStrategy, NodeResolutionResult

if TYPE_CHECKING:
    from siteadapters.document.base import DocumentHost, NodeHandle
    from siteadapters.models import NodeRoleSpec
    from siteadapters.settings.config import ResolverSettings

logger = logging.getLogger(__name__)


@dataclass
class _ExpressionOutcome:
    node: NodeHandle | None = None
    attempts: int = 0
    timed_out: bool = False
    errors: list[dict[str, Any]] = field(default_factory=list)


class FallbackResolver:
    """Resolve ``NodeRoleSpec``s against a document host.

    Args:
        host: The document to query.
        strategy: Retry/backoff/budget settings (defaults apply when omitted).
        clock: Time source for delays and the budget.
    """

    def __init__(
        self,
        host: DocumentHost,
        *,
        strategy: FallbackStrategy | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._host = host
        self._strategy = strategy or FallbackStrategy()
        self._clock = clock or SystemClock()

    @classmethod
    def from_settings(
        cls,
        host: DocumentHost,
        settings: ResolverSettings,
        *,
        clock: Clock | None = None,
    ) -> FallbackResolver:
        """Build a resolver whose strategy mirrors ``ResolverSettings``."""
        strategy = FallbackStrategy(
            max_attempts=settings.max_attempts,
            base_delay_ms=settings.base_delay_ms,
            max_delay_ms=settings.max_delay_ms,
            exponential_backoff=settings.exponential_backoff,
            max_timeout_ms=settings.max_timeout_ms,
            validate_elements=settings.validate_elements,
        )
        return cls(host, strategy=strategy, clock=clock)

    # ------------------------------------------------------------------
    # Strategy
    # ------------------------------------------------------------------

    @property
    def strategy(self) -> FallbackStrategy:
        return self._strategy

    @property
    def host(self) -> DocumentHost:
        return self._host

    def update_strategy(self, **changes: Any) -> FallbackStrategy:
        """Replace selected strategy fields and return the new strategy."""
        self._strategy = FallbackStrategy(**{**self._strategy.model_dump(), **changes})
        return self._strategy

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(self, spec: NodeRoleSpec) -> NodeResolutionResult:
        """Try every expression of *spec* in order within the time budget."""
        started = self._clock.monotonic()
        budget = self._strategy.max_timeout_ms
        total_attempts = 0
        tried: list[str] = []
        expression_errors: list[dict[str, Any]] = []
        timed_out = False

        for index, expression in enumerate(spec.expressions):
            if elapsed_ms(self._clock, started) >= budget:
                timed_out = True
                break
            tried.append(expression)
            outcome = await self._try_expression(expression, spec, started)
            total_attempts += outcome.attempts
            expression_errors.extend(outcome.errors)

            if outcome.node is not None:
                selector_used = "primary" if index == 0 else index - 1
                elapsed = elapsed_ms(self._clock, started)
                logger.debug(
                    "Resolved %r via %s (%s) in %.0fms",
                    spec.description,
                    selector_used,
                    expression,
                    elapsed,
                )
                return NodeResolutionResult(
                    node=outcome.node,
                    selector_used=selector_used,
                    expression=expression,
                    elapsed_ms=elapsed,
                    is_valid=True,
                    attempts=total_attempts,
                )
            if outcome.timed_out:
                timed_out = True
                break

        elapsed = elapsed_ms(self._clock, started)
        error = ElementNotFoundError(
            f"Failed to find {spec.description or 'node'} after trying "
            f"{len(tried)} of {len(spec.expressions)} expressions in {elapsed:.0f}ms",
            context={
                "description": spec.description,
                "expressions_tried": len(tried),
                "expressions": tried,
                "elapsed_ms": elapsed,
                "timed_out": timed_out,
                "attempts": total_attempts,
                "expression_errors": expression_errors,
            },
        )
        logger.info(
            "Resolution failed for %r: tried=%d timed_out=%s elapsed=%.0fms",
            spec.description,
            len(tried),
            timed_out,
            elapsed,
        )
        return NodeResolutionResult(
            node=None,
            selector_used=None,
            elapsed_ms=elapsed,
            is_valid=False,
            attempts=total_attempts,
            error=error,
        )

    async def _try_expression(self, expression: str, spec: NodeRoleSpec, started: float) -> _ExpressionOutcome:
        """Attempt one expression up to ``max_attempts`` times."""
        outcome = _ExpressionOutcome()
        strategy = self._strategy

        for attempt in range(1, strategy.max_attempts + 1):
            if attempt > 1 and elapsed_ms(self._clock, started) >= strategy.max_timeout_ms:
                outcome.timed_out = True
                return outcome
            outcome.attempts = attempt

            try:
                node = await self._host.query(expression)
            except InvalidExpressionError as exc:
                logger.debug("Skipping invalid expression %r: %s", expression, exc)
                outcome.errors.append(_error_entry(expression, AdapterErrorType.SELECTOR_INVALID, str(exc)))
                return outcome
            except Exception as exc:
                logger.warning("Query for %r raised %s; skipping expression", expression, type(exc).__name__)
                outcome.errors.append(_error_entry(expression, AdapterErrorType.SELECTOR_INVALID, str(exc)))
                return outcome

            if node is not None:
                rejection = await self._rejection_reason(node, expression, spec)
                if rejection is None:
                    outcome.node = node
                    return outcome
                if attempt == strategy.max_attempts:
                    outcome.errors.append(rejection)

            if attempt < strategy.max_attempts:
                remaining = strategy.max_timeout_ms - elapsed_ms(self._clock, started)
                if remaining <= 0:
                    outcome.timed_out = True
                    return outcome
                await self._clock.sleep(min(strategy.delay_for(attempt), remaining) / 1000.0)

        return outcome

    async def _rejection_reason(self, node: NodeHandle, expression: str, spec: NodeRoleSpec) -> dict[str, Any] | None:
        """``None`` if *node* is acceptable, else an error entry saying why not."""
        if self._strategy.validate_elements:
            try:
                visible = await is_visible(node)
                interactable = visible and await is_interactable(node)
            except Exception as exc:
                # Typically the node was detached between query and inspection.
                logger.debug("Inspecting node for %r raised: %s", expression, exc)
                return _error_entry(expression, AdapterErrorType.VALIDATION_FAILED, f"node check raised: {exc}")
            if not visible:
                return _error_entry(expression, AdapterErrorType.VALIDATION_FAILED, "node not visible")
            if not interactable:
                return _error_entry(expression, AdapterErrorType.VALIDATION_FAILED, "node not interactable")
        if spec.validator is not None:
            try:
                accepted = await spec.validator.matches(node, self._host)
            except Exception as exc:
                logger.debug("Validator for %r raised: %s", spec.description, exc)
                return _error_entry(expression, AdapterErrorType.VALIDATION_FAILED, f"validator raised: {exc}")
            if not accepted:
                return _error_entry(expression, AdapterErrorType.VALIDATION_FAILED, "validator rejected node")
        return None


def _error_entry(expression: str, error_type: AdapterErrorType, message: str) -> dict[str, Any]:
    return {"expression": expression, "type": error_type.value, "message": message}
