"""Node query utilities: visibility, interactability and bounded waits.

Every wait is bounded by an explicit budget in milliseconds and reads time
from an injected ``Clock``; none of them can outlive the budget it was given.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from siteadapters.clock import Clock, SystemClock
from siteadapters.exceptions import InvalidExpressionError, NodeWaitTimeoutError

if TYPE_CHECKING:
    from siteadapters.document.base import DocumentHost, NodeHandle
    from siteadapters.dom.matchers import NodeMatcher

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 100


async def is_visible(node: NodeHandle) -> bool:
    """True if *node* is rendered with non-zero size and not hidden by style."""
    box = await node.bounding_box()
    if box is None or box.is_empty:
        return False
    style = await node.computed_style()
    if style.get("display") == "none" or style.get("visibility") == "hidden":
        return False
    try:
        if float(style.get("opacity", "1")) == 0.0:
            return False
    except ValueError:
        pass
    return True


async def is_interactable(node: NodeHandle) -> bool:
    """True if *node* is not disabled, read-only or ``aria-disabled``."""
    if (await node.get_attribute("disabled")) is not None:
        return False
    if (await node.get_attribute("readonly")) is not None:
        return False
    if (await node.get_attribute("aria-disabled")) == "true":
        return False
    return True


async def wait_for_ready(
    host: DocumentHost,
    timeout_ms: float,
    *,
    clock: Clock | None = None,
    poll_interval_ms: float = DEFAULT_POLL_INTERVAL_MS,
) -> bool:
    """Wait until the document reports ``interactive`` or ``complete``.

    Returns:
        ``True`` once ready, ``False`` if *timeout_ms* elapsed first.
    """
    clock = clock or SystemClock()
    deadline = clock.monotonic() + timeout_ms / 1000.0
    while True:
        if await host.is_ready():
            return True
        remaining = deadline - clock.monotonic()
        if remaining <= 0:
            return False
        await clock.sleep(min(poll_interval_ms / 1000.0, remaining))


async def wait_for_node(
    host: DocumentHost,
    expression: str,
    timeout_ms: float = 5_000,
    *,
    validator: NodeMatcher | None = None,
    clock: Clock | None = None,
    poll_interval_ms: float = DEFAULT_POLL_INTERVAL_MS,
    required: bool = False,
) -> NodeHandle | None:
    """Poll for a node matching *expression* (and *validator*) until *timeout_ms*.

    A malformed expression can never start matching, so it ends the wait
    immediately instead of burning the budget.

    Args:
        host: Document to query.
        expression: Query expression.
        timeout_ms: Wait budget.
        validator: Optional matcher the node must satisfy.
        clock: Time source (defaults to the system clock).
        poll_interval_ms: Delay between polls.
        required: Raise ``NodeWaitTimeoutError`` instead of returning ``None``.

    Returns:
        The node, or ``None`` when nothing matched within budget.
    """
    clock = clock or SystemClock()
    started = clock.monotonic()
    deadline = started + timeout_ms / 1000.0
    while True:
        try:
            node = await host.query(expression)
        except InvalidExpressionError:
            logger.warning("wait_for_node: invalid expression %r, giving up", expression)
            node = None
            break
        if node is not None and (validator is None or await validator.matches(node, host)):
            return node
        remaining = deadline - clock.monotonic()
        if remaining <= 0:
            break
        await clock.sleep(min(poll_interval_ms / 1000.0, remaining))

    if required:
        waited = (clock.monotonic() - started) * 1000.0
        raise NodeWaitTimeoutError(
            f"Timed out after {waited:.0f}ms waiting for {expression!r}",
            context={"expression": expression, "timeout_ms": timeout_ms, "elapsed_ms": waited},
        )
    return None


async def wait_for_nodes(
    host: DocumentHost,
    expressions: list[str],
    timeout_ms: float = 5_000,
    *,
    require_all: bool = False,
    clock: Clock | None = None,
    poll_interval_ms: float = DEFAULT_POLL_INTERVAL_MS,
) -> list[NodeHandle]:
    """Wait until any (or, with *require_all*, every) expression matches.

    Returns whatever was found when the condition held or the budget ran out.
    """
    clock = clock or SystemClock()
    deadline = clock.monotonic() + timeout_ms / 1000.0
    while True:
        found: list[NodeHandle] = []
        for expression in expressions:
            try:
                node = await host.query(expression)
            except InvalidExpressionError:
                continue
            if node is not None:
                found.append(node)
        if found and (not require_all or len(found) == len(expressions)):
            return found
        remaining = deadline - clock.monotonic()
        if remaining <= 0:
            return found
        await clock.sleep(min(poll_interval_ms / 1000.0, remaining))


async def query_all_unique(host: DocumentHost, expressions: list[str]) -> list[NodeHandle]:
    """Every node matching any of *expressions*, de-duplicated, invalid expressions skipped."""
    seen: list[NodeHandle] = []
    for expression in expressions:
        try:
            nodes = await host.query_all(expression)
        except InvalidExpressionError:
            continue
        for node in nodes:
            if node not in seen:
                seen.append(node)
    return seen


async def find_best_node(
    host: DocumentHost,
    expressions: list[str],
    validator: NodeMatcher | None = None,
) -> NodeHandle | None:
    """Single pass over *expressions*: first visible, interactable, valid node."""
    for expression in expressions:
        try:
            node = await host.query(expression)
        except InvalidExpressionError:
            continue
        if node is None or not await is_visible(node) or not await is_interactable(node):
            continue
        if validator is None or await validator.matches(node, host):
            return node
    return None


async def is_in_viewport(node: NodeHandle, host: DocumentHost) -> bool:
    """True if *node*'s box lies entirely inside the viewport."""
    box = await node.bounding_box()
    if box is None:
        return False
    width, height = await host.viewport_size()
    return box.x >= 0 and box.y >= 0 and box.right <= width and box.bottom <= height
