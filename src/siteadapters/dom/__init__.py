"""Node query primitives, typed matchers and timing helpers."""

from siteadapters.dom.query import (
    find_best_node,
    is_interactable,
    is_visible,
    wait_for_node,
    wait_for_nodes,
    wait_for_ready,
)
from siteadapters.dom.timing import Debouncer, Throttler, debounce, throttle

__all__ = [
    "Debouncer",
    "Throttler",
    "debounce",
    "find_best_node",
    "is_interactable",
    "is_visible",
    "throttle",
    "wait_for_node",
    "wait_for_nodes",
    "wait_for_ready",
]
