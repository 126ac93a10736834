"""Node resolution: fallback chains, generic expressions and health checks."""

from siteadapters.resolution.generators import generic_spec
from siteadapters.resolution.health import ExpressionHealth, check_expression, within_time_limit
from siteadapters.resolution.resolver import FallbackResolver

__all__ = [
    "ExpressionHealth",
    "FallbackResolver",
    "check_expression",
    "generic_spec",
    "within_time_limit",
]
