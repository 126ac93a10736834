"""Lightweight per-adapter metrics for node resolution and detection.

Tracks how long each role took to resolve, whether the primary expression
or a fallback won, how often resolution failed outright, and how long
detection took. Exposed as ``adapter.metrics`` and printed by
``siteadapters probe``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from siteadapters.models import NodeResolutionResult, NodeRole


class ResolutionMetrics:
    """Collects resolution and detection metrics during an adapter's lifetime."""

    def __init__(self) -> None:
        self._find_times: dict[str, list[float]] = {}
        self._outcomes: dict[str, dict[str, int]] = {}
        self._fallback_indices: dict[str, dict[int, int]] = {}
        self._detection_times: list[float] = []
        self._initializations: int = 0
        self._initialization_failures: int = 0

    # ------------------------------------------------------------------
    # Recording helpers
    # ------------------------------------------------------------------

    def record_resolution(self, role: NodeRole, result: NodeResolutionResult) -> None:
        """Record the outcome of resolving *role*."""
        key = role.value
        self._find_times.setdefault(key, []).append(result.elapsed_ms)
        entry = self._outcomes.setdefault(key, {"primary": 0, "fallback": 0, "failed": 0})
        if not result.found:
            entry["failed"] += 1
        elif result.selector_used == "primary":
            entry["primary"] += 1
        else:
            entry["fallback"] += 1
            indices = self._fallback_indices.setdefault(key, {})
            indices[result.selector_used] = indices.get(result.selector_used, 0) + 1

    def record_detection(self, elapsed_ms: float) -> None:
        self._detection_times.append(elapsed_ms)

    def record_initialization(self, success: bool) -> None:
        if success:
            self._initializations += 1
        else:
            self._initialization_failures += 1

    def reset(self) -> None:
        self.__init__()

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def fallback_rate(self, role: NodeRole) -> float:
        """Share of successful resolutions of *role* that needed a fallback."""
        entry = self._outcomes.get(role.value)
        if not entry:
            return 0.0
        found = entry["primary"] + entry["fallback"]
        return entry["fallback"] / found if found else 0.0

    def summary(self) -> dict:
        """Produce a summary dict suitable for JSON serialization."""
        dt = self._detection_times
        return {
            "find_times_ms": {
                role: {
                    "count": len(times),
                    "avg": round(sum(times) / len(times), 2) if times else 0.0,
                    "max": round(max(times), 2) if times else 0.0,
                }
                for role, times in self._find_times.items()
            },
            "outcomes": {role: dict(counts) for role, counts in self._outcomes.items()},
            "fallback_indices": {role: dict(idx) for role, idx in self._fallback_indices.items()},
            "detection": {
                "count": len(dt),
                "avg_ms": round(sum(dt) / len(dt), 2) if dt else 0.0,
            },
            "initializations": {
                "succeeded": self._initializations,
                "failed": self._initialization_failures,
            },
        }
