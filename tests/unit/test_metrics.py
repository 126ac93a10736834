"""Unit tests for per-adapter resolution metrics."""

from __future__ import annotations

from siteadapters.metrics import ResolutionMetrics
from siteadapters.models import NodeResolutionResult, NodeRole


def _result(selector_used, elapsed_ms: float = 10.0) -> NodeResolutionResult:
    node = object() if selector_used is not None else None
    return NodeResolutionResult(node=node, selector_used=selector_used, elapsed_ms=elapsed_ms)  # type: ignore[arg-type]


class TestResolutionMetrics:
    """Outcome counters, timings and summary shape."""

    def test_empty_summary(self) -> None:
        summary = ResolutionMetrics().summary()
        assert summary["find_times_ms"] == {}
        assert summary["outcomes"] == {}
        assert summary["detection"] == {"count": 0, "avg_ms": 0.0}
        assert summary["initializations"] == {"succeeded": 0, "failed": 0}

    def test_outcomes_and_fallback_indices(self) -> None:
        metrics = ResolutionMetrics()
        metrics.record_resolution(NodeRole.INPUT, _result("primary", 5))
        metrics.record_resolution(NodeRole.INPUT, _result(0, 15))
        metrics.record_resolution(NodeRole.INPUT, _result(2, 40))
        metrics.record_resolution(NodeRole.INPUT, _result(None, 100))

        summary = metrics.summary()

        assert summary["outcomes"]["input"] == {"primary": 1, "fallback": 2, "failed": 1}
        assert summary["fallback_indices"]["input"] == {0: 1, 2: 1}
        assert summary["find_times_ms"]["input"] == {"count": 4, "avg": 40.0, "max": 100.0}

    def test_fallback_rate(self) -> None:
        metrics = ResolutionMetrics()
        assert metrics.fallback_rate(NodeRole.SUBMIT) == 0.0

        metrics.record_resolution(NodeRole.SUBMIT, _result("primary"))
        metrics.record_resolution(NodeRole.SUBMIT, _result(1))
        metrics.record_resolution(NodeRole.SUBMIT, _result(None))

        assert metrics.fallback_rate(NodeRole.SUBMIT) == 0.5

    def test_detection_and_initialization(self) -> None:
        metrics = ResolutionMetrics()
        metrics.record_detection(2.0)
        metrics.record_detection(4.0)
        metrics.record_initialization(True)
        metrics.record_initialization(False)

        summary = metrics.summary()

        assert summary["detection"] == {"count": 2, "avg_ms": 3.0}
        assert summary["initializations"] == {"succeeded": 1, "failed": 1}

    def test_reset(self) -> None:
        metrics = ResolutionMetrics()
        metrics.record_resolution(NodeRole.CONTAINER, _result("primary"))
        metrics.record_detection(1.0)

        metrics.reset()

        assert metrics.summary()["outcomes"] == {}
        assert metrics.summary()["detection"]["count"] == 0
