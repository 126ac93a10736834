"""Unit tests for debounce / throttle helpers."""

from __future__ import annotations

import asyncio
import logging

import pytest

from siteadapters.dom.timing import Debouncer, Throttler, debounce, throttle


class TestDebouncer:
    """Only the last call in a burst runs, after the quiet period."""

    @pytest.mark.anyio
    async def test_burst_collapses_to_last_call(self, clock) -> None:
        calls: list[int] = []
        debounced = Debouncer(calls.append, 100, clock=clock)

        debounced(1)
        debounced(2)
        debounced(3)
        await debounced.flush()

        assert calls == [3]
        assert debounced.pending is False

    @pytest.mark.anyio
    async def test_async_callback_is_awaited(self, clock) -> None:
        calls: list[str] = []

        async def record(value: str) -> None:
            await asyncio.sleep(0)
            calls.append(value)

        debounced = Debouncer(record, 50, clock=clock)
        debounced("x")
        await debounced.flush()

        assert calls == ["x"]

    @pytest.mark.anyio
    async def test_cancel_drops_pending_call(self, clock) -> None:
        calls: list[int] = []
        debounced = Debouncer(calls.append, 100, clock=clock)

        debounced(1)
        assert debounced.pending is True
        debounced.cancel()
        await asyncio.sleep(0)

        assert calls == []
        assert debounced.pending is False

    @pytest.mark.anyio
    async def test_callback_error_is_logged(self, clock, caplog) -> None:
        def fail(_: int) -> None:
            raise ValueError("listener failed")

        debounced = Debouncer(fail, 100, clock=clock)
        with caplog.at_level(logging.ERROR, logger="siteadapters.dom.timing"):
            debounced(1)
            await debounced.flush()

        assert debounced.pending is False
        records = [r for r in caplog.records if r.name == "siteadapters.dom.timing"]
        assert len(records) == 1
        assert "listener failed" in caplog.text

    @pytest.mark.anyio
    async def test_async_callback_error_is_logged(self, clock, caplog) -> None:
        async def fail() -> None:
            raise RuntimeError("boom")

        debounced = Debouncer(fail, 10, clock=clock)
        with caplog.at_level(logging.ERROR, logger="siteadapters.dom.timing"):
            debounced()
            await debounced.flush()

        assert "boom" in caplog.text

    @pytest.mark.anyio
    async def test_decorator_form(self, clock) -> None:
        calls: list[str] = []

        @debounce(10, clock=clock)
        def on_change(kind: str) -> None:
            calls.append(kind)

        on_change("child_list")
        await on_change.flush()

        assert calls == ["child_list"]


class TestThrottler:
    """At most one call per window; calls inside the window are dropped."""

    def test_drops_calls_inside_window(self, clock) -> None:
        calls: list[int] = []
        throttled = Throttler(calls.append, 100, clock=clock)

        assert throttled(1) is True
        clock.advance(0.05)
        assert throttled(2) is False
        clock.advance(0.05)
        assert throttled(3) is True

        assert calls == [1, 3]

    def test_reset(self, clock) -> None:
        calls: list[int] = []
        throttled = Throttler(calls.append, 100, clock=clock)
        throttled(1)

        throttled.reset()

        assert throttled(2) is True
        assert calls == [1, 2]

    def test_decorator_form(self, clock) -> None:
        calls: list[int] = []

        @throttle(1000, clock=clock)
        def tick(n: int) -> None:
            calls.append(n)

        tick(1)
        tick(2)

        assert calls == [1]
