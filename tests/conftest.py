"""siteadapters test configuration: shared fixtures for unit and integration tests."""

from __future__ import annotations

import asyncio
import heapq
import itertools
from pathlib import Path
from typing import Callable

import pytest

from siteadapters.document.html import HtmlDocument
from siteadapters.settings import Settings

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

FIXTURES_DIR = Path(__file__).parent / "fixtures"
PAGES_DIR = FIXTURES_DIR / "pages"

CHATGPT_URL = "https://chatgpt.com/c/6712-abcd"
CLAUDE_URL = "https://claude.ai/chat/1f2e3d4c"


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Virtual clock: ``sleep`` advances time instantly.

    Callbacks registered with ``call_at`` run, in time order, when a sleep
    moves the clock past their due time; use them to mutate a document
    "while" a wait is in progress.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []
        self._scheduled: list[tuple[float, int, Callable[[], None]]] = []
        self._counter = itertools.count()

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        target = self.now + max(seconds, 0.0)
        while self._scheduled and self._scheduled[0][0] <= target:
            due, _, callback = heapq.heappop(self._scheduled)
            self.now = max(self.now, due)
            callback()
        self.now = target

    def call_at(self, at_ms: float, callback: Callable[[], None]) -> None:
        heapq.heappush(self._scheduled, (at_ms / 1000.0, next(self._counter), callback))

    @property
    def elapsed_ms(self) -> float:
        return self.now * 1000.0

    @property
    def sleeps_ms(self) -> list[float]:
        return [round(s * 1000.0, 6) for s in self.sleeps]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Async backend
# ---------------------------------------------------------------------------


@pytest.fixture()
def anyio_backend() -> str:
    """Adapters schedule work with asyncio tasks; run anyio tests on asyncio only."""
    return "asyncio"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear the settings LRU cache between tests."""
    from siteadapters.settings.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings() -> Settings:
    """Default settings with short adapter waits so failure paths stay quick."""
    return Settings(
        env="test",
        adapter={"ready_timeout_ms": 1000, "marker_timeout_ms": 500, "editor_timeout_ms": 300, "poll_interval_ms": 50},
    )


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


@pytest.fixture()
def chatgpt_page() -> Path:
    """Path to the saved ChatGPT conversation page."""
    return PAGES_DIR / "chatgpt.html"


@pytest.fixture()
def claude_page() -> Path:
    """Path to the saved Claude conversation page."""
    return PAGES_DIR / "claude.html"


@pytest.fixture()
def chatgpt_doc(chatgpt_page: Path) -> HtmlDocument:
    return HtmlDocument.from_file(chatgpt_page, url=CHATGPT_URL)


@pytest.fixture()
def claude_doc(claude_page: Path) -> HtmlDocument:
    return HtmlDocument.from_file(claude_page, url=CLAUDE_URL)


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: end-to-end tests over saved page snapshots")
    config.addinivalue_line("markers", "live: tests that drive a real browser through Playwright")
