"""Shared CLI plumbing: logging setup and document host construction."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator, Optional

import typer

from siteadapters.document.html import HtmlDocument

if TYPE_CHECKING:
    from siteadapters.document.base import DocumentHost
    from siteadapters.settings import Settings


class _JsonFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(settings: Settings, *, verbose: bool = False) -> None:
    """Configure root logging from ``settings.logging``; ``verbose`` forces DEBUG."""
    level_name = "DEBUG" if verbose else settings.logging.level.upper()
    level = getattr(logging, level_name, logging.INFO)

    if settings.logging.json_format:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_JsonFormatter())
        logging.root.handlers.clear()
        logging.root.addHandler(handler)
        logging.root.setLevel(level)
    else:
        logging.basicConfig(
            level=level,
            format=settings.logging.format,
            datefmt="%Y-%m-%dT%H:%M:%S",
            stream=sys.stderr,
            force=True,
        )

    # Quieten noisy libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def check_source(html: Optional[Path], live: bool, url: Optional[str]) -> None:
    """Exactly one of ``--html`` / ``--live``; ``--live`` needs a URL."""
    if bool(html) == bool(live):
        raise typer.BadParameter("Pass exactly one of --html FILE or --live.")
    if live and not url:
        raise typer.BadParameter("--live requires --url.")
    if html is not None and not html.is_file():
        raise typer.BadParameter(f"File not found: {html}")


@asynccontextmanager
async def open_host(
    settings: Settings,
    *,
    html: Optional[Path] = None,
    url: Optional[str] = None,
    live: bool = False,
) -> AsyncIterator[DocumentHost]:
    """Yield a document host for a saved snapshot or a live page.

    Args:
        settings: Provides the browser section for live pages.
        html: Saved HTML snapshot to load.
        url: URL reported by the snapshot, or navigated to when ``live``.
        live: Open *url* in a Playwright-driven Chromium.
    """
    if not live:
        assert html is not None
        yield HtmlDocument.from_file(html, url=url or "about:blank")
        return

    from playwright.async_api import async_playwright

    from siteadapters.document.playwright_host import PlaywrightDocument

    browser_settings = settings.browser
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=browser_settings.headless)
        try:
            page = await browser.new_page(
                viewport={"width": browser_settings.viewport_width, "height": browser_settings.viewport_height}
            )
            page.set_default_timeout(browser_settings.timeout_ms)
            await page.goto(url, wait_until="domcontentloaded")
            yield PlaywrightDocument(page)
        finally:
            await browser.close()
