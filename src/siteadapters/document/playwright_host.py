"""Live-page document host backed by Playwright's async API.

Wraps a ``playwright.async_api.Page`` so adapters can run against a real
browser tab. Structural change notifications are delivered by a
``MutationObserver`` installed in the page that calls back into Python
through ``page.expose_function``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import TYPE_CHECKING, Any

from playwright.async_api import Error as PlaywrightError

from siteadapters.document.base import (
    BoundingBox,
    ChangeCallback,
    ContentChange,
    DocumentHost,
    NodeHandle,
    ScrollMetrics,
)
from siteadapters.exceptions import InvalidExpressionError

if TYPE_CHECKING:
    from playwright.async_api import ElementHandle, Page

logger = logging.getLogger(__name__)

_binding_ids = itertools.count(1)

_STYLE_JS = """
el => {
    const s = window.getComputedStyle(el);
    return {display: s.display, visibility: s.visibility, opacity: s.opacity};
}
"""

_OBSERVE_JS = """
([binding, key]) => {
    const target = document.body || document.documentElement;
    const observer = new MutationObserver(mutations => {
        let added = 0, removed = 0;
        for (const m of mutations) {
            if (m.type === 'childList') {
                added += m.addedNodes.length;
                removed += m.removedNodes.length;
            }
        }
        if (added || removed) window[binding]({added, removed});
    });
    observer.observe(target, {childList: true, subtree: true});
    window.__siteadaptersObservers = window.__siteadaptersObservers || {};
    window.__siteadaptersObservers[key] = observer;
}
"""

_DISCONNECT_JS = """
key => {
    const registry = window.__siteadaptersObservers || {};
    if (registry[key]) { registry[key].disconnect(); delete registry[key]; }
}
"""


def _is_selector_error(exc: PlaywrightError) -> bool:
    message = str(exc).lower()
    return "selector" in message or "unexpected token" in message


class PlaywrightNode(NodeHandle):
    """``NodeHandle`` over a Playwright ``ElementHandle``."""

    def __init__(self, handle: ElementHandle) -> None:
        self._handle = handle

    @property
    def element(self) -> ElementHandle:
        return self._handle

    async def tag_name(self) -> str:
        return await self._handle.evaluate("el => el.tagName.toLowerCase()")

    async def get_attribute(self, name: str) -> str | None:
        return await self._handle.get_attribute(name)

    async def text_content(self) -> str:
        return (await self._handle.text_content()) or ""

    async def bounding_box(self) -> BoundingBox | None:
        box = await self._handle.bounding_box()
        if box is None:
            return None
        return BoundingBox(box["x"], box["y"], box["width"], box["height"])

    async def computed_style(self) -> dict[str, str]:
        return await self._handle.evaluate(_STYLE_JS)

    async def matches(self, expression: str) -> bool:
        try:
            return bool(await self._handle.evaluate("(el, sel) => el.matches(sel)", expression))
        except PlaywrightError as exc:
            raise InvalidExpressionError(expression, str(exc)) from exc

    async def query(self, expression: str) -> NodeHandle | None:
        try:
            found = await self._handle.query_selector(expression)
        except PlaywrightError as exc:
            if _is_selector_error(exc):
                raise InvalidExpressionError(expression, str(exc)) from exc
            raise
        return PlaywrightNode(found) if found is not None else None

    async def count(self, expression: str) -> int:
        try:
            return len(await self._handle.query_selector_all(expression))
        except PlaywrightError as exc:
            if _is_selector_error(exc):
                raise InvalidExpressionError(expression, str(exc)) from exc
            raise

    async def child_count(self) -> int:
        return await self._handle.evaluate("el => el.children.length")

    async def scroll_metrics(self) -> ScrollMetrics:
        data = await self._handle.evaluate("el => [el.scrollHeight, el.clientHeight]")
        return ScrollMetrics(float(data[0]), float(data[1]))

    async def input_value(self) -> str:
        return await self._handle.evaluate(
            "el => ('value' in el && typeof el.value === 'string') ? el.value : (el.textContent || '')"
        )

    async def set_text(self, text: str) -> None:
        await self._handle.fill(text)


class _PlaywrightSubscription:
    """Disconnects the in-page observer on ``unsubscribe``."""

    def __init__(self, page: Page, key: str) -> None:
        self._page = page
        self._key = key
        self._task: asyncio.Task[None] | None = None
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        # cleanup() is synchronous, the page call is not.
        try:
            self._task = asyncio.get_running_loop().create_task(self._disconnect())
        except RuntimeError:
            logger.debug("No running loop; observer %s left for page teardown", self._key)

    async def _disconnect(self) -> None:
        try:
            await self._page.evaluate(_DISCONNECT_JS, self._key)
        except PlaywrightError as exc:
            logger.debug("Observer %s disconnect failed: %s", self._key, exc)


class PlaywrightDocument(DocumentHost):
    """``DocumentHost`` over a live Playwright page.

    Args:
        page: An open ``playwright.async_api.Page``.
    """

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def page(self) -> Page:
        return self._page

    async def current_url(self) -> str:
        return self._page.url

    async def ready_state(self) -> str:
        return await self._page.evaluate("document.readyState")

    async def query(self, expression: str) -> NodeHandle | None:
        try:
            found = await self._page.query_selector(expression)
        except PlaywrightError as exc:
            if _is_selector_error(exc):
                raise InvalidExpressionError(expression, str(exc)) from exc
            raise
        return PlaywrightNode(found) if found is not None else None

    async def query_all(self, expression: str) -> list[NodeHandle]:
        try:
            found = await self._page.query_selector_all(expression)
        except PlaywrightError as exc:
            if _is_selector_error(exc):
                raise InvalidExpressionError(expression, str(exc)) from exc
            raise
        return [PlaywrightNode(h) for h in found]

    async def body_text(self) -> str:
        return await self._page.evaluate("document.body ? document.body.textContent : ''")

    async def viewport_size(self) -> tuple[float, float]:
        size = self._page.viewport_size
        if size:
            return float(size["width"]), float(size["height"])
        dims: list[Any] = await self._page.evaluate("[window.innerWidth, window.innerHeight]")
        return float(dims[0]), float(dims[1])

    async def subscribe(self, callback: ChangeCallback) -> _PlaywrightSubscription:
        key = f"siteadapters_change_{next(_binding_ids)}"

        def _on_change(payload: dict[str, int]) -> None:
            callback(ContentChange(added_nodes=int(payload.get("added", 0)), removed_nodes=int(payload.get("removed", 0))))

        await self._page.expose_function(key, _on_change)
        await self._page.evaluate(_OBSERVE_JS, [key, key])
        logger.debug("Attached page observer %s", key)
        return _PlaywrightSubscription(self._page, key)
