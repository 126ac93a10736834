"""Static HTML document host backed by BeautifulSoup and soupsieve.

``HtmlDocument`` wraps a parsed HTML snapshot and implements the
``DocumentHost`` contract so detection and resolution can run offline
(saved pages, CLI probing, tests). The snapshot is mutable: ``set_html``,
``append_html``, ``remove`` and ``set_attribute`` rewrite the tree and
notify change subscribers, mimicking a single-page app re-rendering.

There is no layout engine. Geometry and scroll extents come from data
attributes when present:

* ``data-rect="x,y,width,height"``: bounding box (default ``0,0,100,20``).
* ``data-scroll-height`` / ``data-client-height``: scroll metrics.

Visibility follows inline styles and the ``hidden`` attribute, inherited
from ancestors the way a browser would (``display:none`` hides the subtree,
the nearest ``visibility`` wins, ``opacity`` multiplies).
"""

from __future__ import annotations

import logging
from pathlib import Path

import soupsieve as sv
from bs4 import BeautifulSoup, Tag

from siteadapters.document.base import (
    BoundingBox,
    ChangeCallback,
    ContentChange,
    DocumentHost,
    NodeHandle,
    ScrollMetrics,
)
from siteadapters.exceptions import InvalidExpressionError

logger = logging.getLogger(__name__)

_DEFAULT_RECT = BoundingBox(0.0, 0.0, 100.0, 20.0)
_PARSER = "html.parser"
_EXPRESSION_ERRORS = (sv.SelectorSyntaxError, NotImplementedError, ValueError)


def _parse_style(raw: str | None) -> dict[str, str]:
    """Parse an inline ``style`` attribute into a lower-cased property map."""
    styles: dict[str, str] = {}
    if not raw:
        return styles
    for decl in raw.split(";"):
        if ":" not in decl:
            continue
        prop, _, value = decl.partition(":")
        styles[prop.strip().lower()] = value.strip().lower().replace("!important", "").strip()
    return styles


def _attr(tag: Tag, name: str) -> str | None:
    value = tag.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


class HtmlNode(NodeHandle):
    """``NodeHandle`` over a BeautifulSoup ``Tag``."""

    def __init__(self, tag: Tag, document: HtmlDocument) -> None:
        self._tag = tag
        self._document = document

    @property
    def element(self) -> Tag:
        """The underlying BeautifulSoup tag."""
        return self._tag

    def __eq__(self, other: object) -> bool:
        return isinstance(other, HtmlNode) and other._tag is self._tag

    def __hash__(self) -> int:
        return id(self._tag)

    def __repr__(self) -> str:
        node_id = _attr(self._tag, "id")
        return f"HtmlNode(<{self._tag.name}{'#' + node_id if node_id else ''}>)"

    # ------------------------------------------------------------------
    # NodeHandle interface
    # ------------------------------------------------------------------

    async def tag_name(self) -> str:
        return (self._tag.name or "").lower()

    async def get_attribute(self, name: str) -> str | None:
        return _attr(self._tag, name)

    async def text_content(self) -> str:
        return self._tag.get_text()

    async def bounding_box(self) -> BoundingBox | None:
        if self._is_display_none():
            return None
        raw = _attr(self._tag, "data-rect")
        if not raw:
            return _DEFAULT_RECT
        try:
            x, y, w, h = (float(part) for part in raw.split(","))
        except ValueError:
            logger.debug("Ignoring malformed data-rect %r on <%s>", raw, self._tag.name)
            return _DEFAULT_RECT
        return BoundingBox(x, y, w, h)

    async def computed_style(self) -> dict[str, str]:
        visibility = "visible"
        opacity = 1.0
        visibility_resolved = False
        for tag in self._self_and_ancestors():
            styles = _parse_style(_attr(tag, "style"))
            if not visibility_resolved and "visibility" in styles:
                visibility = styles["visibility"]
                visibility_resolved = True
            if "opacity" in styles:
                try:
                    opacity *= float(styles["opacity"])
                except ValueError:
                    pass
        return {
            "display": "none" if self._is_display_none() else self._own_display(),
            "visibility": visibility,
            "opacity": f"{opacity:g}",
        }

    async def matches(self, expression: str) -> bool:
        try:
            return bool(sv.match(expression, self._tag))
        except _EXPRESSION_ERRORS as exc:
            raise InvalidExpressionError(expression, str(exc)) from exc

    async def query(self, expression: str) -> NodeHandle | None:
        try:
            found = self._tag.select_one(expression)
        except _EXPRESSION_ERRORS as exc:
            raise InvalidExpressionError(expression, str(exc)) from exc
        return HtmlNode(found, self._document) if found is not None else None

    async def count(self, expression: str) -> int:
        try:
            return len(self._tag.select(expression))
        except _EXPRESSION_ERRORS as exc:
            raise InvalidExpressionError(expression, str(exc)) from exc

    async def child_count(self) -> int:
        return sum(1 for child in self._tag.children if isinstance(child, Tag))

    async def scroll_metrics(self) -> ScrollMetrics:
        def _num(name: str) -> float:
            try:
                return float(_attr(self._tag, name) or 0)
            except ValueError:
                return 0.0

        return ScrollMetrics(_num("data-scroll-height"), _num("data-client-height"))

    async def input_value(self) -> str:
        if self._tag.name == "input":
            return _attr(self._tag, "value") or ""
        return self._tag.get_text()

    async def set_text(self, text: str) -> None:
        if self._tag.name == "input":
            self._tag["value"] = text
        else:
            self._tag.clear()
            self._tag.append(text)
        self._document.notify(ContentChange(kind="character_data"))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _self_and_ancestors(self) -> list[Tag]:
        chain: list[Tag] = [self._tag]
        chain.extend(p for p in self._tag.parents if isinstance(p, Tag) and p.name != "[document]")
        return chain

    def _own_display(self) -> str:
        return _parse_style(_attr(self._tag, "style")).get("display", "block")

    def _is_display_none(self) -> bool:
        for tag in self._self_and_ancestors():
            if tag.has_attr("hidden"):
                return True
            if _parse_style(_attr(tag, "style")).get("display") == "none":
                return True
        return False


class _HtmlSubscription:
    """Subscription handle for ``HtmlDocument``."""

    def __init__(self, document: HtmlDocument, callback: ChangeCallback) -> None:
        self._document = document
        self._callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._document._subscribers.remove(self._callback)
            self.active = False


class HtmlDocument(DocumentHost):
    """Mutable HTML snapshot implementing ``DocumentHost``.

    Args:
        html: Markup of the document.
        url: URL the snapshot was taken from.
        ready_state: Initial ``document.readyState`` value.
        viewport: ``(width, height)`` used by geometry-based validators.
    """

    def __init__(
        self,
        html: str = "",
        *,
        url: str = "about:blank",
        ready_state: str = "complete",
        viewport: tuple[float, float] = (1280.0, 800.0),
    ) -> None:
        self._soup = BeautifulSoup(html, _PARSER)
        self._url = url
        self._ready_state = ready_state
        self._viewport = viewport
        self._subscribers: list[ChangeCallback] = []

    @classmethod
    def from_file(cls, path: Path | str, *, url: str = "about:blank") -> HtmlDocument:
        """Load a saved page from disk."""
        return cls(Path(path).read_text(encoding="utf-8"), url=url)

    # ------------------------------------------------------------------
    # DocumentHost interface
    # ------------------------------------------------------------------

    async def current_url(self) -> str:
        return self._url

    async def ready_state(self) -> str:
        return self._ready_state

    async def query(self, expression: str) -> NodeHandle | None:
        try:
            found = self._soup.select_one(expression)
        except _EXPRESSION_ERRORS as exc:
            raise InvalidExpressionError(expression, str(exc)) from exc
        return HtmlNode(found, self) if found is not None else None

    async def query_all(self, expression: str) -> list[NodeHandle]:
        try:
            found = self._soup.select(expression)
        except _EXPRESSION_ERRORS as exc:
            raise InvalidExpressionError(expression, str(exc)) from exc
        return [HtmlNode(tag, self) for tag in found]

    async def body_text(self) -> str:
        body = self._soup.body
        return (body or self._soup).get_text(" ")

    async def viewport_size(self) -> tuple[float, float]:
        return self._viewport

    async def subscribe(self, callback: ChangeCallback) -> _HtmlSubscription:
        self._subscribers.append(callback)
        return _HtmlSubscription(self, callback)

    # ------------------------------------------------------------------
    # Mutation API
    # ------------------------------------------------------------------

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def set_url(self, url: str) -> None:
        self._url = url

    def set_ready_state(self, state: str) -> None:
        self._ready_state = state

    def set_html(self, html: str) -> None:
        """Replace the whole document, as a full client-side re-render would."""
        removed = len(self._soup.find_all(True))
        self._soup = BeautifulSoup(html, _PARSER)
        self.notify(ContentChange(added_nodes=len(self._soup.find_all(True)), removed_nodes=removed))

    def append_html(self, parent_expression: str, fragment: str) -> None:
        """Append *fragment* as the last children of the first match of *parent_expression*."""
        parent = self._soup.select_one(parent_expression)
        if parent is None:
            raise LookupError(f"No node matches {parent_expression!r}")
        parsed = BeautifulSoup(fragment, _PARSER)
        added = 0
        for child in list(parsed.contents):
            if isinstance(child, Tag):
                added += 1 + len(child.find_all(True))
            parent.append(child.extract())
        self.notify(ContentChange(added_nodes=added))

    def remove(self, expression: str) -> int:
        """Remove every node matching *expression*. Returns the number removed."""
        found = self._soup.select(expression)
        for tag in found:
            tag.decompose()
        if found:
            self.notify(ContentChange(removed_nodes=len(found)))
        return len(found)

    def set_attribute(self, expression: str, name: str, value: str | None) -> None:
        """Set (or with ``None`` remove) an attribute on the first match of *expression*."""
        tag = self._soup.select_one(expression)
        if tag is None:
            raise LookupError(f"No node matches {expression!r}")
        if value is None:
            tag.attrs.pop(name, None)
        else:
            tag[name] = value
        self.notify(ContentChange(kind="attributes"))

    def notify(self, change: ContentChange) -> None:
        """Deliver *change* to every subscriber."""
        for callback in list(self._subscribers):
            try:
                callback(change)
            except Exception:
                logger.exception("Change subscriber raised; continuing with remaining subscribers")

    def to_html(self) -> str:
        return str(self._soup)
