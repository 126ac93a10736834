"""Host document interface consumed by detection and resolution.

The engine never touches a concrete DOM. Everything it needs from the page
goes through ``DocumentHost`` (query primitive, URL accessor, readiness,
change subscription) and ``NodeHandle`` (tag, attributes, text, geometry,
style). Two implementations ship with the package:

* ``siteadapters.document.html.HtmlDocument``: static, mutable HTML snapshot.
* ``siteadapters.document.playwright_host.PlaywrightDocument``: live page.

All methods are coroutines so both implementations share one contract.
Hosts raise ``InvalidExpressionError`` for malformed query expressions.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Callable, Protocol


@dataclass(frozen=True)
class BoundingBox:
    """Node geometry relative to the viewport."""

    x: float
    y: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 and self.height <= 0


@dataclass(frozen=True)
class ScrollMetrics:
    """Scrollable extent of a node."""

    scroll_height: float
    client_height: float

    @property
    def is_scrollable(self) -> bool:
        return self.scroll_height > self.client_height


@dataclass(frozen=True)
class ContentChange:
    """One structural change notification from the host."""

    added_nodes: int = 0
    removed_nodes: int = 0
    kind: str = "child_list"


ChangeCallback = Callable[[ContentChange], None]


class Subscription(Protocol):
    """Handle returned by ``DocumentHost.subscribe``."""

    def unsubscribe(self) -> None:
        """Detach the callback. Safe to call more than once."""
        ...


class NodeHandle(abc.ABC):
    """Opaque reference to one node in the host document."""

    @abc.abstractmethod
    async def tag_name(self) -> str:
        """Lower-case tag name."""

    @abc.abstractmethod
    async def get_attribute(self, name: str) -> str | None:
        """Attribute value, or ``None`` when absent."""

    @abc.abstractmethod
    async def text_content(self) -> str:
        """Concatenated text of the node and its descendants."""

    @abc.abstractmethod
    async def bounding_box(self) -> BoundingBox | None:
        """Viewport geometry, or ``None`` when the node is not rendered."""

    @abc.abstractmethod
    async def computed_style(self) -> dict[str, str]:
        """Effective ``display``, ``visibility`` and ``opacity`` values."""

    @abc.abstractmethod
    async def matches(self, expression: str) -> bool:
        """True if the node itself matches *expression*."""

    @abc.abstractmethod
    async def query(self, expression: str) -> NodeHandle | None:
        """First descendant matching *expression*."""

    @abc.abstractmethod
    async def count(self, expression: str) -> int:
        """Number of descendants matching *expression*."""

    @abc.abstractmethod
    async def child_count(self) -> int:
        """Number of element children."""

    @abc.abstractmethod
    async def scroll_metrics(self) -> ScrollMetrics:
        """Scroll height versus client height."""

    @abc.abstractmethod
    async def input_value(self) -> str:
        """Current value of a form control, or text of an editable node."""

    @abc.abstractmethod
    async def set_text(self, text: str) -> None:
        """Replace the editable value and notify the page of the input."""

    async def has_class(self, name: str) -> bool:
        classes = (await self.get_attribute("class")) or ""
        return name in classes.split()

    async def describe(self) -> str:
        """Short human-readable description for logs."""
        tag = await self.tag_name()
        node_id = await self.get_attribute("id")
        return f"<{tag}#{node_id}>" if node_id else f"<{tag}>"


class DocumentHost(abc.ABC):
    """The externally owned document the adapters operate on."""

    @abc.abstractmethod
    async def current_url(self) -> str:
        """URL of the current document."""

    @abc.abstractmethod
    async def ready_state(self) -> str:
        """``loading``, ``interactive`` or ``complete``."""

    @abc.abstractmethod
    async def query(self, expression: str) -> NodeHandle | None:
        """First node matching *expression*, or ``None``.

        Raises:
            InvalidExpressionError: If *expression* cannot be parsed.
        """

    @abc.abstractmethod
    async def query_all(self, expression: str) -> list[NodeHandle]:
        """Every node matching *expression* in document order."""

    @abc.abstractmethod
    async def body_text(self) -> str:
        """Text content of the document body."""

    @abc.abstractmethod
    async def viewport_size(self) -> tuple[float, float]:
        """``(width, height)`` of the viewport."""

    @abc.abstractmethod
    async def subscribe(self, callback: ChangeCallback) -> Subscription:
        """Register *callback* for subtree structural changes."""

    async def is_ready(self) -> bool:
        return (await self.ready_state()) in ("interactive", "complete")
