"""Host document abstractions.

* ``base``: ``DocumentHost`` / ``NodeHandle`` contracts.
* ``html``: ``HtmlDocument``, a static mutable snapshot (BeautifulSoup).
* ``playwright_host``: ``PlaywrightDocument``, a live browser page.
"""

from siteadapters.document.base import (
    BoundingBox,
    ContentChange,
    DocumentHost,
    NodeHandle,
    ScrollMetrics,
    Subscription,
)
from siteadapters.document.html import HtmlDocument, HtmlNode

__all__ = [
    "BoundingBox",
    "ContentChange",
    "DocumentHost",
    "HtmlDocument",
    "HtmlNode",
    "NodeHandle",
    "ScrollMetrics",
    "Subscription",
]
