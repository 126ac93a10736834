"""Site adapters: environment detection and resilient node resolution for chat sites."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("siteadapters")
except Exception:
    __version__ = "0.0.0"
