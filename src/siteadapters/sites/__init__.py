"""Built-in site profiles and adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

from siteadapters.sites.chatgpt import CHATGPT_PROFILE, ChatGPTAdapter
from siteadapters.sites.claude import CLAUDE_PROFILE, ClaudeAdapter

if TYPE_CHECKING:
    from siteadapters.adapters.base import EnvironmentAdapter
    from siteadapters.clock import Clock
    from siteadapters.document.base import DocumentHost
    from siteadapters.settings import Settings

# Declaration order breaks detection ties.
BUILTIN_ADAPTER_TYPES: tuple[type[EnvironmentAdapter], ...] = (ChatGPTAdapter, ClaudeAdapter)
BUILTIN_PROFILES = tuple(cls.profile for cls in BUILTIN_ADAPTER_TYPES)


def builtin_adapters(
    host: DocumentHost,
    *,
    settings: Settings | None = None,
    clock: Clock | None = None,
) -> list[EnvironmentAdapter]:
    """One fresh adapter per built-in profile, bound to *host*."""
    return [cls(host, settings=settings, clock=clock) for cls in BUILTIN_ADAPTER_TYPES]


def adapter_type_for(profile_id: str) -> type[EnvironmentAdapter] | None:
    for cls in BUILTIN_ADAPTER_TYPES:
        if cls.profile.profile_id == profile_id:
            return cls
    return None


__all__ = [
    "BUILTIN_ADAPTER_TYPES",
    "BUILTIN_PROFILES",
    "CHATGPT_PROFILE",
    "CLAUDE_PROFILE",
    "ChatGPTAdapter",
    "ClaudeAdapter",
    "adapter_type_for",
    "builtin_adapters",
]
