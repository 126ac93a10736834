"""Runtime context: the objects an integrating tool talks to.

An ``AdapterContext`` owns one host, one detector and one registry. It is
built explicitly with ``create_context`` at start-up; the module-level
helpers (``detect_site``, ``get_adapter``, ...) operate on a default context
installed with ``set_default_context`` for callers that want a single
global entry point.

    context = create_context(PlaywrightDocument(page))
    set_default_context(context)
    await initialize_site_adapters()
    adapter = await get_adapter()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from siteadapters.adapters.registry import AdapterRegistry
from siteadapters.adapters.base import AdapterState
from siteadapters.clock import Clock, SystemClock
from siteadapters.detection.detector import EnvironmentDetector
from siteadapters.settings import Settings, get_settings
from siteadapters.sites import BUILTIN_PROFILES, adapter_type_for, builtin_adapters

if TYPE_CHECKING:
    from siteadapters.adapters.base import EnvironmentAdapter
    from siteadapters.document.base import DocumentHost
    from siteadapters.models import DetectionResult

logger = logging.getLogger(__name__)


@dataclass
class AdapterContext:
    """Everything bound to one document host."""

    host: DocumentHost
    detector: EnvironmentDetector
    registry: AdapterRegistry
    settings: Settings
    clock: Clock = field(default_factory=SystemClock)

    async def detect_site(self, url: str | None = None) -> DetectionResult:
        return await self.detector.detect(url)

    async def get_adapter(self, url: str | None = None) -> EnvironmentAdapter | None:
        return await self.registry.get_adapter(url)

    async def initialize_site_adapters(self) -> None:
        """(Re)register the built-in adapters and initialize every adapter.

        Built-in adapters that were cleaned up are replaced with fresh
        instances, since a cleaned-up adapter cannot be initialized again.
        """
        for adapter in self.registry.adapters():
            if adapter.state is not AdapterState.CLEANED_UP:
                continue
            adapter_type = adapter_type_for(adapter.profile_id)
            if adapter_type is not None and isinstance(adapter, adapter_type):
                logger.debug("Replacing cleaned-up %s adapter", adapter.profile_id)
                self.registry.register_or_update(adapter_type(self.host, settings=self.settings, clock=self.clock))
        await self.registry.initialize_all()

    async def cleanup_site_adapters(self) -> None:
        await self.registry.cleanup_all()


def create_context(
    host: DocumentHost,
    *,
    settings: Settings | None = None,
    clock: Clock | None = None,
    register_builtin: bool = True,
) -> AdapterContext:
    """Build a context for *host*.

    Args:
        host: Document host shared by detector and adapters.
        settings: Application settings (defaults to ``get_settings()``).
        clock: Time source (defaults to the system clock).
        register_builtin: Register the ChatGPT and Claude adapters.
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()
    detector = EnvironmentDetector(BUILTIN_PROFILES, host, settings=settings.detection, clock=clock)
    registry = AdapterRegistry(detector)
    if register_builtin:
        for adapter in builtin_adapters(host, settings=settings, clock=clock):
            registry.register_or_update(adapter)
    return AdapterContext(host=host, detector=detector, registry=registry, settings=settings, clock=clock)


# ---------------------------------------------------------------------------
# Default context
# ---------------------------------------------------------------------------

_default_context: AdapterContext | None = None


def set_default_context(context: AdapterContext | None) -> None:
    global _default_context
    _default_context = context


def get_default_context() -> AdapterContext:
    """Return the installed default context.

    Raises:
        RuntimeError: No default context has been installed.
    """
    if _default_context is None:
        raise RuntimeError("No default AdapterContext; call set_default_context(create_context(host)) first")
    return _default_context


async def detect_site(url: str | None = None) -> DetectionResult:
    return await get_default_context().detect_site(url)


async def get_adapter(url: str | None = None) -> EnvironmentAdapter | None:
    return await get_default_context().get_adapter(url)


async def initialize_site_adapters() -> None:
    await get_default_context().initialize_site_adapters()


async def cleanup_site_adapters() -> None:
    await get_default_context().cleanup_site_adapters()
