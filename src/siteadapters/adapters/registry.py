"""Adapter registry: one adapter per profile id, looked up through detection."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from siteadapters.exceptions import AdapterInitializationError, DuplicateAdapterError, SiteNotDetectedError

if TYPE_CHECKING:
    from siteadapters.adapters.base import EnvironmentAdapter
    from siteadapters.detection.detector import EnvironmentDetector

logger = logging.getLogger(__name__)


class RegistryStats(BaseModel):
    total_adapters: int
    registered_ids: list[str] = Field(default_factory=list)
    initialized: bool = False
    cleanup_errors: dict[str, str] = Field(default_factory=dict)


class AdapterRegistry:
    """Map of profile id to adapter, with bulk lifecycle operations.

    Args:
        detector: Used by ``get_adapter`` and ``is_site_supported`` to pick
            the active profile.
    """

    def __init__(self, detector: EnvironmentDetector) -> None:
        self._detector = detector
        self._adapters: dict[str, EnvironmentAdapter] = {}
        self._initialized = False
        self.cleanup_errors: dict[str, BaseException] = {}

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, profile_id: object) -> bool:
        return profile_id in self._adapters

    @property
    def detector(self) -> EnvironmentDetector:
        return self._detector

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, adapter: EnvironmentAdapter) -> None:
        """Add *adapter*.

        Raises:
            DuplicateAdapterError: An adapter with the same profile id exists.
        """
        if adapter.profile_id in self._adapters:
            raise DuplicateAdapterError(adapter.profile_id)
        self._adapters[adapter.profile_id] = adapter
        self._initialized = False
        logger.debug("Registered %s adapter", adapter.profile_id)

    def register_or_update(self, adapter: EnvironmentAdapter) -> None:
        """Add *adapter*, silently replacing any adapter with the same id."""
        replaced = self._adapters.get(adapter.profile_id)
        self._adapters[adapter.profile_id] = adapter
        if replaced is not adapter:
            self._initialized = False
        if replaced is not None and replaced is not adapter:
            logger.debug("Replaced %s adapter", adapter.profile_id)

    async def unregister(self, profile_id: str) -> bool:
        """Clean up and remove the adapter for *profile_id*; ``False`` if absent."""
        adapter = self._adapters.pop(profile_id, None)
        if adapter is None:
            return False
        await self._cleanup_one(adapter)
        return True

    async def clear(self) -> None:
        await self.cleanup_all()
        self._adapters.clear()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_adapter(self, url: str | None = None) -> EnvironmentAdapter | None:
        """Adapter for the detected profile of *url*, or ``None`` when nothing matched.

        Raises:
            SiteNotDetectedError: A profile matched but no adapter is registered for it.
        """
        detection = await self._detector.detect(url)
        if detection.profile_id is None or detection.confidence <= self._detector.threshold:
            return None
        adapter = self._adapters.get(detection.profile_id)
        if adapter is None:
            raise SiteNotDetectedError(detection.profile_id, detection)
        return adapter

    async def is_site_supported(self, url: str | None = None) -> bool:
        detection = await self._detector.detect(url)
        return (
            detection.profile_id is not None
            and detection.confidence > self._detector.threshold
            and detection.profile_id in self._adapters
        )

    def get_adapter_by_id(self, profile_id: str) -> EnvironmentAdapter | None:
        return self._adapters.get(profile_id)

    def has_adapter(self, profile_id: str) -> bool:
        return profile_id in self._adapters

    def adapters(self) -> list[EnvironmentAdapter]:
        return list(self._adapters.values())

    def registered_ids(self) -> list[str]:
        return list(self._adapters)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize_all(self) -> None:
        """Initialize every adapter concurrently.

        Adapters that succeed stay initialized even when others fail.

        Raises:
            AdapterInitializationError: One or more adapters failed; the
                error lists every failure by profile id.
        """
        if self._initialized:
            return
        adapters = self.adapters()
        results = await asyncio.gather(*(a.initialize() for a in adapters), return_exceptions=True)
        failures: dict[str, BaseException] = {}
        for adapter, outcome in zip(adapters, results):
            if isinstance(outcome, BaseException):
                logger.warning("Failed to initialize %s adapter: %s", adapter.profile_id, outcome)
                failures[adapter.profile_id] = outcome
        if failures:
            raise AdapterInitializationError(failures)
        self._initialized = True
        logger.info("Initialized %d adapter(s)", len(adapters))

    async def cleanup_all(self) -> None:
        """Clean up every adapter; failures are logged and kept in ``cleanup_errors``."""
        self.cleanup_errors.clear()
        for adapter in self.adapters():
            await self._cleanup_one(adapter)
        self._initialized = False

    async def _cleanup_one(self, adapter: EnvironmentAdapter) -> None:
        try:
            await adapter.cleanup()
        except Exception as exc:
            logger.warning("Failed to clean up %s adapter: %s", adapter.profile_id, exc)
            self.cleanup_errors[adapter.profile_id] = exc

    def stats(self) -> RegistryStats:
        return RegistryStats(
            total_adapters=len(self._adapters),
            registered_ids=self.registered_ids(),
            initialized=self._initialized,
            cleanup_errors={k: str(v) for k, v in self.cleanup_errors.items()},
        )
