"""Unit tests for the adapter registry."""

from __future__ import annotations

import pytest

from siteadapters.adapters.base import AdapterState, EnvironmentAdapter
from siteadapters.adapters.registry import AdapterRegistry
from siteadapters.detection.detector import EnvironmentDetector
from siteadapters.document.html import HtmlDocument
from siteadapters.exceptions import (
    AdapterInitializationError,
    DuplicateAdapterError,
    SiteNotDetectedError,
)
from siteadapters.models import EnvironmentProfile, NodeRoleSpec, ProfileDisplay


def _profile(profile_id: str, host: str) -> EnvironmentProfile:
    spec = NodeRoleSpec("main")
    return EnvironmentProfile(
        profile_id=profile_id,
        url_patterns=(rf"^https://{host}\.example/",),
        input=spec,
        submit=spec,
        container=spec,
        injection_point=spec,
        display=ProfileDisplay(profile_id.title()),
    )


class _CountingAdapter(EnvironmentAdapter):
    def __init__(self, *args, fail_init: bool = False, fail_cleanup: bool = False, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.init_calls = 0
        self.cleanup_calls = 0
        self.fail_init = fail_init
        self.fail_cleanup = fail_cleanup

    async def _additional_confidence(self) -> float:
        return 0.0

    async def _perform_initialization(self) -> None:
        self.init_calls += 1
        if self.fail_init:
            raise RuntimeError(f"{self.profile_id} composer missing")

    async def _perform_cleanup(self) -> None:
        self.cleanup_calls += 1
        if self.fail_cleanup:
            raise RuntimeError(f"{self.profile_id} teardown failed")


class _SiteA(_CountingAdapter):
    profile = _profile("site_a", "a")


class _SiteB(_CountingAdapter):
    profile = _profile("site_b", "b")


PROFILES = (_SiteA.profile, _SiteB.profile)


@pytest.fixture()
def doc() -> HtmlDocument:
    return HtmlDocument("<main></main>", url="https://a.example/home")


@pytest.fixture()
def registry(doc, clock) -> AdapterRegistry:
    return AdapterRegistry(EnvironmentDetector(PROFILES, doc, clock=clock))


# ===================================================================
# Registration
# ===================================================================


class TestRegistration:
    """One adapter per profile id."""

    def test_register(self, registry, doc, settings, clock) -> None:
        adapter = _SiteA(doc, settings=settings, clock=clock)

        registry.register(adapter)

        assert len(registry) == 1
        assert "site_a" in registry
        assert registry.get_adapter_by_id("site_a") is adapter
        assert registry.has_adapter("site_b") is False

    def test_duplicate_registration_raises(self, registry, doc, settings, clock) -> None:
        registry.register(_SiteA(doc, settings=settings, clock=clock))

        with pytest.raises(DuplicateAdapterError) as exc_info:
            registry.register(_SiteA(doc, settings=settings, clock=clock))

        assert exc_info.value.profile_id == "site_a"

    def test_register_or_update_replaces(self, registry, doc, settings, clock) -> None:
        first = _SiteA(doc, settings=settings, clock=clock)
        second = _SiteA(doc, settings=settings, clock=clock)
        registry.register(first)

        registry.register_or_update(second)

        assert registry.get_adapter_by_id("site_a") is second
        assert len(registry) == 1

    def test_registered_ids_keep_order(self, registry, doc, settings, clock) -> None:
        registry.register(_SiteB(doc, settings=settings, clock=clock))
        registry.register(_SiteA(doc, settings=settings, clock=clock))

        assert registry.registered_ids() == ["site_b", "site_a"]

    @pytest.mark.anyio
    async def test_unregister_cleans_up(self, registry, doc, settings, clock) -> None:
        adapter = _SiteA(doc, settings=settings, clock=clock)
        registry.register(adapter)

        assert await registry.unregister("site_a") is True
        assert await registry.unregister("site_a") is False
        assert adapter.state is AdapterState.CLEANED_UP
        assert len(registry) == 0

    @pytest.mark.anyio
    async def test_clear(self, registry, doc, settings, clock) -> None:
        registry.register(_SiteA(doc, settings=settings, clock=clock))
        registry.register(_SiteB(doc, settings=settings, clock=clock))

        await registry.clear()

        assert len(registry) == 0


# ===================================================================
# Lookup through detection
# ===================================================================


class TestLookup:
    """``get_adapter`` resolves the active profile via the detector."""

    @pytest.mark.anyio
    async def test_returns_adapter_for_detected_profile(self, registry, doc, settings, clock) -> None:
        adapter = _SiteA(doc, settings=settings, clock=clock)
        registry.register(adapter)

        assert await registry.get_adapter() is adapter

    @pytest.mark.anyio
    async def test_no_match_returns_none(self, registry, doc, settings, clock) -> None:
        registry.register(_SiteA(doc, settings=settings, clock=clock))

        assert await registry.get_adapter("https://elsewhere.example/") is None

    @pytest.mark.anyio
    async def test_matched_but_unregistered_raises(self, registry, doc, settings, clock) -> None:
        registry.register(_SiteB(doc, settings=settings, clock=clock))

        with pytest.raises(SiteNotDetectedError) as exc_info:
            await registry.get_adapter("https://a.example/page")

        assert exc_info.value.profile_id == "site_a"
        assert exc_info.value.detection.confidence > 0.5

    @pytest.mark.anyio
    async def test_is_site_supported(self, registry, doc, settings, clock) -> None:
        registry.register(_SiteA(doc, settings=settings, clock=clock))

        assert await registry.is_site_supported() is True
        assert await registry.is_site_supported("https://b.example/") is False
        assert await registry.is_site_supported("https://elsewhere.example/") is False


# ===================================================================
# Bulk lifecycle
# ===================================================================


class TestBulkLifecycle:
    """``initialize_all`` / ``cleanup_all``."""

    @pytest.mark.anyio
    async def test_initialize_all_initializes_each_once(self, registry, doc, settings, clock) -> None:
        a = _SiteA(doc, settings=settings, clock=clock)
        b = _SiteB(doc, settings=settings, clock=clock)
        registry.register(a)
        registry.register(b)

        await registry.initialize_all()
        await registry.initialize_all()

        assert (a.init_calls, b.init_calls) == (1, 1)
        assert registry.initialized is True

    @pytest.mark.anyio
    async def test_partial_failure_is_aggregated(self, registry, doc, settings, clock) -> None:
        a = _SiteA(doc, settings=settings, clock=clock)
        b = _SiteB(doc, settings=settings, clock=clock, fail_init=True)
        registry.register(a)
        registry.register(b)

        with pytest.raises(AdapterInitializationError) as exc_info:
            await registry.initialize_all()

        assert set(exc_info.value.failures) == {"site_b"}
        assert exc_info.value.context["failed_profiles"] == ["site_b"]
        assert a.state is AdapterState.INITIALIZED
        assert b.state is AdapterState.UNINITIALIZED
        assert registry.initialized is False

    @pytest.mark.anyio
    async def test_retry_after_partial_failure(self, registry, doc, settings, clock) -> None:
        a = _SiteA(doc, settings=settings, clock=clock)
        b = _SiteB(doc, settings=settings, clock=clock, fail_init=True)
        registry.register(a)
        registry.register(b)
        with pytest.raises(AdapterInitializationError):
            await registry.initialize_all()

        b.fail_init = False
        await registry.initialize_all()

        assert a.init_calls == 1
        assert b.init_calls == 2
        assert registry.initialized is True

    @pytest.mark.anyio
    async def test_register_resets_initialized(self, registry, doc, settings, clock) -> None:
        registry.register(_SiteA(doc, settings=settings, clock=clock))
        await registry.initialize_all()

        registry.register(_SiteB(doc, settings=settings, clock=clock))

        assert registry.initialized is False

    @pytest.mark.anyio
    async def test_cleanup_all_is_best_effort(self, registry, doc, settings, clock) -> None:
        a = _SiteA(doc, settings=settings, clock=clock, fail_cleanup=True)
        b = _SiteB(doc, settings=settings, clock=clock)
        registry.register(a)
        registry.register(b)
        await registry.initialize_all()

        await registry.cleanup_all()

        assert a.state is AdapterState.CLEANED_UP
        assert b.state is AdapterState.CLEANED_UP
        assert b.cleanup_calls == 1
        assert list(registry.cleanup_errors) == ["site_a"]
        assert registry.initialized is False

    @pytest.mark.anyio
    async def test_stats(self, registry, doc, settings, clock) -> None:
        registry.register(_SiteA(doc, settings=settings, clock=clock, fail_cleanup=True))
        await registry.initialize_all()
        await registry.cleanup_all()

        stats = registry.stats()

        assert stats.total_adapters == 1
        assert stats.registered_ids == ["site_a"]
        assert stats.initialized is False
        assert stats.cleanup_errors == {"site_a": "site_a teardown failed"}
