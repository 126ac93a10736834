"""Unit tests for siteadapters settings.

Covers default loading, env var overrides, the dev profile and validation
of the detection, resolver, adapter, logging and browser sections.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError


class TestSettings:
    """Core settings loading and override mechanics."""

    def test_default_settings_load(self, monkeypatch):
        """Settings should load without any env overrides."""
        monkeypatch.delenv("SITEADAPTERS_ENV", raising=False)
        from siteadapters.settings import get_settings

        s = get_settings()
        assert s.env == "local"
        assert s.resolver.max_attempts == 3
        assert s.detection.cache_ttl_ms == 30_000

    def test_get_settings_is_cached(self):
        from siteadapters.settings import get_settings

        assert get_settings() is get_settings()

    def test_env_override(self, monkeypatch):
        """SITEADAPTERS_RESOLVER__MAX_ATTEMPTS should override the default."""
        monkeypatch.setenv("SITEADAPTERS_RESOLVER__MAX_ATTEMPTS", "5")
        from siteadapters.settings.config import Settings

        s = Settings()
        assert s.resolver.max_attempts == 5

    def test_multiple_section_overrides(self, monkeypatch):
        """Multiple env overrides across sections should all apply."""
        monkeypatch.setenv("SITEADAPTERS_DETECTION__CACHE_TTL_MS", "1000")
        monkeypatch.setenv("SITEADAPTERS_ADAPTER__OBSERVE_CHANGES", "false")
        monkeypatch.setenv("SITEADAPTERS_LOGGING__JSON_FORMAT", "true")
        from siteadapters.settings.config import Settings

        s = Settings()
        assert s.detection.cache_ttl_ms == 1000
        assert s.adapter.observe_changes is False
        assert s.logging.json_format is True

    def test_dev_profile(self, monkeypatch):
        """SITEADAPTERS_ENV=dev should load settings.dev.toml."""
        monkeypatch.setenv("SITEADAPTERS_ENV", "dev")
        from siteadapters.settings.config import Settings

        s = Settings()
        assert s.env == "dev"
        assert s.logging.level == "DEBUG"
        assert s.resolver.max_timeout_ms == 2000
        assert s.adapter.marker_timeout_ms == 3000
        assert s.browser.headless is False

    def test_dev_profile_keeps_other_defaults(self, monkeypatch):
        monkeypatch.setenv("SITEADAPTERS_ENV", "dev")
        from siteadapters.settings.config import Settings

        s = Settings()
        assert s.resolver.max_attempts == 3
        assert s.adapter.ready_timeout_ms == 10_000

    def test_explicit_values_win(self, monkeypatch):
        monkeypatch.setenv("SITEADAPTERS_ENV", "dev")
        from siteadapters.settings.config import Settings

        s = Settings(resolver={"max_timeout_ms": 750})
        assert s.resolver.max_timeout_ms == 750


class TestSectionDefaults:
    """Section defaults match the documented engine constants."""

    def test_detection_defaults(self):
        from siteadapters.settings.config import DetectionSettings

        d = DetectionSettings()
        assert (d.url_weight, d.dom_weight) == (0.7, 0.3)
        assert d.match_threshold == 0.5
        assert d.max_additional_confidence == 0.2

    def test_resolver_defaults(self):
        from siteadapters.settings.config import ResolverSettings

        r = ResolverSettings()
        assert r.base_delay_ms == 100
        assert r.max_delay_ms == 1000
        assert r.exponential_backoff is True
        assert r.max_timeout_ms == 5000
        assert r.validate_elements is True

    def test_adapter_defaults(self):
        from siteadapters.settings.config import AdapterSettings

        a = AdapterSettings()
        assert a.ready_timeout_ms == 10_000
        assert a.editor_timeout_ms == 5_000
        assert a.observe_changes is True


class TestValidation:
    """Invalid values are rejected."""

    def test_weights_must_not_exceed_one(self):
        from siteadapters.settings.config import Settings

        with pytest.raises(ValidationError, match="url_weight"):
            Settings(detection={"url_weight": 0.8, "dom_weight": 0.3})

    def test_max_attempts_bounds(self):
        from siteadapters.settings.config import ResolverSettings

        with pytest.raises(ValidationError):
            ResolverSettings(max_attempts=0)
        with pytest.raises(ValidationError):
            ResolverSettings(max_attempts=21)

    def test_threshold_bounds(self):
        from siteadapters.settings.config import DetectionSettings

        with pytest.raises(ValidationError):
            DetectionSettings(match_threshold=1.5)

    def test_invalid_env_value(self, monkeypatch):
        monkeypatch.setenv("SITEADAPTERS_RESOLVER__MAX_TIMEOUT_MS", "-1")
        from siteadapters.settings.config import Settings

        with pytest.raises(ValidationError):
            Settings()
