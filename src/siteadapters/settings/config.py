"""Configuration loader for site adapters using Pydantic settings.

Config precedence (highest wins):
  1. Explicit keyword arguments / CLI flags
  2. Environment variables (SITEADAPTERS_* with __ for nesting)
  3. settings.local.toml
  4. settings.<env>.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("SITEADAPTERS_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "SITEADAPTERS_ENV"
DEFAULT_ENV = "local"


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class DetectionSettings(BaseSettings):
    """Environment detector scoring and cache configuration."""

    model_config = SettingsConfigDict(env_prefix="SITEADAPTERS_DETECTION__")

    cache_ttl_ms: int = Field(default=30_000, gt=0)
    match_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    url_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    dom_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    max_additional_confidence: float = Field(default=0.2, ge=0.0, le=1.0)


class ResolverSettings(BaseSettings):
    """Fallback resolver retry and budget defaults."""

    model_config = SettingsConfigDict(env_prefix="SITEADAPTERS_RESOLVER__")

    max_attempts: int = Field(default=3, ge=1, le=20)
    base_delay_ms: int = Field(default=100, ge=0)
    max_delay_ms: int = Field(default=1_000, ge=0)
    exponential_backoff: bool = True
    max_timeout_ms: int = Field(default=5_000, gt=0)
    validate_elements: bool = True


class AdapterSettings(BaseSettings):
    """Adapter initialization budgets."""

    model_config = SettingsConfigDict(env_prefix="SITEADAPTERS_ADAPTER__")

    ready_timeout_ms: int = Field(default=10_000, gt=0)
    marker_timeout_ms: int = Field(default=10_000, ge=0)
    editor_timeout_ms: int = Field(default=5_000, ge=0)
    poll_interval_ms: int = Field(default=100, gt=0)
    observe_changes: bool = True


class LoggingSettings(BaseSettings):
    """Logging configuration applied by the CLI."""

    model_config = SettingsConfigDict(env_prefix="SITEADAPTERS_LOGGING__")

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)-8s %(name)s - %(message)s"
    json_format: bool = False


class BrowserSettings(BaseSettings):
    """Playwright settings for live-page probing from the CLI."""

    model_config = SettingsConfigDict(env_prefix="SITEADAPTERS_BROWSER__")

    headless: bool = True
    timeout_ms: int = 30_000
    viewport_width: int = 1280
    viewport_height: int = 800


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="SITEADAPTERS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)
    debug: bool = False

    detection: DetectionSettings = Field(default_factory=DetectionSettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    adapter: AdapterSettings = Field(default_factory=AdapterSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @model_validator(mode="after")
    def _check_weights(self) -> "Settings":
        """URL and structural weights must not exceed a total confidence of 1.0."""
        total = self.detection.url_weight + self.detection.dom_weight
        if total > 1.0 + 1e-9:
            raise ValueError(f"detection.url_weight + detection.dom_weight must be <= 1.0 (got {total:.2f})")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
