"""Environment adapters and their registry."""

from siteadapters.adapters.base import AdapterState, EnvironmentAdapter
from siteadapters.adapters.registry import AdapterRegistry, RegistryStats

__all__ = ["AdapterRegistry", "AdapterState", "EnvironmentAdapter", "RegistryStats"]
