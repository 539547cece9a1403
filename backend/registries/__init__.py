"""
Registries Module

Discovers bundle images in container registries and loads their specs.

Architecture:
- Config: validated description of one registry connection
- Filter: allow/deny patterns applied before any manifest is fetched
- Adapter: per-backend discovery (Docker Hub, local registry, RHCC, mock)
- Registry: runs discovery, filtering, fetch and spec validation
- load_catalog: loads many registries at once, honoring their fail policy
"""

from registries.errors import (
    AuthenticationError,
    ConfigurationError,
    DiscoveryError,
    RegistryError,
    RegistryTimeoutError,
    SpecDecodeError,
    SpecFetchError,
    UnsupportedManifestError,
)
from registries.config import Config
from registries.filter import Filter
from registries.registry import (
    Registry,
    is_compatible_version,
    new_custom_registry,
    new_registry,
    spec_rejection_reason,
)
from registries.catalog import CatalogResult, load_catalog

__all__ = [
    'AuthenticationError',
    'ConfigurationError',
    'DiscoveryError',
    'RegistryError',
    'RegistryTimeoutError',
    'SpecDecodeError',
    'SpecFetchError',
    'UnsupportedManifestError',
    'Config',
    'Filter',
    'Registry',
    'is_compatible_version',
    'new_custom_registry',
    'new_registry',
    'spec_rejection_reason',
    'CatalogResult',
    'load_catalog',
]
