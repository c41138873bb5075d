"""Registry client engine — published versions per package, cached on disk."""

from depwatch.engines.registry_client.cache import (
    PackageInfo,
    RegistryCache,
    sanitize_package_name,
)
from depwatch.engines.registry_client.client import SUPPORTED_ECOSYSTEMS, RegistryClient

__all__ = [
    "PackageInfo",
    "RegistryCache",
    "RegistryClient",
    "SUPPORTED_ECOSYSTEMS",
    "sanitize_package_name",
]
