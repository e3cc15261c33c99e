"""Asset registry capability and adapters."""

from bundleswap.registry.base import AssetRef, AssetRegistry, RegistryDirectory
from bundleswap.registry.factory import create_registry, create_registry_directory
from bundleswap.registry.http import HttpAssetRegistry
from bundleswap.registry.memory import InMemoryAssetRegistry

__all__ = [
    "AssetRef",
    "AssetRegistry",
    "RegistryDirectory",
    "InMemoryAssetRegistry",
    "HttpAssetRegistry",
    "create_registry",
    "create_registry_directory",
]
