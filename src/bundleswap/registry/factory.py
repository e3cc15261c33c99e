"""Factory for the asset registry directory.

Dry-run deployments serve every configured registry from memory; otherwise
each ``name=url`` endpoint becomes an HTTP registry.
"""

import logging
from typing import Optional

from bundleswap.config import Settings, get_settings
from bundleswap.registry.base import AssetRegistry, RegistryDirectory

logger = logging.getLogger(__name__)


def create_registry(name: str, settings: Optional[Settings] = None) -> AssetRegistry:
    """Create one registry by id."""
    settings = settings or get_settings()

    if settings.dry_run:
        from bundleswap.registry.memory import InMemoryAssetRegistry
        return InMemoryAssetRegistry(name)

    base_url = settings.registry_urls.get(name)
    if not base_url:
        raise ValueError(f"No endpoint configured for registry {name}")

    from bundleswap.registry.http import HttpAssetRegistry
    return HttpAssetRegistry(
        name=name,
        base_url=base_url,
        api_key=settings.registry_api_key,
        timeout=settings.registry_timeout,
    )


def create_registry_directory(settings: Optional[Settings] = None) -> RegistryDirectory:
    """Create the directory of every configured registry."""
    settings = settings or get_settings()
    names = settings.registry_names if settings.dry_run else list(settings.registry_urls)

    if not names:
        logger.warning("No asset registries configured - every order will be rejected")

    directory = RegistryDirectory(create_registry(name, settings) for name in names)
    logger.info(
        f"Registry directory ready ({'dry-run' if settings.dry_run else 'remote'}): "
        f"{', '.join(directory.names) or '(none)'}"
    )
    return directory
