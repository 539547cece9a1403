"""
Catalog loading across registries.

Loads every configured registry concurrently. A failing registry either
aborts the whole load (config.fail) or is logged and skipped.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from bundle.spec import Spec
from registries.registry import Registry

logger = logging.getLogger(__name__)


@dataclass
class CatalogResult:
    """Outcome of one catalog load"""
    specs: List[Spec] = field(default_factory=list)
    images_discovered: Dict[str, int] = field(default_factory=dict)
    errors: Dict[str, Exception] = field(default_factory=dict)

    @property
    def total_images(self) -> int:
        return sum(self.images_discovered.values())


async def load_catalog(
    registries: Sequence[Registry],
    timeout: Optional[float] = None,
) -> CatalogResult:
    """
    Load specs from all registries concurrently.

    Args:
        registries: Registries to load
        timeout: Per-registry deadline in seconds

    Returns:
        CatalogResult with the combined specs, per-registry discovered
        image counts and the errors of skipped registries

    Raises:
        Exception: The error of the first failing registry (in the given
            order) whose fail() policy says it is fatal
    """
    results = await asyncio.gather(
        *(registry.load_specs(timeout=timeout) for registry in registries),
        return_exceptions=True,
    )

    catalog = CatalogResult()
    for registry, result in zip(registries, results):
        name = registry.registry_name()
        if isinstance(result, Exception):
            if registry.fail(result):
                logger.error(f"Registry '{name}' failed and is configured as fatal: {result}")
                raise result
            logger.warning(f"Skipping registry '{name}': {result}")
            catalog.errors[name] = result
            continue
        if isinstance(result, BaseException):
            raise result

        specs, num_images = result
        catalog.images_discovered[name] = num_images
        catalog.specs.extend(specs)
        logger.info(f"Registry '{name}' contributed {len(specs)} specs from {num_images} images")

    logger.info(
        f"Catalog loaded: {len(catalog.specs)} specs from {len(registries)} registries "
        f"({catalog.total_images} images, {len(catalog.errors)} registries skipped)"
    )
    return catalog
