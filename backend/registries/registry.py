"""
Registry orchestration.

A Registry ties one Config, one Adapter and one Filter together and turns
whatever the adapter discovers into a validated list of specs:

1. Discover image names (adapter)
2. Record how many were discovered, before filtering
3. Drop names rejected by the filter
4. Fetch specs for the survivors (adapter)
5. Drop specs that fail validation; a malformed bundle is expected in a
   crawled catalog and never fails the whole load
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from packaging.version import InvalidVersion, Version

from bundle.spec import Spec
from registries.adapters import (
    Adapter,
    DockerHubAdapter,
    LocalOpenShiftAdapter,
    MockAdapter,
    RHCCAdapter,
)
from registries.config import AUTH_TYPE_FILE, AUTH_TYPE_SECRET, Config
from registries.errors import ConfigurationError, RegistryTimeoutError
from registries.filter import Filter

logger = logging.getLogger(__name__)

# Inclusive range of spec versions this broker understands, compared on
# (major, minor)
MIN_SPEC_VERSION = "1.0"
MAX_SPEC_VERSION = "1.0"


def parse_version(version: str) -> Optional[Tuple[int, int, int]]:
    """
    Parse a semantic version string.

    Examples:
        "1.0"        -> (1, 0, 0)
        "1.0.3"      -> (1, 0, 3)
        "v2.1.0-rc1" -> (2, 1, 0)
        "latest"     -> None
    """
    if not version:
        return None
    try:
        release = Version(version.strip()).release
    except InvalidVersion:
        return None
    major, minor, patch = (release + (0, 0))[:3]
    return major, minor, patch


def is_compatible_version(
    version: str,
    min_version: str = MIN_SPEC_VERSION,
    max_version: str = MAX_SPEC_VERSION,
) -> bool:
    """True if version parses and its (major, minor) lies within [min, max]"""
    parsed = parse_version(version)
    low = parse_version(min_version)
    high = parse_version(max_version)
    if parsed is None or low is None or high is None:
        return False
    return low[:2] <= parsed[:2] <= high[:2]


def spec_rejection_reason(
    spec: Spec,
    min_version: str = MIN_SPEC_VERSION,
    max_version: str = MAX_SPEC_VERSION,
) -> Optional[str]:
    """
    Check a spec against the acceptance rules, in order.

    Returns:
        None if the spec is acceptable, otherwise why it was rejected
    """
    if not spec.plans:
        return "spec has no plans"
    if not spec.version:
        return "spec has no version"
    if not is_compatible_version(spec.version, min_version, max_version):
        return (
            f"spec version {spec.version} is not supported "
            f"(supported: {min_version} - {max_version})"
        )
    if spec.runtime < 1:
        return f"spec runtime {spec.runtime} is invalid"
    return None


class Registry:
    """
    One configured registry: the unit of catalog loading.

    Holds no mutable state of its own; load_specs() can be called again
    for every catalog refresh.
    """

    def __init__(
        self,
        config: Config,
        adapter: Adapter,
        filter: Optional[Filter] = None,
        min_version: str = MIN_SPEC_VERSION,
        max_version: str = MAX_SPEC_VERSION,
    ):
        self.config = config
        self.adapter = adapter
        self.filter = filter if filter is not None else Filter()
        self.min_version = min_version
        self.max_version = max_version

    def registry_name(self) -> str:
        return self.config.name

    def fail(self, err: Optional[BaseException] = None) -> bool:
        """
        Whether an error from this registry should abort the broker.

        Decided by config alone; err is accepted so callers can pass
        whatever they caught.
        """
        return self.config.fail

    async def load_specs(self, timeout: Optional[float] = None) -> Tuple[List[Spec], int]:
        """
        Load the validated specs of this registry.

        Args:
            timeout: Overall deadline in seconds for the whole load

        Returns:
            (accepted specs, number of images discovered before filtering)

        Raises:
            AuthenticationError, DiscoveryError: The registry could not be crawled
            RegistryTimeoutError: The deadline expired
        """
        if timeout is None:
            return await self._load_specs()

        try:
            return await asyncio.wait_for(self._load_specs(), timeout)
        except asyncio.TimeoutError:
            raise RegistryTimeoutError(
                f"Loading registry '{self.registry_name()}' did not finish within {timeout}s"
            )

    async def _load_specs(self) -> Tuple[List[Spec], int]:
        names = await self.adapter.get_image_names()
        num_images = len(names)

        valid_names, filtered_names = self.filter.run(names)
        if filtered_names:
            logger.debug(
                f"Registry '{self.registry_name()}' filtered out {len(filtered_names)} images: {filtered_names}"
            )

        raw_specs = await self.adapter.fetch_specs(valid_names)

        specs: List[Spec] = []
        for spec in raw_specs:
            reason = spec_rejection_reason(spec, self.min_version, self.max_version)
            if reason:
                logger.info(f"Skipping {spec.image or spec.fq_name}: {reason}")
                continue
            specs.append(spec)

        logger.info(
            f"Registry '{self.registry_name()}' ({self.adapter.registry_name()}): "
            f"{num_images} images discovered, {len(valid_names)} after filter, "
            f"{len(specs)} of {len(raw_specs)} specs accepted"
        )
        return specs, num_images


ADAPTER_BUILDERS: Dict[str, Callable[..., Adapter]] = {
    "dockerhub": DockerHubAdapter,
    "rhcc": RHCCAdapter,
    "local_openshift": LocalOpenShiftAdapter,
    "openshift": LocalOpenShiftAdapter,
    # The mock catalog takes no crawler options
    "mock": lambda config, **_: MockAdapter(config),
}


def _get_builder(config: Config) -> Callable[..., Adapter]:
    builder = ADAPTER_BUILDERS.get(config.type.lower())
    if builder is None:
        raise ConfigurationError(
            f"Unknown registry type '{config.type}' for registry '{config.name}'"
        )
    return builder


def new_registry(
    config: Config,
    secret_reader: Optional[Callable[[str], Mapping[str, Any]]] = None,
    **adapter_options: Any,
) -> Registry:
    """
    Build a Registry from its config.

    Args:
        config: Registry config
        secret_reader: Platform callable used for auth_type "secret"
        **adapter_options: Passed to the adapter (endpoints, token_provider,
            host_resolver, page_size, request_timeout, max_concurrent_fetches)

    Raises:
        ConfigurationError: Invalid config, unknown type or unreadable
            credentials
    """
    if not config.validate():
        raise ConfigurationError(f"Registry config failed validation: {config.redacted()}")

    builder = _get_builder(config)

    adapter_config = config
    if config.auth_type in (AUTH_TYPE_FILE, AUTH_TYPE_SECRET):
        from utils.registry_credentials import get_registry_credentials
        username, password = get_registry_credentials(config, secret_reader)
        adapter_config = config.with_credentials(username, password)

    adapter = builder(adapter_config, **adapter_options)
    logger.info(f"Created registry '{config.name}' of type '{config.type}' ({adapter.registry_name()})")

    return Registry(
        config,
        adapter,
        Filter(config.white_list, config.black_list),
    )


def new_custom_registry(config: Config, adapter: Adapter) -> Registry:
    """
    Build a Registry around an adapter the caller already constructed.

    Raises:
        ConfigurationError: Invalid config or an adapter missing part of
            the Adapter protocol
    """
    if not config.validate():
        raise ConfigurationError(f"Registry config failed validation: {config.redacted()}")
    if not isinstance(adapter, Adapter):
        raise ConfigurationError(f"{type(adapter).__name__} does not implement the Adapter protocol")

    return Registry(
        config,
        adapter,
        Filter(config.white_list, config.black_list),
    )
