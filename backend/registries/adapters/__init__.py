"""
Registry Adapters

An adapter is anything exposing the three operations of the Adapter
protocol. There is no base class: variants share the RegistryCrawler by
composition, not inheritance.

- DockerHubAdapter: remote registry, login + bearer token
- LocalOpenShiftAdapter: cluster-local integrated registry
- RHCCAdapter: curated catalog, searched then crawled anonymously
- MockAdapter: fixed in-memory catalog for tests and demos
"""

from typing import List, Protocol, runtime_checkable

from bundle.spec import Spec


@runtime_checkable
class Adapter(Protocol):
    """Capability contract every registry backend satisfies"""

    async def get_image_names(self) -> List[str]:
        """Discover image identifiers, in registry order"""
        ...

    async def fetch_specs(self, names: List[str]) -> List[Spec]:
        """Fetch specs for the given identifiers, skipping non-bundle images"""
        ...

    def registry_name(self) -> str:
        """Human-readable name of the backend"""
        ...


from registries.adapters.crawler import (  # noqa: E402
    DOCKERHUB_ENDPOINTS,
    RegistryCrawler,
    RegistryEndpoints,
)
from registries.adapters.dockerhub import DockerHubAdapter  # noqa: E402
from registries.adapters.local_openshift import LocalOpenShiftAdapter  # noqa: E402
from registries.adapters.mock import MockAdapter  # noqa: E402
from registries.adapters.rhcc import RHCCAdapter  # noqa: E402

__all__ = [
    'Adapter',
    'DOCKERHUB_ENDPOINTS',
    'RegistryCrawler',
    'RegistryEndpoints',
    'DockerHubAdapter',
    'LocalOpenShiftAdapter',
    'MockAdapter',
    'RHCCAdapter',
]
