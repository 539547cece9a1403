"""
Cluster-local integrated registry adapter.

Crawls the registry that ships inside the cluster. Its host and the
service account token come from the platform; both are injected as plain
callables so this module never builds cluster API clients itself.
"""

import logging
from typing import Any, Callable, List, Optional
from urllib.parse import urlparse

from bundle.spec import Spec
from registries.adapters.crawler import RegistryCrawler, RegistryEndpoints
from registries.config import Config
from registries.errors import ConfigurationError

logger = logging.getLogger(__name__)

LOCAL_OPENSHIFT_NAME = "openshift-registry"


class LocalOpenShiftAdapter:
    """
    Adapter for the cluster's integrated registry.

    Endpoint resolution order: explicit endpoints, config.url, then
    host_resolver(). Without a token_provider the adapter always logs in
    with the config credentials.
    """

    def __init__(
        self,
        config: Config,
        endpoints: Optional[RegistryEndpoints] = None,
        token_provider: Optional[Callable[[], str]] = None,
        host_resolver: Optional[Callable[[], str]] = None,
        **crawler_options: Any,
    ):
        self.config = config
        self.token_provider = token_provider

        if endpoints is None:
            url = config.url or (host_resolver() if host_resolver else "")
            if not url:
                raise ConfigurationError(
                    f"Registry '{config.name}' needs a url or a host resolver for the local registry"
                )
            endpoints = RegistryEndpoints.single(url)

        self.crawler = RegistryCrawler(
            endpoints,
            username=config.user,
            password=config.password,
            require_login=token_provider is None,
            tag=config.tag,
            image_prefix=urlparse(endpoints.registry_url).netloc,
            **crawler_options,
        )

    def registry_name(self) -> str:
        return LOCAL_OPENSHIFT_NAME

    def namespaces(self) -> List[str]:
        if self.config.namespaces:
            return list(self.config.namespaces)
        return [self.config.org] if self.config.org else []

    def _refresh_token(self) -> None:
        # Service account tokens rotate, ask the platform on every crawl
        if self.token_provider is not None:
            self.crawler.use_token(self.token_provider())

    async def get_image_names(self) -> List[str]:
        self._refresh_token()
        await self.crawler.ensure_authenticated()
        names: List[str] = []
        for namespace in self.namespaces():
            for name in await self.crawler.get_image_names(namespace):
                if name not in names:
                    names.append(name)
        logger.info(f"Discovered {len(names)} images in local registry namespaces {self.namespaces()}")
        return names

    async def fetch_specs(self, names: List[str]) -> List[Spec]:
        self._refresh_token()
        specs, _ = await self.crawler.fetch_specs(names)
        return specs
