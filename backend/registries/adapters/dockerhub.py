"""
Docker Hub adapter.

Lists the repositories of one Docker Hub org and reads bundle specs from
their manifests. Logs in when the config carries credentials, otherwise
crawls anonymously.
"""

import logging
from typing import Any, List, Optional

from bundle.spec import Spec
from registries.adapters.crawler import DOCKERHUB_ENDPOINTS, RegistryCrawler, RegistryEndpoints
from registries.config import Config

logger = logging.getLogger(__name__)

DOCKERHUB_NAME = "docker.io"


class DockerHubAdapter:
    """Adapter for Docker Hub (or any registry exposing the Hub API)"""

    def __init__(
        self,
        config: Config,
        endpoints: Optional[RegistryEndpoints] = None,
        **crawler_options: Any,
    ):
        self.config = config
        self.crawler = RegistryCrawler(
            endpoints or DOCKERHUB_ENDPOINTS,
            username=config.user,
            password=config.password,
            tag=config.tag,
            **crawler_options,
        )

    def registry_name(self) -> str:
        return DOCKERHUB_NAME

    async def get_image_names(self) -> List[str]:
        logger.debug(f"Listing Docker Hub org '{self.config.org}'")
        return await self.crawler.get_image_names(self.config.org)

    async def fetch_specs(self, names: List[str]) -> List[Spec]:
        specs, _ = await self.crawler.fetch_specs(names)
        return specs
