"""
Red Hat Container Catalog adapter.

The catalog is curated: instead of listing an org it is searched for the
bundle naming convention, then the hits are crawled anonymously like any
other V2 registry.
"""

import asyncio
import logging
from typing import Any, List, Optional
from urllib.parse import urlparse

import aiohttp

from bundle.spec import Spec
from registries.adapters.crawler import (
    DEFAULT_REQUEST_TIMEOUT,
    RegistryCrawler,
    RegistryEndpoints,
    normalize_url,
)
from registries.config import Config
from registries.errors import DiscoveryError

logger = logging.getLogger(__name__)

RHCC_DEFAULT_URL = "https://registry.access.redhat.com"
RHCC_SEARCH_QUERY = '"-apb"'
RHCC_SEARCH_ROWS = 500


class RHCCAdapter:
    """Adapter for the Red Hat Container Catalog"""

    def __init__(
        self,
        config: Config,
        endpoints: Optional[RegistryEndpoints] = None,
        query: str = RHCC_SEARCH_QUERY,
        rows: int = RHCC_SEARCH_ROWS,
        **crawler_options: Any,
    ):
        self.config = config
        self.query = query
        self.rows = rows
        self.endpoints = endpoints or RegistryEndpoints.single(config.url or RHCC_DEFAULT_URL)
        self.request_timeout = crawler_options.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)
        self.crawler = RegistryCrawler(
            self.endpoints,
            tag=config.tag,
            image_prefix=urlparse(self.endpoints.registry_url).netloc,
            **crawler_options,
        )

    def registry_name(self) -> str:
        return urlparse(normalize_url(self.endpoints.registry_url)).netloc

    def search_url(self) -> str:
        return f"{self.endpoints.api_url.rstrip('/')}/v1/search"

    async def get_image_names(self) -> List[str]:
        """
        Search the catalog for bundle images.

        Raises:
            DiscoveryError: If the search fails or returns an undecodable body
        """
        url = self.search_url()
        params = {"q": self.query, "rows": str(self.rows)}
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            ) as session:
                async with session.get(url, params=params) as response:
                    if response.status != 200:
                        body = await response.text()
                        raise DiscoveryError(
                            f"Catalog search {url} failed with status {response.status}: {body[:200]}"
                        )
                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        raise DiscoveryError(f"Unable to parse catalog search response: {e}")
        except asyncio.TimeoutError:
            raise DiscoveryError(f"Timeout searching catalog {url}")
        except aiohttp.ClientError as e:
            raise DiscoveryError(f"Error searching catalog {url}: {e}")

        if not isinstance(data, dict):
            raise DiscoveryError(f"Catalog search response from {url} is not an object")

        names = [
            result["name"] for result in data.get("results") or []
            if isinstance(result, dict) and result.get("name")
        ]
        logger.info(f"Catalog search returned {len(names)} images (num_results={data.get('num_results')})")
        return names

    async def fetch_specs(self, names: List[str]) -> List[Spec]:
        specs, _ = await self.crawler.fetch_specs(names)
        return specs
