"""
Registry Crawler for Bundle Spec Extraction

Walks a Docker Registry V2 style API and turns bundle images into Specs:
1. Log in (basic credentials -> bearer token), cached per crawler until
   the registry rejects it
2. Page through the repository listing of an org, following `next`
3. Fetch the manifest of every surviving image
4. Pull the spec label out of the image config and decode it

The network adapters (Docker Hub, the cluster-local registry, RHCC) are
thin bindings of this crawler to an endpoint and a credential source.
"""

import asyncio
import base64
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from bundle.spec import (
    RUNTIME_LABEL,
    SPEC_LABEL,
    Spec,
    SpecParseError,
    decode_spec_label,
    spec_id_for,
)
from registries.errors import (
    AuthenticationError,
    DiscoveryError,
    SpecDecodeError,
    SpecFetchError,
    UnsupportedManifestError,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_MAX_CONCURRENT_FETCHES = 8

MANIFEST_V1 = "application/vnd.docker.distribution.manifest.v1+json"
MANIFEST_V1_SIGNED = "application/vnd.docker.distribution.manifest.v1+prettyjws"
MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
MANIFEST_LIST_V2 = "application/vnd.docker.distribution.manifest.list.v2+json"
OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_INDEX = "application/vnd.oci.image.index.v1+json"

MANIFEST_ACCEPT = ",".join([MANIFEST_V2, OCI_MANIFEST, MANIFEST_V1_SIGNED, MANIFEST_V1])


@dataclass(frozen=True)
class RegistryEndpoints:
    """
    Where a crawler talks to.

    api_url serves login and the repository listing, registry_url serves
    manifests and blobs. On most registries they are the same host, Docker
    Hub splits them.
    """
    api_url: str
    registry_url: str

    @classmethod
    def single(cls, url: str) -> 'RegistryEndpoints':
        """Endpoints for a registry that serves everything from one host"""
        url = normalize_url(url)
        return cls(api_url=url, registry_url=url)

    def login_url(self) -> str:
        return f"{self.api_url.rstrip('/')}/v2/users/login/"

    def repositories_url(self, org: str, page_size: int) -> str:
        return f"{self.api_url.rstrip('/')}/v2/repositories/{org}/?page_size={page_size}"

    def manifest_url(self, repository: str, tag: str) -> str:
        return f"{self.registry_url.rstrip('/')}/v2/{repository}/manifests/{tag}"

    def blob_url(self, repository: str, digest: str) -> str:
        return f"{self.registry_url.rstrip('/')}/v2/{repository}/blobs/{digest}"


DOCKERHUB_ENDPOINTS = RegistryEndpoints(
    api_url="https://hub.docker.com",
    registry_url="https://registry.hub.docker.com",
)


def normalize_url(url: str) -> str:
    """Add a scheme to bare hosts and drop trailing slashes"""
    url = url.strip()
    if not url.startswith("http"):
        url = f"https://{url}"
    return url.rstrip("/")


def encode_basic_auth(username: str, password: str) -> str:
    """
    Encode username:password as Basic authentication header.

    Returns:
        Basic auth header string (e.g., "Basic dXNlcjpwYXNz")
    """
    credentials = f"{username}:{password}"
    encoded = base64.b64encode(credentials.encode()).decode()
    return f"Basic {encoded}"


def parse_www_authenticate(header: Optional[str]) -> Optional[Dict[str, str]]:
    """
    Parse a Bearer WWW-Authenticate challenge into its parameters.

    Example:
        Input: 'Bearer realm="https://auth.docker.io/token",service="registry.docker.io",scope="repository:org/app:pull"'
        Output: {
            "realm": "https://auth.docker.io/token",
            "service": "registry.docker.io",
            "scope": "repository:org/app:pull"
        }

    Returns None for other schemes or a challenge without a realm.
    """
    if not header or not header.startswith("Bearer "):
        return None

    params = dict(re.findall(r'(\w+)="([^"]*)"', header[len("Bearer "):]))
    if "realm" not in params:
        logger.warning("WWW-Authenticate challenge is missing 'realm'")
        return None
    return params


def split_image_name(name: str, default_tag: str) -> Tuple[str, str]:
    """
    Split "org/app:tag" into ("org/app", "tag").

    A colon that belongs to a registry port ("host:5000/app") is not a tag
    separator.
    """
    repository, sep, tag = name.rpartition(":")
    if sep and "/" not in tag and tag:
        return repository, tag
    return name, default_tag


def _config_labels(document: Dict[str, Any], source: str, image: str) -> Dict[str, Any]:
    """
    Read config.Labels from an image config document.

    Raises:
        SpecDecodeError: If config or Labels is present but not an object
    """
    config = document.get("config") or {}
    if not isinstance(config, dict):
        raise SpecDecodeError(f"{source} has a config that is not an object", image=image)
    labels = config.get("Labels") or {}
    if not isinstance(labels, dict):
        raise SpecDecodeError(f"{source} has Labels that are not an object", image=image)
    return labels


class RegistryCrawler:
    """
    Crawls one registry for bundle specs.

    A crawler owns its session state (bearer token, per-repository pull
    tokens) and nothing else; separate crawlers never share anything, so
    registries can be crawled concurrently.
    """

    def __init__(
        self,
        endpoints: RegistryEndpoints,
        username: str = "",
        password: str = "",
        token: Optional[str] = None,
        require_login: bool = False,
        tag: str = "latest",
        image_prefix: str = "",
        page_size: int = DEFAULT_PAGE_SIZE,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_concurrent_fetches: int = DEFAULT_MAX_CONCURRENT_FETCHES,
    ):
        self.endpoints = endpoints
        self.username = username
        self.password = password
        self.require_login = require_login
        self.tag = tag or "latest"
        self.image_prefix = image_prefix
        self.page_size = page_size
        self.request_timeout = request_timeout
        self.max_concurrent_fetches = max(1, max_concurrent_fetches)
        self._token = token
        self._pull_tokens: Dict[str, str] = {}

    @property
    def token(self) -> Optional[str]:
        return self._token

    def use_token(self, token: Optional[str]) -> None:
        """Replace the cached bearer token (e.g. a rotated platform token)"""
        self._token = token

    def _session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.request_timeout)
        )

    def _auth_headers(self, repository: Optional[str] = None) -> Dict[str, str]:
        if repository and repository in self._pull_tokens:
            return {"Authorization": self._pull_tokens[repository]}
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(self, session: aiohttp.ClientSession) -> None:
        """Log in unless a token is cached or the registry allows anonymous access"""
        if self._token:
            return
        if self._can_login():
            self._token = await self.login(session)

    def _can_login(self) -> bool:
        return self.require_login or bool(self.username and self.password)

    async def ensure_authenticated(self) -> None:
        """Authenticate outside of a crawl, so login problems surface early"""
        async with self._session() as session:
            await self.authenticate(session)

    async def login(self, session: aiohttp.ClientSession) -> str:
        """
        Exchange basic credentials for a bearer token.

        Raises:
            AuthenticationError: On network failure, non-200 status, an
                undecodable body or a response without a token
        """
        url = self.endpoints.login_url()
        payload = {"username": self.username, "password": self.password}
        try:
            async with session.post(url, json=payload) as response:
                if response.status != 200:
                    body = await response.text()
                    raise AuthenticationError(
                        f"Login to {url} failed with status {response.status}: {body[:200]}"
                    )
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise AuthenticationError(f"Unable to parse login response from {url}: {e}")
        except asyncio.TimeoutError:
            raise AuthenticationError(f"Timeout logging in to {url}")
        except aiohttp.ClientError as e:
            raise AuthenticationError(f"Error logging in to {url}: {e}")

        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise AuthenticationError(f"Login to {url} returned no token")

        logger.debug(f"Obtained bearer token from {url}")
        return token

    async def _fetch_pull_token(
        self,
        session: aiohttp.ClientSession,
        challenge: Dict[str, str],
        image: str,
    ) -> str:
        """
        Fetch a pull-scoped token from the realm named in a 401 challenge.
        """
        realm = challenge["realm"]
        params = {key: challenge[key] for key in ("service", "scope") if challenge.get(key)}
        headers = {}
        if self.username and self.password:
            headers["Authorization"] = encode_basic_auth(self.username, self.password)

        try:
            async with session.get(realm, params=params, headers=headers) as response:
                if response.status != 200:
                    body = await response.text()
                    raise SpecFetchError(
                        f"Token request to {realm} failed with status {response.status}: {body[:200]}",
                        image=image,
                    )
                data = await response.json(content_type=None)
        except ValueError as e:
            raise SpecFetchError(f"Unable to parse token response from {realm}: {e}", image=image)
        except asyncio.TimeoutError:
            raise SpecFetchError(f"Timeout fetching token from {realm}", image=image)
        except aiohttp.ClientError as e:
            raise SpecFetchError(f"Error fetching token from {realm}: {e}", image=image)

        token = data.get("token") or data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise SpecFetchError(f"Token endpoint {realm} returned no token", image=image)
        return f"Bearer {token}"

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def get_image_names(self, org: str) -> List[str]:
        """
        List every repository of an org as "namespace/name".

        Raises:
            AuthenticationError: If login is required and fails
            DiscoveryError: If any page fails; no partial list is returned
        """
        async with self._session() as session:
            await self.authenticate(session)

            names: List[str] = []
            seen = set()
            url = self.endpoints.repositories_url(org, self.page_size)
            while url:
                if url in seen:
                    raise DiscoveryError(f"Pagination loop detected at {url}")
                seen.add(url)

                page = await self._get_page(session, url)
                results = page.get("results") or []
                for result in results:
                    if not isinstance(result, dict) or not result.get("name"):
                        continue
                    namespace = result.get("namespace") or org
                    names.append(f"{namespace}/{result['name']}")

                logger.debug(f"Listed {len(results)} repositories from {url}")
                url = page.get("next") or ""

        logger.info(f"Discovered {len(names)} images in '{org}' on {self.endpoints.api_url}")
        return names

    async def _get_page(self, session: aiohttp.ClientSession, url: str) -> Dict[str, Any]:
        # One retry, after replacing a login token the registry no longer accepts
        for attempt in range(2):
            relogin = False
            try:
                async with session.get(url, headers=self._auth_headers()) as response:
                    if response.status == 401 and attempt == 0 and self._token and self._can_login():
                        relogin = True
                    elif response.status != 200:
                        body = await response.text()
                        raise DiscoveryError(
                            f"Listing {url} failed with status {response.status}: {body[:200]}"
                        )
                    else:
                        try:
                            page = await response.json(content_type=None)
                        except ValueError as e:
                            raise DiscoveryError(f"Unable to parse listing response from {url}: {e}")
            except asyncio.TimeoutError:
                raise DiscoveryError(f"Timeout listing {url}")
            except aiohttp.ClientError as e:
                raise DiscoveryError(f"Error listing {url}: {e}")

            if relogin:
                logger.info(f"Token rejected by {url}, logging in again")
                self._token = None
                await self.authenticate(session)
                continue

            if not isinstance(page, dict):
                raise DiscoveryError(f"Listing response from {url} is not an object")
            return page

        raise DiscoveryError(f"Listing {url} failed: token rejected after login")

    # ------------------------------------------------------------------
    # Spec fetch
    # ------------------------------------------------------------------

    async def fetch_specs(
        self,
        names: List[str],
    ) -> Tuple[List[Spec], Dict[str, SpecFetchError]]:
        """
        Fetch specs for the given images concurrently.

        Images without the spec label are skipped silently. Per-image
        failures are collected in the returned error map and never stop
        the sibling fetches.

        Returns:
            (specs in input order, {image name: error})

        Raises:
            AuthenticationError: If login is required and fails
        """
        if not names:
            return [], {}

        semaphore = asyncio.Semaphore(self.max_concurrent_fetches)

        async with self._session() as session:
            await self.authenticate(session)

            async def _fetch(name: str):
                async with semaphore:
                    try:
                        return name, await self.fetch_spec(session, name), None
                    except SpecFetchError as e:
                        return name, None, e

            results = await asyncio.gather(*(_fetch(name) for name in names))

        specs: List[Spec] = []
        errors: Dict[str, SpecFetchError] = {}
        for name, spec, error in results:
            if error is not None:
                logger.warning(f"Failed to load spec for {name}: {error}")
                errors[name] = error
            elif spec is not None:
                specs.append(spec)

        logger.info(
            f"Fetched {len(specs)} specs from {len(names)} images "
            f"({len(errors)} errors) on {self.endpoints.registry_url}"
        )
        return specs, errors

    async def fetch_spec(self, session: aiohttp.ClientSession, name: str) -> Optional[Spec]:
        """
        Fetch and decode the spec of one image.

        Returns:
            The Spec, or None if the image carries no spec label

        Raises:
            SpecFetchError: Manifest or blob could not be fetched
            SpecDecodeError: Label present but not decodable
            UnsupportedManifestError: Unknown manifest schema
        """
        repository, tag = split_image_name(name, self.tag)
        manifest = await self._fetch_manifest(session, repository, tag, name)
        labels = await self._extract_labels(session, repository, manifest, name)

        encoded = labels.get(SPEC_LABEL)
        if not encoded:
            logger.debug(f"{name} has no {SPEC_LABEL} label, not a bundle image")
            return None
        if not isinstance(encoded, str):
            raise SpecDecodeError(f"{SPEC_LABEL} label is not a string", image=name)

        try:
            spec = decode_spec_label(encoded)
        except SpecParseError as e:
            raise SpecDecodeError(str(e), image=name)

        image = self.image_reference(repository, tag)
        update: Dict[str, Any] = {"image": image}

        runtime_label = labels.get(RUNTIME_LABEL)
        if runtime_label:
            try:
                update["runtime"] = int(runtime_label)
            except (TypeError, ValueError):
                raise SpecDecodeError(
                    f"Invalid {RUNTIME_LABEL} label '{runtime_label}'", image=name
                )

        if not spec.id:
            update["id"] = spec_id_for(image)

        logger.debug(f"Decoded spec '{spec.fq_name}' version {spec.version} from {image}")
        return spec.model_copy(update=update)

    def image_reference(self, repository: str, tag: str) -> str:
        """Fully qualified reference the spec was discovered under"""
        reference = f"{repository}:{tag}"
        prefix = self.image_prefix.rstrip("/")
        return f"{prefix}/{reference}" if prefix else reference

    async def _fetch_manifest(
        self,
        session: aiohttp.ClientSession,
        repository: str,
        tag: str,
        image: str,
    ) -> Dict[str, Any]:
        url = self.endpoints.manifest_url(repository, tag)

        # One retry, after answering a bearer challenge with a pull token
        for attempt in range(2):
            headers = {"Accept": MANIFEST_ACCEPT, **self._auth_headers(repository)}
            try:
                async with session.get(url, headers=headers) as response:
                    if response.status == 401 and attempt == 0:
                        challenge = parse_www_authenticate(response.headers.get("WWW-Authenticate"))
                        if challenge:
                            logger.debug(f"Registry challenged {url}, fetching pull token from {challenge['realm']}")
                            self._pull_tokens[repository] = await self._fetch_pull_token(
                                session, challenge, image
                            )
                            continue
                    if response.status == 404:
                        raise SpecFetchError(f"Image not found: {url}", image=image)
                    if response.status != 200:
                        raise SpecFetchError(
                            f"Registry returned {response.status} for {url}", image=image
                        )
                    try:
                        manifest = await response.json(content_type=None)
                    except ValueError as e:
                        raise SpecFetchError(f"Unable to parse manifest {url}: {e}", image=image)
            except asyncio.TimeoutError:
                raise SpecFetchError(f"Timeout fetching manifest: {url}", image=image)
            except aiohttp.ClientError as e:
                raise SpecFetchError(f"Error fetching manifest {url}: {e}", image=image)

            if not isinstance(manifest, dict):
                raise SpecFetchError(f"Manifest {url} is not an object", image=image)
            return manifest

        raise SpecFetchError(f"Authentication failed for {url}", image=image)

    async def _extract_labels(
        self,
        session: aiohttp.ClientSession,
        repository: str,
        manifest: Dict[str, Any],
        image: str,
    ) -> Dict[str, Any]:
        """Dispatch on manifest schema version to find the image labels"""
        schema_version = manifest.get("schemaVersion")

        if schema_version == 1:
            return self._labels_from_history(manifest, image)

        if schema_version == 2:
            media_type = manifest.get("mediaType", "")
            if media_type in (MANIFEST_LIST_V2, OCI_INDEX):
                raise UnsupportedManifestError(
                    f"Manifest lists are not supported ({media_type})", image=image
                )
            return await self._labels_from_config_blob(session, repository, manifest, image)

        raise UnsupportedManifestError(
            f"Unsupported manifest schema version {schema_version!r}", image=image
        )

    @staticmethod
    def _labels_from_history(manifest: Dict[str, Any], image: str) -> Dict[str, Any]:
        """
        Schema 1: every history entry carries a JSON-encoded v1Compatibility
        blob with the container config. The first one holding the spec
        label wins.
        """
        for entry in manifest.get("history") or []:
            raw = entry.get("v1Compatibility") if isinstance(entry, dict) else None
            if not raw:
                continue
            try:
                compat = json.loads(raw)
            except ValueError as e:
                raise SpecDecodeError(f"Invalid v1Compatibility entry: {e}", image=image)
            if not isinstance(compat, dict):
                raise SpecDecodeError("v1Compatibility entry is not an object", image=image)

            labels = _config_labels(compat, "v1Compatibility entry", image)
            if SPEC_LABEL in labels:
                return labels
        return {}

    async def _labels_from_config_blob(
        self,
        session: aiohttp.ClientSession,
        repository: str,
        manifest: Dict[str, Any],
        image: str,
    ) -> Dict[str, Any]:
        """Schema 2: labels live in the image config blob"""
        config = manifest.get("config") or {}
        digest = config.get("digest") if isinstance(config, dict) else None
        if not digest:
            raise SpecFetchError(f"Manifest for {repository} has no config digest", image=image)

        url = self.endpoints.blob_url(repository, digest)
        try:
            async with session.get(url, headers=self._auth_headers(repository)) as response:
                if response.status != 200:
                    raise SpecFetchError(
                        f"Registry returned {response.status} for config blob {url}", image=image
                    )
                # Config blobs are served as application/octet-stream
                blob = await response.json(content_type=None)
        except ValueError as e:
            raise SpecFetchError(f"Unable to parse config blob {url}: {e}", image=image)
        except asyncio.TimeoutError:
            raise SpecFetchError(f"Timeout fetching config blob: {url}", image=image)
        except aiohttp.ClientError as e:
            raise SpecFetchError(f"Error fetching config blob {url}: {e}", image=image)

        if not isinstance(blob, dict):
            raise SpecFetchError(f"Config blob {url} is not an object", image=image)
        return _config_labels(blob, f"Config blob {url}", image)
