"""
Registry error types.

Construction problems (ConfigurationError) surface from new_registry().
Authentication, discovery and timeout errors abort a single load_specs()
call. SpecFetchError and its subclasses are per-image: adapters collect
them instead of raising, so one broken image never hides the others.
"""

from typing import Optional


class RegistryError(Exception):
    """Base class for all registry errors"""
    pass


class ConfigurationError(RegistryError):
    """Registry config is invalid or names an unknown backend type"""
    pass


class AuthenticationError(RegistryError):
    """Login or token exchange with the registry failed"""
    pass


class DiscoveryError(RegistryError):
    """Listing images from the registry failed"""
    pass


class RegistryTimeoutError(RegistryError):
    """A registry operation did not finish within its deadline"""
    pass


class SpecFetchError(RegistryError):
    """Fetching the manifest (or config blob) of one image failed"""

    def __init__(self, message: str, image: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.image = image


class SpecDecodeError(SpecFetchError):
    """The spec label of one image could not be decoded or parsed"""
    pass


class UnsupportedManifestError(SpecFetchError):
    """The manifest uses a schema version the crawler does not understand"""
    pass
