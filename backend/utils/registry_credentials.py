"""
Registry Credentials Utility

Resolves the credentials a registry Config points at. Configs either
carry user/password inline (auth_type "config"), name a credentials file
(auth_type "file") or name a platform secret (auth_type "secret").
"""

import logging
from typing import Any, Callable, Mapping, Optional, Tuple

import yaml

from registries.config import (
    AUTH_TYPE_CONFIG,
    AUTH_TYPE_FILE,
    AUTH_TYPE_NONE,
    AUTH_TYPE_SECRET,
    Config,
)
from registries.errors import ConfigurationError

logger = logging.getLogger(__name__)

SecretReader = Callable[[str], Mapping[str, Any]]


def _as_text(value: Any) -> str:
    # Platform secrets hand back raw bytes
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return "" if value is None else str(value)


def _credentials_from_mapping(data: Any, source: str) -> Tuple[str, str]:
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Credentials in {source} must be a mapping")

    username = _as_text(data.get("username"))
    password = _as_text(data.get("password"))
    if not username or not password:
        raise ConfigurationError(f"Credentials in {source} need both username and password")
    return username, password


def read_credentials_file(path: str) -> Tuple[str, str]:
    """
    Read a YAML credentials file.

    Expected format:
        username: someone
        password: secret
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Unable to read credentials file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in credentials file {path}: {e}")

    return _credentials_from_mapping(data, f"file {path}")


def get_registry_credentials(
    config: Config,
    secret_reader: Optional[SecretReader] = None,
) -> Tuple[str, str]:
    """
    Get (username, password) for a registry config.

    Args:
        config: Registry config; expected to have passed validate()
        secret_reader: Platform callable returning a secret's data by name,
            required for auth_type "secret"

    Returns:
        (username, password); both empty for anonymous registries

    Raises:
        ConfigurationError: If the credential source cannot be read
    """
    auth_type = config.auth_type

    if auth_type in (AUTH_TYPE_NONE, AUTH_TYPE_CONFIG):
        return config.user, config.password

    if auth_type == AUTH_TYPE_FILE:
        logger.info(f"Reading credentials for registry '{config.name}' from file {config.auth_name}")
        return read_credentials_file(config.auth_name)

    if auth_type == AUTH_TYPE_SECRET:
        if secret_reader is None:
            raise ConfigurationError(
                f"Registry '{config.name}' uses secret '{config.auth_name}' but no secret reader is available"
            )
        logger.info(f"Reading credentials for registry '{config.name}' from secret {config.auth_name}")
        try:
            data = secret_reader(config.auth_name)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Unable to read secret '{config.auth_name}': {e}")
        return _credentials_from_mapping(data, f"secret {config.auth_name}")

    raise ConfigurationError(f"Unknown auth_type '{auth_type}' for registry '{config.name}'")
