"""
Registry connection config.

One Config describes one registry the broker crawls. It arrives already
parsed from the broker's configuration and is never mutated afterwards.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Tuple

logger = logging.getLogger(__name__)

AUTH_TYPE_NONE = ""
AUTH_TYPE_FILE = "file"
AUTH_TYPE_SECRET = "secret"
AUTH_TYPE_CONFIG = "config"


@dataclass(frozen=True)
class Config:
    """
    Connection descriptor for one registry.

    auth_type selects where credentials come from:
    - "": anonymous, auth_name must be empty
    - "file": auth_name is a path to a credentials file
    - "secret": auth_name is the name of a platform secret
    - "config": user and password are given inline

    fail=True means any load error from this registry is fatal to the
    broker, fail=False means log it and carry on with the other registries.
    """
    type: str = ""
    name: str = ""
    url: str = ""
    user: str = ""
    password: str = ""
    org: str = ""
    tag: str = "latest"
    auth_type: str = AUTH_TYPE_NONE
    auth_name: str = ""
    fail: bool = False
    white_list: Tuple[str, ...] = field(default_factory=tuple)
    black_list: Tuple[str, ...] = field(default_factory=tuple)
    namespaces: Tuple[str, ...] = field(default_factory=tuple)

    def validate(self) -> bool:
        """Check the name and the auth_type/credential combination"""
        if not self.name:
            return False

        if self.auth_type == AUTH_TYPE_NONE:
            return self.auth_name == ""
        if self.auth_type in (AUTH_TYPE_FILE, AUTH_TYPE_SECRET):
            return self.auth_name != ""
        if self.auth_type == AUTH_TYPE_CONFIG:
            return self.user != "" and self.password != ""

        logger.warning(f"Registry '{self.name}' has unknown auth_type '{self.auth_type}'")
        return False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Config':
        """
        Build a Config from a broker configuration entry.

        Keys match the broker's registry section: type, name, url, user,
        pass, org, tag, auth_type, auth_name, fail, white_list, black_list
        and namespaces. Unknown keys are ignored.
        """
        def _str(key: str, default: str = "") -> str:
            value = data.get(key)
            return default if value is None else str(value)

        def _tuple(key: str) -> Tuple[str, ...]:
            value = data.get(key) or ()
            if isinstance(value, str):
                value = [value]
            return tuple(str(item) for item in value)

        return cls(
            type=_str("type"),
            name=_str("name"),
            url=_str("url"),
            user=_str("user"),
            password=_str("pass"),
            org=_str("org"),
            tag=_str("tag", "latest") or "latest",
            auth_type=_str("auth_type"),
            auth_name=_str("auth_name"),
            fail=bool(data.get("fail", False)),
            white_list=_tuple("white_list"),
            black_list=_tuple("black_list"),
            namespaces=_tuple("namespaces"),
        )

    def with_credentials(self, user: str, password: str) -> 'Config':
        """Return a copy carrying resolved credentials"""
        return replace(self, user=user, password=password)

    def redacted(self) -> Dict[str, Any]:
        """Loggable view of the config with the password masked"""
        return {
            "type": self.type,
            "name": self.name,
            "url": self.url,
            "user": self.user,
            "password": "***" if self.password else "",
            "org": self.org,
            "auth_type": self.auth_type,
            "fail": self.fail,
        }
