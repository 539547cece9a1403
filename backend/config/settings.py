"""
Configuration Management for the bundle registry crawler
Centralizes environment-based tuning and logging setup
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Union


class RedactingFilter(logging.Filter):
    """Mask bearer tokens and basic auth credentials in log records"""

    _PATTERNS = [
        (re.compile(r'(Bearer\s+)[A-Za-z0-9\-._~+/]+=*'), r'\1***'),
        (re.compile(r'(Basic\s+)[A-Za-z0-9+/]+=*'), r'\1***'),
        (re.compile(r'("?(?:token|password|access_token)"?\s*[:=]\s*"?)[^",\s}]+'), r'\1***'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = message
        for pattern, replacement in self._PATTERNS:
            redacted = pattern.sub(replacement, redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """Configure console logging for the crawler"""
    root_logger = logging.getLogger()

    # Close and clear any existing handlers so our configuration is the
    # only one in effect
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    console_handler.addFilter(RedactingFilter())
    root_logger.addHandler(console_handler)

    # aiohttp logs every connection at debug level
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        logging.getLogger(__name__).warning(f"Ignoring invalid {name}={value!r}, using {default}")
        return default


@dataclass(frozen=True)
class CrawlerSettings:
    """Crawler tuning, shared by every registry"""
    page_size: int = 100
    request_timeout: int = 30
    max_concurrent_fetches: int = 8
    load_timeout: int = 300

    @classmethod
    def from_env(cls) -> 'CrawlerSettings':
        """Read settings from BUNDLE_REGISTRY_* environment variables"""
        return cls(
            page_size=_env_int('BUNDLE_REGISTRY_PAGE_SIZE', cls.page_size),
            request_timeout=_env_int('BUNDLE_REGISTRY_REQUEST_TIMEOUT', cls.request_timeout),
            max_concurrent_fetches=_env_int(
                'BUNDLE_REGISTRY_MAX_CONCURRENT_FETCHES', cls.max_concurrent_fetches
            ),
            load_timeout=_env_int('BUNDLE_REGISTRY_LOAD_TIMEOUT', cls.load_timeout),
        )

    def adapter_options(self) -> Dict[str, Any]:
        """Keyword options for new_registry()"""
        return {
            "page_size": self.page_size,
            "request_timeout": self.request_timeout,
            "max_concurrent_fetches": self.max_concurrent_fetches,
        }

    def catalog_options(self) -> Dict[str, Any]:
        """Keyword options for load_catalog(); a load_timeout of 0 or less means no deadline"""
        return {"timeout": self.load_timeout if self.load_timeout > 0 else None}
