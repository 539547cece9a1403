"""
Image name filter.

Applied between discovery and spec fetch so that rejected images never
cost a manifest request.
"""

import logging
import re
from typing import Iterable, List, Pattern, Tuple

logger = logging.getLogger(__name__)


class Filter:
    """
    Allow/deny predicate over discovered image names.

    A name is kept when it matches a whitelist pattern (or no whitelist
    was configured) and matches no blacklist pattern. A whitelist whose
    patterns are all invalid keeps nothing. Patterns are regular
    expressions searched against the whole identifier, tag included, so
    both `^myorg/` and `:latest$` work.
    """

    def __init__(self, whitelist: Iterable[str] = (), blacklist: Iterable[str] = ()):
        whitelist = list(whitelist)
        self.whitelist_configured = bool(whitelist)
        self.whitelist = self._compile(whitelist, "whitelist")
        if self.whitelist_configured and not self.whitelist:
            logger.warning("No whitelist pattern compiled, the filter rejects every image")
        self.blacklist = self._compile(blacklist, "blacklist")

    @staticmethod
    def _compile(patterns: Iterable[str], kind: str) -> List[Pattern]:
        compiled = []
        for pattern in patterns:
            try:
                compiled.append(re.compile(pattern))
            except re.error as e:
                logger.warning(f"Ignoring invalid {kind} pattern '{pattern}': {e}")
        return compiled

    def is_empty(self) -> bool:
        return not self.whitelist_configured and not self.blacklist

    def matches(self, name: str) -> bool:
        """True if the name survives the filter"""
        if self.whitelist_configured and not any(p.search(name) for p in self.whitelist):
            return False
        if any(p.search(name) for p in self.blacklist):
            return False
        return True

    def run(self, names: Iterable[str]) -> Tuple[List[str], List[str]]:
        """
        Split names into (kept, rejected), preserving discovery order.
        """
        kept: List[str] = []
        rejected: List[str] = []
        for name in names:
            if self.matches(name):
                kept.append(name)
            else:
                rejected.append(name)
        return kept, rejected
