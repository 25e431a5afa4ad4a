"""
Request validation: the embed allow-list and viewport dimensions.
"""
import logging
from typing import Any, FrozenSet, Iterable, List

from yarl import URL

from snapshot_service.browser.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_DOMAINS: FrozenSet[str] = frozenset({
    "unicorn.studio",
    "spline.design",
    "my.spline.design",
    "prod.spline.design",
})


class UrlValidator:
    """
    Keeps only URLs whose host contains one of the allowed domains.

    Args:
        allowed_domains: Host-name substrings a URL must match.
    """

    def __init__(self, allowed_domains: Iterable[str] = ALLOWED_DOMAINS) -> None:
        self.allowed_domains = frozenset(allowed_domains)

    def is_allowed(self, url: Any) -> bool:
        """Return True if ``url`` is an absolute URL on an allowed host."""
        if not isinstance(url, str) or "\\" in url:
            # Browsers treat "\\" as "/" in http(s) URLs, so the host parsed here
            # would not be the host loaded.
            return False
        try:
            parsed = URL(url)
            host = parsed.host
            port = parsed.port
        except ValueError:
            return False
        if not parsed.absolute or not host:
            return False
        if port is not None and not 0 <= port <= 65535:
            return False
        if any(char.isspace() for char in host):
            return False
        return any(domain in host for domain in self.allowed_domains)

    def filter(self, urls: Iterable[Any]) -> List[str]:
        """
        Filter URLs down to allowed ones.

        Order and duplicates are preserved. Malformed entries are dropped
        without raising.

        Args:
            urls: Candidate URLs

        Returns:
            The allowed URLs
        """
        allowed = []
        for url in urls:
            if self.is_allowed(url):
                allowed.append(url)
            else:
                logger.debug(f"Rejected URL {url!r}")
        return allowed


def parse_dimension(value: Any, name: str, default: int) -> int:
    """
    Validate a viewport dimension from a request body.

    Args:
        value: Raw value, None when the field was omitted
        name: Field name used in the error message
        default: Value used when the field was omitted

    Returns:
        The dimension in CSS pixels

    Raises:
        ValidationError: If the value is not a positive integer
    """
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return value
