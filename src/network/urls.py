"""URL sanitization and validation for outbound requests."""

import logging
import string
from typing import Optional
from urllib.parse import urlsplit

LOGGER = logging.getLogger(__name__)

_ALLOWED = frozenset(string.ascii_letters + string.digits + "$-_.+!*'(),{}|\\^~[]`<>#%\";/?:@&=")
_SCHEME_CHARS = frozenset(string.ascii_letters + string.digits + "+-.")


def sanitize_url(raw_url: Optional[str]) -> str:
    """Strip every character that cannot appear in a URL."""
    return "".join(ch for ch in (raw_url or "") if ch in _ALLOWED)


def _hostname(url: str) -> Optional[str]:
    try:
        parts = urlsplit(url)
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return None
    if not parts.scheme or not parts.scheme[0].isalpha():
        return None
    if not set(parts.scheme) <= _SCHEME_CHARS:
        return None
    return parts.hostname


def normalize_url(raw_url: Optional[str]) -> str:
    """Return a sanitized URL, or an empty string if it is not a valid absolute URL.

    Never raises; malformed input yields ``""`` and the transport rejects it later.
    """
    url = sanitize_url(raw_url)
    if not url or not _hostname(url):
        LOGGER.debug("Rejected invalid URL %r", raw_url)
        return ""
    return url


__all__ = ["normalize_url", "sanitize_url"]
