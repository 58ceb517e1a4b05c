"""Transport option assembly.

Options are plain dicts keyed by the string constants below; the transport
translates them into a ``requests`` call. ``build_options`` is pure: it reads
the engine defaults and the request and returns a fresh dict every time.

Rules are applied in order, later ones winning on conflict:

1. engine default options
2. redirect following (max 5) unless redirects are disabled for the engine
3. per-request overrides
4. normalized destination URL (empty when invalid)
5. body attachment, which forces POST
6. custom header lines (engine defaults merged with the request's own)
7. proxy routing for non-internal destinations
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from src.batch.models import Request
from src.config import AppConfig, DEFAULT_CONNECT_TIMEOUT, DEFAULT_TIMEOUT
from src.network.proxy import ProxyConfigProvider, select_proxy
from src.network.urls import normalize_url

LOGGER = logging.getLogger(__name__)

URL = "url"
METHOD = "method"
POST = "post"
POSTFIELDS = "postfields"
HTTPHEADER = "httpheader"
HEADER = "header"
NOBODY = "nobody"
CONNECT_TIMEOUT = "connect_timeout"
TIMEOUT = "timeout"
VERIFY_PEER = "verify_peer"
VERIFY_HOST = "verify_host"
RETURN_TRANSFER = "return_transfer"
FOLLOW_LOCATION = "follow_location"
MAX_REDIRS = "max_redirs"
PROXY = "proxy"
PROXY_PORT = "proxy_port"
PROXY_AUTH = "proxy_auth"
PROXY_USERPWD = "proxy_userpwd"
USERPWD = "userpwd"
FILE = "file"

PROXY_AUTH_BASIC = "basic"
MAX_REDIRECTS = 5
PROBE_TIMEOUT = 1.2
PROBE_CONNECT_TIMEOUT = 0.5

DEFAULT_OPTIONS: Mapping[str, Any] = {
    VERIFY_PEER: False,
    VERIFY_HOST: False,
    RETURN_TRANSFER: True,
    CONNECT_TIMEOUT: DEFAULT_CONNECT_TIMEOUT,
    TIMEOUT: DEFAULT_TIMEOUT,
}


def header_name(line: str) -> str:
    return line.split(":", 1)[0].strip().lower()


def merge_header_lines(existing: Iterable[str], new: Iterable[str]) -> List[str]:
    """Layer ``new`` header lines over ``existing``; same-named headers are replaced."""
    merged: Dict[str, str] = {}
    for line in existing:
        merged[header_name(line)] = line
    for line in new:
        merged[header_name(line)] = line
    return list(merged.values())


class EngineOptions:
    """Default transport options and header lines for one engine.

    ``merge_options`` and ``merge_headers`` layer new entries over the current
    ones: new values win on conflict and untouched entries are kept.
    """

    def __init__(
        self,
        options: Optional[Mapping[str, Any]] = None,
        headers: Optional[Iterable[str]] = None,
        *,
        follow_redirects: bool = True,
    ) -> None:
        self._options: Dict[str, Any] = dict(DEFAULT_OPTIONS)
        self._headers: List[str] = []
        self.follow_redirects = follow_redirects
        if options:
            self.merge_options(options)
        if headers:
            self.merge_headers(headers)

    @classmethod
    def from_config(cls, config: AppConfig) -> "EngineOptions":
        return cls({CONNECT_TIMEOUT: config.connect_timeout, TIMEOUT: config.timeout})

    @property
    def options(self) -> Dict[str, Any]:
        return dict(self._options)

    @property
    def headers(self) -> List[str]:
        return list(self._headers)

    @property
    def timeout(self) -> float:
        return float(self._options.get(TIMEOUT) or DEFAULT_TIMEOUT)

    def merge_options(self, options: Mapping[str, Any]) -> "EngineOptions":
        merged = dict(self._options)
        merged.update(options)
        self._options = merged
        return self

    def merge_headers(self, headers: Iterable[str]) -> "EngineOptions":
        if isinstance(headers, str):
            headers = [headers]
        self._headers = merge_header_lines(self._headers, headers)
        return self


def build_options(
    request: Request,
    defaults: EngineOptions,
    proxy_provider: Optional[ProxyConfigProvider] = None,
    validator: Callable[[str], str] = normalize_url,
) -> Dict[str, Any]:
    """Return the finalized option dict for one transport call."""
    options = defaults.options
    if defaults.follow_redirects:
        options[FOLLOW_LOCATION] = True
        options[MAX_REDIRS] = MAX_REDIRECTS

    url = validator(request.url)
    if not url:
        LOGGER.warning("Invalid URL %r; the request will fail at the transport", request.url)

    options.update(request.options)
    options[URL] = url
    options[METHOD] = request.options.get(METHOD, request.method)

    if request.body:
        options[METHOD] = "POST"
        options[POST] = True
        options[POSTFIELDS] = request.body

    headers = merge_header_lines(defaults.headers, request.headers)
    if headers:
        options[HEADER] = False
        options[HTTPHEADER] = headers

    proxy = select_proxy(url, proxy_provider)
    if proxy is not None:
        options[PROXY_AUTH] = PROXY_AUTH_BASIC
        options[PROXY_PORT] = proxy.port
        options[PROXY] = proxy.address
        if proxy.username:
            options[PROXY_USERPWD] = f"{proxy.username}:{proxy.password}"

    return options


def apply_probe_overrides(options: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``options`` tuned for a status-only reachability check."""
    probe = dict(options)
    probe[TIMEOUT] = PROBE_TIMEOUT
    probe[CONNECT_TIMEOUT] = PROBE_CONNECT_TIMEOUT
    probe[RETURN_TRANSFER] = True
    probe[NOBODY] = True
    probe[HEADER] = True
    return probe


def is_reachable(status_code: int) -> bool:
    return 200 <= status_code < 400


__all__ = [
    "EngineOptions",
    "build_options",
    "apply_probe_overrides",
    "is_reachable",
    "merge_header_lines",
    "DEFAULT_OPTIONS",
]
