"""Proxy selection by destination.

Outbound requests go through the configured proxy unless the destination
belongs to an internal address (the caller's own infrastructure). The proxy
endpoint and the internal-address set come from a ``ProxyConfigProvider``:

- ``EnvProxyConfigProvider`` reads both from an ``AppConfig``.
- ``StaticProxyConfigProvider`` serves fixed values (tests, embedding).

Notes:
- Internal matching is a case-insensitive substring test of the URL against
  each address; blank addresses are ignored.
- With no internal addresses configured nothing is internal, so a configured
  proxy applies to every destination.
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Protocol
from urllib.parse import quote

from src.config import AppConfig, ProxySettings
from src.logging_utils import mask_host

LOGGER = logging.getLogger(__name__)


class ProxyConfigProvider(Protocol):
    """Source of proxy settings and internal addresses, queried per request."""

    def lookup_proxy_config(self) -> ProxySettings:
        ...

    def lookup_internal_addresses(self) -> FrozenSet[str]:
        ...


@dataclass(frozen=True)
class StaticProxyConfigProvider:
    """Provider returning fixed settings.

    Args:
        proxy: Proxy endpoint and credentials; defaults to no proxy.
        internal_addresses: Addresses exempt from proxying.
    """

    proxy: ProxySettings = ProxySettings()
    internal_addresses: FrozenSet[str] = frozenset()

    def lookup_proxy_config(self) -> ProxySettings:
        return self.proxy

    def lookup_internal_addresses(self) -> FrozenSet[str]:
        return self.internal_addresses


class EnvProxyConfigProvider:
    """Provider backed by the environment-derived ``AppConfig``."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    def lookup_proxy_config(self) -> ProxySettings:
        return self._config.proxy

    def lookup_internal_addresses(self) -> FrozenSet[str]:
        return self._config.internal_addresses


def is_internal_destination(url: str, internal_addresses: Iterable[str]) -> bool:
    """Return True if ``url`` contains any of ``internal_addresses`` (case-insensitive)."""
    lowered = (url or "").lower()
    return any(
        address.strip().lower() in lowered
        for address in internal_addresses
        if address and address.strip()
    )


def select_proxy(url: str, provider: Optional[ProxyConfigProvider]) -> Optional[ProxySettings]:
    """Return the proxy to route ``url`` through, or None for a direct call."""
    if provider is None:
        return None
    settings = provider.lookup_proxy_config()
    if not settings.configured:
        return None
    if is_internal_destination(url, provider.lookup_internal_addresses()):
        LOGGER.debug("proxy.select via=direct url=%s reason=internal", url)
        return None
    LOGGER.debug(
        "proxy.select via=proxy url=%s proxy=%s",
        url,
        mask_host(settings.address),
    )
    return settings


def proxy_url(address: str, port: Optional[int], userpwd: Optional[str] = None) -> str:
    """Build the proxy URL used in a Requests ``proxies`` mapping."""
    base = address if "://" in address else f"http://{address}"
    scheme, host = base.split("://", 1)
    if port and ":" not in host.rsplit("]", 1)[-1]:
        host = f"{host}:{port}"
    if userpwd:
        user, _, password = userpwd.partition(":")
        host = f"{quote(user, safe='')}:{quote(password, safe='')}@{host}"
    return f"{scheme}://{host}"


def proxies_mapping(url: str) -> Dict[str, str]:
    return {"http": url, "https": url}


__all__ = [
    "ProxyConfigProvider",
    "StaticProxyConfigProvider",
    "EnvProxyConfigProvider",
    "is_internal_destination",
    "select_proxy",
    "proxy_url",
    "proxies_mapping",
]
