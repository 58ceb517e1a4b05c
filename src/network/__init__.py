"""Network utilities for outbound HTTP: proxy routing and URL normalization.

Exports:
- ``ProxyConfigProvider``: protocol for proxy settings and internal addresses.
- ``StaticProxyConfigProvider`` / ``EnvProxyConfigProvider``: provider implementations.
- ``select_proxy``: decide whether a destination goes through the proxy.
- ``normalize_url``: sanitize and validate a URL, yielding ``""`` when invalid.
"""

from src.network.proxy import (
    EnvProxyConfigProvider,
    ProxyConfigProvider,
    StaticProxyConfigProvider,
    is_internal_destination,
    select_proxy,
)
from src.network.urls import normalize_url, sanitize_url

__all__ = [
    "ProxyConfigProvider",
    "StaticProxyConfigProvider",
    "EnvProxyConfigProvider",
    "is_internal_destination",
    "select_proxy",
    "normalize_url",
    "sanitize_url",
]
