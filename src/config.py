"""Configuration utilities for batch URL request runs.

This module reads environment variables (optionally from an `.env` file) and
produces an application configuration object consumed across the project.

Supported keys: `LOG_DIR`, `LOG_LEVEL`, `APP_NAME`, `WINDOW_SIZE`,
`CONNECT_TIMEOUT`, `REQUEST_TIMEOUT`, the proxy keys `PROXY_IP`,
`PROXY_PORT`, `PROXY_USERNAME`, `PROXY_PASSWORD`, and `INTERNAL_ADDRESSES`
(comma-separated hosts or addresses that never go through the proxy).

Usage example:

    from src.config import load_config

    config = load_config()
    engine = RequestEngine.from_config(config)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Mapping, MutableMapping, Optional

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_ENV_FILE = REPO_ROOT / ".env"

DEFAULT_WINDOW_SIZE = 5
DEFAULT_CONNECT_TIMEOUT = 15
DEFAULT_TIMEOUT = 86400


def _load_env_file(path: Path) -> Dict[str, str]:
    """Parse a dotenv-style file into a dictionary."""
    if not path.exists():
        return {}

    data: Dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = value.strip().strip("\"'")
    return data


def _merge_envs(dotenv_values: Mapping[str, str], env: MutableMapping[str, str]) -> Dict[str, str]:
    """Merge dotenv values with the current environment, preferring os.environ."""
    merged = dict(dotenv_values)
    merged.update(env)  # os.environ wins
    return merged


def load_environment(env_file: Optional[Path] = None) -> Dict[str, str]:
    """Return the dotenv file values overlaid with ``os.environ``."""
    return _merge_envs(_load_env_file(env_file or DEFAULT_ENV_FILE), os.environ)


def _int_value(values: Mapping[str, str], key: str, default: Optional[int]) -> Optional[int]:
    raw = (values.get(key) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc


def _split_addresses(raw: Optional[str]) -> FrozenSet[str]:
    if not raw:
        return frozenset()
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class ProxySettings:
    """Outbound proxy endpoint and optional credentials.

    An empty ``address`` means no proxy is configured.
    """

    address: str = ""
    port: Optional[int] = None
    username: str = ""
    password: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.address)


@dataclass(frozen=True)
class AppConfig:
    """Application-level configuration values."""

    log_directory: Path
    log_level: str
    app_name: str = "url-requests"
    window_size: int = DEFAULT_WINDOW_SIZE
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    timeout: int = DEFAULT_TIMEOUT
    proxy: ProxySettings = field(default_factory=ProxySettings)
    internal_addresses: FrozenSet[str] = frozenset()


def load_config(env_file: Optional[Path] = None) -> AppConfig:
    """Load configuration values using environment defaults."""
    merged = load_environment(env_file)

    log_directory = Path(merged.get("LOG_DIR", REPO_ROOT / "logs"))
    if not log_directory.is_absolute():
        log_directory = REPO_ROOT / log_directory

    proxy = ProxySettings(
        address=(merged.get("PROXY_IP") or "").strip(),
        port=_int_value(merged, "PROXY_PORT", None),
        username=merged.get("PROXY_USERNAME") or "",
        password=merged.get("PROXY_PASSWORD") or "",
    )

    return AppConfig(
        log_directory=log_directory,
        log_level=merged.get("LOG_LEVEL", "INFO").upper(),
        app_name=merged.get("APP_NAME", "url-requests"),
        window_size=_int_value(merged, "WINDOW_SIZE", DEFAULT_WINDOW_SIZE),
        connect_timeout=_int_value(merged, "CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT),
        timeout=_int_value(merged, "REQUEST_TIMEOUT", DEFAULT_TIMEOUT),
        proxy=proxy,
        internal_addresses=_split_addresses(merged.get("INTERNAL_ADDRESSES")),
    )


__all__ = [
    "AppConfig",
    "ProxySettings",
    "load_config",
    "load_environment",
    "REPO_ROOT",
    "DEFAULT_WINDOW_SIZE",
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_TIMEOUT",
]
