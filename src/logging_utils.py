"""Logging setup and timing helpers for batch request runs.

``configure_logging`` points the root logger at one log file per invocation
under ``LOG_DIR`` (plus stderr). Records carry the thread name, so lines
written from pool workers (``batch-request_N``) can be told apart.

``perf`` and ``perf_span`` time a function or a block and log one
``event=perf`` line with the duration and whether it raised.
"""

import functools
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from src.config import AppConfig

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s"
PERF_FORMAT = "event=perf name=%s duration_ms=%.3f success=%s tags=%s"


def _log_file_name(app_name: str, log_name: Optional[str]) -> str:
    stem = log_name or datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    safe = "".join(ch if ch.isalnum() or ch in ("-", "_") else "-" for ch in stem)
    return f"{app_name}-{safe}.log"


def configure_logging(
    config: AppConfig,
    log_name: Optional[str] = None,
    include_console: bool = True,
    fmt: str = DEFAULT_LOG_FORMAT,
) -> Path:
    """Replace the root handlers with a file handler (and stderr).

    ``log_name`` defaults to the current UTC timestamp. Returns the log path.
    """
    log_dir = config.log_directory
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / _log_file_name(config.app_name, log_name)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers = [logging.FileHandler(log_path, encoding="utf-8")]
    if include_console:
        handlers.append(logging.StreamHandler(sys.stderr))

    formatter = logging.Formatter(fmt)
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    return log_path


def mask_host(host: Optional[str]) -> Optional[str]:
    """Mask an IPv4 host down to its first octet; other hosts keep their first label."""
    if not host:
        return host
    parts = host.split(".")
    if len(parts) == 4 and all(part.isdigit() for part in parts):
        return parts[0] + ".x.x.x"
    if len(parts) > 1:
        return parts[0] + ".***"
    return host


def _log_perf(
    logger: logging.Logger,
    level: int,
    name: str,
    start_ns: int,
    success: bool,
    tags: Optional[Mapping[str, Any]],
) -> None:
    duration_ms = (time.monotonic_ns() - start_ns) / 1_000_000.0
    rendered = "{" + ", ".join(f"{k}={tags[k]!r}" for k in sorted(tags or {})) + "}"
    logger.log(level, PERF_FORMAT, name, duration_ms, str(success).lower(), rendered)


def perf(
    name: Optional[str] = None,
    *,
    tags: Optional[Mapping[str, Any]] = None,
    level: int = logging.INFO,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator that logs how long each call of the wrapped function took.

    ``name`` defaults to ``<module>.<qualname>``. Exceptions propagate after
    the ``success=false`` line is written.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        span_name = name or f"{func.__module__}.{func.__qualname__}"
        logger = logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_ns = time.monotonic_ns()
            success = False
            try:
                result = func(*args, **kwargs)
                success = True
                return result
            finally:
                _log_perf(logger, level, span_name, start_ns, success, tags)

        return wrapper

    return decorator


class perf_span:
    """Time a block and log it like ``perf``.

    Example:
        with perf_span("cli.probe", tags={"urls": 3}):
            engine.is_available(urls)
    """

    def __init__(
        self,
        name: str,
        *,
        tags: Optional[Mapping[str, Any]] = None,
        level: int = logging.INFO,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._name = name
        self._tags = tags
        self._level = level
        self._logger = logger or logging.getLogger(__name__)
        self._start_ns = 0

    def __enter__(self) -> "perf_span":
        self._start_ns = time.monotonic_ns()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        _log_perf(self._logger, self._level, self._name, self._start_ns, exc_type is None, self._tags)
        return False


__all__ = [
    "configure_logging",
    "mask_host",
    "DEFAULT_LOG_FORMAT",
    "perf",
    "perf_span",
]
