"""Single-request fast path."""

import logging
from typing import Any, Callable, Dict, Optional

from src.batch.errors import TransportFailure
from src.batch.models import BatchResult, BatchStatus, Request, TransportResult
from src.batch.options import EngineOptions, apply_probe_overrides, build_options, is_reachable
from src.batch.transport import Transport, failed_info
from src.network.proxy import ProxyConfigProvider

LOGGER = logging.getLogger(__name__)

Callback = Callable[[Optional[bytes], Dict[str, Any], Request], None]


def request_options(
    request: Request,
    defaults: EngineOptions,
    proxy_provider: Optional[ProxyConfigProvider],
    probe: bool,
) -> Dict[str, Any]:
    options = build_options(request, defaults, proxy_provider)
    return apply_probe_overrides(options) if probe else options


def perform_request(transport: Transport, options: Dict[str, Any], request: Request) -> TransportResult:
    """Run one call, turning a transport failure into a failed result."""
    try:
        return transport.perform(options)
    except TransportFailure as exc:
        LOGGER.warning("Request failed for %s: %s", request.url, exc)
        return TransportResult(output=None, info=failed_info(options, exc))


def run_single(
    request: Request,
    defaults: EngineOptions,
    transport: Transport,
    *,
    proxy_provider: Optional[ProxyConfigProvider] = None,
    callback: Optional[Callback] = None,
    probe: bool = False,
) -> BatchResult:
    """Run exactly one request synchronously.

    Probe mode stores a reachability boolean at index 0. Otherwise the output
    goes to ``callback`` when given (and the result stays empty), or is stored
    at index 0. Callback exceptions propagate.
    """
    options = request_options(request, defaults, proxy_provider, probe)
    result = perform_request(transport, options, request)

    if probe:
        return BatchResult(
            status=BatchStatus.COMPLETE,
            results={0: is_reachable(result.status_code)},
            infos={0: result.info},
        )
    if callback is not None:
        callback(result.output, result.info, request)
        return BatchResult(status=BatchStatus.COMPLETE)
    return BatchResult(
        status=BatchStatus.COMPLETE,
        results={0: result.output},
        infos={0: result.info},
    )


__all__ = ["Callback", "run_single", "perform_request", "request_options"]
