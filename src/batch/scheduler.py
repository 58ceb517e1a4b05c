"""Bounded-concurrency scheduler for batches of two or more requests.

The first ``window`` requests are submitted to a thread pool sized to the
window. Each time a request completes, its result is stored under its
original queue index and the next pending request is launched into the freed
slot, so the pool stays full until the queue runs out.

Bookkeeping uses slot ids issued from a counter owned by the scheduler:
``in_flight`` maps slot id to queue index and ``futures`` maps each pending
future to its slot id. A slot's entries are removed before any replacement
is launched, and slot ids are never reused within a run.

When the run stops early, queued futures are cancelled and the live calls
on the transport are closed so no worker keeps a connection open.
"""

import itertools
import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Dict, Iterable, Optional, Sequence, Set, Union

from src.batch.errors import InvalidWindow, PollFailure
from src.batch.models import BatchResult, BatchStatus, Request, TransportResult
from src.batch.options import EngineOptions, is_reachable
from src.batch.single import Callback, perform_request, request_options
from src.batch.transport import Transport
from src.config import DEFAULT_WINDOW_SIZE
from src.network.proxy import ProxyConfigProvider

LOGGER = logging.getLogger(__name__)

CLOSE_GRACE = 5.0


def effective_window(requested: Union[int, str, None], total: int, default: int = DEFAULT_WINDOW_SIZE) -> int:
    """Return the window for a batch of ``total`` requests.

    ``requested`` may be a number or a numeric string. A missing or
    non-positive value falls back to ``default``; the result is capped at
    ``total``.

    Raises:
        InvalidWindow: ``requested`` is not numeric, or the resulting window
            is below 2.
    """
    if requested is None or requested == "":
        requested = 0
    try:
        requested = int(requested)
    except (TypeError, ValueError):
        raise InvalidWindow(requested) from None
    window = min(requested if requested > 0 else int(default), total)
    if window < 2:
        raise InvalidWindow(window)
    return window


class WindowedScheduler:
    """Runs a batch with at most ``window`` transports in flight.

    Args:
        transport: Transport used for every request.
        defaults: Engine default options and headers.
        proxy_provider: Optional proxy/internal-address source.
        callback: Optional consumer of ``(output, info, request)``.
        poll_timeout: Longest wait, in seconds, for any in-flight request to
            complete before the run stops early with a partial result.
        default_window: Window used when the caller does not request one.
        close_grace: Seconds to wait for aborted transports to return after
            an early stop.
    """

    def __init__(
        self,
        transport: Transport,
        defaults: EngineOptions,
        *,
        proxy_provider: Optional[ProxyConfigProvider] = None,
        callback: Optional[Callback] = None,
        poll_timeout: Optional[float] = None,
        default_window: int = DEFAULT_WINDOW_SIZE,
        close_grace: float = CLOSE_GRACE,
    ) -> None:
        self._transport = transport
        self._defaults = defaults
        self._proxy_provider = proxy_provider
        self._callback = callback
        self._poll_timeout = poll_timeout if poll_timeout is not None else defaults.timeout
        self._default_window = default_window
        self._close_grace = close_grace

    def _poll(self, pending: Iterable[Future]) -> Set[Future]:
        try:
            done, _ = wait(pending, timeout=self._poll_timeout, return_when=FIRST_COMPLETED)
        except Exception as exc:  # noqa: BLE001
            raise PollFailure(f"Waiting for in-flight requests failed: {exc}") from exc
        if not done:
            raise PollFailure(f"No request completed within {self._poll_timeout}s")
        return done

    def run(
        self,
        requests: Sequence[Request],
        window: Optional[int] = None,
        probe: bool = False,
    ) -> BatchResult:
        """Execute ``requests`` and return their outcomes ordered by index.

        Raises:
            InvalidWindow: The effective window is below 2.
        """
        total = len(requests)
        window = effective_window(window, total, self._default_window)
        LOGGER.info("Dispatching %d requests with window=%d probe=%s", total, window, probe)

        results: Dict[int, Any] = {}
        infos: Dict[int, Dict[str, Any]] = {}
        in_flight: Dict[int, int] = {}
        futures: Dict[Future, int] = {}
        slot_ids = itertools.count()
        status = BatchStatus.COMPLETE

        executor = ThreadPoolExecutor(max_workers=window, thread_name_prefix="batch-request")

        def launch(index: int) -> None:
            request = requests[index]
            options = request_options(request, self._defaults, self._proxy_provider, probe)
            slot = next(slot_ids)
            in_flight[slot] = index
            futures[executor.submit(perform_request, self._transport, options, request)] = slot

        try:
            for index in range(window):
                launch(index)
            next_index = window

            while futures:
                try:
                    done = self._poll(futures)
                except PollFailure as exc:
                    LOGGER.error(
                        "Stopping batch early with %d of %d results: %s",
                        len(results),
                        total,
                        exc,
                    )
                    status = BatchStatus.PARTIAL
                    break

                for future in sorted(done, key=futures.__getitem__):
                    slot = futures.pop(future)
                    index = in_flight.pop(slot)
                    result: TransportResult = future.result()
                    self._store(index, result, requests[index], probe, results, infos)

                    if next_index < total:
                        launch(next_index)
                        next_index += 1
        finally:
            running = [future for future in futures if not future.cancel()]
            if running:
                self._transport.close_all()
                wait(running, timeout=self._close_grace)
            executor.shutdown(wait=False, cancel_futures=True)

        if status is BatchStatus.COMPLETE:
            LOGGER.info("Batch summary: requests=%d stored=%d status=OK", total, len(results))
        return BatchResult(
            status=status,
            results=dict(sorted(results.items())),
            infos=dict(sorted(infos.items())),
        )

    def _store(
        self,
        index: int,
        result: TransportResult,
        request: Request,
        probe: bool,
        results: Dict[int, Any],
        infos: Dict[int, Dict[str, Any]],
    ) -> None:
        if probe:
            results[index] = is_reachable(result.status_code)
            infos[index] = result.info
        elif self._callback is not None:
            self._callback(result.output, result.info, request)
        else:
            results[index] = result.output
            infos[index] = result.info


__all__ = ["WindowedScheduler", "effective_window"]
