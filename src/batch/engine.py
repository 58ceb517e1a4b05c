"""Request engine: pending queue, defaults, and executor selection.

Typical use:

    engine = RequestEngine.from_config(load_config())
    engine.get("https://example.com/a").get("https://example.com/b")
    result = engine.execute(window_size=2)
    for index, body in result.results.items():
        ...

``execute`` drains the queue. One queued request runs on the single-request
path; two or more run through the windowed scheduler. Default options, the
header list and the callback belong to the engine and persist across runs.
"""

import json
import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from src.batch import options as opt
from src.batch.models import BatchResult, Request
from src.batch.options import EngineOptions
from src.batch.scheduler import WindowedScheduler, effective_window
from src.batch.single import Callback, run_single
from src.batch.transport import RequestsTransport, Transport
from src.config import DEFAULT_WINDOW_SIZE, AppConfig
from src.logging_utils import perf
from src.network.proxy import EnvProxyConfigProvider, ProxyConfigProvider

LOGGER = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "Content-Type: application/json"


def _as_list(urls: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(urls, str):
        return [urls]
    return list(urls)


class RequestEngine:
    """Queues requests and executes them as one batch.

    Args:
        transport: Transport for every call; defaults to ``RequestsTransport``.
        options: Default options and headers; defaults to ``EngineOptions()``.
        proxy_provider: Optional proxy/internal-address source.
        callback: Optional ``(output, info, request)`` consumer. When set,
            outputs are delivered through it instead of the result.
        window_size: Window used when ``execute`` is not given one.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        *,
        options: Optional[EngineOptions] = None,
        proxy_provider: Optional[ProxyConfigProvider] = None,
        callback: Optional[Callback] = None,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ) -> None:
        self._transport = transport or RequestsTransport()
        self._options = options or EngineOptions()
        self._proxy_provider = proxy_provider
        self._window_size = window_size
        self._queue: List[Request] = []
        self._callback: Optional[Callback] = None
        self.callback = callback

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        transport: Optional[Transport] = None,
        callback: Optional[Callback] = None,
    ) -> "RequestEngine":
        return cls(
            transport,
            options=EngineOptions.from_config(config),
            proxy_provider=EnvProxyConfigProvider(config),
            callback=callback,
            window_size=config.window_size,
        )

    @property
    def options(self) -> EngineOptions:
        return self._options

    @property
    def callback(self) -> Optional[Callback]:
        return self._callback

    @callback.setter
    def callback(self, value: Optional[Callback]) -> None:
        if value is not None and not callable(value):
            LOGGER.debug("Ignoring non-callable callback %r", value)
            value = None
        self._callback = value

    @property
    def pending(self) -> int:
        return len(self._queue)

    def add(self, request: Request) -> "RequestEngine":
        self._queue.append(request)
        return self

    def request(
        self,
        url: str,
        method: str = "GET",
        body: Any = None,
        headers: Optional[Sequence[str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> "RequestEngine":
        return self.add(Request(url=url, method=method, body=body, headers=headers or (), options=options))

    def get(
        self,
        url: str,
        headers: Optional[Sequence[str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> "RequestEngine":
        return self.request(url, "GET", None, headers, options)

    def post(
        self,
        url: str,
        body: Any = None,
        headers: Optional[Sequence[str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> "RequestEngine":
        return self.request(url, "POST", body, headers, options)

    @perf("batch.execute", tags={"component": "engine"})
    def execute(self, window_size: Union[int, str, None] = None, probe: bool = False) -> BatchResult:
        """Run every queued request and return the outcomes by submission index.

        Returns ``BatchResult.no_work()`` when nothing is queued.

        Raises:
            InvalidWindow: Two or more requests are queued and the effective
                window is below 2. The queue is left untouched.
        """
        if not self._queue:
            LOGGER.info("No requests queued; nothing to execute")
            return BatchResult.no_work()

        if len(self._queue) > 1:
            effective_window(window_size, len(self._queue), self._window_size)
        queue, self._queue = self._queue, []

        if len(queue) == 1:
            return run_single(
                queue[0],
                self._options,
                self._transport,
                proxy_provider=self._proxy_provider,
                callback=self._callback,
                probe=probe,
            )

        scheduler = WindowedScheduler(
            self._transport,
            self._options,
            proxy_provider=self._proxy_provider,
            callback=self._callback,
            default_window=self._window_size,
        )
        return scheduler.run(queue, window_size, probe)

    def process(
        self,
        urls: Union[str, Iterable[str]],
        method: str = "GET",
        data: Any = None,
        as_json: bool = False,
        auth: Union[None, str, Sequence[str]] = None,
        callback: Optional[Callback] = None,
        file_sink: Any = None,
        timeout: Optional[float] = None,
    ) -> BatchResult:
        """Queue one request per URL and execute them.

        Args:
            urls: One URL or an iterable of URLs.
            method: ``GET`` sends no body; any other method posts ``data``.
            data: Shared body for non-GET requests.
            as_json: JSON-encode ``data`` and send it as ``application/json``.
            auth: ``"user:password"`` or a ``(user, password)`` pair.
            callback: Registers an engine callback before running.
            file_sink: Writable binary object receiving response bodies.
            timeout: Overall timeout in seconds; updates the engine default.
        """
        if timeout is not None:
            self._options.merge_options({opt.TIMEOUT: timeout})
        if callback is not None:
            self.callback = callback

        overrides = {}
        headers: List[str] = []
        if auth:
            overrides[opt.USERPWD] = auth if isinstance(auth, str) else ":".join(auth)
        if file_sink is not None:
            overrides[opt.FILE] = file_sink
        body = data
        if as_json:
            body = json.dumps(data)
            headers.append(JSON_CONTENT_TYPE)

        for url in _as_list(urls):
            if method.upper() == "GET":
                self.get(url, headers, overrides)
            else:
                self.request(url, method, body, headers, overrides)
        return self.execute()

    def is_available(self, urls: Union[str, Iterable[str]]) -> List[bool]:
        """Probe each URL and return one reachability flag per URL, in order."""
        targets = _as_list(urls)
        offset = self.pending
        for url in targets:
            self.get(url)
        result = self.execute(probe=True)
        return [bool(result.results.get(offset + i, False)) for i in range(len(targets))]


__all__ = ["RequestEngine"]
