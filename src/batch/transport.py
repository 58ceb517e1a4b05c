"""Requests-backed transport for a single finalized option dict.

Each ``perform`` call opens its own ``requests.Session`` and closes it on
every exit path, so concurrent calls never share connection state. Sessions
still running are tracked so ``close_all`` can abort them when a batch stops
early.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple

import requests

from src.batch import options as opt
from src.batch.errors import InvalidURL, TransportFailure
from src.batch.models import TransportResult
from src.network.proxy import proxies_mapping, proxy_url

LOGGER = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
CLOSED_REASON = "Transport closed before the call finished"


class Transport(Protocol):
    """Anything that can run one finalized option dict.

    ``close_all`` aborts calls still in progress and returns how many it hit.
    """

    def perform(self, options: Mapping[str, Any]) -> TransportResult:
        ...

    def close_all(self) -> int:
        ...


def parse_header_lines(lines) -> Dict[str, Optional[str]]:
    """Turn ``"Name: value"`` lines into a headers dict.

    A line with an empty value maps to None, which makes Requests drop that header.
    """
    headers: Dict[str, Optional[str]] = {}
    for line in lines or ():
        name, _, value = line.partition(":")
        name = name.strip()
        if not name:
            continue
        headers[name] = value.strip() or None
    return headers


def failed_info(options: Mapping[str, Any], error: Exception) -> Dict[str, Any]:
    """Metadata recorded for a request whose transport call failed."""
    return {
        "url": options.get(opt.URL) or "",
        "http_code": 0,
        "method": options.get(opt.METHOD) or "GET",
        "error": str(error),
    }


def _raw_header_block(response: requests.Response) -> bytes:
    version = getattr(getattr(response, "raw", None), "version", 11)
    major, minor = divmod(version if isinstance(version, int) else 11, 10)
    lines = [f"HTTP/{major}.{minor} {response.status_code} {response.reason or ''}".rstrip()]
    lines.extend(f"{name}: {value}" for name, value in response.headers.items())
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1", "replace")


class RequestsTransport:
    """Executes one option dict with ``requests``.

    Args:
        session_factory: Callable returning a fresh ``requests.Session``.
        chunk_size: Bytes per chunk when streaming into a file sink.
    """

    def __init__(
        self,
        session_factory: Callable[[], requests.Session] = requests.Session,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._session_factory = session_factory
        self._chunk_size = chunk_size
        self._lock = threading.Lock()
        self._live: Dict[int, Tuple[requests.Session, Optional[requests.Response]]] = {}

    def _track(self, session: requests.Session) -> None:
        with self._lock:
            self._live[id(session)] = (session, None)

    def _attach(self, session: requests.Session, response: requests.Response) -> None:
        with self._lock:
            if id(session) in self._live:
                self._live[id(session)] = (session, response)

    def _release(self, session: requests.Session) -> bool:
        """Stop tracking ``session``; False when ``close_all`` already took it."""
        with self._lock:
            return self._live.pop(id(session), None) is not None

    def close_all(self) -> int:
        """Close every session (and streamed response) still running a call.

        The affected ``perform`` calls raise ``TransportFailure``.
        """
        with self._lock:
            live = list(self._live.values())
            self._live.clear()
        for session, response in live:
            if response is not None:
                response.close()
            session.close()
        if live:
            LOGGER.warning("Closed %d in-flight transport session(s)", len(live))
        return len(live)

    @staticmethod
    def _method(options: Mapping[str, Any]) -> str:
        if options.get(opt.NOBODY):
            return "HEAD"
        if options.get(opt.POST):
            return "POST"
        return str(options.get(opt.METHOD) or "GET").upper()

    @staticmethod
    def _timeout(options: Mapping[str, Any]) -> Tuple[Optional[float], Optional[float]]:
        connect = options.get(opt.CONNECT_TIMEOUT)
        total = options.get(opt.TIMEOUT)
        return (
            float(connect) if connect else None,
            float(total) if total else None,
        )

    def _request_kwargs(self, options: Mapping[str, Any]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "timeout": self._timeout(options),
            "verify": bool(options.get(opt.VERIFY_PEER, True) and options.get(opt.VERIFY_HOST, True)),
            "allow_redirects": bool(options.get(opt.FOLLOW_LOCATION, False)),
        }
        headers = parse_header_lines(options.get(opt.HTTPHEADER))
        if headers:
            kwargs["headers"] = headers
        if options.get(opt.POST) and not options.get(opt.NOBODY):
            kwargs["data"] = options.get(opt.POSTFIELDS)
        if options.get(opt.PROXY):
            kwargs["proxies"] = proxies_mapping(
                proxy_url(
                    str(options[opt.PROXY]),
                    options.get(opt.PROXY_PORT),
                    options.get(opt.PROXY_USERPWD),
                )
            )
        userpwd = options.get(opt.USERPWD)
        if userpwd:
            user, _, password = str(userpwd).partition(":")
            kwargs["auth"] = (user, password)
        return kwargs

    def _read_body(self, response: requests.Response, options: Mapping[str, Any]) -> Tuple[bytes, int]:
        sink = options.get(opt.FILE)
        if sink is not None:
            written = 0
            for chunk in response.iter_content(chunk_size=self._chunk_size):
                if not chunk:
                    continue
                try:
                    sink.write(chunk)
                except (OSError, ValueError) as exc:
                    url = options.get(opt.URL) or ""
                    raise TransportFailure(url, f"Writing response body failed: {exc}") from exc
                written += len(chunk)
            return b"", written
        content = response.content or b""
        return content, len(content)

    def perform(self, options: Mapping[str, Any]) -> TransportResult:
        """Run the call described by ``options``.

        Raises:
            InvalidURL: The destination URL is empty.
            TransportFailure: Requests raised a network-level error, the file
                sink could not be written, or ``close_all`` aborted the call.
        """
        url = options.get(opt.URL) or ""
        if not url:
            raise InvalidURL(url, "No valid URL to request")

        method = self._method(options)
        kwargs = self._request_kwargs(options)
        start = time.perf_counter()
        try:
            with self._session_factory() as session:
                self._track(session)
                try:
                    if options.get(opt.MAX_REDIRS):
                        session.max_redirects = int(options[opt.MAX_REDIRS])
                    response = session.request(
                        method,
                        url,
                        stream=options.get(opt.FILE) is not None,
                        **kwargs,
                    )
                    self._attach(session, response)
                    try:
                        body, size = self._read_body(response, options)
                    finally:
                        response.close()
                except Exception as exc:
                    if self._release(session):
                        raise
                    raise TransportFailure(url, CLOSED_REASON) from exc
                if not self._release(session):
                    raise TransportFailure(url, CLOSED_REASON)
        except requests.RequestException as exc:
            raise TransportFailure(url, str(exc)) from exc

        output = body if options.get(opt.RETURN_TRANSFER, True) else b""
        if options.get(opt.HEADER):
            output = _raw_header_block(response) + output

        info = {
            "url": response.url or url,
            "http_code": response.status_code,
            "method": method,
            "content_type": response.headers.get("Content-Type"),
            "total_time": time.perf_counter() - start,
            "size_download": size,
            "redirect_count": len(response.history or ()),
        }
        LOGGER.debug(
            "transport.perform method=%s url=%s status=%s elapsed=%.3f",
            method,
            url,
            response.status_code,
            info["total_time"],
        )
        return TransportResult(output=output, info=info)


__all__ = ["Transport", "RequestsTransport", "parse_header_lines", "failed_info"]
