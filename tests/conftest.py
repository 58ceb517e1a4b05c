"""Shared pytest fixtures for the url-requests tests.

Provides reusable fakes and configuration objects so tests stay
deterministic and never touch the network.
"""

import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pytest
from requests.structures import CaseInsensitiveDict

from src.batch.errors import TransportFailure
from src.batch.models import TransportResult
from src.config import AppConfig


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Application config fixture.

    Points logging to a temporary directory and leaves the proxy unset.
    """
    return AppConfig(
        log_directory=tmp_path,
        log_level="INFO",
    )


class ScriptedTransport:
    """Fake transport whose outcomes and completion order are scripted per URL.

    Args:
        statuses: URL -> HTTP status (default 200).
        failures: URLs that raise ``TransportFailure``.
        waits_for: URL -> URL that must complete before this one returns.
        timeout: Upper bound on any wait, so a broken script cannot hang a test.
    """

    def __init__(
        self,
        statuses: Optional[Mapping[str, int]] = None,
        failures: Iterable[str] = (),
        waits_for: Optional[Mapping[str, str]] = None,
        timeout: float = 5.0,
    ) -> None:
        self.statuses = dict(statuses or {})
        self.failures = set(failures)
        self.waits_for = dict(waits_for or {})
        self.timeout = timeout
        self.calls: List[Dict[str, Any]] = []
        self.completed: List[str] = []
        self.active = 0
        self.max_active = 0
        self.closed = False
        self._events: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def _event(self, url: str) -> threading.Event:
        with self._lock:
            event = self._events.setdefault(url, threading.Event())
            if self.closed:
                event.set()
            return event

    def release(self, url: str) -> None:
        self._event(url).set()

    def close_all(self) -> int:
        """Wake every waiting call; they then fail as closed."""
        with self._lock:
            self.closed = True
            active = self.active
            events = list(self._events.values())
        for event in events:
            event.set()
        return active

    def perform(self, options: Mapping[str, Any]) -> TransportResult:
        url = options["url"]
        with self._lock:
            self.calls.append(dict(options))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            blocker = self.waits_for.get(url)
            if blocker and not self.closed:
                self._event(blocker).wait(self.timeout)
            if self.closed:
                raise TransportFailure(url, "transport closed")
            if url in self.failures:
                raise TransportFailure(url, "connection refused")
            status = self.statuses.get(url, 200)
            return TransportResult(
                output=f"body:{url}".encode(),
                info={"url": url, "http_code": status},
            )
        finally:
            with self._lock:
                self.active -= 1
                self.completed.append(url)
            self._event(url).set()


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"hello",
        url: str = "http://example.com/",
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.url = url
        self.reason = "OK" if status_code == 200 else "Error"
        self.headers = CaseInsensitiveDict(headers or {"Content-Type": "text/plain"})
        self.history: List[Any] = []
        self.raw = None
        self.closed = False

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Stand-in for ``requests.Session`` recording each call."""

    def __init__(self, response: Optional[FakeResponse] = None, error: Optional[Exception] = None) -> None:
        self.response = response or FakeResponse()
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.max_redirects = 30
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def make_transport():
    """Factory for ``ScriptedTransport`` with custom scripts."""
    return ScriptedTransport


@pytest.fixture
def make_session():
    """Factory building a ``FakeSession`` around a ``FakeResponse``."""

    def factory(error: Optional[Exception] = None, **response_kwargs: Any) -> FakeSession:
        return FakeSession(FakeResponse(**response_kwargs), error=error)

    return factory
