"""Value objects shared by the executors and the engine."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence


@dataclass(frozen=True)
class Request:
    """One HTTP call waiting in (or dispatched from) the pending queue.

    Attributes:
        url: Destination URL, normalized at option-building time.
        method: HTTP method; a request with a body is always sent as POST.
        body: Optional payload (bytes, str, or a mapping sent form-encoded).
        headers: Extra header lines (``"Name: value"``) for this call only.
        options: Per-request transport option overrides.
    """

    url: str
    method: str = "GET"
    body: Any = None
    headers: Sequence[str] = ()
    options: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", (self.method or "GET").upper())
        headers = (self.headers,) if isinstance(self.headers, str) else tuple(self.headers or ())
        object.__setattr__(self, "headers", headers)
        object.__setattr__(self, "options", MappingProxyType(dict(self.options or {})))


@dataclass(frozen=True)
class TransportResult:
    """Raw output and response metadata from one transport call."""

    output: Optional[bytes]
    info: Dict[str, Any]

    @property
    def status_code(self) -> int:
        return int(self.info.get("http_code") or 0)


class BatchStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    NO_WORK = "no_work"


@dataclass
class BatchResult:
    """Outcome of one ``execute`` run.

    ``results`` maps original submission index to the output (or a probe
    boolean) and is always in ascending index order. It stays empty when a
    callback consumed the outputs. ``PARTIAL`` means the run stopped early
    and later indexes may be missing.
    """

    status: BatchStatus
    results: Dict[int, Any] = field(default_factory=dict)
    infos: Dict[int, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def no_work(cls) -> "BatchResult":
        return cls(status=BatchStatus.NO_WORK)

    @property
    def complete(self) -> bool:
        return self.status is BatchStatus.COMPLETE

    def values(self) -> List[Any]:
        return list(self.results.values())

    def __len__(self) -> int:
        return len(self.results)

    def __bool__(self) -> bool:
        return self.status is not BatchStatus.NO_WORK


__all__ = ["Request", "TransportResult", "BatchStatus", "BatchResult"]
