"""Batch execution of outbound HTTP requests with a bounded concurrency window."""

from src.batch.engine import RequestEngine
from src.batch.errors import (
    BatchRequestError,
    InvalidURL,
    InvalidWindow,
    PollFailure,
    TransportFailure,
)
from src.batch.models import BatchResult, BatchStatus, Request, TransportResult
from src.batch.options import EngineOptions, build_options
from src.batch.scheduler import WindowedScheduler
from src.batch.single import run_single
from src.batch.transport import RequestsTransport

__all__ = [
    "RequestEngine",
    "Request",
    "BatchResult",
    "BatchStatus",
    "TransportResult",
    "EngineOptions",
    "build_options",
    "WindowedScheduler",
    "run_single",
    "RequestsTransport",
    "BatchRequestError",
    "InvalidWindow",
    "TransportFailure",
    "InvalidURL",
    "PollFailure",
]
