"""Error taxonomy for batch request execution.

Only ``InvalidWindow`` reaches callers. Transport failures are absorbed into
the result at their index, and poll failures end the run with a partial result.
"""

from typing import Any


class BatchRequestError(Exception):
    """Base class for batch execution errors."""


class InvalidWindow(BatchRequestError, ValueError):
    """Effective window for a multi-request batch is below 2."""

    def __init__(self, window: Any) -> None:
        super().__init__(f"Window size must be greater than 1, got {window}")
        self.window = window


class TransportFailure(BatchRequestError):
    """A single request failed or timed out at the network level."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{reason} (url={url!r})")
        self.url = url
        self.reason = reason


class InvalidURL(TransportFailure):
    """The request URL was rejected by validation and reached the transport empty."""


class PollFailure(BatchRequestError):
    """The scheduler's completion wait failed; the run stops early."""


__all__ = [
    "BatchRequestError",
    "InvalidWindow",
    "TransportFailure",
    "InvalidURL",
    "PollFailure",
]
