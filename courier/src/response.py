"""
Outcome of a single ``Transport.send_batch`` call.

A non-negative ``status`` means an HTTP exchange completed (which may
still be an HTTP-level error such as 404 or 503). A negative ``status``
together with an ``error`` message means no HTTP response was obtained.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-003)

TODO:
- None
"""

from dataclasses import dataclass

# Status used when every attempt ended in an exception.
TRANSPORT_FAILURE_STATUS = -1


@dataclass(frozen=True)
class Response:
    """Immutable ``(status, error)`` pair returned to the caller.

    Attributes:
        status: HTTP status code of the last exchange, or
            ``TRANSPORT_FAILURE_STATUS`` when no response was received.
        error: Exception message for transport failures, otherwise
            ``None`` (also for 4xx/5xx statuses).
    """

    status: int
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """``True`` when the collector accepted the batch (status < 400)."""
        return self.error is None and 0 <= self.status < 400

    @property
    def transport_failed(self) -> bool:
        """``True`` when no HTTP response was obtained at all."""
        return self.status < 0
