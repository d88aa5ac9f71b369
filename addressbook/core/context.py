"""Correlation and request identifiers for the request being served.

The correlation ID is held in a ContextVar, so the repository, the
distance-matrix client, the log formatters and the error handlers can all
read it without it being threaded through call signatures. Each asyncio task
gets its own copy.
"""

import uuid
from contextvars import ContextVar

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_PREFIX = "req-"

_current_correlation_id: ContextVar[str | None] = ContextVar(
    "correlation_id", default=None
)


class RequestContext:
    """Static accessors over the correlation ID ContextVar."""

    @staticmethod
    def set_correlation_id(correlation_id: str) -> None:
        _current_correlation_id.set(correlation_id)

    @staticmethod
    def get_correlation_id() -> str | None:
        """Return the ID bound to this context, or None outside a request."""
        return _current_correlation_id.get()

    @staticmethod
    def clear() -> None:
        _current_correlation_id.set(None)


def generate_correlation_id() -> str:
    """Return a bare UUID4 for requests that arrive without a correlation ID."""
    return str(uuid.uuid4())


def generate_request_id() -> str:
    """Return ``req-<uuid4>``, unique to one request or error response.

    Unlike a correlation ID, a request ID is never propagated to other
    services.
    """
    return REQUEST_ID_PREFIX + str(uuid.uuid4())
