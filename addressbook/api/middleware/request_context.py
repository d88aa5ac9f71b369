"""Binds a correlation ID to each request.

Clients may send ``X-Correlation-ID`` to tie our logs to theirs; otherwise a
UUID4 is minted. The ID lands in ``RequestContext``, in every log line of
the request, on the server span, and in the response header.
"""

from loguru import logger
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from addressbook.core.context import (
    CORRELATION_ID_HEADER,
    RequestContext,
    generate_correlation_id,
)
from addressbook.core.observability import add_correlation_id_to_span


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        incoming = request.headers.get(CORRELATION_ID_HEADER)
        correlation_id = incoming or generate_correlation_id()

        RequestContext.set_correlation_id(correlation_id)
        add_correlation_id_to_span(trace.get_current_span(), request.scope)

        with logger.contextualize(correlation_id=correlation_id):
            response = await call_next(request)

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
