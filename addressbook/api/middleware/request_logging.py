"""Access log for the API.

Each request outside ``LogConfig.excluded_paths`` logs "Request started" and
then "Request completed" or "Request failed". The request's metadata is held
in ``logger.contextualize`` for the duration of the call, so everything
logged further down (services, repositories, the distance-matrix client)
carries it as well. The request ID is echoed in ``X-Request-ID``.
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from addressbook.api.constants import (
    MAX_USER_AGENT_LENGTH,
    REQUEST_ID_HEADER,
    UNKNOWN_CLIENT,
)
from addressbook.core.config import LogConfig, get_settings
from addressbook.core.constants import MILLISECONDS_PER_SECOND
from addressbook.core.context import generate_request_id
from addressbook.core.error_context import sanitize_dict


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * MILLISECONDS_PER_SECOND, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with its duration and outcome.

    Args:
        app: Wrapped ASGI application.
        log_config: Excluded paths and the slow request threshold.
    """

    def __init__(self, app: ASGIApp, *, log_config: LogConfig) -> None:
        super().__init__(app)
        self.log_config = log_config
        self.excluded_paths = frozenset(log_config.excluded_paths)
        # X-Forwarded-For is only set by our own load balancer in production
        self.trust_proxy_headers = get_settings().environment == "production"

    def _client_host(self, request: Request) -> str:
        if self.trust_proxy_headers:
            forwarded = request.headers.get("x-forwarded-for", "")
            real_ip = request.headers.get("x-real-ip", "")
            if candidate := forwarded.partition(",")[0].strip() or real_ip.strip():
                return candidate
        return request.client.host if request.client else UNKNOWN_CLIENT

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        user_agent = request.headers.get("user-agent", "")[:MAX_USER_AGENT_LENGTH]
        query_params = dict(request.query_params)

        with logger.contextualize(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_host=self._client_host(request),
            user_agent=user_agent or UNKNOWN_CLIENT,
        ):
            logger.info(
                "Request started",
                query_params=sanitize_dict(query_params) if query_params else None,
            )

            started = time.perf_counter()
            try:
                response = await call_next(request)
            except Exception as exc:
                logger.error(
                    "Request failed",
                    duration_ms=_elapsed_ms(started),
                    error_type=type(exc).__name__,
                )
                raise
            duration_ms = _elapsed_ms(started)

            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
                response_size=int(response.headers.get("content-length", 0)),
            )
            threshold_ms = self.log_config.slow_request_threshold_ms
            if duration_ms > threshold_ms:
                logger.warning(
                    "Slow request: {}ms over {}ms",
                    duration_ms,
                    threshold_ms,
                    duration_ms=duration_ms,
                    threshold_ms=threshold_ms,
                )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
