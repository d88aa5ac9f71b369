"""Security headers added to every API response."""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from addressbook.core.constants import DEFAULT_HSTS_MAX_AGE

STATIC_SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


def build_hsts_header(
    max_age: int, *, include_subdomains: bool = True, preload: bool = False
) -> str:
    """Build a Strict-Transport-Security header value.

    Args:
        max_age: Seconds browsers should remember to use HTTPS only.
        include_subdomains: Add the includeSubDomains directive.
        preload: Add the preload directive.

    Returns:
        str: The header value, e.g. ``max-age=31536000; includeSubDomains``.
    """
    parts = [f"max-age={max_age}"]
    if include_subdomains:
        parts.append("includeSubDomains")
    if preload:
        parts.append("preload")
    return "; ".join(parts)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds nosniff, frame-deny, XSS-protection and (optionally) HSTS headers.

    Args:
        app: The ASGI application to wrap.
        hsts_enabled: Whether to send Strict-Transport-Security.
        hsts_max_age: HSTS max-age in seconds.
        hsts_include_subdomains: Whether HSTS covers subdomains.
        hsts_preload: Whether to include the preload directive.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        hsts_enabled: bool = True,
        hsts_max_age: int = DEFAULT_HSTS_MAX_AGE,
        hsts_include_subdomains: bool = True,
        hsts_preload: bool = False,
    ) -> None:
        super().__init__(app)
        self.headers = dict(STATIC_SECURITY_HEADERS)
        if hsts_enabled:
            self.headers["Strict-Transport-Security"] = build_hsts_header(
                hsts_max_age,
                include_subdomains=hsts_include_subdomains,
                preload=hsts_preload,
            )

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Add the configured security headers to the response."""
        response = await call_next(request)
        response.headers.update(self.headers)
        return response
