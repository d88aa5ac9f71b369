"""Exception handlers that turn every failure into an ``ErrorResponse``.

| Raised                        | Status                              |
|-------------------------------|-------------------------------------|
| ``NotFoundError``             | 404                                 |
| ``ValidationError``           | 400                                 |
| ``ExternalServiceError``      | 400                                 |
| other ``AddressbookError``    | 500                                 |
| ``RequestValidationError``    | 422, messages grouped by field      |
| Starlette ``HTTPException``   | its own status                      |
| anything else                 | 500, details hidden in production   |

Exception context is passed through ``sanitize_dict`` before it reaches a
log line or a response body.
"""

import traceback
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from loguru import logger
from starlette.exceptions import HTTPException

from addressbook.api.schemas.errors import ErrorResponse, ServiceInfo
from addressbook.api.utils.responses import ORJSONResponse
from addressbook.core.config import get_settings
from addressbook.core.context import (
    CORRELATION_ID_HEADER,
    RequestContext,
    generate_request_id,
)
from addressbook.core.error_context import sanitize_dict, sanitize_error_context
from addressbook.core.exceptions import (
    AddressbookError,
    ErrorCode,
    ExternalServiceError,
    NotFoundError,
    Severity,
    ValidationError,
)

# First match wins
STATUS_BY_EXCEPTION: tuple[tuple[type[AddressbookError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ExternalServiceError, status.HTTP_400_BAD_REQUEST),
)

GENERIC_PRODUCTION_MESSAGE = "An internal server error occurred"


def status_code_for(exc: AddressbookError) -> int:
    return next(
        (code for cls, code in STATUS_BY_EXCEPTION if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def _request_fields(request: Request) -> dict[str, str]:
    return {"request_method": request.method, "request_path": request.url.path}


def _render(
    status_code: int,
    error_code: str,
    message: str,
    severity: Severity,
    *,
    details: dict[str, Any] | None = None,
    debug_info: dict[str, Any] | None = None,
) -> ORJSONResponse:
    settings = get_settings()
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        details=details,
        severity=severity.value,
        correlation_id=RequestContext.get_correlation_id(),
        request_id=generate_request_id(),
        service_info=ServiceInfo(
            name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment,
        ),
        debug_info=debug_info,
    )
    return ORJSONResponse(body.model_dump(mode="json"), status_code=status_code)


def _expect[E: Exception](exc: Exception, expected: type[E]) -> E:
    if not isinstance(exc, expected):
        msg = f"Expected {expected.__name__}, got {type(exc).__name__}"
        raise TypeError(msg)
    return exc


async def addressbook_error_handler(request: Request, exc: Exception) -> Response:
    """Render an ``AddressbookError`` with the status its class maps to.

    Expected errors (low severity) log a warning; the rest log an error.
    Outside production the stack trace and cause go into ``debug_info``.
    """
    error = _expect(exc, AddressbookError)
    status_code = status_code_for(error)

    log = logger.warning if error.is_expected else logger.error
    log(
        "{} on {} {}: {}",
        type(error).__name__,
        request.method,
        request.url.path,
        error.message,
        status_code=status_code,
        **sanitize_error_context(error, _request_fields(request)),
    )

    details = sanitize_dict(error.context) if error.context else None
    debug_info = None
    if get_settings().environment == "development":
        debug_info = {
            "exception_type": type(error).__name__,
            "stack_trace": error.stack_trace,
            "error_context": details or {},
        }
        if error.cause is not None:
            debug_info["cause"] = {
                "type": type(error.cause).__name__,
                "message": str(error.cause),
            }

    return _render(
        status_code,
        error.error_code,
        error.message,
        error.severity,
        details=details,
        debug_info=debug_info,
    )


async def validation_error_handler(request: Request, exc: Exception) -> Response:
    """Render request validation failures as 422, grouped by field name.

    ``("body", "houseNumber")`` becomes ``houseNumber``; an error on the
    whole body is reported under ``root``.
    """
    errors = _expect(exc, RequestValidationError).errors()

    by_field: dict[str, list[str]] = {}
    for error in errors:
        field = ".".join(map(str, error.get("loc", ())[1:])) or "root"
        by_field.setdefault(field, []).append(error.get("msg", "Invalid value"))

    logger.warning(
        "Rejected {} {}: invalid request",
        request.method,
        request.url.path,
        validation_errors=by_field,
    )

    return _render(
        status.HTTP_422_UNPROCESSABLE_CONTENT,
        ErrorCode.VALIDATION_ERROR.value,
        "Request validation failed",
        Severity.LOW,
        details={"validation_errors": by_field},
    )


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Render routing errors (unknown path, wrong method) in the same envelope."""
    error = _expect(exc, HTTPException)

    if error.status_code == status.HTTP_404_NOT_FOUND:
        code, severity = ErrorCode.NOT_FOUND, Severity.LOW
    elif error.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR:
        code, severity = ErrorCode.VALIDATION_ERROR, Severity.LOW
    else:
        code, severity = ErrorCode.INTERNAL_ERROR, Severity.HIGH

    logger.warning(
        "{} {} answered {}",
        request.method,
        request.url.path,
        error.status_code,
        detail=error.detail,
    )

    response = _render(error.status_code, code.value, str(error.detail), severity)
    response.headers.update(error.headers or {})
    return response


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Last resort: 500 for anything no other handler claimed.

    Update conflicts on an existing address end up here.
    """
    exception_type = type(exc).__name__
    logger.opt(exception=exc).error(
        "Unhandled {} on {} {}",
        exception_type,
        request.method,
        request.url.path,
        **sanitize_error_context(exc, _request_fields(request)),
    )

    if get_settings().environment == "production":
        response = _render(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorCode.INTERNAL_ERROR.value,
            GENERIC_PRODUCTION_MESSAGE,
            Severity.CRITICAL,
        )
    else:
        response = _render(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorCode.INTERNAL_ERROR.value,
            f"Internal server error: {exception_type}",
            Severity.CRITICAL,
            details={"error": str(exc), "type": exception_type},
            debug_info={
                "exception_type": exception_type,
                "stack_trace": traceback.format_tb(exc.__traceback__),
                "error_context": {"error_message": str(exc)},
            },
        )

    # ServerErrorMiddleware sits outside RequestContextMiddleware
    if correlation_id := RequestContext.get_correlation_id():
        response.headers[CORRELATION_ID_HEADER] = correlation_id
    return response


def register_exception_handlers(app: FastAPI) -> None:
    handlers = {
        AddressbookError: addressbook_error_handler,
        RequestValidationError: validation_error_handler,
        HTTPException: http_exception_handler,
        Exception: generic_exception_handler,
    }
    for exception_class, handler in handlers.items():
        app.add_exception_handler(exception_class, handler)
