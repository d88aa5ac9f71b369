"""Loguru configuration and output formats.

Modules log with ``from loguru import logger`` and pass context as keyword
arguments. ``setup_logging`` replaces Loguru's default handler with one sink
whose shape depends on ``LogConfig.log_formatter_type``:

- **console**: colored single line, context fields inline (development)
- **json**: one JSON object per line (self-hosted)
- **gcp**: Cloud Logging structured entries, picked up by Error Reporting
- **aws**: flat JSON for CloudWatch Logs Insights

Records from stdlib loggers (uvicorn, SQLAlchemy, alembic, httpx) are routed
into Loguru by ``InterceptHandler``.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Final, cast

from loguru import logger

from addressbook.core.config import get_settings
from addressbook.core.constants import REDACTED

if TYPE_CHECKING:
    from addressbook.core.config import Settings

type LogRecordDict = dict[str, Any]
type FormatterFunc = Callable[[LogRecordDict], str]


class _LoggingState:
    configured: bool = False


_state = _LoggingState()

FALLBACK_CONSOLE_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}\n"
)
SHORT_CORRELATION_ID: Final[int] = 8
MAX_FIELD_VALUE_LENGTH: Final[int] = 100

# Console shows these first, in this order
PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    "correlation_id",
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "address_id",
    "client_host",
)

STATUS_COLORS: Final[dict[str, str]] = {"2": "green", "3": "yellow", "4": "red"}

GCP_ERROR_EVENT_TYPE: Final[str] = (
    "type.googleapis.com/"
    "google.devtools.clouderrorreporting.v1beta1.ReportedErrorEvent"
)
GCP_TRACE_KEY: Final[str] = "logging.googleapis.com/trace"
GCP_LABELS_KEY: Final[str] = "logging.googleapis.com/labels"
GCP_SOURCE_KEY: Final[str] = "logging.googleapis.com/sourceLocation"
GCP_LABEL_FINGERPRINT_LENGTH: Final[int] = 8

# Loguru levels GCP has no severity for
GCP_SEVERITY: Final[dict[str, str]] = {"TRACE": "DEBUG", "SUCCESS": "INFO"}

# Attributes every stdlib LogRecord has; anything else came in via ``extra=``
_STDLIB_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    vars(logging.makeLogRecord({}))
) | {"message", "asctime", "color_message", "scope", "taskName"}


def _escape(value: object) -> str:
    # Loguru treats braces in a format as fields
    return str(value).replace("{", "{{").replace("}", "}}")


def _format_priority_field(field: str, value: object) -> str:
    text = str(value)
    match field:
        case "correlation_id":
            return _escape(text[:SHORT_CORRELATION_ID])
        case "duration_ms":
            return _escape(f"{text}ms")
        case "status_code":
            color = STATUS_COLORS.get(text[:1])
            if color is None:
                return f"<red><bold>{_escape(text)}</bold></red>"
            return f"<{color}>{_escape(text)}</{color}>"
        case _:
            return _escape(text)


def _format_extra_field(key: str, value: object) -> str:
    """Render ``key=value``, masking sensitive keys and clipping long values."""
    if key in get_settings().log_config.sensitive_fields:
        text = REDACTED
    else:
        text = str(value)
        if len(text) > MAX_FIELD_VALUE_LENGTH:
            text = text[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
    return f"{_escape(key)}={_escape(text)}"


def _public_extra(record: LogRecordDict) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.get("extra", {}).items()
        if not key.startswith("_")
    }


def _console_context(extra: dict[str, Any]) -> str:
    chunks = [
        f"[<yellow>{_format_priority_field(name, extra[name])}</yellow>]"
        for name in PRIORITY_FIELDS
        if extra.get(name) is not None
    ]
    chunks += [
        f"[<dim>{_format_extra_field(key, value)}</dim>]"
        for key, value in extra.items()
        if key not in PRIORITY_FIELDS and value is not None
    ]
    return " ".join(chunks)


def format_console_with_context(record: LogRecordDict) -> str:
    """Build the Loguru format template for one console line.

    The record's own text is escaped into the template, so the returned
    string only contains the ``{exception}`` field when there is one.
    """
    try:
        when = record["time"].strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        level_name = record["level"].name
        origin = f"{record['name']}:{record['function']}:{record['line']}"
    except (AttributeError, KeyError, TypeError):
        return FALLBACK_CONSOLE_FORMAT

    columns = [
        f"<green>{when}</green>",
        f"<level>{level_name: <8}</level>",
        f"<cyan>{_escape(origin)}</cyan>",
    ]
    if context := _console_context(_public_extra(record)):
        columns.append(context)
    columns.append(_escape(record.get("message", "")))

    line = " | ".join(columns)
    if record.get("exception"):
        line += "\n{exception}"
    return line + "\n"


class InterceptHandler(logging.Handler):
    """Hands stdlib log records to Loguru, keeping the caller's location."""

    def emit(self, record: logging.LogRecord) -> None:
        # Walk out of the logging package to the frame that logged
        frame, depth = logging.currentframe(), 0
        while frame is not None and (
            depth == 0 or frame.f_code.co_filename == logging.__file__
        ):
            frame = frame.f_back
            depth += 1

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _STDLIB_RECORD_FIELDS and not key.startswith("_")
        }
        scope = getattr(record, "scope", None)
        if record.name == "uvicorn.access" and scope:
            extra.update(_uvicorn_access_fields(scope))

        logger.opt(depth=depth, exception=record.exc_info).bind(**extra).log(
            record.levelname, record.getMessage()
        )


def _uvicorn_access_fields(scope: dict[str, Any]) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "method": scope.get("method", ""),
        "path": scope.get("path", ""),
        "client_host": (scope.get("client") or ("unknown",))[0],
    }
    headers = dict(scope.get("headers", []))
    if correlation_id := headers.get(b"x-correlation-id"):
        fields["correlation_id"] = correlation_id.decode("latin-1")
    return fields


def _exception_fields(
    record: LogRecordDict, value_key: str, traceback_key: str
) -> dict[str, Any] | None:
    exc = record.get("exception")
    if not exc:
        return None
    return {
        "type": exc.type.__name__ if exc.type else None,
        value_key: str(exc.value) if exc.value else None,
        traceback_key: exc.traceback or None,
    }


def _to_line(entry: dict[str, Any]) -> str:
    return json.dumps(entry, default=str) + "\n"


def serialize_for_json(record: LogRecordDict) -> str:
    entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
        **_public_extra(record),
    }
    if exception := _exception_fields(record, "value", "traceback"):
        entry["exception"] = exception
    return _to_line(entry)


def serialize_for_gcp(record: LogRecordDict) -> str:
    """Shape a record as a Cloud Logging structured entry.

    Errors additionally carry a source location and the ``ReportedErrorEvent``
    type so Error Reporting groups them. See
    https://cloud.google.com/logging/docs/structured-logging
    """
    settings = get_settings()
    level_name = record["level"].name
    extra = _public_extra(record)
    correlation_id = extra.pop("correlation_id", None)
    request_id = extra.pop("request_id", None)

    labels = {
        "module": record["module"],
        "function": record["function"],
        "line": str(record["line"]),
    }
    if request_id:
        labels["request_id"] = request_id
    if fingerprint := extra.get("fingerprint"):
        labels["error_fingerprint"] = fingerprint[:GCP_LABEL_FINGERPRINT_LENGTH]

    entry: dict[str, Any] = {
        "severity": GCP_SEVERITY.get(level_name, level_name),
        "message": record["message"],
        "timestamp": record["time"].isoformat(),
        "serviceContext": {
            "service": settings.app_name,
            "version": settings.app_version,
        },
        GCP_LABELS_KEY: labels,
    }
    if correlation_id:
        entry[GCP_TRACE_KEY] = correlation_id
    if extra:
        entry["jsonPayload"] = extra

    if record.get("exception") or level_name in {"ERROR", "CRITICAL"}:
        path = record["file"].path
        entry[GCP_SOURCE_KEY] = {
            "file": path,
            "line": str(record["line"]),
            "function": record["function"],
        }
        entry["@type"] = GCP_ERROR_EVENT_TYPE
        if "stack_trace" in extra:
            entry["stack_trace"] = extra["stack_trace"]
            entry["context"] = {
                "reportLocation": {
                    "filePath": path,
                    "lineNumber": record["line"],
                    "functionName": record["function"],
                }
            }

    return _to_line(entry)


def serialize_for_aws(record: LogRecordDict) -> str:
    extra = _public_extra(record)
    entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }
    if "correlation_id" in extra:
        entry["traceId"] = extra["correlation_id"]
    if "request_id" in extra:
        entry["requestId"] = extra["request_id"]
    entry |= {key: value for key, value in extra.items() if key not in entry}
    if error := _exception_fields(record, "message", "stackTrace"):
        entry["error"] = error
    return _to_line(entry)


# None means the colored console template
LOG_FORMATTERS: dict[str, FormatterFunc | None] = {
    "console": None,
    "json": serialize_for_json,
    "gcp": serialize_for_gcp,
    "aws": serialize_for_aws,
}


def detect_environment() -> str:
    """Guess the formatter from platform environment variables."""
    if os.getenv("K_SERVICE"):
        return "gcp"
    if os.getenv("AWS_EXECUTION_ENV"):
        return "aws"
    if os.getenv("WEBSITE_INSTANCE_ID"):
        return "json"
    return "console"


def _route_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        if not uvicorn_logger.handlers:
            uvicorn_logger.handlers = [InterceptHandler()]
            uvicorn_logger.setLevel(logging.INFO)
            uvicorn_logger.propagate = False

    # httpx logs full request URLs at INFO, distance-matrix API key included
    logging.getLogger("httpx").setLevel(logging.WARNING)


def setup_logging(settings: Settings) -> None:
    """Install the Loguru sink for ``settings``. Later calls do nothing."""
    if _state.configured:
        return

    log_config = settings.log_config
    formatter_type = log_config.log_formatter_type or detect_environment()
    serializer = LOG_FORMATTERS.get(formatter_type)

    logger.remove()
    if serializer is None:
        logger.add(
            sys.stdout,
            level=log_config.log_level,
            format=cast("Any", format_console_with_context),
            colorize=True,
            enqueue=True,
            backtrace=settings.debug,
            diagnose=settings.debug,
        )
    else:

        def structured_sink(message: Any) -> None:
            sys.stdout.write(serializer(message.record))
            sys.stdout.flush()

        logger.add(
            structured_sink,
            level=log_config.log_level,
            enqueue=True,
            backtrace=False,
            diagnose=False,
        )

    _route_stdlib_logging()
    _state.configured = True

    logger.info(
        "Logging configured",
        formatter_type=formatter_type,
        log_level=log_config.log_level,
    )
