"""OpenTelemetry tracing for requests, SQL and distance lookups.

``setup_tracing`` installs a sampled ``TracerProvider`` whose spans go to
one of:

- ``console``: Loguru DEBUG records, for development
- ``gcp``: Cloud Trace (needs the optional ``gcp`` extra)
- ``otlp`` / ``aws``: an OTLP collector, including the AWS Distro collector
- ``none``: nowhere

``instrument_app`` traces incoming requests and SQLAlchemy statements. The
outbound distance-matrix call is wrapped in ``trace_operation``. Spans carry
the request's correlation ID so traces and logs can be joined.
"""

from __future__ import annotations

import importlib
import os
from contextlib import contextmanager
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Final

from loguru import logger
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from addressbook.core.context import RequestContext

if TYPE_CHECKING:
    from collections.abc import Generator, Sequence

    from fastapi import FastAPI

    from addressbook.core.config import Settings

DEFAULT_OTLP_ENDPOINT: Final[str] = "http://localhost:4317"
GCP_EXPORTER_MODULE: Final[str] = "opentelemetry.exporter.cloud_trace"
EXCLUDED_URLS: Final[str] = "/health,/docs,/redoc,/openapi.json"
# Low-level ASGI and driver spans that only add noise to console output
NOISY_SPANS: Final[frozenset[str]] = frozenset(
    {"connect", "http send", "http receive", "cursor.execute"}
)
NANOSECONDS_PER_MILLISECOND: Final[int] = 1_000_000


class LoguruSpanExporter(SpanExporter):
    """Writes each finished span as a DEBUG log record."""

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        for span in spans:
            span_context = span.get_span_context()
            if span_context is None or span.name in NOISY_SPANS:
                continue

            attributes = dict(span.attributes or {})
            duration_ms = (
                (span.end_time - span.start_time) // NANOSECONDS_PER_MILLISECOND
                if span.start_time and span.end_time
                else None
            )

            logger.bind(
                trace_id=format(span_context.trace_id, "#034x"),
                span_id=format(span_context.span_id, "#018x"),
                correlation_id=attributes.get(
                    "correlation_id", RequestContext.get_correlation_id()
                ),
                span_name=span.name,
                span_kind=span.kind.name,
                duration_ms=duration_ms,
                attributes=attributes,
                status=span.status.status_code.name,
            ).debug("Trace span completed: {}", span.name)

        return SpanExportResult.SUCCESS


def _gcp_exporter(settings: Settings) -> SpanExporter | None:
    try:
        cloud_trace = importlib.import_module(GCP_EXPORTER_MODULE)
    except ImportError:
        logger.error(
            "GCP exporter requested but opentelemetry-exporter-gcp-trace "
            "is not installed"
        )
        return None

    project_id = settings.observability_config.gcp_project_id or os.getenv(
        "GOOGLE_CLOUD_PROJECT"
    )
    if not project_id:
        logger.warning("GCP project ID not configured, disabling tracing")
        return None

    logger.info("Exporting spans to Cloud Trace project {}", project_id)
    exporter: SpanExporter = cloud_trace.CloudTraceSpanExporter(project_id=project_id)
    return exporter


def _otlp_exporter(settings: Settings) -> SpanExporter:
    endpoint = settings.observability_config.exporter_endpoint or DEFAULT_OTLP_ENDPOINT
    logger.info(
        "Exporting spans over OTLP to {}",
        endpoint,
        exporter_type=settings.observability_config.exporter_type,
    )
    return OTLPSpanExporter(
        endpoint=endpoint, insecure=settings.environment == "development"
    )


def get_span_exporter(settings: Settings) -> SpanExporter | None:
    """Build the exporter named by ``observability_config.exporter_type``.

    Args:
        settings: Application settings.

    Returns:
        SpanExporter | None: The exporter, or None when spans go nowhere.
    """
    match settings.observability_config.exporter_type.lower():
        case "console":
            return LoguruSpanExporter()
        case "gcp":
            return _gcp_exporter(settings)
        case "otlp" | "aws":
            return _otlp_exporter(settings)
        case "none":
            logger.info("Tracing explicitly disabled")
            return None
        case unknown:
            logger.warning("Unknown exporter type: {}, disabling tracing", unknown)
            return None


@lru_cache(maxsize=1)
def get_tracer(name: str) -> trace.Tracer:
    """Return the tracer for ``name``."""
    return trace.get_tracer(name)


def setup_tracing(settings: Settings) -> None:
    """Install the global tracer provider.

    Args:
        settings: Application settings.
    """
    tracing = settings.observability_config
    if not tracing.enable_tracing:
        logger.info("Tracing disabled by configuration")
        return

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.app_name,
                "service.version": settings.app_version,
                "deployment.environment": settings.environment,
            }
        ),
        sampler=TraceIdRatioBased(tracing.trace_sample_rate),
    )
    if exporter := get_span_exporter(settings):
        provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    logger.info(
        "Tracing configured",
        exporter_type=tracing.exporter_type,
        sample_rate=tracing.trace_sample_rate,
    )


def instrument_app(app: FastAPI, settings: Settings) -> None:
    """Trace the app's requests and, once per process, SQLAlchemy.

    Args:
        app: Application to instrument.
        settings: Application settings.
    """
    if not settings.observability_config.enable_tracing:
        return

    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls=EXCLUDED_URLS,
        server_request_hook=add_correlation_id_to_span,
    )

    sqlalchemy_instrumentor = SQLAlchemyInstrumentor()
    if not sqlalchemy_instrumentor.is_instrumented_by_opentelemetry:
        sqlalchemy_instrumentor.instrument(
            enable_commenter=True,
            commenter_options={"opentelemetry_values": True},
        )

    logger.info("Application instrumented for tracing")


def add_correlation_id_to_span(span: trace.Span, scope: dict[str, Any]) -> None:
    """Tag ``span`` with the correlation ID and the client's request ID.

    Args:
        span: The request's server span.
        scope: ASGI scope of the request.
    """
    if correlation_id := RequestContext.get_correlation_id():
        span.set_attribute("correlation_id", correlation_id)

    headers = dict(scope.get("headers", []))
    if request_id := headers.get(b"x-request-id", b"").decode("utf-8"):
        span.set_attribute("request_id", request_id)


@contextmanager
def trace_operation(
    name: str, **attributes: str | int | float | bool
) -> Generator[trace.Span]:
    """Run a block inside a new span named ``name``.

    Attribute values are stored as strings. The span records and re-raises
    any exception from the block.

    Example:
        >>> with trace_operation("distance_matrix.lookup", service="distancematrix.ai"):
        ...     response = await client.get(url, params=params)
    """
    span = get_tracer(__name__).start_span(name)
    for key, value in attributes.items():
        span.set_attribute(key, str(value))
    if correlation_id := RequestContext.get_correlation_id():
        span.set_attribute("correlation_id", correlation_id)

    with trace.use_span(span, end_on_exit=True):
        yield span
