"""Body returned by every failing request."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

_INVALID_SORT_EXAMPLE = {
    "error_code": "INVALID_SORT_FIELD",
    "message": "Field Foo for ordering does not exist",
    "details": {"field": "Foo"},
    "correlation_id": "550e8400-e29b-41d4-a716-446655440000",
    "request_id": "req-660e8400-e29b-41d4-a716-446655440000",
    "timestamp": "2024-06-14T12:00:00+00:00",
    "severity": "LOW",
    "service_info": {
        "name": "Addressbook",
        "version": "0.1.0",
        "environment": "production",
    },
}

_UPSTREAM_FAILURE_EXAMPLE = {
    "error_code": "EXTERNAL_SERVICE_ERROR",
    "message": "Distance matrix service returned an error",
    "details": {"service": "distancematrix.ai", "upstream_status": 403},
    "correlation_id": "550e8400-e29b-41d4-a716-446655440001",
    "timestamp": "2024-06-14T12:00:01+00:00",
    "severity": "MEDIUM",
}


class ServiceInfo(BaseModel):
    """Which deployment produced the error."""

    name: str = Field(..., examples=["Addressbook"])
    version: str = Field(..., examples=["0.1.0"])
    environment: str = Field(..., examples=["development", "production"])


class ErrorResponse(BaseModel):
    """Error envelope.

    ``correlation_id`` echoes the ``X-Correlation-ID`` header and may be shared
    with other services; ``request_id`` is minted for this response alone.
    ``debug_info`` is only filled outside production.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [_INVALID_SORT_EXAMPLE, _UPSTREAM_FAILURE_EXAMPLE]
        }
    )

    error_code: str = Field(
        ..., examples=["NOT_FOUND", "INVALID_SORT_FIELD", "EXTERNAL_SERVICE_ERROR"]
    )
    message: str = Field(..., description="Human-readable summary")
    details: dict[str, Any] | None = Field(
        default=None, description="Sanitized error context, per-field messages"
    )
    correlation_id: str | None = None
    request_id: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    severity: str | None = Field(default=None, examples=["LOW", "CRITICAL"])
    service_info: ServiceInfo | None = None
    debug_info: dict[str, Any] | None = None
