"""Exceptions raised by the Addressbook service.

Every application error is an ``AddressbookError`` carrying an error code,
a severity, a context mapping and the stack at creation time. The API layer
maps subclasses to HTTP statuses (see ``api.middleware.error_handler``):

- ``NotFoundError``: missing address or missing addresses table, 404
- ``ValidationError``: request that cannot be honored, 400
- ``ExternalServiceError``: distance-matrix failure, 400

Anything that is not an ``AddressbookError`` becomes a 500.
"""

import hashlib
import traceback
from enum import Enum
from typing import Any, ClassVar

# Frames from the end of the stack that identify where an error was raised
FINGERPRINT_FRAMES = 5


class ErrorCode(Enum):
    """Machine-readable error identifiers returned as ``error_code``."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_SORT_FIELD = "INVALID_SORT_FIELD"
    """``orderBy`` names a field addresses do not have."""
    ADDRESS_NOT_FOUND = "ADDRESS_NOT_FOUND"
    """A distance lookup references an address that does not exist."""
    NOT_FOUND = "NOT_FOUND"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    """The distance-matrix API failed or could not be reached."""


class Severity(Enum):
    """How urgently an error needs attention.

    LOW and MEDIUM are expected in normal operation and logged as warnings.
    HIGH and CRITICAL are logged as errors and should alert.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AddressbookError(Exception):
    """Base class of all application exceptions.

    Args:
        error_code: Identifier of the error type.
        message: Human-readable description, returned to the client.
        severity: Impact of the error.
        context: Extra fields for logs and the error body's ``details``.
        cause: The exception this one wraps, chained as ``__cause__``.
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

        # Drop the frame of this __init__
        self.stack_trace = traceback.format_stack()[:-1]
        self.fingerprint = self._generate_fingerprint()

    def _generate_fingerprint(self) -> str:
        """Hash the error type with the application frames that raised it.

        Errors of the same type raised from the same place share a
        fingerprint, so monitoring can group them.
        """
        parts = [type(self).__name__, self.error_code]
        parts.extend(
            frame.strip().splitlines()[0]
            for frame in self.stack_trace[-FINGERPRINT_FRAMES:]
            if "addressbook/" in frame and "site-packages" not in frame
        )
        return hashlib.sha256(":".join(parts).encode()).hexdigest()[:16]

    @property
    def is_expected(self) -> bool:
        """Whether this error is part of normal operation."""
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    @property
    def should_alert(self) -> bool:
        """Whether this error should page someone."""
        return self.severity in (Severity.HIGH, Severity.CRITICAL)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        context = f", context={self.context}" if self.context else ""
        return (
            f"{type(self).__name__}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context})"
        )


class _CategorizedError(AddressbookError):
    """An error whose severity and default code are fixed by its class."""

    default_code: ClassVar[ErrorCode]
    severity_level: ClassVar[Severity]

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            error_code or self.default_code,
            message,
            self.severity_level,
            context,
            cause,
        )


class ValidationError(_CategorizedError):
    """A well-formed request that cannot be honored.

    Raised for ``orderBy`` fields that do not exist and for distance lookups
    between addresses that are not stored.
    """

    default_code = ErrorCode.VALIDATION_ERROR
    severity_level = Severity.LOW


class NotFoundError(_CategorizedError):
    """The requested address, or the addresses table, does not exist."""

    default_code = ErrorCode.NOT_FOUND
    severity_level = Severity.LOW


class ExternalServiceError(_CategorizedError):
    """The distance-matrix API answered with a failure or was unreachable.

    The context names the service and the upstream status; the request URL
    is left out because it carries the API key.
    """

    default_code = ErrorCode.EXTERNAL_SERVICE_ERROR
    severity_level = Severity.MEDIUM
