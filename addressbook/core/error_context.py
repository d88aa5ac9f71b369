"""Redaction of secrets before they reach logs or error bodies.

The distance-matrix API key travels as the ``key`` query parameter, so any
mapping that is logged or returned to a client (exception context, query
parameters, SQL parameters) passes through ``sanitize_dict`` first.

A key is sensitive when it matches ``DEFAULT_SENSITIVE_PATTERN`` or equals,
ignoring case, one of ``LogConfig.sensitive_fields``. Values under a
sensitive key are replaced by ``REDACTED``; containers are walked
recursively up to ``MAX_DEPTH`` levels. Inputs are never mutated.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Final

from addressbook.core.config import get_settings
from addressbook.core.constants import REDACTED

type SanitizableValue = (
    str | int | float | bool | None | dict[str, Any] | list[Any] | tuple[Any, ...]
)

DEFAULT_SENSITIVE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"password|passwd|pwd|secret|token|api[_-]?key|apikey|auth|credential|"
    r"private[_-]?key|access[_-]?key|session|connection[_-]?string",
    re.IGNORECASE,
)

MAX_DEPTH: Final[int] = 10


@lru_cache(maxsize=1)
def _get_sensitive_fields() -> frozenset[str]:
    """Lower-cased field names configured as sensitive."""
    return frozenset(
        name.lower() for name in get_settings().log_config.sensitive_fields
    )


def is_sensitive_field(field_name: str) -> bool:
    """Tell whether values stored under ``field_name`` must be hidden.

    Args:
        field_name: Mapping key to check.

    Returns:
        bool: True for keys such as ``key``, ``api_key`` or ``auth_token``.
    """
    return (
        DEFAULT_SENSITIVE_PATTERN.search(field_name) is not None
        or field_name.lower() in _get_sensitive_fields()
    )


def sanitize_value(
    value: SanitizableValue, field_name: str = "", depth: int = 0
) -> SanitizableValue:
    """Return ``value`` with anything sensitive replaced by ``REDACTED``.

    Args:
        value: Scalar or container to sanitize.
        field_name: Key the value was stored under, if any.
        depth: Nesting level, used to stop on deep or cyclic structures.

    Returns:
        SanitizableValue: A sanitized copy; scalars are returned as is.
    """
    if depth > MAX_DEPTH or (field_name and is_sensitive_field(field_name)):
        return REDACTED

    match value:
        case dict():
            return {
                key: sanitize_value(item, key, depth + 1) for key, item in value.items()
            }
        case list():
            return [sanitize_value(item, "", depth + 1) for item in value]
        case tuple():
            return tuple(sanitize_value(item, "", depth + 1) for item in value)
        case _:
            return value


def sanitize_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Sanitize every entry of a mapping, keyed by its name."""
    return {key: sanitize_value(value, key) for key, value in data.items()}


def sanitize_error_context(
    error: Exception, context: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Describe an exception for a log record without leaking secrets.

    The result holds the exception type and message, the sanitized
    ``context`` and, under ``error_attributes``, the exception's public
    instance attributes (for ``AddressbookError`` this includes its context
    and error code).

    Args:
        error: The exception being logged.
        context: Request details to merge in.

    Returns:
        dict[str, Any]: Fields safe to pass to the logger.
    """
    described: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }
    if context:
        described |= sanitize_dict(context)

    public_attributes = {
        name: attribute
        for name, attribute in vars(error).items()
        if not name.startswith("_")
    }
    if public_attributes:
        described["error_attributes"] = sanitize_dict(public_attributes)

    return described


def sanitize_sql_params(params: object) -> object:
    """Sanitize the parameters of a SQL statement for logging.

    Named parameters are sanitized by key. Positional parameters carry no
    names to judge by and are returned unchanged. Anything else is
    redacted outright.
    """
    if params is None or isinstance(params, (list, tuple)):
        return params
    if isinstance(params, dict):
        return sanitize_dict(params)
    return REDACTED
