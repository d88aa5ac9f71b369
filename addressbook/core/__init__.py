"""Cross-cutting functionality shared by every layer.

- **config**: pydantic-settings configuration
- **constants**: shared constants
- **context**: correlation ID propagation
- **exceptions**: exception hierarchy with error codes and severities
- **error_context**: redaction of sensitive values
- **logging**: loguru setup and formatters
- **observability**: OpenTelemetry tracing
"""
