"""Cross-cutting request handling.

Registration order in ``create_app`` puts security headers outermost, then
the correlation ID context, then request logging, so every log line written
while handling a request carries its correlation ID. Exception handlers
render every failure as an ``ErrorResponse``.
"""
