"""
Correlation ID middleware for log correlation.

This middleware tags each incoming request with a correlation ID so every
log record written while handling it (including provider fallback
warnings) can be tied back to the request.
"""

from core.logging import correlation_id_var, set_correlation_id
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a correlation ID to each request.

    The ID is:
    - Taken from the X-Correlation-ID header, or generated
    - Stored in context for the logging filter
    - Echoed in the response X-Correlation-ID header
    """

    async def dispatch(self, request: Request, call_next):
        previous = correlation_id_var.get()
        correlation_id = set_correlation_id(request.headers.get(CORRELATION_HEADER))

        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            return response
        finally:
            correlation_id_var.set(previous)
