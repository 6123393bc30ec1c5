"""
Request Logging Middleware

Logs method, path, status and duration of every request, binds a
correlation id for the request's lifetime and echoes it back in
X-Request-ID. Sensitive headers are redacted before logging.
"""

import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from legal_gateway.observability.logging import clear_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Headers that should be redacted (case-insensitive substring match)
SENSITIVE_HEADER_PATTERNS = [
    "authorization",
    "api-key",
    "apikey",
    "api_key",
    "app-token",
    "x-auth-token",
    "cookie",
]


def redact_sensitive_headers(headers: dict[str, str]) -> dict[str, str]:
    """
    Redact sensitive headers from a headers dictionary.

    Returns:
        Dictionary with sensitive values replaced with [REDACTED]
    """
    redacted = {}
    for key, value in headers.items():
        key_lower = key.lower()
        is_sensitive = any(pattern in key_lower for pattern in SENSITIVE_HEADER_PATTERNS)
        redacted[key] = "[REDACTED]" if is_sensitive else value
    return redacted


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging HTTP requests and responses.

    The incoming X-Request-ID is reused as correlation id; one is
    generated when absent. Remote calls made while serving the request
    forward it as X-Parent-Request-ID.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        start_time = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        set_correlation_id(request_id)

        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else "unknown"
        logger.debug(
            "Request: %s %s from %s headers=%s",
            method,
            path,
            client_host,
            redact_sensitive_headers(dict(request.headers)),
        )

        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000
            log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
            logger.log(
                log_level,
                "%s %s %s from %s duration=%.2fms",
                method,
                path,
                response.status_code,
                client_host,
                duration_ms,
            )
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Request failed: %s %s from %s error=%s: %s duration=%.2fms",
                method,
                path,
                client_host,
                type(e).__name__,
                e,
                duration_ms,
            )
            raise
        finally:
            clear_correlation_id()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
