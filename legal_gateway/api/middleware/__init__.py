"""HTTP middleware for the Legal Gateway API."""

from legal_gateway.api.middleware.logging import (
    RequestLoggingMiddleware,
    redact_sensitive_headers,
)

__all__ = ["RequestLoggingMiddleware", "redact_sensitive_headers"]
