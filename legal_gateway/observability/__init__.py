"""
Observability Package

Structured JSON logging with correlation IDs and Prometheus metrics.
"""

from legal_gateway.observability.logging import (
    clear_correlation_id,
    configure_logging,
    correlation_id_context,
    get_correlation_id,
    get_logger,
    get_tool_name,
    set_correlation_id,
    tool_context,
)
from legal_gateway.observability.metrics import (
    MetricsMiddleware,
    get_metrics_app,
    record_remote_cost,
    record_search_pages,
    record_tool_execution,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
    "tool_context",
    "get_tool_name",
    # Metrics
    "MetricsMiddleware",
    "get_metrics_app",
    "record_tool_execution",
    "record_search_pages",
    "record_remote_cost",
]
