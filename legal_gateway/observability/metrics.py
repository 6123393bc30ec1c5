"""
Prometheus Metrics Module

HTTP request metrics plus gateway-specific metrics: tool executions by
provider and outcome, search API pages fetched per operation, and remote
provider cost reported back by the tool services.

Pattern: Metrics collection for observability
"""

import re
import time
from typing import Any, Callable, Optional

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    make_asgi_app,
)

# =============================================================================
# Path Normalization (High Cardinality Prevention)
# =============================================================================

# Order matters: more specific patterns first
_PATH_PATTERNS = [
    (re.compile(r"/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"), "/{id}"),
    (re.compile(r"/\d+(?=/|$)"), "/{id}"),
]


def normalize_path(path: str) -> str:
    """
    Replace dynamic path segments (UUIDs, numeric IDs) with ``{id}``.

    Tool names stay in the path; the set of tools is bounded.

    Args:
        path: The URL path to normalize

    Returns:
        Normalized path
    """
    normalized = path
    for pattern, replacement in _PATH_PATTERNS:
        normalized = pattern.sub(replacement, normalized)
    return normalized


# =============================================================================
# HTTP Metrics
# =============================================================================

REQUESTS_TOTAL = Counter(
    name="legal_gateway_requests_total",
    documentation="Total number of HTTP requests",
    labelnames=["method", "path", "status"],
)

REQUEST_DURATION_SECONDS = Histogram(
    name="legal_gateway_request_duration_seconds",
    documentation="HTTP request duration in seconds",
    labelnames=["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 60.0),
)

REQUESTS_IN_PROGRESS = Gauge(
    name="legal_gateway_requests_in_progress",
    documentation="Number of HTTP requests currently being processed",
    labelnames=["method"],
)

# =============================================================================
# Gateway Metrics
# =============================================================================

TOOL_EXECUTIONS_TOTAL = Counter(
    name="legal_gateway_tool_executions_total",
    documentation="Tool executions by tool, provider and outcome",
    labelnames=["tool", "provider", "outcome"],
)

TOOL_DURATION_SECONDS = Histogram(
    name="legal_gateway_tool_duration_seconds",
    documentation="Tool execution duration in seconds",
    labelnames=["tool", "provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0),
)

SEARCH_PAGES_TOTAL = Counter(
    name="legal_gateway_search_pages_total",
    documentation="Court search API pages fetched, by operation",
    labelnames=["operation"],
)

REMOTE_COST_DOLLARS = Histogram(
    name="legal_gateway_remote_cost_dollars",
    documentation="Cost reported by remote tool services per call",
    labelnames=["provider"],
    buckets=(0.0001, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
)


# =============================================================================
# Helper Functions
# =============================================================================


def record_tool_execution(
    tool: str,
    provider: str,
    outcome: str,
    duration_seconds: float,
) -> None:
    """
    Record one tool execution.

    Args:
        tool: Tool name as called
        provider: Provider value ("local", "rada", "openreyestr")
        outcome: "success", "error" or "not_found"
        duration_seconds: Wall time of the call
    """
    TOOL_EXECUTIONS_TOTAL.labels(tool=tool, provider=provider, outcome=outcome).inc()
    if outcome != "not_found":
        TOOL_DURATION_SECONDS.labels(tool=tool, provider=provider).observe(
            duration_seconds
        )


def record_search_pages(operation: str, pages: int = 1) -> None:
    SEARCH_PAGES_TOTAL.labels(operation=operation).inc(pages)


def record_remote_cost(provider: str, cost: float) -> None:
    REMOTE_COST_DOLLARS.labels(provider=provider).observe(cost)


# =============================================================================
# MetricsMiddleware ASGI Middleware
# =============================================================================


class MetricsMiddleware:
    """
    ASGI middleware recording request count, latency and concurrency.

    Requests under an excluded prefix (the scrape endpoint by default) are
    passed through unrecorded. Long-running SSE streams are timed until the
    last body chunk is sent.
    """

    def __init__(
        self,
        app: Callable[..., Any],
        exclude_prefixes: Optional[tuple[str, ...]] = None,
    ) -> None:
        self.app = app
        self.exclude_prefixes = exclude_prefixes or ("/metrics",)

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        raw_path = scope.get("path", "/")
        if raw_path.startswith(self.exclude_prefixes):
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        path = normalize_path(raw_path)

        REQUESTS_IN_PROGRESS.labels(method=method).inc()
        start_time = time.perf_counter()
        status_code = "500"

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = str(message.get("status", 500))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration = time.perf_counter() - start_time
            REQUESTS_TOTAL.labels(method=method, path=path, status=status_code).inc()
            REQUEST_DURATION_SECONDS.labels(method=method, path=path).observe(duration)
            REQUESTS_IN_PROGRESS.labels(method=method).dec()


# =============================================================================
# Metrics Endpoint
# =============================================================================


def get_metrics_app() -> Callable[..., Any]:
    """ASGI app serving Prometheus metrics at /metrics."""
    return make_asgi_app()


def generate_metrics() -> str:
    """Prometheus exposition format text for the default registry."""
    return generate_latest(REGISTRY).decode("utf-8")
