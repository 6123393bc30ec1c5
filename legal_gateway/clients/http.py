"""
HTTP Client Factory

Every outbound service gets its own pooled httpx.AsyncClient: the remote
tool providers, the court search API and the public decision pages.
Outbound calls are never retried at the transport level; a failed call is
reported to the caller, which decides whether the run degrades or aborts.

Pattern: Factory pattern for configured HTTP clients
"""

from typing import Optional

import httpx

DEFAULT_TIMEOUT_SECONDS: float = 30.0
DEFAULT_MAX_CONNECTIONS: int = 100
DEFAULT_MAX_KEEPALIVE: int = 20

USER_AGENT = "legal-gateway/1.0"
# Decision pages are served to browsers; a bare client UA gets a stripped page.
PAGE_USER_AGENT = "Mozilla/5.0 (compatible; legal-gateway/1.0)"


def create_http_client(
    base_url: Optional[str] = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    headers: Optional[dict[str, str]] = None,
    max_connections: int = DEFAULT_MAX_CONNECTIONS,
    max_keepalive: int = DEFAULT_MAX_KEEPALIVE,
) -> httpx.AsyncClient:
    """
    JSON API client with pooling and one timeout for every phase.

    Args:
        base_url: Prefix for relative request paths
        timeout_seconds: Connect/read/write/pool timeout
        headers: Merged over the default User-Agent and Accept headers

    Example:
        >>> client = create_http_client(
        ...     base_url="https://court.searcher.api.zakononline.com.ua",
        ...     timeout_seconds=30.0,
        ... )
        >>> async with client:
        ...     response = await client.get("/v1/search", params={"search": "..."})
    """
    default_headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    default_headers.update(headers or {})

    limits = httpx.Limits(
        max_connections=max_connections,
        max_keepalive_connections=max_keepalive,
    )
    return httpx.AsyncClient(
        base_url=base_url or "",
        timeout=httpx.Timeout(timeout_seconds),
        headers=default_headers,
        transport=httpx.AsyncHTTPTransport(retries=0, limits=limits),
    )


def create_page_client(timeout_seconds: float) -> httpx.AsyncClient:
    """Client for HTML decision pages."""
    return create_http_client(
        timeout_seconds=timeout_seconds,
        headers={"User-Agent": PAGE_USER_AGENT, "Accept": "text/html"},
    )
