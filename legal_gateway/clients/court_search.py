"""
Court Search Client

This module provides the client for the external court-decision search API
and for the public decision pages that carry each document's full text.

API notes:
- GET /v1/search, token in the X-App-Token header.
- Date filters passed as where[...] are not reliably honored, so callers
  filter dates locally.
- The API is rate sensitive: at least ``min_interval_seconds`` between
  requests, enforced across concurrent callers.
- No retries. A failed call raises SearchServiceError.

Pattern: Client adapter with injectable httpx.AsyncClient
Pattern: Read-through cache for full texts (Redis, optional)
"""

import asyncio
import json
import logging
import time
from typing import Any, Optional

import httpx
from bs4 import BeautifulSoup
from redis.asyncio import Redis
from redis.exceptions import RedisError

from legal_gateway.clients.http import create_http_client, create_page_client
from legal_gateway.core.config import Settings
from legal_gateway.core.exceptions import SearchServiceError

logger = logging.getLogger(__name__)

SEARCH_ENDPOINT = "/v1/search"
SEARCH_MODE = "sph04"
DEFAULT_SEARCH_LIMIT = 40
MIN_FULL_TEXT_LENGTH = 100
FULL_TEXT_CACHE_PREFIX = "legal:fulltext:"

# Containers tried in order when extracting a decision's text.
ARTICLE_SELECTORS = ("#article-container", "article", "main", ".document-content")


def normalize_response(response: Any) -> dict[str, Any]:
    """
    Normalize search responses to ``{"data": [...], "total": n}``.

    A bare list becomes the data; a dict with a list ``data`` keeps its
    ``total`` and ``meta``; anything else is wrapped as one item.
    """
    if isinstance(response, list):
        return {"data": response, "total": len(response)}

    if isinstance(response, dict) and isinstance(response.get("data"), list):
        return {
            "data": response["data"],
            "total": response.get("total") or len(response["data"]),
            "meta": response.get("meta"),
        }

    return {"data": [response], "total": 1}


def build_query_params(
    search: str,
    target: str = "text",
    limit: int = DEFAULT_SEARCH_LIMIT,
    offset: int = 0,
    fulldata: Optional[int] = None,
    where: Optional[dict[str, dict[str, Any]]] = None,
) -> dict[str, Any]:
    """
    Build /v1/search query parameters.

    ``where`` maps a field to ``{"op": ..., "value": ...}`` and is flattened
    to ``where[field][op]`` / ``where[field][value]`` (or
    ``where[field][value][i]`` for list values).
    """
    params: dict[str, Any] = {
        "target": target,
        "mode": SEARCH_MODE,
        "limit": limit,
    }
    if search:
        params["search"] = search
    if offset:
        params["offset"] = offset
    if fulldata is not None:
        params["fulldata"] = fulldata

    for field, condition in (where or {}).items():
        params[f"where[{field}][op]"] = condition.get("op", "$eq")
        value = condition.get("value")
        if isinstance(value, list):
            for idx, item in enumerate(value):
                params[f"where[{field}][value][{idx}]"] = item
        else:
            params[f"where[{field}][value]"] = value
    return params


def extract_article_text(html: str) -> tuple[str, str]:
    """
    Extract a decision's text and article HTML from its public page.

    Returns:
        (text, article_html); text is empty when nothing usable is found
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    container = None
    for selector in ARTICLE_SELECTORS:
        container = soup.select_one(selector)
        if container is not None:
            break
    if container is None:
        container = soup.body or soup

    text = container.get_text(separator="\n", strip=True)
    return text, str(container)


class CourtSearchClient:
    """
    Client for the court search API and decision pages.

    Example:
        >>> client = CourtSearchClient.from_settings(get_settings())
        >>> page = await client.search_documents("поставки", limit=1000)
        >>> full = await client.get_document_full_text(page[0]["doc_id"])
    """

    def __init__(
        self,
        tokens: list[str],
        base_url: str = "https://court.searcher.api.zakononline.com.ua",
        document_base_url: str = "https://zakononline.ua/court-decisions/show",
        timeout_seconds: float = 30.0,
        full_text_timeout_seconds: float = 15.0,
        min_interval_seconds: float = 0.2,
        http_client: Optional[httpx.AsyncClient] = None,
        page_client: Optional[httpx.AsyncClient] = None,
        redis: Optional[Redis] = None,
        cache_ttl_seconds: int = 7 * 24 * 3600,
    ) -> None:
        """
        Initialize CourtSearchClient.

        Args:
            tokens: API tokens in preference order; the first is used
            base_url: Search API base URL
            document_base_url: Public decision page prefix
            timeout_seconds: Search request timeout
            full_text_timeout_seconds: Decision page timeout
            min_interval_seconds: Minimum spacing between search requests
            http_client: Optional pre-configured search client (for testing)
            page_client: Optional pre-configured page client (for testing)
            redis: Optional Redis client for the full-text cache
            cache_ttl_seconds: Full-text cache TTL
        """
        self._tokens = list(tokens)
        self._document_base_url = document_base_url.rstrip("/")
        self._min_interval = min_interval_seconds
        self._full_text_timeout = full_text_timeout_seconds
        self._redis = redis
        self._cache_ttl = cache_ttl_seconds
        self._rate_lock = asyncio.Lock()
        self._last_request_at = 0.0

        self._owned: list[httpx.AsyncClient] = []
        if http_client is None:
            http_client = create_http_client(
                base_url=base_url, timeout_seconds=timeout_seconds
            )
            self._owned.append(http_client)
        if page_client is None:
            page_client = create_page_client(full_text_timeout_seconds)
            self._owned.append(page_client)
        self._client = http_client
        self._page_client = page_client

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        redis: Optional[Redis] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        page_client: Optional[httpx.AsyncClient] = None,
    ) -> "CourtSearchClient":
        return cls(
            tokens=settings.search_tokens(),
            base_url=settings.court_search_base_url,
            document_base_url=settings.court_document_base_url,
            timeout_seconds=settings.search_timeout_seconds,
            full_text_timeout_seconds=settings.full_text_timeout_seconds,
            min_interval_seconds=settings.search_min_interval_seconds,
            http_client=http_client,
            page_client=page_client,
            redis=redis,
            cache_ttl_seconds=settings.full_text_cache_ttl_seconds,
        )

    async def close(self) -> None:
        """Close HTTP clients owned by this instance."""
        for client in self._owned:
            await client.aclose()

    async def __aenter__(self) -> "CourtSearchClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def document_url(self, doc_id: Any) -> str:
        return f"{self._document_base_url}/{doc_id}"

    # =========================================================================
    # Rate Limiting
    # =========================================================================

    async def _wait_for_rate_limit(self) -> None:
        """Hold the caller until the minimum interval since the last request has passed."""
        async with self._rate_lock:
            elapsed = time.monotonic() - self._last_request_at
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_at = time.monotonic()

    # =========================================================================
    # Search
    # =========================================================================

    async def search(
        self,
        search: str,
        *,
        target: str = "text",
        limit: int = DEFAULT_SEARCH_LIMIT,
        offset: int = 0,
        fulldata: Optional[int] = None,
        where: Optional[dict[str, dict[str, Any]]] = None,
    ) -> Any:
        """
        Run one search request and return the raw JSON body.

        Args:
            search: Query text
            target: "text" (full text) or "title"
            limit: Page size
            offset: Result offset
            fulldata: 1 to request full metadata
            where: Server-side filters (not reliable for dates)

        Raises:
            SearchServiceError: On missing token, timeout, non-2xx or network failure
        """
        if not self._tokens:
            raise SearchServiceError(
                "No court search API token configured", endpoint=SEARCH_ENDPOINT
            )

        params = build_query_params(
            search, target=target, limit=limit, offset=offset, fulldata=fulldata, where=where
        )
        await self._wait_for_rate_limit()
        logger.debug("Court search request target=%s offset=%s limit=%s", target, offset, limit)

        try:
            response = await self._client.get(
                SEARCH_ENDPOINT,
                params=params,
                headers={"X-App-Token": self._tokens[0]},
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise SearchServiceError(
                f"Court search returned HTTP {e.response.status_code}",
                endpoint=SEARCH_ENDPOINT,
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise SearchServiceError(
                f"Court search timed out: {e}", endpoint=SEARCH_ENDPOINT
            ) from e
        except httpx.RequestError as e:
            raise SearchServiceError(
                f"Court search unavailable: {e}", endpoint=SEARCH_ENDPOINT
            ) from e
        except ValueError as e:
            raise SearchServiceError(
                f"Court search returned invalid JSON: {e}", endpoint=SEARCH_ENDPOINT
            ) from e

    async def search_documents(self, search: str, **kwargs: Any) -> list[dict[str, Any]]:
        """Search and return the normalized result list."""
        response = await self.search(search, **kwargs)
        return [doc for doc in normalize_response(response)["data"] if isinstance(doc, dict)]

    async def resolve_doc_id_by_case_number(self, case_number: str) -> Optional[int]:
        """
        First doc_id a title search returns for a case number.

        Returns None when nothing matches.
        """
        case_number = (case_number or "").strip()
        if not case_number:
            return None
        docs = await self.search_documents(case_number, target="title", limit=5)
        if not docs:
            return None
        raw = docs[0].get("doc_id")
        try:
            return int(raw)
        except (TypeError, ValueError):
            return None

    # =========================================================================
    # Full Text
    # =========================================================================

    async def get_document_full_text(self, doc_id: Any) -> Optional[dict[str, str]]:
        """
        Fetch and parse a decision's public page.

        Degrades to None on fetch or parse failure; cache errors are logged
        and bypassed.

        Returns:
            {"text": ..., "html": ...} or None
        """
        cache_key = f"{FULL_TEXT_CACHE_PREFIX}{doc_id}"
        cached = await self._cache_get(cache_key)
        if cached is not None:
            logger.debug("Full text cache hit for %s", doc_id)
            return cached

        url = self.document_url(doc_id)
        logger.info("Fetching full text from %s", url)
        try:
            response = await self._page_client.get(url, timeout=self._full_text_timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Decision page %s returned HTTP %s", doc_id, e.response.status_code
            )
            return None
        except httpx.RequestError as e:
            logger.warning("Failed to fetch decision page %s: %s", doc_id, e)
            return None

        text, html = extract_article_text(response.text)
        if len(text) <= MIN_FULL_TEXT_LENGTH:
            logger.warning("Decision page %s has no usable text (%d chars)", doc_id, len(text))
            return None

        result = {"text": text, "html": html}
        await self._cache_set(cache_key, result)
        return result

    async def _cache_get(self, key: str) -> Optional[dict[str, str]]:
        if self._redis is None:
            return None
        try:
            raw = await self._redis.get(key)
        except RedisError as e:
            logger.warning("Full text cache read failed: %s", e)
            return None
        return json.loads(raw) if raw else None

    async def _cache_set(self, key: str, value: dict[str, str]) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.setex(key, self._cache_ttl, json.dumps(value, ensure_ascii=False))
        except RedisError as e:
            logger.warning("Full text cache write failed: %s", e)
