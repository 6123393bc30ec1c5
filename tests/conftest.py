"""
Pytest configuration and shared fixtures.

This configuration sets up:
- Test markers for categorization
- FakeRedis for the document store, full-text cache and cost tracker
- FakeSearchClient, a duck-typed stand-in for CourtSearchClient
- Settings with every provider configured
"""

from typing import Any, Optional

import fakeredis.aioredis
import pytest

from legal_gateway.clients.court_search import normalize_response

DOCUMENT_BASE_URL = "https://zakononline.ua/court-decisions/show"


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """
    Register custom markers for test categorization.

    - unit: tests for individual components
    - integration: tests for service interactions (app + lifespan)
    """
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests for service interactions")


# =============================================================================
# FakeRedis Fixture
# =============================================================================


@pytest.fixture
def fake_redis():
    """
    Create a fake Redis client for testing.

    Returns:
        FakeRedis: A fake Redis client with decode_responses=True
    """
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


# =============================================================================
# Court Search Double
# =============================================================================


class FakeSearchClient:
    """
    In-memory CourtSearchClient double.

    ``by_query`` answers searches by query text; otherwise ``pages`` are
    served in call order, then empty pages. An Exception in either place is
    raised instead of returned. Every search call is recorded in ``calls``.
    """

    def __init__(
        self,
        pages: Optional[list[Any]] = None,
        by_query: Optional[dict[str, Any]] = None,
        full_texts: Optional[dict[int, str]] = None,
    ) -> None:
        self.pages = list(pages or [])
        self.by_query = by_query or {}
        self.full_texts = full_texts or {}
        self.calls: list[dict[str, Any]] = []
        self.full_text_requests: list[Any] = []

    async def search(self, search: str, **kwargs: Any) -> Any:
        self.calls.append({"search": search, **kwargs})
        if search in self.by_query:
            response = self.by_query[search]
        elif self.pages:
            response = self.pages.pop(0)
        else:
            response = {"data": [], "total": 0}
        if isinstance(response, Exception):
            raise response
        return response

    async def search_documents(self, search: str, **kwargs: Any) -> list[dict[str, Any]]:
        response = await self.search(search, **kwargs)
        return [d for d in normalize_response(response)["data"] if isinstance(d, dict)]

    async def resolve_doc_id_by_case_number(self, case_number: str) -> Optional[int]:
        docs = await self.search_documents(case_number, target="title", limit=5)
        return int(docs[0]["doc_id"]) if docs else None

    async def get_document_full_text(self, doc_id: Any) -> Optional[dict[str, str]]:
        self.full_text_requests.append(doc_id)
        text = self.full_texts.get(int(doc_id))
        if text is None:
            return None
        return {"text": text, "html": f"<article>{text}</article>"}

    def document_url(self, doc_id: Any) -> str:
        return f"{DOCUMENT_BASE_URL}/{doc_id}"


@pytest.fixture
def fake_search():
    """Empty FakeSearchClient; tests fill ``pages`` / ``by_query``."""
    return FakeSearchClient()


# =============================================================================
# Settings Fixture
# =============================================================================


@pytest.fixture
def test_settings():
    """
    Settings with both remote providers and a court search token configured.

    No Redis: the in-memory document store is used.
    """
    from legal_gateway.core.config import Settings

    return Settings(
        service_name="legal-gateway-test",
        environment="development",
        redis_url="",
        rada_mcp_url="http://rada.test",
        rada_api_key="rada-key",
        openreyestr_mcp_url="http://openreyestr.test/",
        openreyestr_api_key="openreyestr-key",
        zakononline_api_token="search-token",
        search_min_interval_seconds=0.0,
    )


def make_doc(doc_id: Any, **fields: Any) -> dict[str, Any]:
    """Raw search result with sensible defaults."""
    doc = {
        "doc_id": doc_id,
        "cause_num": "910/1234/21",
        "title": "Постанова від 01.02.2023",
        "adjudication_date": "2023-02-01",
        "court": "Північний апеляційний господарський суд",
    }
    doc.update(fields)
    return doc


@pytest.fixture
def doc_factory():
    """Factory for raw search results (see make_doc)."""
    return make_doc


@pytest.fixture
def search_factory():
    """The FakeSearchClient class, for tests that need preloaded pages."""
    return FakeSearchClient
