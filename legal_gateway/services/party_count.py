"""
Count-by-Party - count_cases_by_party

Counts unique court cases mentioning a party by paging through the search
API. Date filtering happens locally because the API's own date filter is
too slow; with a date filter the crawl is capped at a page ceiling, and
every crawl stops at a safety limit of unique cases.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from legal_gateway.clients.court_search import CourtSearchClient, normalize_response
from legal_gateway.observability.logging import get_logger
from legal_gateway.observability.metrics import record_search_pages
from legal_gateway.services.ingestion import ProgressCallback, in_date_window

logger = get_logger(__name__)

OPERATION = "count_cases_by_party"

PAGE_SIZE = 1000
DEFAULT_SAFETY_LIMIT = 100_000
DEFAULT_DATE_FILTER_MAX_PAGES = 100
DEFAULT_MAX_CASES_TO_RETURN = 100

PARTY_QUERY_PREFIXES = {
    "plaintiff": "позивач ",
    "defendant": "відповідач ",
}

LOCAL_FILTER_NOTE = "Фільтрація по датах виконана локально (API-фільтр надто повільний)"


def build_party_query(party_name: str, party_type: str = "any") -> str:
    return f"{PARTY_QUERY_PREFIXES.get(party_type, '')}{party_name}"


@dataclass
class PartyCountState:
    pages_fetched: int = 0
    offset: int = 0
    total: int = 0
    seen_ids: set[Any] = field(default_factory=set)
    cases: list[dict[str, Any]] = field(default_factory=list)
    reached_page_limit: bool = False


class PartyCaseCounter:
    """
    Paging counter of unique cases per party.

    Example:
        >>> counter = PartyCaseCounter(search_client)
        >>> result = await counter.count("ТОВ Приклад", party_type="defendant")
        >>> result["search_query"]
        'відповідач ТОВ Приклад'
    """

    def __init__(
        self,
        search_client: CourtSearchClient,
        per_page_cost_usd: float = 0.00714,
        safety_limit: int = DEFAULT_SAFETY_LIMIT,
        date_filter_max_pages: int = DEFAULT_DATE_FILTER_MAX_PAGES,
    ) -> None:
        self._search = search_client
        self._per_page_cost = per_page_cost_usd
        self._safety_limit = safety_limit
        self._date_filter_max_pages = date_filter_max_pages

    async def count(
        self,
        party_name: str,
        party_type: str = "any",
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        return_cases: bool = False,
        max_cases_to_return: int = DEFAULT_MAX_CASES_TO_RETURN,
        on_event: Optional[ProgressCallback] = None,
    ) -> dict[str, Any]:
        """
        Count unique cases for a party.

        ``on_event`` is awaited with a progress event after every page.

        Raises:
            SearchServiceError: If a page fetch fails
        """
        search_query = build_party_query(party_name, party_type)
        has_date_filter = bool(date_from or date_to)
        state = PartyCountState()
        started = time.monotonic()

        while state.total < self._safety_limit:
            if has_date_filter and state.pages_fetched >= self._date_filter_max_pages:
                state.reached_page_limit = True
                break

            response = await self._search.search(
                search_query, limit=PAGE_SIZE, offset=state.offset
            )
            state.pages_fetched += 1
            record_search_pages(OPERATION)

            page = [d for d in normalize_response(response)["data"] if isinstance(d, dict)]
            if not page:
                break

            filtered = page
            if has_date_filter:
                filtered = [d for d in page if in_date_window(d, date_from, date_to)]

            unique = []
            for doc in filtered:
                doc_id = doc.get("doc_id")
                if not isinstance(doc_id, (int, str)) or not doc_id or doc_id in state.seen_ids:
                    continue
                state.seen_ids.add(doc_id)
                unique.append(doc)

            # A page of repeats means the API is cycling.
            if not unique and filtered:
                break

            state.total += len(unique)
            if return_cases:
                self._sample_cases(state, unique, max_cases_to_return)
            if on_event is not None:
                await on_event(
                    {
                        "type": "page",
                        "page": state.pages_fetched,
                        "new_docs": len(unique),
                        "total_unique_cases": state.total,
                    }
                )

            if len(page) < PAGE_SIZE:
                break
            state.offset += PAGE_SIZE

        logger.info(
            "party count finished",
            search_query=search_query,
            pages_fetched=state.pages_fetched,
            total=state.total,
            reached_page_limit=state.reached_page_limit,
        )
        return self._result(
            party_name,
            party_type,
            search_query,
            state,
            started,
            date_from=date_from,
            date_to=date_to,
            return_cases=return_cases,
        )

    def _sample_cases(
        self, state: PartyCountState, docs: list[dict[str, Any]], limit: int
    ) -> None:
        room = limit - len(state.cases)
        for doc in docs[: max(0, room)]:
            state.cases.append(
                {
                    "cause_num": doc.get("cause_num"),
                    "doc_id": doc.get("doc_id"),
                    "title": doc.get("title"),
                    "resolution": doc.get("resolution"),
                    "judge": doc.get("judge"),
                    "court_code": doc.get("court_code"),
                    "adjudication_date": doc.get("adjudication_date"),
                    "url": self._search.document_url(doc.get("doc_id")),
                }
            )

    def _result(
        self,
        party_name: str,
        party_type: str,
        search_query: str,
        state: PartyCountState,
        started: float,
        date_from: Optional[str],
        date_to: Optional[str],
        return_cases: bool,
    ) -> dict[str, Any]:
        result: dict[str, Any] = {
            "party_name": party_name,
            "party_type": party_type,
            "search_query": search_query,
            "total_unique_cases": state.total,
            "unique_doc_ids_found": len(state.seen_ids),
            "pages_fetched": state.pages_fetched,
            "time_taken_ms": int((time.monotonic() - started) * 1000),
            "cost_estimate_usd": round(state.pages_fetched * self._per_page_cost, 6),
        }
        if date_from:
            result["date_from"] = date_from
        if date_to:
            result["date_to"] = date_to
        if date_from or date_to:
            result["filtering_method"] = "local"
            result["note"] = LOCAL_FILTER_NOTE

        if state.reached_page_limit:
            scanned = state.pages_fetched * PAGE_SIZE
            result["warning"] = (
                f"Досягнуто ліміт у {self._date_filter_max_pages} сторінок. "
                f"Просканировано {scanned} справ, знайдено {state.total}."
            )
            result["scanned_documents"] = scanned
        elif state.total >= self._safety_limit:
            result["warning"] = (
                f"Досягнуто ліміт безпеки у {self._safety_limit} справ. "
                "Реальна кількість може бути більшою."
            )

        if return_cases:
            result["cases"] = state.cases
            result["cases_returned"] = len(state.cases)
        return result
