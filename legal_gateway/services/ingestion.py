"""
Ingestion Pipeline - bulk_ingest_court_decisions

Crawls the court search API page by page for one query, keeps documents
adjudicated inside a date window, deduplicates them by doc_id and
persists each page's new documents before fetching the next page.

Guarantees per run:
- unique documents collected <= max_docs
- pages fetched <= max_pages
- no doc_id is stored twice (the store is idempotent on doc_id as well)

A failed page aborts the run with IngestionAbortedError carrying the
partial summary; pages persisted before the failure stay persisted.

Pattern: Bounded sequential crawl with explicit run state (IngestionRun)
Pattern: Cooperative cancellation via optional asyncio.Event
"""

import asyncio
import datetime as dt
import time
from typing import Any, Awaitable, Callable, Optional

from legal_gateway.clients.court_search import CourtSearchClient, normalize_response
from legal_gateway.core.exceptions import (
    DocumentStoreError,
    IngestionAbortedError,
    SearchServiceError,
)
from legal_gateway.models.documents import CaseDocument, IngestionRun
from legal_gateway.observability.logging import get_logger
from legal_gateway.observability.metrics import record_search_pages
from legal_gateway.services.cost_tracker import CostTracker, CostTrackerError
from legal_gateway.services.document_chain import to_case_document
from legal_gateway.services.document_store import DocumentStore

logger = get_logger(__name__)

OPERATION = "bulk_ingest_court_decisions"

DEFAULT_MAX_DOCS = 1000
DEFAULT_MAX_PAGES = 50
DEFAULT_PAGE_SIZE = 1000
DEFAULT_PER_PAGE_COST_USD = 0.00714
DEFAULT_LOOKBACK_YEARS = 3

SUPREME_COURT_HINT = ' Верховн КЦС КГС КАС ККС "Велика палата" "ВП ВС"'

INGESTION_NOTE = (
    "Документи збережено у сховищі; повні тексти завантажуються через "
    "load_full_texts. Реальна вартість нижча завдяки кешу та вже "
    "завантаженим документам."
)

ProgressCallback = Callable[[dict[str, Any]], Awaitable[None]]


# =============================================================================
# Date Window
# =============================================================================


def parse_date(value: Any) -> Optional[dt.date]:
    """Calendar date from an ISO date or datetime string, else None."""
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return dt.date.fromisoformat(value[:10])
    except ValueError:
        return None


def default_date_from(lookback_years: int, today: Optional[dt.date] = None) -> str:
    """ISO date ``lookback_years`` before today (Feb 29 falls back to Feb 28)."""
    today = today or dt.date.today()
    try:
        start = today.replace(year=today.year - lookback_years)
    except ValueError:
        start = today.replace(year=today.year - lookback_years, day=28)
    return start.isoformat()


def in_date_window(
    doc: dict[str, Any], date_from: Optional[str], date_to: Optional[str]
) -> bool:
    """
    True when the document's adjudication date lies inside the window.

    Documents without a parsable adjudication_date are outside every
    window. Bounds are inclusive; an unparsable bound is ignored.
    """
    doc_date = parse_date(doc.get("adjudication_date"))
    if doc_date is None:
        return False
    lower = parse_date(date_from)
    upper = parse_date(date_to)
    if lower is not None and doc_date < lower:
        return False
    if upper is not None and doc_date > upper:
        return False
    return True


def is_integer_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# =============================================================================
# Pipeline
# =============================================================================


class BulkIngestionPipeline:
    """
    Bounded crawl-filter-dedupe-persist pipeline.

    Example:
        >>> pipeline = BulkIngestionPipeline(search_client, store)
        >>> summary = await pipeline.run("стягнення заборгованості", max_docs=500)
        >>> summary["unique_doc_ids_collected"]
        500
    """

    def __init__(
        self,
        search_client: CourtSearchClient,
        store: DocumentStore,
        cost_tracker: Optional[CostTracker] = None,
        per_page_cost_usd: float = DEFAULT_PER_PAGE_COST_USD,
        max_page_size: int = DEFAULT_PAGE_SIZE,
        lookback_years: int = DEFAULT_LOOKBACK_YEARS,
    ) -> None:
        self._search = search_client
        self._store = store
        self._cost_tracker = cost_tracker
        self._per_page_cost = per_page_cost_usd
        self._max_page_size = max_page_size
        self._lookback_years = lookback_years

    def build_run(
        self,
        query: str,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        max_docs: int = DEFAULT_MAX_DOCS,
        max_pages: int = DEFAULT_MAX_PAGES,
        page_size: int = DEFAULT_PAGE_SIZE,
        supreme_court_hint: bool = True,
    ) -> IngestionRun:
        """Resolve defaults and clamps into a fresh run state."""
        hint = SUPREME_COURT_HINT if supreme_court_hint else ""
        return IngestionRun(
            query=query,
            search_query=f"{query}{hint}".strip(),
            date_from=date_from or default_date_from(self._lookback_years),
            date_to=date_to or None,
            max_docs=max_docs,
            max_pages=max_pages,
            page_size=min(self._max_page_size, max(1, page_size)),
        )

    async def run(
        self,
        query: str,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        max_docs: int = DEFAULT_MAX_DOCS,
        max_pages: int = DEFAULT_MAX_PAGES,
        page_size: int = DEFAULT_PAGE_SIZE,
        supreme_court_hint: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
        on_event: Optional[ProgressCallback] = None,
    ) -> dict[str, Any]:
        """
        Run one ingestion to completion, cancellation or failure.

        Args:
            query: Search query
            date_from: Inclusive lower bound (defaults to the lookback window)
            date_to: Inclusive upper bound
            max_docs: Ceiling on unique documents collected
            max_pages: Ceiling on pages fetched
            page_size: Results per page, clamped to 1..max_page_size
            supreme_court_hint: Append Supreme Court terms to the query
            cancel_event: Checked between pages; set it to stop early
            on_event: Awaited with a progress event after every page

        Returns:
            Run summary

        Raises:
            IngestionAbortedError: A page fetch or store write failed
        """
        run = self.build_run(
            query, date_from, date_to, max_docs, max_pages, page_size, supreme_court_hint
        )
        started = time.monotonic()
        cancelled = False
        logger.info(
            "ingestion started",
            query=run.query,
            date_from=run.date_from,
            date_to=run.date_to,
            max_docs=run.max_docs,
            max_pages=run.max_pages,
            page_size=run.page_size,
        )

        try:
            while run.pages_fetched < run.max_pages and run.unique_count < run.max_docs:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    logger.info("ingestion cancelled", pages_fetched=run.pages_fetched)
                    break

                response = await self._search.search(
                    run.search_query, limit=run.page_size, offset=run.offset
                )
                run.pages_fetched += 1
                record_search_pages(OPERATION)

                page = [d for d in normalize_response(response)["data"] if isinstance(d, dict)]
                if not page:
                    break

                new_docs = self._collect_page(run, page)
                await self._persist(new_docs)

                logger.info(
                    "ingestion page processed",
                    page=run.pages_fetched,
                    page_results=len(page),
                    new_docs=len(new_docs),
                    unique=run.unique_count,
                )
                if on_event is not None:
                    await on_event(
                        {
                            "type": "page",
                            "page": run.pages_fetched,
                            "new_docs": len(new_docs),
                            "unique_doc_ids_collected": run.unique_count,
                            "offset": run.offset,
                        }
                    )

                if len(page) < run.page_size:
                    break
                run.offset += run.page_size
        except (SearchServiceError, DocumentStoreError) as e:
            summary = self.summarize(run, started)
            await self._record_usage(run)
            logger.error(
                "ingestion aborted",
                pages_fetched=run.pages_fetched,
                unique=run.unique_count,
                error=str(e),
            )
            raise IngestionAbortedError(summary, e) from e

        await self._record_usage(run)
        summary = self.summarize(run, started)
        if cancelled:
            summary["cancelled"] = True
        logger.info(
            "ingestion finished",
            pages_fetched=run.pages_fetched,
            unique=run.unique_count,
            time_taken_ms=summary["time_taken_ms"],
        )
        return summary

    def _collect_page(self, run: IngestionRun, page: list[dict[str, Any]]) -> list[CaseDocument]:
        """Filter one page, add unseen integer ids to the run, map the new ones."""
        new_docs: list[CaseDocument] = []
        for doc in page:
            if not doc.get("doc_id") or not in_date_window(doc, run.date_from, run.date_to):
                continue
            doc_id = doc["doc_id"]
            if not is_integer_id(doc_id) or doc_id in run.seen_ids:
                continue
            if run.unique_count >= run.max_docs:
                break
            run.seen_ids.add(doc_id)
            case_doc = to_case_document(doc, self._search.document_url)
            if case_doc is not None:
                new_docs.append(case_doc)
        return new_docs

    async def _persist(self, documents: list[CaseDocument]) -> None:
        if documents:
            await self._store.upsert(documents)

    async def _record_usage(self, run: IngestionRun) -> None:
        if self._cost_tracker is None or run.pages_fetched == 0:
            return
        try:
            await self._cost_tracker.record_search_pages(
                OPERATION, run.pages_fetched, run.cost_estimate(self._per_page_cost)
            )
        except CostTrackerError as e:
            logger.warning("ingestion cost not recorded", error=str(e))

    def summarize(self, run: IngestionRun, started: float) -> dict[str, Any]:
        summary: dict[str, Any] = {
            "query": run.query,
            "search_query_used": run.search_query,
            "date_from": run.date_from,
        }
        if run.date_to:
            summary["date_to"] = run.date_to
        summary.update(
            {
                "pages_fetched": run.pages_fetched,
                "unique_doc_ids_collected": run.unique_count,
                "max_docs": run.max_docs,
                "max_pages": run.max_pages,
                "time_taken_ms": int((time.monotonic() - started) * 1000),
                "cost_estimate_usd": {
                    "search_api": run.cost_estimate(self._per_page_cost),
                    "scrape_max": round(run.unique_count * self._per_page_cost, 6),
                },
                "note": INGESTION_NOTE,
            }
        )
        return summary
