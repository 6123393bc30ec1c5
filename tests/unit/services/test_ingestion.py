"""
Tests for the bulk ingestion pipeline.

Covers:
- Date window helpers
- Run bounds (max_docs, max_pages), pagination and deduplication
- Idempotent re-ingestion against the store
- Abort with partial summary, cancellation, progress events, cost recording
"""

import asyncio
from datetime import date
from unittest.mock import AsyncMock

import pytest

QUERY = "стягнення заборгованості"


@pytest.fixture
def store():
    from legal_gateway.services.document_store import InMemoryDocumentStore

    return InMemoryDocumentStore()


def make_pipeline(search, store, **kwargs):
    from legal_gateway.services.ingestion import BulkIngestionPipeline

    return BulkIngestionPipeline(search, store, **kwargs)


def window_docs(doc_factory, ids, adjudication_date="2023-03-01"):
    return [doc_factory(doc_id, adjudication_date=adjudication_date) for doc_id in ids]


# =============================================================================
# Date Window
# =============================================================================


class TestDateWindow:
    def test_inclusive_bounds(self) -> None:
        from legal_gateway.services.ingestion import in_date_window

        doc = {"adjudication_date": "2023-01-01T00:00:00+02:00"}

        assert in_date_window(doc, "2023-01-01", "2023-01-01")
        assert not in_date_window(doc, "2023-01-02", None)
        assert not in_date_window(doc, None, "2022-12-31")

    def test_missing_date_is_outside(self) -> None:
        from legal_gateway.services.ingestion import in_date_window

        assert not in_date_window({}, None, None)
        assert not in_date_window({"adjudication_date": "невідомо"}, None, None)

    def test_unparsable_bound_ignored(self) -> None:
        from legal_gateway.services.ingestion import in_date_window

        assert in_date_window({"adjudication_date": "2023-05-05"}, "bad", None)

    def test_default_date_from(self) -> None:
        from legal_gateway.services.ingestion import default_date_from

        assert default_date_from(3, date(2025, 6, 15)) == "2022-06-15"
        assert default_date_from(3, date(2024, 2, 29)) == "2021-02-28"

    def test_is_integer_id(self) -> None:
        from legal_gateway.services.ingestion import is_integer_id

        assert is_integer_id(5)
        assert not is_integer_id("5")
        assert not is_integer_id(True)


# =============================================================================
# Run Bounds
# =============================================================================


class TestBulkIngestion:
    @pytest.mark.asyncio
    async def test_bounded_single_page_run(self, search_factory, doc_factory, store) -> None:
        in_window = window_docs(doc_factory, range(1, 51)) + window_docs(doc_factory, range(1, 11))
        out_of_window = window_docs(doc_factory, range(1001, 1021), adjudication_date="2010-01-01")
        search = search_factory(pages=[in_window + out_of_window])

        summary = await make_pipeline(search, store).run(
            QUERY, date_from="2020-01-01", max_docs=50, max_pages=1
        )

        assert summary["unique_doc_ids_collected"] == 50
        assert summary["pages_fetched"] == 1
        assert await store.count() == 50
        assert await store.get(1001) is None

    @pytest.mark.asyncio
    async def test_reingest_is_idempotent(self, search_factory, doc_factory, store) -> None:
        page = window_docs(doc_factory, range(1, 21))
        pipeline = make_pipeline(search_factory(pages=[page, list(page)]), store)

        first = await pipeline.run(QUERY, date_from="2020-01-01")
        second = await pipeline.run(QUERY, date_from="2020-01-01")

        assert first["unique_doc_ids_collected"] == 20
        assert second["unique_doc_ids_collected"] == 20
        assert await store.count() == 20

    @pytest.mark.asyncio
    async def test_pages_until_short_page(self, search_factory, doc_factory, store) -> None:
        search = search_factory(
            pages=[
                window_docs(doc_factory, [1, 2]),
                window_docs(doc_factory, [3, 4]),
                window_docs(doc_factory, [5]),
            ]
        )

        summary = await make_pipeline(search, store).run(
            QUERY, date_from="2020-01-01", page_size=2
        )

        assert [call["offset"] for call in search.calls] == [0, 2, 4]
        assert all(call["limit"] == 2 for call in search.calls)
        assert summary["pages_fetched"] == 3
        assert summary["unique_doc_ids_collected"] == 5

    @pytest.mark.asyncio
    async def test_max_pages_respected(self, search_factory, doc_factory, store) -> None:
        search = search_factory(
            pages=[window_docs(doc_factory, [i, i + 100]) for i in range(1, 6)]
        )

        summary = await make_pipeline(search, store).run(
            QUERY, date_from="2020-01-01", page_size=2, max_pages=2
        )

        assert len(search.calls) == 2
        assert summary["pages_fetched"] == 2

    @pytest.mark.asyncio
    async def test_max_docs_stops_mid_page(self, search_factory, doc_factory, store) -> None:
        search = search_factory(pages=[window_docs(doc_factory, range(1, 11))])

        summary = await make_pipeline(search, store).run(
            QUERY, date_from="2020-01-01", max_docs=3
        )

        assert summary["unique_doc_ids_collected"] == 3
        assert await store.count() == 3

    @pytest.mark.asyncio
    async def test_empty_page_stops(self, fake_search, store) -> None:
        summary = await make_pipeline(fake_search, store).run(QUERY)

        assert summary["pages_fetched"] == 1
        assert summary["unique_doc_ids_collected"] == 0

    @pytest.mark.asyncio
    async def test_non_integer_ids_skipped(self, search_factory, doc_factory, store) -> None:
        search = search_factory(
            pages=[[doc_factory(1), doc_factory("2"), doc_factory(None), doc_factory(3.5)]]
        )

        summary = await make_pipeline(search, store).run(QUERY, date_from="2020-01-01")

        assert summary["unique_doc_ids_collected"] == 1

    @pytest.mark.asyncio
    async def test_stored_documents_are_classified(self, search_factory, doc_factory, store) -> None:
        search = search_factory(pages=[[doc_factory(9, chamber="КЦС")]])

        await make_pipeline(search, store).run(QUERY, date_from="2020-01-01")

        stored = await store.get(9)
        assert stored.instance == "Касація (КЦС ВС)"
        assert stored.document_type == "Постанова"


class TestRunParameters:
    @pytest.mark.asyncio
    async def test_supreme_court_hint(self, fake_search, store) -> None:
        from legal_gateway.services.ingestion import SUPREME_COURT_HINT

        summary = await make_pipeline(fake_search, store).run(QUERY)

        assert fake_search.calls[0]["search"] == f"{QUERY}{SUPREME_COURT_HINT}"
        assert summary["search_query_used"] == f"{QUERY}{SUPREME_COURT_HINT}"

    @pytest.mark.asyncio
    async def test_hint_disabled(self, fake_search, store) -> None:
        await make_pipeline(fake_search, store).run(QUERY, supreme_court_hint=False)

        assert fake_search.calls[0]["search"] == QUERY

    def test_defaults_and_clamps(self, fake_search, store) -> None:
        from legal_gateway.services.ingestion import default_date_from

        run = make_pipeline(fake_search, store, max_page_size=500, lookback_years=2).build_run(
            QUERY, page_size=5000
        )

        assert run.page_size == 500
        assert run.date_from == default_date_from(2)
        assert run.date_to is None

    @pytest.mark.asyncio
    async def test_summary_cost(self, search_factory, doc_factory, store) -> None:
        search = search_factory(pages=[window_docs(doc_factory, [1, 2])])

        summary = await make_pipeline(search, store, per_page_cost_usd=0.01).run(
            QUERY, date_from="2020-01-01", date_to="2024-01-01"
        )

        assert summary["date_to"] == "2024-01-01"
        assert summary["cost_estimate_usd"] == {"search_api": 0.01, "scrape_max": 0.02}
        assert "note" in summary


# =============================================================================
# Failure, Cancellation, Events
# =============================================================================


class TestAbort:
    @pytest.mark.asyncio
    async def test_failed_page_aborts_with_partial_summary(
        self, search_factory, doc_factory, store
    ) -> None:
        from legal_gateway.core.exceptions import IngestionAbortedError, SearchServiceError

        failure = SearchServiceError("HTTP 503", endpoint="/v1/search", status_code=503)
        search = search_factory(pages=[window_docs(doc_factory, [1, 2]), failure])

        with pytest.raises(IngestionAbortedError) as exc_info:
            await make_pipeline(search, store).run(QUERY, date_from="2020-01-01", page_size=2)

        error = exc_info.value
        assert error.cause is failure
        assert error.summary["pages_fetched"] == 1
        assert error.summary["unique_doc_ids_collected"] == 2
        assert await store.count() == 2

    @pytest.mark.asyncio
    async def test_store_failure_aborts(self, search_factory, doc_factory) -> None:
        from legal_gateway.core.exceptions import DocumentStoreError, IngestionAbortedError

        store = AsyncMock()
        store.upsert.side_effect = DocumentStoreError("redis down")
        search = search_factory(pages=[window_docs(doc_factory, [1])])

        with pytest.raises(IngestionAbortedError):
            await make_pipeline(search, store).run(QUERY, date_from="2020-01-01")


class TestCancellationAndEvents:
    @pytest.mark.asyncio
    async def test_cancel_event_stops_before_next_page(self, fake_search, store) -> None:
        cancel = asyncio.Event()
        cancel.set()

        summary = await make_pipeline(fake_search, store).run(QUERY, cancel_event=cancel)

        assert summary["cancelled"] is True
        assert summary["pages_fetched"] == 0
        assert fake_search.calls == []

    @pytest.mark.asyncio
    async def test_progress_event_per_page(self, search_factory, doc_factory, store) -> None:
        events: list[dict] = []

        async def on_event(event: dict) -> None:
            events.append(event)

        search = search_factory(
            pages=[window_docs(doc_factory, [1, 2]), window_docs(doc_factory, [2, 3])]
        )

        await make_pipeline(search, store).run(
            QUERY, date_from="2020-01-01", page_size=2, on_event=on_event
        )

        assert [e["page"] for e in events] == [1, 2]
        assert [e["new_docs"] for e in events] == [2, 1]
        assert events[-1]["unique_doc_ids_collected"] == 3
        assert all(e["type"] == "page" for e in events)


class TestCostRecording:
    @pytest.mark.asyncio
    async def test_pages_recorded(self, search_factory, doc_factory, store) -> None:
        tracker = AsyncMock()
        search = search_factory(pages=[window_docs(doc_factory, [1])])

        await make_pipeline(search, store, cost_tracker=tracker).run(
            QUERY, date_from="2020-01-01"
        )

        tracker.record_search_pages.assert_awaited_once_with(
            "bulk_ingest_court_decisions", 1, 0.00714
        )

    @pytest.mark.asyncio
    async def test_tracker_failure_does_not_fail_run(
        self, search_factory, doc_factory, store
    ) -> None:
        from legal_gateway.services.cost_tracker import CostTrackerError

        tracker = AsyncMock()
        tracker.record_search_pages.side_effect = CostTrackerError("down")
        search = search_factory(pages=[window_docs(doc_factory, [1])])

        summary = await make_pipeline(search, store, cost_tracker=tracker).run(
            QUERY, date_from="2020-01-01"
        )

        assert summary["unique_doc_ids_collected"] == 1
