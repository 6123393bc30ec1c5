"""
Tests for the document store implementations.

Both stores are idempotent on doc_id and keep stored fields that a later
upsert leaves unset.
"""

from unittest.mock import MagicMock

import pytest


@pytest.fixture(params=["memory", "redis"])
def store(request, fake_redis):
    from legal_gateway.services.document_store import InMemoryDocumentStore, RedisDocumentStore

    if request.param == "memory":
        return InMemoryDocumentStore()
    return RedisDocumentStore(fake_redis)


def case_doc(doc_id: int, **fields):
    from legal_gateway.models.documents import CaseDocument

    return CaseDocument(doc_id=doc_id, **fields)


class TestUpsert:
    @pytest.mark.asyncio
    async def test_returns_new_id_count(self, store) -> None:
        assert await store.upsert([case_doc(1), case_doc(2)]) == 2
        assert await store.upsert([case_doc(2), case_doc(3)]) == 1
        assert await store.count() == 3

    @pytest.mark.asyncio
    async def test_idempotent_on_doc_id(self, store) -> None:
        await store.upsert([case_doc(1, case_number="910/1/21")])
        await store.upsert([case_doc(1, case_number="910/1/21")])

        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_unset_fields_keep_stored_values(self, store) -> None:
        await store.upsert([case_doc(1, case_number="910/1/21", court="Верховний Суд")])
        await store.upsert([case_doc(1, full_text="Текст рішення")])

        stored = await store.get(1)

        assert stored.case_number == "910/1/21"
        assert stored.court == "Верховний Суд"
        assert stored.full_text == "Текст рішення"

    @pytest.mark.asyncio
    async def test_duplicate_within_batch_counted_once(self, store) -> None:
        assert await store.upsert([case_doc(5), case_doc(5)]) == 1

    @pytest.mark.asyncio
    async def test_empty_batch(self, store) -> None:
        assert await store.upsert([]) == 0


class TestGet:
    @pytest.mark.asyncio
    async def test_missing_document(self, store) -> None:
        assert await store.get(404) is None

    @pytest.mark.asyncio
    async def test_round_trips_fields(self, store) -> None:
        await store.upsert(
            [
                case_doc(
                    9,
                    case_number="757/100/23-ц",
                    document_type="Постанова",
                    instance="Касація (КЦС ВС)",
                    date="2023-05-01",
                )
            ]
        )

        stored = await store.get(9)

        assert stored.doc_id == 9
        assert stored.instance == "Касація (КЦС ВС)"
        assert stored.date == "2023-05-01"


class TestRedisLayout:
    @pytest.mark.asyncio
    async def test_keys(self, fake_redis) -> None:
        from legal_gateway.services.document_store import RedisDocumentStore

        await RedisDocumentStore(fake_redis).upsert([case_doc(42, court="Суд")])

        assert await fake_redis.hget("legal:doc:42", "court") == "Суд"
        assert await fake_redis.sismember("legal:doc:ids", "42")

    @pytest.mark.asyncio
    async def test_redis_failure_raises_store_error(self) -> None:
        from redis.exceptions import ConnectionError as RedisConnectionError

        from legal_gateway.core.exceptions import DocumentStoreError
        from legal_gateway.services.document_store import RedisDocumentStore

        redis_client = MagicMock()
        redis_client.scard.side_effect = RedisConnectionError("down")

        with pytest.raises(DocumentStoreError):
            await RedisDocumentStore(redis_client).count()
