"""
Document Store - storage collaborator for court documents

``upsert`` is idempotent on doc_id: re-discovering a document updates the
fields it carries and never creates a second record. Fields absent from
an upsert (None) leave stored values untouched, so id-only records do not
erase metadata saved earlier.

Pattern: Repository pattern (Protocol + Redis and in-memory implementations)
"""

import logging
from typing import Optional, Protocol, Sequence

from redis.asyncio import Redis
from redis.exceptions import RedisError

from legal_gateway.core.exceptions import DocumentStoreError
from legal_gateway.models.documents import CaseDocument

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Storage contract consumed by the ingestion tools."""

    async def upsert(self, documents: Sequence[CaseDocument]) -> int:
        """Store documents keyed by doc_id; returns how many ids were new."""
        ...

    async def get(self, doc_id: int) -> Optional[CaseDocument]:
        ...

    async def count(self) -> int:
        ...


def _merge(existing: Optional[CaseDocument], incoming: CaseDocument) -> CaseDocument:
    if existing is None:
        return incoming
    updates = incoming.model_dump(exclude_none=True)
    return existing.model_copy(update=updates)


class InMemoryDocumentStore:
    """Process-local store, used when Redis is not configured and in tests."""

    def __init__(self) -> None:
        self._documents: dict[int, CaseDocument] = {}

    async def upsert(self, documents: Sequence[CaseDocument]) -> int:
        new_ids = 0
        for doc in documents:
            existing = self._documents.get(doc.doc_id)
            if existing is None:
                new_ids += 1
            self._documents[doc.doc_id] = _merge(existing, doc)
        return new_ids

    async def get(self, doc_id: int) -> Optional[CaseDocument]:
        return self._documents.get(doc_id)

    async def count(self) -> int:
        return len(self._documents)


class RedisDocumentStore:
    """
    Redis-backed store.

    Layout:
        legal:doc:{doc_id}  hash of CaseDocument fields
        legal:doc:ids       set of stored doc_ids

    The client must be created with ``decode_responses=True``.
    """

    KEY_PREFIX = "legal:doc:"
    INDEX_KEY = "legal:doc:ids"

    def __init__(self, redis_client: Redis) -> None:
        self._redis = redis_client

    def _key(self, doc_id: int) -> str:
        return f"{self.KEY_PREFIX}{doc_id}"

    async def upsert(self, documents: Sequence[CaseDocument]) -> int:
        """
        Upsert documents in one pipeline.

        Raises:
            DocumentStoreError: If Redis fails
        """
        if not documents:
            return 0
        try:
            pipe = self._redis.pipeline()
            for doc in documents:
                fields = doc.model_dump(mode="json", exclude_none=True)
                pipe.hset(
                    self._key(doc.doc_id),
                    mapping={name: str(value) for name, value in fields.items()},
                )
                pipe.sadd(self.INDEX_KEY, doc.doc_id)
            results = await pipe.execute()
        except RedisError as e:
            raise DocumentStoreError(f"Failed to upsert {len(documents)} document(s): {e}") from e

        # sadd results sit at every second position
        return sum(int(added) for added in results[1::2])

    async def get(self, doc_id: int) -> Optional[CaseDocument]:
        try:
            data = await self._redis.hgetall(self._key(doc_id))
        except RedisError as e:
            raise DocumentStoreError(f"Failed to read document {doc_id}: {e}") from e
        if not data:
            return None
        return CaseDocument.model_validate(data)

    async def count(self) -> int:
        try:
            return int(await self._redis.scard(self.INDEX_KEY))
        except RedisError as e:
            raise DocumentStoreError(f"Failed to count documents: {e}") from e
