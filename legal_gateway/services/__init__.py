"""
Services Package

Business logic of the gateway: the ingestion pipeline, the document chain
builder, count-by-party, the semantic sectionizer, document storage and
cost tracking.

Only client-independent modules are re-exported here; import the
pipeline, chain builder and counter from their own modules.
"""

from legal_gateway.services.cost_tracker import CostTracker, CostTrackerError, UsageSummary
from legal_gateway.services.document_store import (
    DocumentStore,
    InMemoryDocumentStore,
    RedisDocumentStore,
)
from legal_gateway.services.sectionizer import SemanticSectionizer

__all__ = [
    "CostTracker",
    "CostTrackerError",
    "UsageSummary",
    "DocumentStore",
    "InMemoryDocumentStore",
    "RedisDocumentStore",
    "SemanticSectionizer",
]
