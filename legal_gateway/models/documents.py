"""
Court Document Models

CaseDocument is the unit the ingestion pipeline persists and the chain
builder returns. Document type and judicial instance values are the
Ukrainian labels callers see in tool output.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class DocumentType(str, Enum):
    """Form of a judicial document."""

    DECISION = "Рішення"
    RULING = "Постанова"
    ORDER = "Ухвала"
    VERDICT = "Вирок"
    SEPARATE_ORDER = "Окрема ухвала"
    SEPARATE_OPINION = "Окрема думка"
    UNKNOWN = "Невідомо"


class Instance(str, Enum):
    """
    Judicial tier of a document.

    Cassation documents carry the chamber as well, e.g.
    ``"Касація (КЦС ВС)"``; see ``cassation_chamber``.
    """

    FIRST_INSTANCE = "Перша інстанція"
    APPEAL = "Апеляція"
    CASSATION = "Касація"
    GRAND_CHAMBER = "Велика Палата ВС"
    UNKNOWN = "Невідомо"


def cassation_chamber(chamber: str) -> str:
    """Instance label for one named cassation chamber."""
    return f"{Instance.CASSATION.value} ({chamber} ВС)"


class SectionType(str, Enum):
    FACTS = "FACTS"
    CLAIMS = "CLAIMS"
    LAW_REFERENCES = "LAW_REFERENCES"
    COURT_REASONING = "COURT_REASONING"
    DECISION = "DECISION"
    AMOUNTS = "AMOUNTS"


class DocumentSection(BaseModel):
    """A span of a decision's text recognized as one semantic section."""

    type: SectionType
    text: str
    start_index: int
    end_index: int
    confidence: float = 0.8


class CaseDocument(BaseModel):
    """
    One judicial document as persisted and returned.

    Attributes:
        doc_id: Identity from the external source; unique within a run.
        case_number: Case the document belongs to (shared across a chain).
        document_type: Classified form, a DocumentType value.
        instance: Classified tier, an Instance value or cassation chamber label.
    """

    doc_id: int
    case_number: Optional[str] = None
    document_type: str = DocumentType.UNKNOWN.value
    instance: str = Instance.UNKNOWN.value
    court: Optional[str] = None
    chamber: Optional[str] = None
    judge: Optional[str] = None
    date: Optional[str] = None
    url: Optional[str] = None
    resolution: Optional[str] = None
    snippet: Optional[str] = None
    title: Optional[str] = None
    full_text: Optional[str] = None

    def to_output(self, include_full_text: bool = False) -> dict[str, Any]:
        """Tool-output mapping; full_text only when requested and present."""
        data = self.model_dump(exclude={"full_text", "title"})
        if include_full_text and self.full_text:
            data["full_text"] = self.full_text
        return data


class IngestionRun(BaseModel):
    """
    Mutable state of one bounded crawl. Not persisted.

    ``seen_ids`` is the deduplication set; its size is the unique count.
    """

    query: str
    search_query: str
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    max_docs: int
    max_pages: int
    page_size: int
    pages_fetched: int = 0
    offset: int = 0
    seen_ids: set[int] = Field(default_factory=set)

    @property
    def unique_count(self) -> int:
        return len(self.seen_ids)

    def cost_estimate(self, per_page_cost: float) -> float:
        return round(self.pages_fetched * per_page_cost, 6)
