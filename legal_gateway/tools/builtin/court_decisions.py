"""
Court Decision Tools

Local handler for court-decision retrieval and analysis:
- get_court_decision / get_case_text (alias)
- get_case_documents_chain
- extract_document_sections
- load_full_texts
- bulk_ingest_court_decisions (streams progress)
- count_cases_by_party (streams progress)

Pattern: ToolHandler family (ToolFamily.COURT_DECISIONS)
"""

import time
from typing import Any, Optional

from legal_gateway.clients.court_search import CourtSearchClient
from legal_gateway.core.exceptions import (
    GatewayValidationError,
    IngestionAbortedError,
    ToolExecutionError,
)
from legal_gateway.models.documents import CaseDocument
from legal_gateway.models.domain import CapabilityDescriptor, ToolFamily, ToolResult
from legal_gateway.observability.logging import get_logger
from legal_gateway.services.document_chain import DocumentChainBuilder, as_doc_id
from legal_gateway.services.document_store import DocumentStore
from legal_gateway.services.ingestion import BulkIngestionPipeline
from legal_gateway.services.party_count import PartyCaseCounter
from legal_gateway.services.sectionizer import SemanticSectionizer
from legal_gateway.tools.base import (
    EventCallback,
    ToolHandler,
    bool_arg,
    int_arg,
    optional_str,
    require_str,
)

logger = get_logger(__name__)

DEFAULT_DEPTH = 2
MAX_DEPTH = 5
MAX_SECTIONS = 10
DEFAULT_LOAD_LIMIT = 1000
REASONING_BUDGETS = ("quick", "standard", "deep")

STREAMING_TOOLS = frozenset({"bulk_ingest_court_decisions", "count_cases_by_party"})

LOAD_FULL_TEXTS_NOTE = (
    "Документи збережено у сховищі за doc_id; повторне завантаження лише "
    "оновлює наявні записи."
)


# =============================================================================
# Tool Schemas
# =============================================================================

_DECISION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "doc_id": {
            "type": ["string", "number"],
            "description": "ID документа (рекомендовано)",
        },
        "case_number": {"type": "string", "description": "Номер справи, якщо doc_id невідомий"},
        "depth": {
            "type": "number",
            "default": DEFAULT_DEPTH,
            "description": "Кількість секцій у відповіді (1-5)",
        },
        "reasoning_budget": {
            "type": "string",
            "enum": list(REASONING_BUDGETS),
            "default": "standard",
        },
    },
    "required": [],
}

TOOL_DEFINITIONS: tuple[CapabilityDescriptor, ...] = (
    CapabilityDescriptor(
        name="get_court_decision",
        description=(
            "Завантаження повного тексту судового рішення та виділення секцій "
            "(FACTS / COURT_REASONING / DECISION)"
        ),
        input_schema=_DECISION_SCHEMA,
    ),
    CapabilityDescriptor(
        name="get_case_text",
        description="Повний текст судового рішення (синонім get_court_decision)",
        input_schema=_DECISION_SCHEMA,
    ),
    CapabilityDescriptor(
        name="get_case_documents_chain",
        description=(
            "Усі документи справи за її номером: рішення першої інстанції, постанови "
            "апеляції та касації (КЦС/КГС/КАС/ККС ВС), Великої Палати ВС, ухвали. "
            "Групування за інстанціями та типами."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "case_number": {
                    "type": "string",
                    "description": 'Номер справи (наприклад, "123/456/23")',
                },
                "include_full_text": {
                    "type": "boolean",
                    "default": False,
                    "description": "Додати повний текст документів",
                },
                "max_docs": {
                    "type": "number",
                    "default": 50,
                    "description": "Максимум документів на один варіант номера (1-100)",
                },
                "group_by_instance": {
                    "type": "boolean",
                    "default": True,
                    "description": "Групувати документи за інстанціями",
                },
            },
            "required": ["case_number"],
        },
    ),
    CapabilityDescriptor(
        name="extract_document_sections",
        description="Виділяє структуровані секції з повного тексту документа",
        input_schema={
            "type": "object",
            "properties": {
                "doc_id": {
                    "type": ["string", "number"],
                    "description": "ID документа для завантаження повного тексту",
                },
                "document_id": {"type": "string", "description": "Синонім doc_id"},
                "text": {"type": "string", "description": "Повний текст документа"},
            },
            "required": [],
        },
    ),
    CapabilityDescriptor(
        name="load_full_texts",
        description="Завантажує повні тексти судових рішень і зберігає їх у сховищі",
        input_schema={
            "type": "object",
            "properties": {
                "doc_ids": {
                    "type": "array",
                    "items": {"type": "number"},
                    "description": "Масив ID документів",
                },
                "max_docs": {
                    "type": "number",
                    "default": DEFAULT_LOAD_LIMIT,
                    "description": "Максимум документів (ліміт безпеки)",
                },
            },
            "required": ["doc_ids"],
        },
    ),
    CapabilityDescriptor(
        name="bulk_ingest_court_decisions",
        description=(
            "Масово знаходить судові рішення (пагінація по 1000) і зберігає їх. "
            "За замовчуванням date_from = сьогодні мінус 3 роки (фільтр локальний)."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Пошуковий запит"},
                "date_from": {"type": "string", "description": "YYYY-MM-DD"},
                "date_to": {"type": "string", "description": "YYYY-MM-DD"},
                "max_docs": {
                    "type": "number",
                    "default": 1000,
                    "description": "Максимум унікальних doc_id (ліміт безпеки)",
                },
                "max_pages": {
                    "type": "number",
                    "default": 50,
                    "description": "Максимум сторінок пошуку",
                },
                "page_size": {
                    "type": "number",
                    "default": 1000,
                    "description": "Розмір сторінки (1-1000)",
                },
                "supreme_court_hint": {
                    "type": "boolean",
                    "default": True,
                    "description": "Додати до запиту підказку для ВС (Верховн/КЦС/КГС/КАС/ККС)",
                },
            },
            "required": ["query"],
        },
    ),
    CapabilityDescriptor(
        name="count_cases_by_party",
        description="Точна кількість судових справ за назвою сторони (позивач/відповідач)",
        input_schema={
            "type": "object",
            "properties": {
                "party_name": {"type": "string", "description": "Назва компанії або ПІБ"},
                "party_type": {
                    "type": "string",
                    "enum": ["plaintiff", "defendant", "any"],
                    "default": "any",
                },
                "date_from": {"type": "string", "description": "YYYY-MM-DD"},
                "date_to": {"type": "string", "description": "YYYY-MM-DD"},
                "return_cases": {"type": "boolean", "default": False},
                "max_cases_to_return": {"type": "number", "default": 100},
            },
            "required": ["party_name"],
        },
    ),
)


# =============================================================================
# Handler
# =============================================================================


class CourtDecisionTools(ToolHandler):
    """
    Court-decision tool family.

    Example:
        >>> tools = CourtDecisionTools(search_client, store)
        >>> registry.register_handler(tools)
    """

    family = ToolFamily.COURT_DECISIONS

    def __init__(
        self,
        search_client: CourtSearchClient,
        store: DocumentStore,
        pipeline: Optional[BulkIngestionPipeline] = None,
        chain_builder: Optional[DocumentChainBuilder] = None,
        party_counter: Optional[PartyCaseCounter] = None,
        sectionizer: Optional[SemanticSectionizer] = None,
        per_page_cost_usd: float = 0.00714,
    ) -> None:
        self._search = search_client
        self._store = store
        self._pipeline = pipeline or BulkIngestionPipeline(search_client, store)
        self._chain_builder = chain_builder or DocumentChainBuilder(search_client)
        self._party_counter = party_counter or PartyCaseCounter(search_client)
        self._sectionizer = sectionizer or SemanticSectionizer()
        self._per_page_cost = per_page_cost_usd

    def get_tool_definitions(self) -> list[CapabilityDescriptor]:
        return list(TOOL_DEFINITIONS)

    def supports_streaming(self, name: str) -> bool:
        return name in STREAMING_TOOLS

    async def execute_tool(self, name: str, args: dict[str, Any]) -> Optional[ToolResult]:
        return await self._dispatch(name, args or {}, on_event=None)

    async def execute_tool_stream(
        self, name: str, args: dict[str, Any], on_event: EventCallback
    ) -> Optional[ToolResult]:
        return await self._dispatch(name, args or {}, on_event=on_event)

    async def _dispatch(
        self, name: str, args: dict[str, Any], on_event: Optional[EventCallback]
    ) -> Optional[ToolResult]:
        if name in ("get_court_decision", "get_case_text"):
            return await self.get_court_decision(args)
        if name == "get_case_documents_chain":
            return await self.get_case_documents_chain(args)
        if name == "extract_document_sections":
            return await self.extract_document_sections(args)
        if name == "load_full_texts":
            return await self.load_full_texts(args)
        if name == "bulk_ingest_court_decisions":
            return await self.bulk_ingest_court_decisions(args, on_event)
        if name == "count_cases_by_party":
            return await self.count_cases_by_party(args, on_event)
        return None

    # =========================================================================
    # get_court_decision
    # =========================================================================

    async def get_court_decision(self, args: dict[str, Any]) -> ToolResult:
        """
        Full text plus the first ``depth`` sections of one decision.

        Raises:
            GatewayValidationError: Neither doc_id nor case_number given
        """
        raw_id = next(
            (args[key] for key in ("doc_id", "document_id", "case_id") if args.get(key)),
            None,
        )
        doc_id = as_doc_id(raw_id)
        case_number = optional_str(args, "case_number")
        depth = int_arg(args, "depth", DEFAULT_DEPTH, 1, MAX_DEPTH)
        budget = args.get("reasoning_budget") or "standard"
        logger.info(
            "get_court_decision started",
            doc_id=raw_id,
            case_number=case_number,
            depth=depth,
            budget=budget,
        )

        metadata: dict[str, Any] = {}
        if doc_id is not None:
            results = await self._search.search_documents(str(doc_id), limit=1, fulldata=1)
            metadata = results[0] if results else {}
        elif case_number:
            doc_id = await self._search.resolve_doc_id_by_case_number(case_number)
        else:
            raise GatewayValidationError(
                "Provide doc_id (preferred) or case_number", field="doc_id"
            )

        full_text = ""
        if doc_id is not None:
            fetched = await self._search.get_document_full_text(doc_id)
            full_text = fetched["text"] if fetched else ""

        sections = self._sectionizer.extract_sections(full_text) if full_text else []
        payload = {
            "doc_id": doc_id,
            "case_number": metadata.get("cause_num") or metadata.get("case_number") or case_number,
            "url": metadata.get("url")
            or (self._search.document_url(doc_id) if doc_id is not None else None),
            "depth": depth,
            "sections": [
                {"type": s.type.value, "text": s.text} for s in sections[:MAX_SECTIONS]
            ][:depth],
            "full_text_length": len(full_text),
        }
        return self.wrap_response({k: v for k, v in payload.items() if v is not None})

    # =========================================================================
    # get_case_documents_chain
    # =========================================================================

    async def get_case_documents_chain(self, args: dict[str, Any]) -> ToolResult:
        case_number = require_str(args, "case_number")
        include_full_text = bool_arg(args, "include_full_text", False)
        max_docs = int_arg(args, "max_docs", 50, 1, 100)
        group = bool_arg(args, "group_by_instance", True)
        logger.info(
            "get_case_documents_chain started",
            case_number=case_number,
            include_full_text=include_full_text,
            max_docs=max_docs,
            group_by_instance=group,
        )
        payload = await self._chain_builder.build(
            case_number,
            include_full_text=include_full_text,
            max_docs=max_docs,
            group_by_instance_flag=group,
        )
        return self.wrap_response(payload)

    # =========================================================================
    # extract_document_sections
    # =========================================================================

    async def extract_document_sections(self, args: dict[str, Any]) -> ToolResult:
        """
        Raises:
            GatewayValidationError: Neither text nor doc_id given
            ToolExecutionError: The document could not be fetched
        """
        text = args.get("text")
        doc_id = args.get("doc_id") or args.get("document_id")

        if not text and doc_id:
            logger.info("fetching document for sectioning", doc_id=doc_id)
            fetched = await self._search.get_document_full_text(doc_id)
            if not fetched or not fetched.get("text"):
                raise ToolExecutionError(
                    f"Failed to load document {doc_id}: no text returned",
                    tool_name="extract_document_sections",
                )
            text = fetched["text"]

        if not text:
            raise GatewayValidationError(
                'Either "text" or "doc_id"/"document_id" must be provided', field="text"
            )

        sections = self._sectionizer.extract_sections(str(text))
        return self.wrap_response({"sections": [s.model_dump(mode="json") for s in sections]})

    # =========================================================================
    # load_full_texts
    # =========================================================================

    async def load_full_texts(self, args: dict[str, Any]) -> ToolResult:
        """
        Fetch full texts for a list of doc_ids and store them.

        Input ids are deduplicated in order and capped at ``max_docs``.
        Documents whose page yields no text are stored by id only.
        """
        doc_ids = args.get("doc_ids")
        if not isinstance(doc_ids, list) or not doc_ids:
            raise GatewayValidationError(
                "doc_ids parameter is required and must be a non-empty array",
                field="doc_ids",
                value=doc_ids,
            )
        max_docs = int_arg(args, "max_docs", DEFAULT_LOAD_LIMIT, 1)

        unique_ids: list[int] = []
        for raw in doc_ids:
            doc_id = as_doc_id(raw)
            if doc_id is not None and doc_id not in unique_ids:
                unique_ids.append(doc_id)
        duplicates_removed = len(doc_ids) - len(unique_ids)
        if duplicates_removed:
            logger.warning(
                "removed duplicate doc_ids",
                total_provided=len(doc_ids),
                unique_count=len(unique_ids),
                duplicates_removed=duplicates_removed,
            )

        started = time.monotonic()
        to_process = unique_ids[:max_docs]
        documents: list[CaseDocument] = []
        texts_loaded = 0
        for doc_id in to_process:
            fetched = await self._search.get_document_full_text(doc_id)
            if fetched:
                texts_loaded += 1
            documents.append(
                CaseDocument(
                    doc_id=doc_id,
                    url=self._search.document_url(doc_id),
                    full_text=fetched["text"] if fetched else None,
                )
            )
        await self._store.upsert(documents)

        result: dict[str, Any] = {
            "requested_docs": len(doc_ids),
            "unique_docs": len(unique_ids),
            "duplicates_removed": duplicates_removed,
            "processed_docs": len(documents),
            "full_texts_loaded": texts_loaded,
            "limited_to": max_docs,
            "time_taken_ms": int((time.monotonic() - started) * 1000),
            "estimated_cost_usd": round(len(documents) * self._per_page_cost, 6),
            "note": LOAD_FULL_TEXTS_NOTE,
        }
        if duplicates_removed:
            result["deduplication_note"] = (
                f"Виявлено та видалено {duplicates_removed} дублікатів doc_id у вхідному списку"
            )
        if len(unique_ids) > max_docs:
            result["warning"] = (
                f"Запитано {len(unique_ids)} унікальних документів, але оброблено лише "
                f"{max_docs} через ліміт безпеки"
            )
        return self.wrap_response(result)

    # =========================================================================
    # bulk_ingest_court_decisions
    # =========================================================================

    async def bulk_ingest_court_decisions(
        self, args: dict[str, Any], on_event: Optional[EventCallback] = None
    ) -> ToolResult:
        """
        Run the ingestion pipeline.

        An aborted run is reported, not raised: the partial summary comes
        back with ``error`` and ``aborted: true``.
        """
        query = require_str(args, "query")
        try:
            summary = await self._pipeline.run(
                query,
                date_from=optional_str(args, "date_from"),
                date_to=optional_str(args, "date_to"),
                max_docs=int_arg(args, "max_docs", 1000, 1),
                max_pages=int_arg(args, "max_pages", 50, 1),
                page_size=int_arg(args, "page_size", 1000),
                supreme_court_hint=bool_arg(args, "supreme_court_hint", True),
                on_event=on_event,
            )
        except IngestionAbortedError as e:
            logger.error("bulk ingest aborted", query=query, error=str(e.cause))
            return self.wrap_response({**e.summary, "error": str(e), "aborted": True})
        return self.wrap_response(summary)

    # =========================================================================
    # count_cases_by_party
    # =========================================================================

    async def count_cases_by_party(
        self, args: dict[str, Any], on_event: Optional[EventCallback] = None
    ) -> ToolResult:
        party_type = args.get("party_type") or "any"
        if party_type not in ("any", "plaintiff", "defendant"):
            raise GatewayValidationError(
                "party_type must be one of: any, plaintiff, defendant",
                field="party_type",
                value=party_type,
            )
        result = await self._party_counter.count(
            require_str(args, "party_name"),
            party_type=party_type,
            date_from=optional_str(args, "date_from"),
            date_to=optional_str(args, "date_to"),
            return_cases=bool_arg(args, "return_cases", False),
            max_cases_to_return=int_arg(args, "max_cases_to_return", 100, 0),
            on_event=on_event,
        )
        return self.wrap_response(result)
