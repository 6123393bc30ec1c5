"""
Document Chain Builder - every judicial document of one case

Given a case number, generates its alternate renderings, runs a title
search per variant, keeps only results whose own case number is one of
the variants, classifies each document's type and judicial instance, and
groups the chain by instance.

Classification uses priority-ordered keyword tables: the first matching
row wins. A text mentioning both "Постанова" and "Ухвала" is therefore a
"Постанова". The row order is kept as-is pending legal-domain review.

Pattern: Pure classification functions over explicit rule tables
Pattern: Sequential crawl (variants fetched strictly in order)
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from legal_gateway.clients.court_search import CourtSearchClient, normalize_response
from legal_gateway.core.exceptions import SearchServiceError
from legal_gateway.models.documents import (
    CaseDocument,
    DocumentType,
    Instance,
    cassation_chamber,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DOCS = 50
MAX_DOCS_LIMIT = 100
DEFAULT_EARLY_EXIT_THRESHOLD = 10


# =============================================================================
# Case Number Variations
# =============================================================================

_CASE_NUMBER_PATTERN = re.compile(r"^(\d+/\d+/)(\d{2,4})(-[а-яіїєґА-ЯІЇЄҐ])?$")


def generate_case_number_variations(case_number: str) -> list[str]:
    """
    Alternate renderings of a case number, original first.

    ``123/456/23`` also yields ``123/456/2023``; two-digit years below 50
    map to 20xx, the rest to 19xx. A trailing letter suffix (``-ц``) adds
    suffix-less forms.

    Example:
        >>> generate_case_number_variations("910/1234/21-ц")
        ['910/1234/21-ц', '910/1234/2021-ц', '910/1234/21', '910/1234/2021']
    """
    variations = [case_number]
    match = _CASE_NUMBER_PATTERN.match(case_number)
    if match:
        prefix, year, suffix = match.group(1), match.group(2), match.group(3) or ""
        short_year = long_year = year
        if len(year) == 2:
            long_year = f"20{year}" if int(year) < 50 else f"19{year}"
        elif len(year) == 4:
            short_year = year[-2:]

        candidates = [f"{prefix}{short_year}{suffix}", f"{prefix}{long_year}{suffix}"]
        if suffix:
            candidates += [f"{prefix}{short_year}", f"{prefix}{long_year}"]
        for candidate in candidates:
            if candidate not in variations:
                variations.append(candidate)
    return variations


# =============================================================================
# Classification Tables
# =============================================================================

Rule = tuple[tuple[str, ...], str]

# Explicit form fields, checked in order; the first non-empty one is used.
FORM_FIELDS = ("judgment_form", "form_name", "judgment_form_name")

# Lowercased form keywords.
FORM_TYPE_RULES: tuple[Rule, ...] = (
    (("постанова",), DocumentType.RULING.value),
    (("рішення",), DocumentType.DECISION.value),
    (("ухвала",), DocumentType.ORDER.value),
    (("вирок",), DocumentType.VERDICT.value),
    (("окрема",), DocumentType.SEPARATE_ORDER.value),
)

# Title/snippet fallback, case-sensitive.
TEXT_TYPE_RULES: tuple[Rule, ...] = (
    (("Постанова",), DocumentType.RULING.value),
    (("Рішення",), DocumentType.DECISION.value),
    (("Ухвала",), DocumentType.ORDER.value),
    (("Окрема думка",), DocumentType.SEPARATE_OPINION.value),
)

# "кас" precedes "ккс", so a chamber text containing both reads as КАС.
CHAMBER_INSTANCE_RULES: tuple[Rule, ...] = (
    (("велика палата", "вп вс"), Instance.GRAND_CHAMBER.value),
    (("кцс", "касаційний цивільний"), cassation_chamber("КЦС")),
    (("кгс", "касаційний господарський"), cassation_chamber("КГС")),
    (("кас", "касаційний адміністративний"), cassation_chamber("КАС")),
    (("ккс", "касаційний кримінальний"), cassation_chamber("ККС")),
)

COURT_INSTANCE_RULES: tuple[Rule, ...] = (
    (("велика палата", "вп вс"), Instance.GRAND_CHAMBER.value),
    (("касаці", "верховн"), Instance.CASSATION.value),
    (("апеляці",), Instance.APPEAL.value),
    (("окружний", "районний", "міськ"), Instance.FIRST_INSTANCE.value),
)

FIRST_INSTANCE_COURT_PATTERN = re.compile(
    r"господарський суд .*(області|міста)|цивільний суд .*(області|міста)|адміністративний суд"
)

TITLE_INSTANCE_RULES: tuple[Rule, ...] = (
    (("касаці",), Instance.CASSATION.value),
    (("апеляці",), Instance.APPEAL.value),
)

_SNIPPET_COURT_PATTERN = re.compile(
    r"по справі №.*?\d+/\d+/\d+[^\s]*\s+(.+?)(?:<|$)", re.IGNORECASE
)


def first_matching_rule(text: str, rules: tuple[Rule, ...]) -> Optional[str]:
    """Label of the first rule with a keyword contained in ``text``."""
    for keywords, label in rules:
        if any(keyword in text for keyword in keywords):
            return label
    return None


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _form_field(doc: dict[str, Any]) -> str:
    for field in FORM_FIELDS:
        value = doc.get(field)
        if value:
            return str(value)
    metadata = doc.get("metadata")
    if isinstance(metadata, dict) and metadata.get("judgment_form"):
        return str(metadata["judgment_form"])
    return ""


def classify_document_type(doc: dict[str, Any]) -> str:
    """
    Document form from the explicit form field, else title/snippet.

    Returns:
        A DocumentType value; "Невідомо" when nothing matches
    """
    label = first_matching_rule(_form_field(doc).lower(), FORM_TYPE_RULES)
    if label:
        return label

    title = _text(doc.get("title"))
    snippet = _text(doc.get("snippet"))
    for keywords, label in TEXT_TYPE_RULES:
        if any(k in title or k in snippet for k in keywords):
            return label
    return DocumentType.UNKNOWN.value


def classify_instance(doc: dict[str, Any]) -> str:
    """
    Judicial instance from chamber, then court (or snippet), then title.

    Returns:
        An Instance value or a "Касація (<chamber> ВС)" label
    """
    chamber = _text(doc.get("chamber")).lower()
    label = first_matching_rule(chamber, CHAMBER_INSTANCE_RULES)
    if label:
        return label

    court = (_text(doc.get("court")) or _text(doc.get("court_name"))).lower()
    court_text = court or _text(doc.get("snippet")).lower()
    label = first_matching_rule(court_text, COURT_INSTANCE_RULES)
    if label:
        return label
    if FIRST_INSTANCE_COURT_PATTERN.search(court_text):
        return Instance.FIRST_INSTANCE.value

    label = first_matching_rule(_text(doc.get("title")).lower(), TITLE_INSTANCE_RULES)
    return label or Instance.UNKNOWN.value


def extract_court_from_snippet(snippet: Optional[str]) -> Optional[str]:
    """Court name following the case number in a search snippet."""
    if not snippet:
        return None
    match = _SNIPPET_COURT_PATTERN.search(snippet)
    if match and match.group(1):
        return match.group(1).strip()
    return None


# =============================================================================
# Mapping
# =============================================================================


def raw_doc_id(doc: dict[str, Any]) -> Any:
    return doc.get("doc_id") or doc.get("zakononline_id")


def as_doc_id(value: Any) -> Optional[int]:
    """Integer document id, or None for missing/non-numeric ids."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def to_case_document(
    doc: dict[str, Any],
    document_url: Callable[[Any], str],
    fallback_case_number: Optional[str] = None,
) -> Optional[CaseDocument]:
    """
    Classify one raw search result into a CaseDocument.

    Returns None when the result has no usable doc_id.
    """
    doc_id = as_doc_id(raw_doc_id(doc))
    if doc_id is None:
        return None
    snippet = _text(doc.get("snippet")) or None
    return CaseDocument(
        doc_id=doc_id,
        case_number=_text(doc.get("cause_num"))
        or _text(doc.get("case_number"))
        or fallback_case_number,
        document_type=classify_document_type(doc),
        instance=classify_instance(doc),
        court=_text(doc.get("court"))
        or _text(doc.get("court_name"))
        or extract_court_from_snippet(snippet),
        chamber=_text(doc.get("chamber")) or None,
        judge=_text(doc.get("judge")) or None,
        date=_text(doc.get("adjudication_date")) or _text(doc.get("date")) or None,
        url=_text(doc.get("url")) or document_url(doc_id),
        resolution=_text(doc.get("resolution")) or None,
        snippet=snippet,
        title=_text(doc.get("title")) or None,
        full_text=_text(doc.get("full_text")) or None,
    )


# =============================================================================
# Grouping and Summary
# =============================================================================

GROUP_ORDER = (
    Instance.FIRST_INSTANCE.value,
    Instance.APPEAL.value,
    Instance.CASSATION.value,
    Instance.GRAND_CHAMBER.value,
    Instance.UNKNOWN.value,
)


def group_by_instance(documents: list[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    """
    Bucket mapped documents by instance; all cassation chambers share one
    bucket and empty buckets are dropped.
    """
    groups: dict[str, list[dict[str, Any]]] = {name: [] for name in GROUP_ORDER}
    for doc in documents:
        instance = doc.get("instance") or Instance.UNKNOWN.value
        if instance.startswith(Instance.CASSATION.value):
            groups[Instance.CASSATION.value].append(doc)
        elif instance in groups:
            groups[instance].append(doc)
        else:
            groups[Instance.UNKNOWN.value].append(doc)
    return {name: docs for name, docs in groups.items() if docs}


def summarize(documents: list[CaseDocument]) -> dict[str, Any]:
    instances = [d.instance for d in documents]
    types = [d.document_type for d in documents]
    return {
        "instances": {
            "first_instance": instances.count(Instance.FIRST_INSTANCE.value),
            "appeal": instances.count(Instance.APPEAL.value),
            "cassation": sum(1 for i in instances if Instance.CASSATION.value in i),
            "grand_chamber": instances.count(Instance.GRAND_CHAMBER.value),
        },
        "document_types": {
            "decisions": sum(
                1 for t in types if t in (DocumentType.DECISION.value, DocumentType.VERDICT.value)
            ),
            "rulings": types.count(DocumentType.RULING.value),
            "orders": sum(1 for t in types if DocumentType.ORDER.value in t),
        },
    }


# =============================================================================
# Chain Builder
# =============================================================================


@dataclass
class SearchStats:
    """Counters surfaced in the response so the lossy search can be audited."""

    by_title: int = 0
    duplicates: int = 0
    filtered_out: int = 0


class DocumentChainBuilder:
    """
    Finds and groups all documents of one case.

    Example:
        >>> builder = DocumentChainBuilder(court_search_client)
        >>> chain = await builder.build("910/1234/21")
        >>> chain["search_strategy"]["sources"]
        {'by_title': 4, 'filtered_out': 1, 'duplicates_removed': 2}
    """

    def __init__(
        self,
        search_client: CourtSearchClient,
        early_exit_threshold: int = DEFAULT_EARLY_EXIT_THRESHOLD,
    ) -> None:
        self._search = search_client
        self._early_exit_threshold = early_exit_threshold

    async def collect(
        self, variations: list[str], max_docs: int
    ) -> tuple[list[dict[str, Any]], SearchStats]:
        """
        Title-search each variant in order and keep exact case-number matches.

        A result's own case number, trimmed and lowercased, must be one of
        the variants; results without a case number are kept. Stops once
        more than ``early_exit_threshold`` matches are confirmed. A failed
        variant search is logged and skipped.
        """
        accepted: list[dict[str, Any]] = []
        seen: set[int] = set()
        allowed = {v.lower() for v in variations}
        stats = SearchStats()

        for variation in variations:
            try:
                response = await self._search.search(
                    variation, target="title", limit=max_docs, fulldata=1
                )
            except SearchServiceError as e:
                logger.warning("Title search failed for variation %r: %s", variation, e)
                continue

            for doc in normalize_response(response)["data"]:
                if not isinstance(doc, dict):
                    continue
                doc_id = as_doc_id(raw_doc_id(doc))
                if doc_id is None:
                    continue
                if doc_id in seen:
                    stats.duplicates += 1
                    continue
                seen.add(doc_id)

                doc_case_number = (
                    _text(doc.get("cause_num")) or _text(doc.get("case_number"))
                ).strip().lower()
                if doc_case_number and doc_case_number not in allowed:
                    stats.filtered_out += 1
                    continue

                accepted.append(doc)
                stats.by_title += 1

            if stats.by_title > self._early_exit_threshold:
                break

        accepted.sort(key=lambda d: _text(d.get("adjudication_date")) or _text(d.get("date")))
        return accepted, stats

    async def build(
        self,
        case_number: str,
        include_full_text: bool = False,
        max_docs: int = DEFAULT_MAX_DOCS,
        group_by_instance_flag: bool = True,
    ) -> dict[str, Any]:
        """
        Build the document chain payload for one case.

        Args:
            case_number: Case number as the caller wrote it
            include_full_text: Include full_text where the search returned it
            max_docs: Per-variant result limit, clamped to 1..100
            group_by_instance_flag: Group by instance instead of a flat list

        Returns:
            Payload with documents or grouped_documents, search_strategy and summary
        """
        case_number = case_number.strip()
        max_docs = min(MAX_DOCS_LIMIT, max(1, max_docs))
        variations = generate_case_number_variations(case_number)
        logger.info("Building document chain for %s (variations: %s)", case_number, variations)

        raw_docs, stats = await self.collect(variations, max_docs)

        if not raw_docs:
            return {
                "case_number": case_number,
                "total_documents": 0,
                "documents": [],
                "search_stats": {
                    "by_title": stats.by_title,
                    "duplicates": stats.duplicates,
                    "filtered_out": stats.filtered_out,
                },
                "message": (
                    f"No documents found for case number: {case_number} "
                    f"(tried variations: {', '.join(variations)})"
                ),
            }

        documents = [
            doc
            for doc in (
                to_case_document(raw, self._search.document_url, case_number)
                for raw in raw_docs
            )
            if doc is not None
        ]
        mapped = [doc.to_output(include_full_text) for doc in documents]

        payload: dict[str, Any] = {
            "case_number": case_number,
            "total_documents": len(mapped),
        }
        if group_by_instance_flag:
            payload["grouped_documents"] = group_by_instance(mapped)
        else:
            payload["documents"] = mapped
        payload["search_strategy"] = {
            "variations_tried": variations,
            "sources": {
                "by_title": stats.by_title,
                "filtered_out": stats.filtered_out,
                "duplicates_removed": stats.duplicates,
            },
            "note": (
                "Title search with exact case number post-filtering to ensure only "
                "documents belonging to this case are returned"
            ),
        }
        payload["summary"] = summarize(documents)
        return payload
