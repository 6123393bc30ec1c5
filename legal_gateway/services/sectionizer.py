"""
Semantic Sectionizer - regex section extraction for Ukrainian court decisions

Finds FACTS, CLAIMS, LAW_REFERENCES, COURT_REASONING, DECISION and AMOUNTS
spans in a decision's text. Markers are tried in priority order; a span
starts at a marker match and ends at the first of: 5000 characters later,
the next marker found at least 100 characters in, or a paragraph break at
least 100 characters in. Spans never overlap; earlier markers win.
"""

import logging
import re
from dataclasses import dataclass

from legal_gateway.models.documents import DocumentSection, SectionType

logger = logging.getLogger(__name__)

MAX_SECTION_LENGTH = 5000
MIN_LOOKAHEAD = 100
MAX_MATCHES_PER_PATTERN = 1000
MIN_CONFIDENCE = 0.5


@dataclass(frozen=True)
class SectionMarker:
    type: SectionType
    patterns: tuple[re.Pattern[str], ...]


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# Priority order.
SECTION_MARKERS: tuple[SectionMarker, ...] = (
    SectionMarker(
        SectionType.FACTS,
        _compile(r"встановив[а-яіїє]*", r"встановлено", r"фактичні обставини"),
    ),
    SectionMarker(
        SectionType.CLAIMS,
        _compile(r"позивач просить", r"вимагає", r"позовні вимоги"),
    ),
    SectionMarker(
        SectionType.LAW_REFERENCES,
        _compile(r"згідно зі ст\.", r"відповідно до", r"на підставі", r"ст\.\s*\d+"),
    ),
    SectionMarker(
        SectionType.COURT_REASONING,
        _compile(
            r"суд вважає",
            r"суд встановлює",
            r"суд приходить до висновку",
            r"обґрунтування",
        ),
    ),
    SectionMarker(
        SectionType.DECISION,
        _compile(r"ухвалив", r"постановив", r"рішення", r"резолютивна частина"),
    ),
    SectionMarker(
        SectionType.AMOUNTS,
        _compile(r"сума\s+\d+", r"штраф\s+\d+", r"компенсація\s+\d+", r"\d+\s+гривень"),
    ),
)


class SemanticSectionizer:
    """
    Regex-based sectionizer.

    Example:
        >>> sections = SemanticSectionizer().extract_sections(text)
        >>> [s.type for s in sections]
        [<SectionType.FACTS: 'FACTS'>, <SectionType.DECISION: 'DECISION'>]
    """

    def __init__(self, markers: tuple[SectionMarker, ...] = SECTION_MARKERS) -> None:
        self._markers = markers

    def extract_sections(self, text: str) -> list[DocumentSection]:
        """
        Extract non-overlapping sections with confidence >= 0.5, by start index.
        """
        sections: list[DocumentSection] = []
        for marker in self._markers:
            for pattern in marker.patterns:
                for count, match in enumerate(pattern.finditer(text), start=1):
                    if count > MAX_MATCHES_PER_PATTERN:
                        logger.warning(
                            "Max matches reached for pattern %s (%s)",
                            pattern.pattern,
                            marker.type.value,
                        )
                        break
                    start = match.start()
                    end = self._find_section_end(text, start)
                    if end <= start or self._overlaps(sections, start, end):
                        continue
                    sections.append(
                        DocumentSection(
                            type=marker.type,
                            text=text[start:end],
                            start_index=start,
                            end_index=end,
                        )
                    )

        scored = [
            section.model_copy(update={"confidence": self._confidence(section)})
            for section in sections
        ]
        valid = [s for s in scored if s.confidence >= MIN_CONFIDENCE]
        return sorted(valid, key=lambda s: s.start_index)

    @staticmethod
    def _overlaps(sections: list[DocumentSection], start: int, end: int) -> bool:
        return any(
            s.start_index <= start < s.end_index or s.start_index < end <= s.end_index
            for s in sections
        )

    def _find_section_end(self, text: str, start: int) -> int:
        end = start + MAX_SECTION_LENGTH

        next_marker = self._find_next_marker(text, start + MIN_LOOKAHEAD)
        if 0 < next_marker < end:
            end = next_marker

        paragraph_break = text.find("\n\n", start + MIN_LOOKAHEAD)
        if 0 < paragraph_break < end:
            end = paragraph_break

        return min(end, len(text))

    def _find_next_marker(self, text: str, from_index: int) -> int:
        if from_index >= len(text):
            return -1
        nearest = -1
        for marker in self._markers:
            for pattern in marker.patterns:
                match = pattern.search(text, from_index)
                if match is not None and (nearest == -1 or match.start() < nearest):
                    nearest = match.start()
        return nearest

    def _confidence(self, section: DocumentSection) -> float:
        confidence = 0.7
        marker = next((m for m in self._markers if m.type == section.type), None)
        if marker is not None:
            confidence += 0.1 * sum(1 for p in marker.patterns if p.search(section.text))
        if len(section.text) < 50:
            confidence -= 0.2
        if len(section.text) > 10000:
            confidence -= 0.1
        return round(min(1.0, max(0.0, confidence)), 4)
