"""
Tests for SemanticSectionizer.
"""

import pytest

DECISION_TEXT = (
    "ВСТУПНА ЧАСТИНА\n\n"
    + "Суд встановив, що між сторонами укладено договір. "
    + "x" * 200
    + "\n\n"
    + "Суд вважає, що вимоги обґрунтовані. "
    + "y" * 200
    + "\n\n"
    + "ухвалив: позов задовольнити"
    + " z" * 60
)


@pytest.fixture
def sectionizer():
    from legal_gateway.services.sectionizer import SemanticSectionizer

    return SemanticSectionizer()


class TestExtractSections:
    def test_finds_sections_in_text_order(self, sectionizer) -> None:
        from legal_gateway.models.documents import SectionType

        sections = sectionizer.extract_sections(DECISION_TEXT)

        assert [s.type for s in sections] == [
            SectionType.FACTS,
            SectionType.COURT_REASONING,
            SectionType.DECISION,
        ]

    def test_section_ends_at_paragraph_break(self, sectionizer) -> None:
        facts = sectionizer.extract_sections(DECISION_TEXT)[0]

        assert facts.text.startswith("встановив")
        assert "\n\n" not in facts.text
        assert DECISION_TEXT[facts.start_index : facts.end_index] == facts.text

    def test_last_section_runs_to_end(self, sectionizer) -> None:
        decision = sectionizer.extract_sections(DECISION_TEXT)[-1]

        assert decision.end_index == len(DECISION_TEXT)

    def test_sections_do_not_overlap(self, sectionizer) -> None:
        text = "Суд встановив факти, встановлено також інше. " + "a" * 300
        sections = sectionizer.extract_sections(text)

        spans = sorted((s.start_index, s.end_index) for s in sections)
        for (_, end), (next_start, _) in zip(spans, spans[1:]):
            assert end <= next_start

    def test_confidence_threshold(self, sectionizer) -> None:
        sections = sectionizer.extract_sections(DECISION_TEXT)

        assert all(0.5 <= s.confidence <= 1.0 for s in sections)

    def test_section_length_capped(self, sectionizer) -> None:
        from legal_gateway.services.sectionizer import MAX_SECTION_LENGTH

        text = "встановлено " + "b" * 20000
        sections = sectionizer.extract_sections(text)

        assert len(sections[0].text) == MAX_SECTION_LENGTH

    def test_no_markers(self, sectionizer) -> None:
        assert sectionizer.extract_sections("текст без маркерів") == []

    def test_empty_text(self, sectionizer) -> None:
        assert sectionizer.extract_sections("") == []
