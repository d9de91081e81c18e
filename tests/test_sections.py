"""
Tests for section segmentation and placeholder placement.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from papertex.utils.lines import classify_lines, normalize_lines
from papertex.utils.tables import Table, TableSpan
from papertex.utils.equations import Equation, ContextMarker
from papertex.utils.sections import (
    SectionSegmenter,
    Section,
    TextSpan,
    TableRef,
    EquationRef,
    section_for_line,
)


def make_equation(eq_id, raw, canonical):
    return Equation(
        id=eq_id, raw_content=raw, canonical_form=canonical,
        detection_method="inline_dollar", confidence=0.95,
    )


class TestSection:
    """Test Section data class."""

    def test_content_groups_units_by_line(self):
        section = Section(number="1.", title="Intro", level=1, body=[
            TextSpan("The value", 1),
            EquationRef(2, 1),
            TextSpan("grows.", 1),
            TableRef(1, 2),
        ])
        assert section.content == "The value [EQUATION_2] grows.\n[TABLE_1]"
        assert section.table_ids == [1]
        assert section.equation_ids == [2]
        assert len(section.paragraphs) == 2

    def test_to_dict(self):
        section = Section(number="2.1", title="Method", level=2, confidence=0.95)
        d = section.to_dict()
        assert d["level"] == 2
        assert d["content"] == ""
        assert d["is_references"] is False


class TestSegmenterHeadings:
    """Test heading boundaries and levels."""

    @pytest.fixture
    def segmenter(self):
        return SectionSegmenter()

    def segment(self, segmenter, text, **kwargs):
        lines = classify_lines(normalize_lines(text), table_spans=kwargs.pop("table_spans", None))
        return segmenter.segment(lines, **kwargs)

    def test_nested_arabic_levels(self, segmenter):
        """Test 1. / 1.1 numbering becomes levels 1 and 2."""
        sections = self.segment(segmenter, "1. Intro\nText\n1.1 Sub\nMore")

        assert [s.number for s in sections] == ["1.", "1.1"]
        assert [s.level for s in sections] == [1, 2]
        assert sections[0].content == "Text"
        assert sections[1].content == "More"
        assert all(s.confidence == 0.95 for s in sections)

    def test_roman_headings(self, segmenter):
        sections = self.segment(segmenter, "I. INTRODUCTION\nA\nII. RELATED WORK\nB\nIII. METHOD\nC")
        assert [s.title for s in sections] == ["INTRODUCTION", "RELATED WORK", "METHOD"]
        assert all(s.level == 1 and s.type == "roman" for s in sections)

    def test_boundaries_cover_document(self, segmenter):
        sections = self.segment(segmenter, "Preamble line\n1. A section\nx\ny\n2. Another\nz")
        assert [(s.start_line, s.end_line) for s in sections] == [(1, 3), (4, 5)]

    def test_table_lines_never_open_sections(self, segmenter):
        text = "1. Intro\n||====||\n2. Fake heading in a cell\n||====||\nAfter"
        sections = self.segment(segmenter, text, table_spans=[(1, 3)])
        assert len(sections) == 1
        assert sections[0].title == "Intro"

    def test_references_section(self, segmenter):
        text = "1. Intro\nText $x$ here\n2. References\n[1] A. Author, $x$ paper."
        equations = [make_equation(1, "$x$", "x")]
        sections = self.segment(segmenter, text, equations=equations)

        assert not sections[0].is_references
        assert sections[1].is_references
        assert sections[0].content == "Text [EQUATION_1] here"
        # Reference entries keep their text untouched
        assert sections[1].content == "[1] A. Author, $x$ paper."

    def test_no_headings_short_text(self, segmenter):
        assert self.segment(segmenter, "Just a short note.") == []

    def test_fallback_section(self, segmenter):
        text = "\n".join(["This is an unnumbered paragraph of prose text."] * 6)
        sections = self.segment(segmenter, text)

        assert len(sections) == 1
        section = sections[0]
        assert section.number == "I."
        assert section.title == "Content"
        assert section.type == "generated"
        assert section.confidence == 0.30
        assert section.start_line == 0
        assert section.content.count("\n") == 5


class TestPlacement:
    """Test table and equation placement inside bodies."""

    @pytest.fixture
    def segmenter(self):
        return SectionSegmenter()

    def test_table_at_its_source_lines(self, segmenter):
        texts = [
            "1. Introduction", "Intro text.",
            "||====||", "||A|B||", "||1|2||", "||====||",
            "2. Results", "See Table 1 for details.",
        ]
        table = Table(id=1, grid=[["A", "B"], ["1", "2"]], caption="", label="tab:t",
                      source_span=TableSpan(start_line=2, end_line=5))
        lines = classify_lines(texts, table_spans=[(2, 5)])
        sections = segmenter.segment(lines, tables=[table])

        assert sections[0].content == "Intro text.\n[TABLE_1]"
        # Already placed, so the mention does not place it twice
        assert sections[1].content == "See Table 1 for details."

    def test_leading_table_opens_first_section(self, segmenter):
        texts = ["||====||", "||A|B||", "||====||", "1. Intro", "Text"]
        table = Table(id=1, grid=[["A", "B"]], caption="", label="tab:t",
                      source_span=TableSpan(start_line=0, end_line=2))
        lines = classify_lines(texts, table_spans=[(0, 2)])
        sections = segmenter.segment(lines, tables=[table])

        assert len(sections) == 1
        assert sections[0].content == "[TABLE_1]\nText"

    def test_table_without_lines_placed_at_mention(self, segmenter):
        table = Table(id=1, grid=[["X", "Y"]], caption="", label="tab:x")
        lines = classify_lines(["1. Intro", "As Table 1 shows, it works."])
        sections = segmenter.segment(lines, tables=[table])
        assert sections[0].content == "As Table 1 shows, it works. [TABLE_1]"

    def test_equation_replaces_its_text(self, segmenter):
        lines = classify_lines(["1. Intro", "The value $x^2$ grows."])
        sections = segmenter.segment(lines, equations=[make_equation(1, "$x^2$", "x^2")])
        assert sections[0].content == "The value [EQUATION_1] grows."

    def test_two_equations_on_one_line(self, segmenter):
        lines = classify_lines(["1. Intro", "Both $a+b$ and $c+d$ hold."])
        equations = [make_equation(1, "$c+d$", "c+d"), make_equation(2, "$a+b$", "a+b")]
        sections = segmenter.segment(lines, equations=equations)
        assert sections[0].content == "Both [EQUATION_2] and [EQUATION_1] hold."

    def test_unanchored_equation_at_marker(self, segmenter):
        lines = classify_lines(["1. Method", "We use the following equation.", "It works."])
        equation = make_equation(1, "a/b", r"\frac{a}{b}")
        markers = [ContextMarker(line_index=1, phrase="the following equation")]
        sections = segmenter.segment(lines, equations=[equation], markers=markers)
        assert sections[0].content == "We use the following equation. [EQUATION_1]\nIt works."

    def test_unanchored_equation_without_marker_left_out(self, segmenter):
        lines = classify_lines(["1. Method", "Nothing announces it."])
        sections = segmenter.segment(lines, equations=[make_equation(1, "a/b", r"\frac{a}{b}")])
        assert sections[0].equation_ids == []


class TestSectionForLine:
    """Test line to section lookup."""

    def test_lookup(self):
        sections = [
            Section(number="1.", title="A", level=1, start_line=2, end_line=4),
            Section(number="2.", title="B", level=1, start_line=5, end_line=9),
        ]
        assert section_for_line(sections, 3) == 0
        assert section_for_line(sections, 7) == 1
        assert section_for_line(sections, 0) == 0
        assert section_for_line(sections, None) == 1
        assert section_for_line([], 3) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
