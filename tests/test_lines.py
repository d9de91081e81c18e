"""
Tests for line normalization and classification.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from papertex.utils.lines import (
    LineClassifier,
    normalize_lines,
    parse_heading,
    match_abstract_marker,
    match_keyword_marker,
    strip_punctuation,
)


class TestNormalizeLines:
    """Test line normalization."""

    def test_blank_lines_dropped(self):
        """Test that blank and whitespace-only lines are removed."""
        lines = normalize_lines("  Title  \n\n   \nBody text\r\n")
        assert lines == ["Title", "Body text"]

    def test_empty_input(self):
        """Test empty input yields no lines."""
        assert normalize_lines("") == []
        assert normalize_lines(None) == []


class TestParseHeading:
    """Test heading pattern parsing."""

    def test_arabic_level_one(self):
        heading = parse_heading("1. Introduction")
        assert heading.number == "1."
        assert heading.title == "Introduction"
        assert heading.level == 1
        assert heading.style == "arabic"

    def test_arabic_nested_levels(self):
        """Test level = internal separators + 1."""
        assert parse_heading("2.1 Method").level == 2
        assert parse_heading("4.1.2. Details").level == 3
        assert parse_heading("2.1 Method").number == "2.1"

    def test_roman_always_level_one(self):
        heading = parse_heading("IV. Results and Discussion")
        assert heading.number == "IV."
        assert heading.level == 1
        assert heading.style == "roman"

    def test_undotted_roman_needs_capital_title(self):
        """Test that prose starting with 'I' is not a heading."""
        assert parse_heading("I think this works") is None
        assert parse_heading("II Related Work") is not None

    def test_numbers_in_prose_are_not_headings(self):
        assert parse_heading("2020 was a difficult year") is None
        assert parse_heading("12345 Title") is None

    def test_title_may_start_with_digit(self):
        heading = parse_heading("3. 5G Networks")
        assert heading.title == "5G Networks"
        assert heading.level == 1
        assert parse_heading("IV. 3D Reconstruction").title == "3D Reconstruction"
        assert parse_heading("1. 5 participants joined") is None

    def test_long_lines_are_not_headings(self):
        text = "1. " + "word " * 40
        assert parse_heading(text, max_length=120) is None


class TestMarkers:
    """Test abstract and keyword marker detection."""

    @pytest.mark.parametrize("text,expected", [
        ("Abstract: We study X.", "We study X."),
        ("Abstract— We study X.", "We study X."),
        ("ABSTRACT - We study X.", "We study X."),
        ("Abstract", ""),
    ])
    def test_abstract_marker(self, text, expected):
        assert match_abstract_marker(text) == expected

    def test_abstract_word_in_prose(self):
        assert match_abstract_marker("Abstractions help programmers") is None

    def test_keyword_markers(self):
        assert match_keyword_marker("Keywords: x, y") == "x, y"
        assert match_keyword_marker("Index Terms— security, privacy") == "security, privacy"
        assert match_keyword_marker("The keywords are listed") is None

    def test_strip_punctuation(self):
        assert strip_punctuation("Accuracy (%)") == "Accuracy"


class TestLineClassifier:
    """Test structural flags."""

    @pytest.fixture
    def classifier(self):
        return LineClassifier()

    def test_flags(self, classifier):
        lines = classifier.classify([
            "Paper Title",
            "Abstract: text",
            "Keywords: a, b",
            "1. Introduction",
            "1.1 Background",
            "II. Related Work",
        ])
        assert not lines[0].flags.is_heading
        assert lines[1].flags.abstract_marker
        assert lines[2].flags.keyword_marker
        assert lines[3].flags.numbered and not lines[3].flags.sub_numbered
        assert lines[4].flags.numbered and lines[4].flags.sub_numbered
        assert lines[5].flags.roman_numeral
        assert [l.index for l in lines] == list(range(6))

    def test_table_lines_never_headings(self, classifier):
        """Test that lines inside a table span are not headings."""
        lines = classifier.classify(
            ["||====||", "1. Introduction", "||====||", "2. Method"],
            table_spans=[(0, 2)],
        )
        assert lines[1].flags.in_table
        assert not lines[1].flags.is_heading
        assert lines[1].heading is None
        assert lines[3].flags.is_heading

    def test_exclusion_set_matches_cell_text(self, classifier):
        """Test that cell text repeated outside a span is flagged as table content."""
        lines = classifier.classify(
            ["1. Introduction", "2. Results."],
            exclusion_set={"2. results", "2 results"},
        )
        assert not lines[0].flags.in_table
        assert lines[1].flags.in_table
        assert not lines[1].flags.is_heading

    def test_equation_lines(self, classifier):
        lines = classifier.classify(["Text", "E = mc^2"], equation_lines={1})
        assert lines[1].flags.in_equation
        assert not lines[0].flags.in_equation

    def test_no_in_table_line_is_a_heading(self, classifier):
        texts = ["I. Intro", "1. A", "2.1 B", "III. C", "Body"]
        lines = classifier.classify(texts, table_spans=[(0, 4)])
        assert all(not (l.flags.in_table and l.flags.is_heading) for l in lines)

    def test_to_dict(self, classifier):
        line = classifier.classify(["1. Introduction"])[0]
        d = line.to_dict()
        assert d["index"] == 0
        assert d["flags"]["numbered"] is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
