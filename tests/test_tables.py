"""
Tests for table extraction module.
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from papertex.config import TableConfig
from papertex.utils.tables import (
    TableExtractor,
    DelimitedTableExtractor,
    Table,
    TableSpan,
    build_exclusion_set,
    clean_caption,
    is_caption_like,
    is_caption_row,
    make_label,
)


class TestTable:
    """Tests for Table data class."""

    def test_simple_table(self):
        """Test simple 2x2 table."""
        table = Table(id=1, grid=[["A", "B"], ["1", "2"]], caption="Results", label="tab:results")

        assert table.num_rows == 2
        assert table.num_cols == 2
        assert table.placeholder == "[TABLE_1]"
        assert "| A | B |" in table.to_markdown()
        assert "| 1 | 2 |" in table.to_markdown()

    def test_empty_table(self):
        table = Table(id=3, grid=[], caption="", label="tab:table3")
        assert table.to_markdown() == ""
        assert table.num_cols == 0

    def test_table_to_dict(self):
        """Test table serialization."""
        table = Table(
            id=2, grid=[["X"]], caption="C", label="tab:c",
            source_span=TableSpan(start_line=4, end_line=6), confidence=0.9,
        )
        d = table.to_dict()
        assert d["num_rows"] == 1
        assert d["num_cols"] == 1
        assert d["confidence"] == 0.9
        assert d["placeholder"] == "[TABLE_2]"
        assert d["source_span"]["start_line"] == 4


class TestCaptionHelpers:
    """Tests for caption detection and cleaning."""

    @pytest.fixture
    def config(self):
        return TableConfig()

    def test_clean_caption_strips_prefix(self):
        assert clean_caption("Table 2: Comparison of methods") == "Comparison of methods"

    def test_clean_caption_keeps_short_remainder(self):
        assert clean_caption("Table 2: Xy") == "Table 2: Xy"

    def test_caption_like(self, config):
        assert is_caption_like("Table 3: Accuracy", config)
        assert is_caption_like("TABLE IV. Parameters", config)
        assert is_caption_like("Performance comparison: overview", config)
        assert not is_caption_like("1. Introduction", config)
        assert not is_caption_like("||a|b||", config)
        assert not is_caption_like("Tab", config)

    def test_caption_row_by_ordinal(self, config):
        assert is_caption_row(["Table 1", "Results"], 1, None, config)
        assert not is_caption_row(["Table 2", "Results"], 1, None, config)

    def test_caption_row_by_token_overlap(self, config):
        caption = "Comparison of authentication methods"
        assert is_caption_row(["Comparison of", "authentication methods"], 1, caption, config)
        assert not is_caption_row(["QR Code", "Fast"], 1, caption, config)

    def test_caption_row_empty(self, config):
        assert not is_caption_row(["", " "], 1, "Caption text here", config)

    def test_make_label(self):
        assert make_label("Comparison of Methods", 1) == "tab:comparison_of_method"
        assert make_label(None, 4) == "tab:table4"
        assert make_label("!!!", 5) == "tab:table5"


class TestDelimitedTableExtractor:
    """Tests for fenced tables."""

    @pytest.fixture
    def extractor(self):
        return DelimitedTableExtractor(TableConfig())

    def test_row_detection(self, extractor):
        assert extractor.is_row("||a|b||")
        assert not extractor.is_row("||====||")
        assert not extractor.is_row("a|b")

    def test_split_row(self, extractor):
        assert extractor.split_row("|| a | b ||") == ["a", "b"]

    def test_unclosed_fence_ignored(self, extractor):
        assert extractor.extract(["||====||", "||a|b||"]) == []


class TestTableExtractor:
    """Tests for the main extractor."""

    @pytest.fixture
    def extractor(self):
        return TableExtractor()

    def test_fenced_table(self, extractor):
        lines = ["||====||", "||A|B||", "||1|2||", "||====||", "1. Results"]
        tables = extractor.extract(lines)

        assert len(tables) == 1
        table = tables[0]
        assert table.id == 1
        assert table.grid == [["A", "B"], ["1", "2"]]
        assert table.source_span.start_line == 0
        assert table.source_span.end_line == 3
        assert table.has_header_row
        assert table.caption == "Table 1"
        assert table.label == "tab:table1"
        assert table.method_used == "delimited"

    def test_row_and_column_order_preserved(self, extractor):
        lines = ["||====||", "||a|b|c||", "||d|e|f||", "||g|h|i||", "||====||"]
        table = extractor.extract(lines)[0]
        assert table.num_rows == 3
        assert table.num_cols == 3
        assert [cell for row in table.grid for cell in row] == list("abcdefghi")

    def test_ragged_rows_padded(self, extractor):
        lines = ["||====||", "||a|b|c||", "||d||", "||====||"]
        table = extractor.extract(lines)[0]
        assert table.grid == [["a", "b", "c"], ["d", "", ""]]

    def test_external_caption_before(self, extractor):
        lines = ["Table 1: Comparison of methods", "||====||", "||A|B||", "||1|2||", "||====||"]
        table = extractor.extract(lines)[0]
        assert table.caption == "Comparison of methods"
        assert table.caption_line == 0
        assert table.label.startswith("tab:table_1_comparison")

    def test_internal_caption(self, extractor):
        lines = ["||====||", "Summary of results", "||A|B||", "||1|2||", "||====||"]
        table = extractor.extract(lines)[0]
        assert table.caption == "Summary of results"
        assert table.caption_line is None

    def test_caption_row_removed(self, extractor):
        """A row repeating the caption is dropped, data rows remain."""
        lines = [
            "||====||",
            "Performance comparison results",
            "||Performance comparison results||",
            "||Method|Accuracy||",
            "||Ours|0.93||",
            "||====||",
        ]
        table = extractor.extract(lines)[0]
        assert table.grid == [["Method", "Accuracy"], ["Ours", "0.93"]]

    def test_table_of_only_caption_rows_discarded(self, extractor):
        lines = ["||====||", "||Table 1 Results||", "||====||"]
        assert extractor.extract(lines) == []

    def test_duplicate_labels_made_unique(self, extractor):
        lines = [
            "Table: results overview", "||====||", "||a|b||", "||====||",
            "Some prose in between.",
            "Table: results overview", "||====||", "||c|d||", "||====||",
        ]
        tables = extractor.extract(lines)
        assert len(tables) == 2
        assert tables[0].label != tables[1].label
        assert tables[1].label.endswith("_2")

    def test_html_table(self, extractor):
        html = """
        <p>Table 1: Detection methods</p>
        <table>
            <tr><th>Method</th><th>Confidence</th></tr>
            <tr><td>OMML</td><td>0.98</td></tr>
        </table>
        """
        lines = ["Table 1: Detection methods", "Method", "Confidence", "OMML", "0.98"]
        tables = extractor.extract(lines, html)

        assert len(tables) == 1
        table = tables[0]
        assert table.method_used == "html"
        assert table.has_header_row
        assert table.grid == [["Method", "Confidence"], ["OMML", "0.98"]]
        assert table.caption == "Detection methods"
        assert table.caption_line == 0
        assert not table.source_span.has_lines

    def test_html_caption_element(self, extractor):
        html = "<table><caption>Dataset sizes</caption><tr><td>a</td><td>1</td></tr></table>"
        table = extractor.extract([], html)[0]
        assert table.caption == "Dataset sizes"

    def test_html_duplicate_of_fenced_table_skipped(self, extractor):
        lines = ["||====||", "||A|B||", "||1|2||", "||====||"]
        html = "<table><tr><td>A</td><td>B</td></tr><tr><td>1</td><td>2</td></tr></table>"
        tables = extractor.extract(lines, html)
        assert len(tables) == 1
        assert tables[0].method_used == "delimited"

    def test_exclusion_set(self, extractor):
        lines = ["||====||", "||Method|Accuracy (%)||", "||Ours|93||", "||====||"]
        exclusion = build_exclusion_set(extractor.extract(lines))
        assert "method" in exclusion
        assert "accuracy (%)" in exclusion
        assert "accuracy" in exclusion
        assert "93" in exclusion


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
