"""
Tests for input loading and JSON helpers.
"""

import zipfile

import numpy as np
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from papertex.utils.io import (
    InputAcquisitionError,
    detect_input_type,
    load_document,
    load_docx,
    html_to_text,
    save_json,
    load_json,
    ensure_dir,
)


W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
M_NS = "http://schemas.openxmlformats.org/officeDocument/2006/math"


def write_docx(path: Path, body: str) -> Path:
    document = (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<w:document xmlns:w="{W_NS}" xmlns:m="{M_NS}"><w:body>{body}</w:body></w:document>'
    )
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("word/document.xml", document)
    return path


def para(text: str) -> str:
    return f"<w:p><w:r><w:t>{text}</w:t></w:r></w:p>"


class TestDetectInputType:
    """Test input type detection."""

    @pytest.mark.parametrize("name,expected", [
        ("paper.txt", "text"),
        ("paper.MD", "text"),
        ("paper.html", "html"),
        ("paper.htm", "html"),
        ("paper.docx", "docx"),
    ])
    def test_supported(self, tmp_path, name, expected):
        path = tmp_path / name
        path.write_text("x", encoding="utf-8")
        assert detect_input_type(path) == expected

    def test_missing_file(self, tmp_path):
        with pytest.raises(InputAcquisitionError) as exc_info:
            detect_input_type(tmp_path / "missing.txt")
        assert exc_info.value.path == tmp_path / "missing.txt"

    def test_directory(self, tmp_path):
        with pytest.raises(InputAcquisitionError, match="directory"):
            detect_input_type(tmp_path)

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "scan.pdf"
        path.write_bytes(b"%PDF")
        with pytest.raises(InputAcquisitionError, match="Unsupported"):
            detect_input_type(path)


class TestLoadDocument:
    """Test loading each input type."""

    def test_text(self, tmp_path):
        path = tmp_path / "paper.txt"
        path.write_text("Title\n1. Intro\n", encoding="utf-8")

        source = load_document(path)
        assert source.raw_text == "Title\n1. Intro\n"
        assert source.html == ""
        assert source.input_type == "text"
        assert source.source_file == str(path)

    def test_bom_tolerated(self, tmp_path):
        path = tmp_path / "paper.txt"
        path.write_bytes("\ufeffTitle".encode("utf-8"))
        assert load_document(path).raw_text == "Title"

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / "paper.txt"
        path.write_bytes(b"\xff\xfe\xfa broken")
        with pytest.raises(InputAcquisitionError, match="UTF-8"):
            load_document(path)

    def test_html(self, tmp_path):
        path = tmp_path / "paper.html"
        path.write_text(
            "<html><head><style>p {}</style></head><body><h1>Title</h1><p>Body</p></body></html>",
            encoding="utf-8",
        )
        source = load_document(path)
        assert source.input_type == "html"
        assert "<h1>" in source.html
        assert [l for l in source.raw_text.split("\n") if l.strip()] == ["Title", "Body"]

    def test_companion_html(self, tmp_path):
        text = tmp_path / "paper.txt"
        text.write_text("Title", encoding="utf-8")
        html = tmp_path / "paper.html"
        html.write_text("<table><tr><td>a</td></tr></table>", encoding="utf-8")

        source = load_document(text, html_path=html)
        assert source.raw_text == "Title"
        assert "<table>" in source.html

    def test_companion_must_be_html(self, tmp_path):
        text = tmp_path / "paper.txt"
        text.write_text("Title", encoding="utf-8")
        with pytest.raises(InputAcquisitionError, match="Expected an HTML file"):
            load_document(text, html_path=text)


class TestLoadDocx:
    """Test Word document reading."""

    def test_paragraphs_and_math(self, tmp_path):
        math = (
            "<m:oMath><m:r><m:t>y=</m:t></m:r>"
            "<m:f><m:num><m:r><m:t>a</m:t></m:r></m:num><m:den><m:r><m:t>b</m:t></m:r></m:den></m:f>"
            "</m:oMath>"
        )
        path = write_docx(tmp_path / "paper.docx", para("Paper Title") + f"<w:p>{math}</w:p>")

        source = load_docx(path)
        assert source.raw_text == "Paper Title\ny=ab"
        assert source.input_type == "docx"
        assert len(source.math_fragments) == 1
        assert "oMath" in source.math_fragments[0]
        assert M_NS in source.math_fragments[0]

    def test_table_rows(self, tmp_path):
        table = (
            "<w:tbl>"
            "<w:tr><w:trPr><w:tblHeader/></w:trPr>"
            "<w:tc>" + para("Method") + "</w:tc><w:tc>" + para("Score") + "</w:tc></w:tr>"
            "<w:tr><w:tc>" + para("Ours") + "</w:tc><w:tc>" + para("0.9") + "</w:tc></w:tr>"
            "</w:tbl>"
        )
        source = load_docx(write_docx(tmp_path / "t.docx", table))

        assert source.raw_text.split("\n") == ["Method", "Score", "Ours", "0.9"]
        assert "<th>Method</th>" in source.html
        assert "<td>Ours</td>" in source.html

    def test_font_kept_in_html(self, tmp_path):
        run = (
            '<w:p><w:r><w:rPr><w:rFonts w:ascii="Cambria Math"/></w:rPr>'
            "<w:t>E = mc^2</w:t></w:r></w:p>"
        )
        source = load_docx(write_docx(tmp_path / "f.docx", run))
        assert 'font-family: Cambria Math' in source.html

    def test_xml_comments_skipped(self, tmp_path):
        body = "<!-- generated -->" + para("Paper Title") + "<w:p><!-- note --><w:r><w:t>Body</w:t></w:r></w:p>"
        source = load_docx(write_docx(tmp_path / "c.docx", body))
        assert source.raw_text == "Paper Title\nBody"

    def test_corrupt_archive(self, tmp_path):
        path = tmp_path / "broken.docx"
        path.write_bytes(b"not a zip file")
        with pytest.raises(InputAcquisitionError, match="Corrupt"):
            load_docx(path)

    def test_archive_without_document(self, tmp_path):
        path = tmp_path / "empty.docx"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("other.xml", "<x/>")
        with pytest.raises(InputAcquisitionError, match="word/document.xml"):
            load_docx(path)

    def test_unreadable_xml(self, tmp_path):
        path = tmp_path / "bad.docx"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("word/document.xml", "<w:document")
        with pytest.raises(InputAcquisitionError, match="Unreadable"):
            load_docx(path)


class TestJsonHelpers:
    """Test JSON save / load."""

    def test_roundtrip_with_numpy(self, tmp_path):
        data = {"score": np.float64(0.5), "count": np.int64(3), "values": np.array([1, 2])}
        path = save_json(data, tmp_path / "nested" / "out.json")

        assert path.exists()
        assert load_json(path) == {"score": 0.5, "count": 3, "values": [1, 2]}

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_json(tmp_path / "missing.json")

    def test_ensure_dir(self, tmp_path):
        path = ensure_dir(tmp_path / "a" / "b")
        assert path.is_dir()

    def test_html_inline_tags_stay_on_one_line(self):
        text = html_to_text(
            "<p>Paper Title Here</p><p>J. Doe</p>"
            "<p><b>1.</b> Introduction</p><p>The <b>main</b> result holds.</p>"
        )
        assert text.split("\n") == [
            "Paper Title Here", "J. Doe", "1. Introduction", "The main result holds.",
        ]

    def test_html_nested_blocks_not_repeated(self):
        text = html_to_text("<div><p>One</p><ul><li>Two</li></ul></div>")
        assert text.split("\n") == ["One", "Two"]

    def test_html_to_text_drops_scripts(self):
        text = html_to_text("<p>Keep</p><script>drop()</script>")
        assert "Keep" in text
        assert "drop" not in text


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
