"""
I/O utilities for the manuscript pipeline.

Handles:
- Plain text, HTML and DOCX loading into a SourceDocument
- OMML fragment extraction from DOCX archives
- JSON serialization
- Directory management
"""

import json
import logging
import zipfile
from dataclasses import dataclass, field, asdict
from html import escape
from pathlib import Path
from typing import List, Union, Optional, Any

import numpy as np
from bs4 import BeautifulSoup
from lxml import etree

logger = logging.getLogger(__name__)


W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
M_NS = "http://schemas.openxmlformats.org/officeDocument/2006/math"
W = f"{{{W_NS}}}"
M = f"{{{M_NS}}}"

TEXT_EXTENSIONS = {".txt", ".md", ".text"}
HTML_EXTENSIONS = {".html", ".htm"}
DOCX_EXTENSIONS = {".docx"}

BLOCK_TAGS = [
    "p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "td", "th", "caption",
    "figcaption", "div", "pre", "blockquote", "dt", "dd",
]


class InputAcquisitionError(RuntimeError):
    """A document could not be read."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


@dataclass
class SourceDocument:
    """Raw inputs of the pipeline for one document."""
    raw_text: str
    html: str = ""
    math_fragments: List[str] = field(default_factory=list)
    source_file: Optional[str] = None
    input_type: str = "text"


# ============================================================================
# Document Loading
# ============================================================================

def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of input document.

    Args:
        input_path: Path to input file

    Returns:
        One of "text", "html", "docx"

    Raises:
        InputAcquisitionError: If the path is missing or unsupported
    """
    input_path = Path(input_path)

    if not input_path.exists():
        raise InputAcquisitionError(f"Input not found: {input_path}", input_path)
    if input_path.is_dir():
        raise InputAcquisitionError(f"Input is a directory, expected a file: {input_path}", input_path)

    suffix = input_path.suffix.lower()
    if suffix in TEXT_EXTENSIONS:
        return "text"
    if suffix in HTML_EXTENSIONS:
        return "html"
    if suffix in DOCX_EXTENSIONS:
        return "docx"

    raise InputAcquisitionError(
        f"Unsupported input type '{suffix}'. Expected one of: "
        f"{', '.join(sorted(TEXT_EXTENSIONS | HTML_EXTENSIONS | DOCX_EXTENSIONS))}",
        input_path,
    )


def load_document(
    input_path: Union[str, Path],
    html_path: Optional[Union[str, Path]] = None
) -> SourceDocument:
    """
    Load a manuscript and its optional HTML rendering.

    Args:
        input_path: .txt/.md, .html/.htm or .docx file
        html_path: Optional HTML rendering of the same document

    Returns:
        SourceDocument with raw text, HTML and math fragments

    Raises:
        InputAcquisitionError: If any input cannot be read
    """
    input_path = Path(input_path)
    input_type = detect_input_type(input_path)

    if input_type == "docx":
        source = load_docx(input_path)
    elif input_type == "html":
        html = read_text_file(input_path)
        source = SourceDocument(raw_text=html_to_text(html), html=html, input_type="html")
    else:
        source = SourceDocument(raw_text=read_text_file(input_path), input_type="text")

    if html_path is not None:
        if detect_input_type(html_path) != "html":
            raise InputAcquisitionError(f"Expected an HTML file: {html_path}", html_path)
        source.html = read_text_file(html_path)

    source.source_file = str(input_path)
    logger.info(
        f"Loaded {input_type} input {input_path.name}: "
        f"{len(source.raw_text)} chars, {len(source.math_fragments)} math fragment(s)"
    )
    return source


def read_text_file(path: Union[str, Path]) -> str:
    """Read a UTF-8 text file (a BOM is tolerated)."""
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8-sig') as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise InputAcquisitionError(f"File is not valid UTF-8: {path} ({e})", path)
    except OSError as e:
        raise InputAcquisitionError(f"Cannot read {path}: {e}", path)


def html_to_text(html: str) -> str:
    """Plain text of an HTML rendering, one block element per line."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()

    # Innermost blocks only, so nested containers are not repeated
    blocks = [el for el in soup.find_all(BLOCK_TAGS) if el.find(BLOCK_TAGS) is None]
    if not blocks:
        return soup.get_text(" ", strip=True)
    texts = (block.get_text(" ", strip=True) for block in blocks)
    return "\n".join(text for text in texts if text)


# ============================================================================
# DOCX Loading
# ============================================================================

def load_docx(docx_path: Union[str, Path]) -> SourceDocument:
    """
    Read a .docx archive.

    Paragraph text (including the text of inline math) becomes the raw
    text, tables become HTML <table> elements (their cell text is also
    kept as raw lines), and every m:oMath element is returned as an XML
    fragment.

    Raises:
        InputAcquisitionError: On a corrupt archive or unreadable XML
    """
    docx_path = Path(docx_path)
    try:
        with zipfile.ZipFile(docx_path, "r") as zf:
            if "word/document.xml" not in zf.namelist():
                raise InputAcquisitionError(
                    f"Not a Word document (word/document.xml missing): {docx_path}", docx_path
                )
            document_xml = zf.read("word/document.xml")
    except zipfile.BadZipFile as e:
        raise InputAcquisitionError(f"Corrupt document archive {docx_path}: {e}", docx_path)
    except OSError as e:
        raise InputAcquisitionError(f"Cannot read {docx_path}: {e}", docx_path)

    try:
        root = etree.fromstring(document_xml)
    except etree.XMLSyntaxError as e:
        raise InputAcquisitionError(f"Unreadable document XML in {docx_path}: {e}", docx_path)

    body = root.find(f"{W}body")
    if body is None:
        return SourceDocument(raw_text="", input_type="docx")

    text_lines: List[str] = []
    html_parts: List[str] = []
    fragments: List[str] = []

    for element in body:
        if element.tag == f"{W}p":
            text, html = _paragraph(element, fragments)
            text_lines.append(text)
            html_parts.append(f"<p>{html}</p>")
        elif element.tag == f"{W}tbl":
            lines, html = _table(element, fragments)
            text_lines.extend(lines)
            html_parts.append(html)

    return SourceDocument(
        raw_text="\n".join(text_lines),
        html="<html><body>\n" + "\n".join(html_parts) + "\n</body></html>",
        math_fragments=fragments,
        input_type="docx",
    )


def _run_font(run: etree._Element) -> Optional[str]:
    fonts = run.find(f"{W}rPr/{W}rFonts")
    if fonts is None:
        return None
    return fonts.get(f"{W}ascii") or fonts.get(f"{W}hAnsi")


def _paragraph(paragraph: etree._Element, fragments: List[str]):
    """Text and HTML of one w:p, collecting its math fragments."""
    text_parts: List[str] = []
    html_parts: List[str] = []

    for child in paragraph.iter():
        if child.tag == f"{W}r":
            run_text = "".join(
                (t.text or "") if t.tag == f"{W}t" else (" " if t.tag == f"{W}tab" else "")
                for t in child
            )
            if not run_text:
                continue
            text_parts.append(run_text)
            font = _run_font(child)
            if font:
                html_parts.append(f'<span style="font-family: {escape(font)}">{escape(run_text)}</span>')
            else:
                html_parts.append(escape(run_text))
        elif child.tag == f"{M}oMath":
            fragments.append(etree.tostring(child, encoding="unicode", with_tail=False))
            math_text = "".join(t.text or "" for t in child.iter(f"{M}t"))
            text_parts.append(math_text)
            html_parts.append(escape(math_text))

    return "".join(text_parts), "".join(html_parts)


def _table(table: etree._Element, fragments: List[str]):
    """Raw cell lines and HTML of one w:tbl."""
    lines: List[str] = []
    rows_html: List[str] = []

    for row in table.findall(f"{W}tr"):
        header = row.find(f"{W}trPr/{W}tblHeader") is not None
        tag = "th" if header else "td"
        cells_html = []
        for cell in row.findall(f"{W}tc"):
            texts = [_paragraph(p, fragments)[0] for p in cell.findall(f"{W}p")]
            cell_text = " ".join(t for t in texts if t.strip())
            lines.append(cell_text)
            cells_html.append(f"<{tag}>{escape(cell_text)}</{tag}>")
        rows_html.append("<tr>" + "".join(cells_html) + "</tr>")

    return lines, "<table>\n" + "\n".join(rows_html) + "\n</table>"


# ============================================================================
# JSON Utilities
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy values and dataclasses."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if hasattr(obj, 'to_dict'):
            return obj.to_dict()
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        if isinstance(obj, (set, frozenset)):
            return sorted(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_json(json_path: Union[str, Path]) -> Any:
    """
    Load data from a JSON file.

    Args:
        json_path: Path to the JSON file

    Returns:
        Parsed JSON data
    """
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"JSON file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


# ============================================================================
# Directory Management
# ============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
