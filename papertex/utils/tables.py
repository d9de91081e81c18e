"""
Table extraction module for manuscript reconstruction.

Provides:
- Fenced table detection in plain text (||====|| regions)
- Table extraction from an HTML rendering (BeautifulSoup)
- Caption resolution and duplicate-caption row removal
- Label generation and the cell-text exclusion set
- Markdown output for debugging
"""

import logging
import re
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import List, Optional, Tuple, Dict, Any, Set

from bs4 import BeautifulSoup

from ..config import TableConfig, TABLE_PLACEHOLDER
from .lines import is_heading_text, strip_punctuation

logger = logging.getLogger(__name__)


# Ordinal mention such as "Table 2" or "Table IV"
TABLE_ORDINAL = re.compile(r'\btable\s+(\d+|[ivxlc]+)\b', re.IGNORECASE)
CAPTION_PREFIX = re.compile(r'^table\s+\d+\s*[:\-.]\s*', re.IGNORECASE)
_WORD = re.compile(r'[a-z0-9]+')


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class TableSpan:
    """Where a table came from: a line range or an HTML node."""
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    node_index: Optional[int] = None

    @property
    def has_lines(self) -> bool:
        return self.start_line is not None and self.end_line is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_line": self.start_line,
            "end_line": self.end_line,
            "node_index": self.node_index,
        }


@dataclass
class Table:
    """An extracted table."""
    id: int
    grid: List[List[str]]
    caption: str
    label: str
    has_header_row: bool = False
    source_span: TableSpan = field(default_factory=TableSpan)
    caption_line: Optional[int] = None
    method_used: str = ""
    confidence: float = 1.0

    @property
    def num_rows(self) -> int:
        return len(self.grid)

    @property
    def num_cols(self) -> int:
        return max((len(row) for row in self.grid), default=0)

    @property
    def placeholder(self) -> str:
        return TABLE_PLACEHOLDER.format(id=self.id)

    def to_markdown(self) -> str:
        """Build Markdown table representation."""
        if self.num_rows == 0 or self.num_cols == 0:
            return ""

        lines = []

        header = "| " + " | ".join(str(c) for c in self.grid[0]) + " |"
        lines.append(header)

        separator = "| " + " | ".join("---" for _ in range(self.num_cols)) + " |"
        lines.append(separator)

        for row in self.grid[1:]:
            lines.append("| " + " | ".join(str(c) for c in row) + " |")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "placeholder": self.placeholder,
            "caption": self.caption,
            "label": self.label,
            "num_rows": self.num_rows,
            "num_cols": self.num_cols,
            "has_header_row": self.has_header_row,
            "method": self.method_used,
            "confidence": self.confidence,
            "source_span": self.source_span.to_dict(),
            "caption_line": self.caption_line,
            "grid": self.grid,
            "markdown": self.to_markdown(),
        }


@dataclass
class RawTable:
    """A table candidate before caption resolution and filtering."""
    rows: List[List[str]]
    internal_caption: Optional[str] = None
    external_caption: Optional[str] = None
    external_caption_line: Optional[int] = None
    has_header_row: bool = False
    span: TableSpan = field(default_factory=TableSpan)
    method_used: str = ""
    confidence: float = 1.0


# ============================================================================
# Caption Helpers
# ============================================================================

def clean_caption(caption: str, min_remainder: int = 5) -> str:
    """Strip a leading "Table N:" prefix unless that leaves too little text."""
    cleaned = CAPTION_PREFIX.sub('', caption).strip()
    if len(cleaned) < min_remainder:
        return caption.strip()
    return cleaned


def is_caption_like(text: str, config: TableConfig) -> bool:
    """Check whether a line looks like a table caption."""
    text = text.strip()
    if not (config.caption_min_length <= len(text) <= config.caption_max_length):
        return False
    if text.startswith(config.row_delimiter) or is_heading_text(text):
        return False

    if TABLE_ORDINAL.search(text):
        return True

    lowered = text.lower()
    return ':' in text and any(keyword in lowered for keyword in config.caption_keywords)


def is_caption_row(
    row: List[str],
    table_number: int,
    caption: Optional[str],
    config: TableConfig
) -> bool:
    """
    Check whether a grid row is the caption accidentally captured as data.

    A row matches when it mentions this table's ordinal, shares most of the
    caption's significant words, or is textually near-identical to it.
    """
    row_text = " ".join(cell.strip() for cell in row).strip().lower()
    if not row_text:
        return False

    if re.search(rf'\btable\s+{table_number}\b', row_text):
        return True

    if not caption:
        return False
    caption_text = caption.strip().lower()

    if len(caption_text) > 10:
        caption_words = [w for w in _WORD.findall(caption_text) if len(w) > 3]
        if caption_words:
            row_words = set(_WORD.findall(row_text))
            matching = sum(1 for w in caption_words if w in row_words)
            if matching >= len(caption_words) * config.token_overlap_threshold:
                return True

    similarity = SequenceMatcher(None, row_text, caption_text).ratio()
    return similarity >= config.similarity_threshold


def make_label(caption_source: Optional[str], table_id: int, max_length: int = 20) -> str:
    """Generate a LaTeX label from the caption text."""
    if caption_source:
        slug = re.sub(r'[^a-z0-9\s]', '', caption_source.lower())
        slug = re.sub(r'\s+', '_', slug.strip())[:max_length].strip('_')
        if slug:
            return f"tab:{slug}"
    return f"tab:table{table_id}"


def build_exclusion_set(tables: List["Table"]) -> Set[str]:
    """Collect lower-cased cell text, raw and punctuation-stripped."""
    exclusion = set()
    for table in tables:
        for row in table.grid:
            for cell in row:
                text = cell.strip().lower()
                if not text:
                    continue
                exclusion.add(text)
                stripped = strip_punctuation(text)
                if stripped:
                    exclusion.add(stripped)
    return exclusion


def _pad_rows(rows: List[List[str]]) -> List[List[str]]:
    width = max((len(row) for row in rows), default=0)
    return [row + [""] * (width - len(row)) for row in rows]


# ============================================================================
# Table Extractor Main Class
# ============================================================================

class TableExtractor:
    """
    Main table extraction interface.

    Supports:
    - Fenced tables in the normalized line stream
    - <table> elements of an HTML rendering
    """

    def __init__(self, config: Optional[TableConfig] = None):
        self.config = config or TableConfig()
        self._extractors = {
            "delimited": DelimitedTableExtractor(self.config),
            "html": HtmlTableExtractor(self.config),
        }

    def extract(self, lines: List[str], html: Optional[str] = None) -> List[Table]:
        """
        Extract tables from normalized lines and optional HTML.

        Args:
            lines: Normalized (trimmed, non-empty) text lines
            html: Optional HTML rendering of the same document

        Returns:
            List of Table objects with ids assigned in discovery order
        """
        candidates = self._extractors["delimited"].extract(lines)
        if candidates:
            logger.info(f"Found {len(candidates)} fenced table(s)")

        if html:
            html_candidates = self._extractors["html"].extract(html)
            known = [c.rows for c in candidates]
            for candidate in html_candidates:
                if candidate.rows in known:
                    logger.debug("Skipping HTML table already present as fenced table")
                    continue
                if candidate.external_caption and candidate.external_caption in lines:
                    candidate.external_caption_line = lines.index(candidate.external_caption)
                candidates.append(candidate)

        tables: List[Table] = []
        labels: Set[str] = set()
        for candidate in candidates:
            table = self._finalize(candidate, len(tables) + 1, labels)
            if table is None:
                continue
            labels.add(table.label)
            tables.append(table)

        logger.info(f"Extracted {len(tables)} table(s)")
        return tables

    def _finalize(self, candidate: RawTable, table_id: int, labels: Set[str]) -> Optional[Table]:
        """Resolve caption, drop caption rows and build the Table."""
        source_caption = candidate.internal_caption or candidate.external_caption
        if source_caption:
            caption = clean_caption(source_caption, self.config.caption_min_length)
        else:
            caption = f"Table {table_id}"

        rows = [
            row for row in candidate.rows
            if not is_caption_row(row, table_id, source_caption, self.config)
        ]
        if not rows:
            logger.debug(f"Discarding table candidate {table_id}: no data rows left")
            return None
        removed = len(candidate.rows) - len(rows)
        if removed:
            logger.debug(f"Removed {removed} caption row(s) from table {table_id}")

        label = make_label(source_caption, table_id, self.config.label_max_length)
        base, suffix = label, 2
        while label in labels:
            label = f"{base}_{suffix}"
            suffix += 1

        # The external line is only consumed when it supplied the caption
        caption_line = None
        if not candidate.internal_caption and candidate.external_caption:
            caption_line = candidate.external_caption_line

        has_header = candidate.has_header_row
        if candidate.method_used == "delimited":
            has_header = len(rows) >= 2

        return Table(
            id=table_id,
            grid=_pad_rows(rows),
            caption=caption,
            label=label,
            has_header_row=has_header,
            source_span=candidate.span,
            caption_line=caption_line,
            method_used=candidate.method_used,
            confidence=candidate.confidence,
        )


# ============================================================================
# Delimited (fenced) Table Extractor
# ============================================================================

class DelimitedTableExtractor:
    """Tables written as ||====|| fenced regions of ||a|b|| rows."""

    def __init__(self, config: TableConfig):
        self.config = config

    def is_row(self, line: str) -> bool:
        delim = self.config.row_delimiter
        return (
            line != self.config.fence
            and len(line) >= 2 * len(delim)
            and line.startswith(delim)
            and line.endswith(delim)
        )

    def split_row(self, line: str) -> List[str]:
        delim = self.config.row_delimiter
        inner = line[len(delim):-len(delim)]
        return [cell.strip() for cell in inner.split(self.config.column_delimiter)]

    def extract(self, lines: List[str]) -> List[RawTable]:
        results = []
        start = None

        for index, line in enumerate(lines):
            if line != self.config.fence:
                continue
            if start is None:
                start = index
                continue

            rows: List[List[str]] = []
            internal_caption = None
            for inner in lines[start + 1:index]:
                if self.is_row(inner):
                    rows.append(self.split_row(inner))
                elif internal_caption is None:
                    internal_caption = inner

            external, external_line = self._find_external_caption(lines, start, index)
            results.append(RawTable(
                rows=rows,
                internal_caption=internal_caption,
                external_caption=external,
                external_caption_line=external_line,
                span=TableSpan(start_line=start, end_line=index),
                method_used="delimited",
                confidence=1.0,
            ))
            start = None

        if start is not None:
            logger.warning(f"Unclosed table fence at line {start}, ignoring")

        return results

    def _find_external_caption(
        self,
        lines: List[str],
        start: int,
        end: int
    ) -> Tuple[Optional[str], Optional[int]]:
        """Look just before, then just after, the fenced region."""
        window = self.config.caption_search_window
        before = range(start - 1, max(-1, start - 1 - window), -1)
        after = range(end + 1, min(len(lines), end + 1 + window))

        for index in list(before) + list(after):
            text = lines[index]
            if text == self.config.fence:
                continue
            if is_caption_like(text, self.config):
                return text, index
        return None, None


# ============================================================================
# HTML Table Extractor
# ============================================================================

class HtmlTableExtractor:
    """Tables already present as <table> markup."""

    CAPTION_TAGS = ["p", "div", "span", "h1", "h2", "h3", "h4", "h5", "h6"]

    def __init__(self, config: TableConfig):
        self.config = config

    def extract(self, html: str) -> List[RawTable]:
        soup = BeautifulSoup(html, "html.parser")
        results = []

        for node_index, element in enumerate(soup.find_all("table")):
            # Nested tables are read through their parent
            if element.find_parent("table") is not None:
                continue

            rows = []
            has_header = element.find("thead") is not None
            for tr in element.find_all("tr"):
                if tr.find_parent("table") is not element:
                    continue
                cells = tr.find_all(["th", "td"], recursive=False)
                if not cells:
                    continue
                if tr.find("th") is not None and not rows:
                    has_header = True
                rows.append([c.get_text(" ", strip=True) for c in cells])

            caption_el = element.find("caption")
            internal = caption_el.get_text(" ", strip=True) if caption_el else None

            results.append(RawTable(
                rows=rows,
                internal_caption=internal or None,
                external_caption=None if internal else self._find_external_caption(element),
                has_header_row=has_header,
                span=TableSpan(node_index=node_index),
                method_used="html",
                confidence=0.95,
            ))

        logger.debug(f"HTML rendering contains {len(results)} table(s)")
        return results

    def _find_external_caption(self, element) -> Optional[str]:
        window = self.config.caption_search_window
        neighbours = (
            element.find_previous_siblings(self.CAPTION_TAGS, limit=window)
            + element.find_next_siblings(self.CAPTION_TAGS, limit=window)
        )
        for sibling in neighbours:
            text = sibling.get_text(" ", strip=True)
            if is_caption_like(text, self.config):
                return text
        return None


# ============================================================================
# Example Usage
# ============================================================================

if __name__ == "__main__":
    import sys
    from .lines import normalize_lines

    if len(sys.argv) > 1:
        with open(sys.argv[1], encoding="utf-8") as f:
            text = f.read()

        results = TableExtractor().extract(normalize_lines(text))

        print(f"Found {len(results)} tables")
        for table in results:
            print(f"\n{table.placeholder} {table.caption}")
            print(f"  Size: {table.num_rows} x {table.num_cols}")
            print(f"  Label: {table.label}")
            print(f"\nMarkdown:\n{table.to_markdown()}")
    else:
        print("Usage: python -m papertex.utils.tables <manuscript.txt>")
