"""
Section segmentation module for manuscript reconstruction.

Provides:
- Heading-driven segmentation of classified lines into sections
- Nesting levels from arabic / roman numbering
- Table and equation placeholder insertion into section bodies
- Single synthetic section fallback for unnumbered documents
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any, Set, Union, Tuple

from ..config import SectionConfig, TABLE_PLACEHOLDER, EQUATION_PLACEHOLDER
from .lines import Line, strip_punctuation
from .tables import Table
from .equations import Equation, ContextMarker
from .frontmatter import FrontMatter

logger = logging.getLogger(__name__)


TABLE_REFERENCE = re.compile(r'\btable\s+(\d+)\b', re.IGNORECASE)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class TextSpan:
    """Plain prose from one source line."""
    text: str
    line_index: int

    def render(self) -> str:
        return self.text


@dataclass(frozen=True)
class TableRef:
    """Position of a table inside a section body."""
    table_id: int
    line_index: int

    def render(self) -> str:
        return TABLE_PLACEHOLDER.format(id=self.table_id)


@dataclass(frozen=True)
class EquationRef:
    """Position of an equation inside a section body."""
    equation_id: int
    line_index: int

    def render(self) -> str:
        return EQUATION_PLACEHOLDER.format(id=self.equation_id)


ContentUnit = Union[TextSpan, TableRef, EquationRef]


@dataclass
class Section:
    """A document section with its ordered body."""
    number: str
    title: str
    level: int
    body: List[ContentUnit] = field(default_factory=list)
    type: str = "arabic"  # arabic, roman, generated
    confidence: float = 0.0
    start_line: int = 0
    end_line: int = 0
    reasoning: str = ""
    is_references: bool = False

    @property
    def paragraphs(self) -> List[List[ContentUnit]]:
        """Body units grouped by source line."""
        groups: List[List[ContentUnit]] = []
        current_line = None
        for unit in self.body:
            if not groups or unit.line_index != current_line:
                groups.append([])
                current_line = unit.line_index
            groups[-1].append(unit)
        return groups

    @property
    def content(self) -> str:
        """Body as text with placeholder tokens, one line per source line."""
        return "\n".join(
            " ".join(unit.render() for unit in group) for group in self.paragraphs
        )

    @property
    def table_ids(self) -> List[int]:
        return [u.table_id for u in self.body if isinstance(u, TableRef)]

    @property
    def equation_ids(self) -> List[int]:
        return [u.equation_id for u in self.body if isinstance(u, EquationRef)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "level": self.level,
            "type": self.type,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "is_references": self.is_references,
            "content": self.content,
        }


class SegmenterState(Enum):
    SCANNING = "scanning"
    OPEN_SECTION = "open_section"


# ============================================================================
# Section Segmenter
# ============================================================================

class SectionSegmenter:
    """
    Splits classified lines into sections.

    The first pass is a two-state walk (SCANNING, OPEN_SECTION) that only
    finds heading boundaries. The second pass fills each body, replacing
    table lines and equation text with reference units.
    """

    def __init__(self, config: Optional[SectionConfig] = None):
        self.config = config or SectionConfig()

    def segment(
        self,
        lines: List[Line],
        tables: Optional[List[Table]] = None,
        equations: Optional[List[Equation]] = None,
        markers: Optional[List[ContextMarker]] = None,
        front_matter: Optional[FrontMatter] = None
    ) -> List[Section]:
        """
        Segment classified lines into sections.

        Args:
            lines: Classified lines
            tables: Extracted tables
            equations: Detected equations (ids assigned)
            markers: Contextual equation insertion points
            front_matter: Detected front matter, used by the fallback

        Returns:
            Ordered list of sections, possibly empty
        """
        tables = tables or []
        equations = equations or []
        markers = markers or []

        sections = self._find_boundaries(lines)
        if not sections:
            sections = self._fallback(lines, front_matter)
            if not sections:
                logger.info("No headings and too little text, no sections produced")
                return []

        placement = _Placement(lines, tables, equations, markers)

        # Tables above the first section open its body
        for table_id in placement.tables_in_range(0, sections[0].start_line):
            sections[0].body.append(TableRef(table_id, sections[0].start_line))
            placement.placed_tables.add(table_id)

        body_lines = [
            index
            for section in sections if not section.is_references
            for index in self._body_range(section)
        ]
        placement.prepare_equations(body_lines)

        for section in sections:
            for index in self._body_range(section):
                section.body.extend(placement.units_for_line(index, section.is_references))

        logger.info(
            f"Segmented {len(sections)} section(s); placed "
            f"{len(placement.placed_tables)}/{len(tables)} table(s), "
            f"{len(placement.placed_equations)}/{len(equations)} equation(s)"
        )
        return sections

    def _body_range(self, section: Section) -> range:
        if section.type == "generated":
            return range(section.start_line, section.end_line + 1)
        return range(section.start_line + 1, section.end_line + 1)

    def _find_boundaries(self, lines: List[Line]) -> List[Section]:
        state = SegmenterState.SCANNING
        sections: List[Section] = []
        current: Optional[Section] = None

        for line in lines:
            heading = line.heading if not line.flags.in_table else None

            if heading is not None:
                if state is SegmenterState.OPEN_SECTION:
                    current.end_line = line.index - 1
                    sections.append(current)
                title_key = strip_punctuation(heading.title.lower())
                current = Section(
                    number=heading.number,
                    title=heading.title,
                    level=heading.level,
                    type=heading.style,
                    confidence=self.config.heading_confidence,
                    start_line=line.index,
                    end_line=line.index,
                    reasoning=f"{heading.style.capitalize()} numbering pattern",
                    is_references=title_key in self.config.references_titles,
                )
                state = SegmenterState.OPEN_SECTION

        if state is SegmenterState.OPEN_SECTION:
            current.end_line = len(lines) - 1
            sections.append(current)

        return sections

    def _fallback(self, lines: List[Line], front_matter: Optional[FrontMatter]) -> List[Section]:
        start = front_matter.end_line if front_matter else 0
        remaining = [line.text for line in lines[start:] if not line.flags.in_table]
        length = len("\n".join(remaining))
        if length <= self.config.fallback_min_length:
            return []

        logger.info(f"No headings found, using one synthetic section ({length} chars)")
        return [Section(
            number=self.config.fallback_number,
            title=self.config.fallback_title,
            level=1,
            type="generated",
            confidence=self.config.fallback_confidence,
            start_line=start,
            end_line=len(lines) - 1,
            reasoning="No numbered headings; remaining text grouped into one section",
        )]


class _Placement:
    """Bookkeeping for table and equation placement during one segmentation."""

    def __init__(
        self,
        lines: List[Line],
        tables: List[Table],
        equations: List[Equation],
        markers: List[ContextMarker]
    ):
        self.lines = lines
        self.tables = {t.id: t for t in tables}
        self.equations = sorted(equations, key=lambda e: e.id)
        self.marker_lines = {m.line_index for m in markers}
        self.placed_tables: Set[int] = set()
        self.placed_equations: Set[int] = set()
        self.anchored: List[Equation] = []
        self.unanchored: List[Equation] = []

        self.table_at_line: Dict[int, int] = {}
        self.html_cells: Dict[str, int] = {}
        for table in tables:
            span = table.source_span
            if span.has_lines:
                for index in range(span.start_line, span.end_line + 1):
                    self.table_at_line.setdefault(index, table.id)
            else:
                for row in table.grid:
                    for cell in row:
                        key = cell.strip().lower()
                        if key:
                            self.html_cells.setdefault(key, table.id)
                            self.html_cells.setdefault(strip_punctuation(key), table.id)
            if table.caption_line is not None:
                self.table_at_line.setdefault(table.caption_line, table.id)

    def table_for_line(self, line: Line) -> Optional[int]:
        if line.index in self.table_at_line:
            return self.table_at_line[line.index]
        if line.flags.in_table:
            key = line.text.strip().lower()
            return self.html_cells.get(key, self.html_cells.get(strip_punctuation(key)))
        return None

    def tables_in_range(self, start: int, end: int) -> List[int]:
        found = []
        for line in self.lines[start:end]:
            table_id = self.table_for_line(line)
            if table_id is not None and table_id not in found and table_id not in self.placed_tables:
                found.append(table_id)
        return found

    def prepare_equations(self, body_lines: List[int]) -> None:
        """Split equations into those with text to replace and the rest."""
        texts = [self.lines[i].text for i in body_lines
                 if self.table_for_line(self.lines[i]) is None]
        for equation in self.equations:
            needles = _needles(equation)
            if any(n in text for n in needles for text in texts):
                self.anchored.append(equation)
            else:
                self.unanchored.append(equation)

    def units_for_line(self, index: int, in_references: bool) -> List[ContentUnit]:
        line = self.lines[index]

        table_id = self.table_for_line(line)
        if table_id is not None:
            if table_id in self.placed_tables:
                return []
            self.placed_tables.add(table_id)
            return [TableRef(table_id, index)]

        if in_references:
            return [TextSpan(line.text, index)]

        units = self._split_equations(line.text, index)

        for match in TABLE_REFERENCE.finditer(line.text):
            referenced = int(match.group(1))
            if referenced in self.tables and referenced not in self.placed_tables:
                units.append(TableRef(referenced, index))
                self.placed_tables.add(referenced)

        if index in self.marker_lines:
            pending = [e for e in self.unanchored if e.id not in self.placed_equations]
            if pending:
                units.append(EquationRef(pending[0].id, index))
                self.placed_equations.add(pending[0].id)

        return units

    def _split_equations(self, text: str, index: int) -> List[ContentUnit]:
        units: List[ContentUnit] = []
        rest = text
        while True:
            best: Optional[Tuple[int, int, Equation]] = None
            for equation in self.anchored:
                if equation.id in self.placed_equations:
                    continue
                for needle in _needles(equation):
                    pos = rest.find(needle)
                    if pos >= 0:
                        if best is None or pos < best[0]:
                            best = (pos, len(needle), equation)
                        break
            if best is None:
                break

            pos, length, equation = best
            before = rest[:pos].strip()
            if before:
                units.append(TextSpan(before, index))
            units.append(EquationRef(equation.id, index))
            self.placed_equations.add(equation.id)
            rest = rest[pos + length:]

        if rest.strip():
            units.append(TextSpan(rest.strip(), index))
        return units


def _needles(equation: Equation) -> List[str]:
    return [n for n in (equation.raw_content.strip(), equation.canonical_form) if n]


def section_for_line(sections: List[Section], line_index: Optional[int]) -> Optional[int]:
    """Index of the section whose span covers a line, else the last section."""
    if not sections:
        return None
    if line_index is not None:
        for position, section in enumerate(sections):
            if section.start_line <= line_index <= section.end_line:
                return position
        if line_index < sections[0].start_line:
            return 0
    return len(sections) - 1
