"""
Line classification module for manuscript reconstruction.

Provides:
- Line normalization (blank stripping, trimming)
- Heading pattern parsing (arabic and roman numbering)
- Abstract / keyword marker detection
- Structural flags per line, aware of table content
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Set, Iterable, Tuple, Dict, Any

logger = logging.getLogger(__name__)


# ============================================================================
# Patterns
# ============================================================================

# "1. Introduction", "2.1 Method", "4.1.2. Details", "3. 5G Networks"
# The first word of the title must hold a letter
ARABIC_HEADING = re.compile(r'^(\d{1,2}(?:\.\d{1,2})*)(\.?)\s+(?=\S*[^\W\d_])([^\W_].*)$')
# "I. Introduction", "IV Results"
ROMAN_HEADING = re.compile(r'^([IVX]+)(\.?)\s+(?=\S*[^\W\d_])([^\W_].*)$')

MARKER_SEPARATOR = r'(?:\s*[:\-—–]\s*|\s+|$)'
ABSTRACT_MARKER = re.compile(r'^abstract' + MARKER_SEPARATOR + r'(.*)$', re.IGNORECASE)
KEYWORD_MARKER = re.compile(r'^(?:keywords|index\s+terms)' + MARKER_SEPARATOR + r'(.*)$', re.IGNORECASE)

_PUNCTUATION = re.compile(r'[^\w\s]')


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class HeadingMatch:
    """A parsed section heading."""
    number: str
    title: str
    level: int
    style: str  # "arabic" or "roman"


@dataclass(frozen=True)
class LineFlags:
    """Structural hints for a single line."""
    numbered: bool = False
    sub_numbered: bool = False
    roman_numeral: bool = False
    abstract_marker: bool = False
    keyword_marker: bool = False
    in_table: bool = False
    in_equation: bool = False

    @property
    def is_heading(self) -> bool:
        return self.numbered or self.roman_numeral


@dataclass(frozen=True)
class Line:
    """A classified, immutable line of the normalized input."""
    index: int
    text: str
    flags: LineFlags = field(default_factory=LineFlags)
    heading: Optional[HeadingMatch] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "text": self.text,
            "flags": {
                "numbered": self.flags.numbered,
                "sub_numbered": self.flags.sub_numbered,
                "roman_numeral": self.flags.roman_numeral,
                "abstract_marker": self.flags.abstract_marker,
                "keyword_marker": self.flags.keyword_marker,
                "in_table": self.flags.in_table,
                "in_equation": self.flags.in_equation,
            },
        }


# ============================================================================
# Normalization and pattern helpers
# ============================================================================

def normalize_lines(text: str) -> List[str]:
    """Split text into trimmed, non-empty lines."""
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def strip_punctuation(text: str) -> str:
    return _PUNCTUATION.sub('', text).strip()


def parse_heading(text: str, max_length: int = 120) -> Optional[HeadingMatch]:
    """
    Parse a section heading.

    Arabic headings get one nesting level per internal separator
    ("2.1" -> 2). Roman headings are always level 1. An undotted roman
    numeral must be followed by a capitalized title, otherwise prose such
    as "I think..." would open a section.
    """
    text = text.strip()
    if not text or len(text) > max_length:
        return None

    match = ARABIC_HEADING.match(text)
    if match:
        digits, dot, title = match.groups()
        return HeadingMatch(
            number=digits + dot,
            title=title.strip(),
            level=digits.count('.') + 1,
            style="arabic",
        )

    match = ROMAN_HEADING.match(text)
    if match:
        numeral, dot, title = match.groups()
        if not dot and not title[:1].isupper():
            return None
        return HeadingMatch(
            number=numeral + dot,
            title=title.strip(),
            level=1,
            style="roman",
        )

    return None


def is_heading_text(text: str, max_length: int = 120) -> bool:
    return parse_heading(text, max_length) is not None


def match_abstract_marker(text: str) -> Optional[str]:
    """Return the content following an abstract marker, or None."""
    match = ABSTRACT_MARKER.match(text.strip())
    return match.group(1).strip() if match else None


def match_keyword_marker(text: str) -> Optional[str]:
    """Return the content following a keywords marker, or None."""
    match = KEYWORD_MARKER.match(text.strip())
    return match.group(1).strip() if match else None


# ============================================================================
# Line Classifier
# ============================================================================

class LineClassifier:
    """
    Labels each normalized line with structural hints.

    A line that belongs to a table (inside a table span, or whose text is a
    table cell) is excluded from every numbering and marker check, so cell
    text such as "1. Introduction" is never read as a heading.
    """

    def __init__(self, max_heading_length: int = 120):
        self.max_heading_length = max_heading_length

    def is_table_text(self, text: str, exclusion_set: Set[str]) -> bool:
        if not exclusion_set:
            return False
        lowered = text.lower().strip()
        return lowered in exclusion_set or strip_punctuation(lowered) in exclusion_set

    def classify(
        self,
        lines: List[str],
        exclusion_set: Optional[Set[str]] = None,
        table_spans: Optional[Iterable[Tuple[int, int]]] = None,
        equation_lines: Optional[Set[int]] = None
    ) -> List[Line]:
        """
        Classify normalized lines.

        Args:
            lines: Normalized line texts
            exclusion_set: Lower-cased table cell texts (raw and punctuation-stripped)
            table_spans: Inclusive (start, end) line ranges occupied by tables
            equation_lines: Indexes of lines carrying a detected equation

        Returns:
            One Line per input line
        """
        exclusion_set = exclusion_set or set()
        equation_lines = equation_lines or set()

        span_lines: Set[int] = set()
        for start, end in table_spans or []:
            span_lines.update(range(start, end + 1))

        classified = []
        for index, text in enumerate(lines):
            in_table = index in span_lines or self.is_table_text(text, exclusion_set)
            in_equation = index in equation_lines

            if in_table:
                classified.append(Line(
                    index=index,
                    text=text,
                    flags=LineFlags(in_table=True, in_equation=in_equation),
                ))
                continue

            heading = parse_heading(text, self.max_heading_length)
            flags = LineFlags(
                numbered=heading is not None and heading.style == "arabic",
                sub_numbered=heading is not None and heading.style == "arabic" and heading.level > 1,
                roman_numeral=heading is not None and heading.style == "roman",
                abstract_marker=match_abstract_marker(text) is not None,
                keyword_marker=match_keyword_marker(text) is not None,
                in_equation=in_equation,
            )
            classified.append(Line(index=index, text=text, flags=flags, heading=heading))

        logger.debug(
            f"Classified {len(classified)} lines "
            f"({sum(1 for l in classified if l.flags.in_table)} in tables, "
            f"{sum(1 for l in classified if l.flags.is_heading)} headings)"
        )
        return classified


def classify_lines(
    lines: List[str],
    exclusion_set: Optional[Set[str]] = None,
    table_spans: Optional[Iterable[Tuple[int, int]]] = None,
    equation_lines: Optional[Set[int]] = None,
    max_heading_length: int = 120
) -> List[Line]:
    """Convenience wrapper around LineClassifier.classify."""
    return LineClassifier(max_heading_length).classify(
        lines, exclusion_set, table_spans, equation_lines
    )
