"""
Front-matter detection module for manuscript reconstruction.

Provides:
- Title, author, abstract and keyword detection from classified lines
- Affiliation and e-mail extraction
- Explicit "not detected" results with zero confidence
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any

from ..config import ClassifierConfig
from .lines import Line, match_abstract_marker, match_keyword_marker

logger = logging.getLogger(__name__)


EMAIL_PATTERN = re.compile(r'[\w.+-]+@[\w-]+(?:\.[\w-]+)+')
AUTHOR_SEPARATORS = re.compile(r'\s*(?:,|;|&|\band\b)\s*', re.IGNORECASE)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class DetectedElement:
    """A detected front-matter element with its confidence and reason."""
    text: str
    confidence: float
    reasoning: str
    line_indexes: List[int] = field(default_factory=list)

    @classmethod
    def not_detected(cls, reasoning: str = "Not detected") -> "DetectedElement":
        return cls(text="", confidence=0.0, reasoning=reasoning)

    @property
    def detected(self) -> bool:
        return bool(self.text) and self.confidence > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "detected": self.detected,
            "line_indexes": self.line_indexes,
        }


@dataclass
class AuthorInfo:
    """Individual author names and contact addresses."""
    names: List[str] = field(default_factory=list)
    emails: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"names": self.names, "emails": self.emails}


@dataclass
class FrontMatter:
    """All front-matter elements of a document."""
    title: DetectedElement = field(default_factory=DetectedElement.not_detected)
    authors: DetectedElement = field(default_factory=DetectedElement.not_detected)
    abstract: DetectedElement = field(default_factory=DetectedElement.not_detected)
    keywords: DetectedElement = field(default_factory=DetectedElement.not_detected)
    affiliation: DetectedElement = field(default_factory=DetectedElement.not_detected)
    author_info: AuthorInfo = field(default_factory=AuthorInfo)

    @property
    def elements(self) -> List[DetectedElement]:
        return [self.title, self.authors, self.abstract, self.keywords]

    @property
    def consumed_lines(self) -> List[int]:
        consumed = set()
        for element in self.elements + [self.affiliation]:
            consumed.update(element.line_indexes)
        return sorted(consumed)

    @property
    def end_line(self) -> int:
        """Index of the first line after the front matter."""
        consumed = self.consumed_lines
        return consumed[-1] + 1 if consumed else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title.to_dict(),
            "authors": self.authors.to_dict(),
            "abstract": self.abstract.to_dict(),
            "keywords": self.keywords.to_dict(),
            "affiliation": self.affiliation.to_dict(),
            "author_info": self.author_info.to_dict(),
        }


# ============================================================================
# Front-Matter Detector
# ============================================================================

class FrontMatterDetector:
    """
    Locates title, authors, abstract and keywords.

    Every rule is first-match-wins in document order, and a line flagged
    as table content or as a heading never qualifies.
    """

    def __init__(self, config: Optional[ClassifierConfig] = None):
        self.config = config or ClassifierConfig()

    def detect(self, lines: List[Line]) -> FrontMatter:
        front = FrontMatter()
        front.title = self.detect_title(lines)
        front.authors = self.detect_authors(lines, front.title)
        front.abstract = self.detect_abstract(lines)
        front.keywords = self.detect_keywords(lines)
        front.affiliation = self.detect_affiliation(lines, front.title, front.authors)
        front.author_info = self.extract_author_info(lines, front)

        found = [name for name in ("title", "authors", "abstract", "keywords")
                 if getattr(front, name).detected]
        logger.info(f"Front matter detected: {', '.join(found) if found else 'none'}")
        return front

    def _is_plain(self, line: Line) -> bool:
        flags = line.flags
        return not (flags.in_table or flags.is_heading
                    or flags.abstract_marker or flags.keyword_marker)

    def _looks_institutional(self, text: str) -> bool:
        lowered = text.lower()
        return any(k in lowered for k in self.config.affiliation_keywords)

    def detect_title(self, lines: List[Line]) -> DetectedElement:
        cfg = self.config
        for line in lines[:cfg.title_search_lines]:
            if not self._is_plain(line):
                continue
            if cfg.title_min_length <= len(line.text) <= cfg.title_max_length:
                return DetectedElement(
                    text=line.text,
                    confidence=0.85,
                    reasoning=f"First plausible line within the first {cfg.title_search_lines} lines",
                    line_indexes=[line.index],
                )
        return DetectedElement.not_detected("No plausible title line near the top")

    def detect_authors(self, lines: List[Line], title: DetectedElement) -> DetectedElement:
        if not title.detected:
            return DetectedElement.not_detected("No title to anchor the author line")

        cfg = self.config
        start = title.line_indexes[0] + 1
        for line in lines[start:start + cfg.author_window]:
            # Authors never follow the abstract, keywords or first heading
            if not self._is_plain(line):
                break
            if self._looks_institutional(line.text):
                continue
            if not (cfg.author_min_length <= len(line.text) <= cfg.author_max_length):
                continue
            return DetectedElement(
                text=line.text,
                confidence=0.75,
                reasoning="Short line following the title",
                line_indexes=[line.index],
            )
        return DetectedElement.not_detected("No short line after the title")

    def detect_abstract(self, lines: List[Line]) -> DetectedElement:
        for position, line in enumerate(lines):
            if line.flags.in_table or not line.flags.abstract_marker:
                continue

            paragraphs = []
            first = match_abstract_marker(line.text)
            if first:
                paragraphs.append(first)
            consumed = [line.index]

            for following in lines[position + 1:]:
                flags = following.flags
                if flags.keyword_marker or flags.is_heading or flags.in_table:
                    break
                paragraphs.append(following.text)
                consumed.append(following.index)

            text = "\n".join(paragraphs).strip()
            if not text:
                return DetectedElement.not_detected("Abstract marker without content")
            return DetectedElement(
                text=text,
                confidence=0.95,
                reasoning="Explicit abstract marker",
                line_indexes=consumed,
            )
        return DetectedElement.not_detected("No abstract marker")

    def detect_keywords(self, lines: List[Line]) -> DetectedElement:
        for line in lines:
            if line.flags.in_table or not line.flags.keyword_marker:
                continue
            text = match_keyword_marker(line.text) or ""
            if not text:
                continue
            return DetectedElement(
                text=text,
                confidence=0.95,
                reasoning="Explicit keywords marker",
                line_indexes=[line.index],
            )
        return DetectedElement.not_detected("No keywords marker")

    def detect_affiliation(
        self,
        lines: List[Line],
        title: DetectedElement,
        authors: DetectedElement
    ) -> DetectedElement:
        anchor = authors if authors.detected else title
        if not anchor.detected:
            return DetectedElement.not_detected("No title or author line to anchor affiliation")

        start = anchor.line_indexes[-1] + 1
        for line in lines[start:start + self.config.affiliation_window]:
            if not self._is_plain(line):
                break
            if self._looks_institutional(line.text):
                return DetectedElement(
                    text=line.text,
                    confidence=0.70,
                    reasoning="Institutional keyword near the author line",
                    line_indexes=[line.index],
                )
        return DetectedElement.not_detected("No institutional line near the authors")

    def extract_author_info(self, lines: List[Line], front: FrontMatter) -> AuthorInfo:
        info = AuthorInfo()
        if front.authors.detected:
            text = EMAIL_PATTERN.sub('', front.authors.text)
            info.names = [n.strip() for n in AUTHOR_SEPARATORS.split(text) if n.strip()]

        # E-mails are looked for above the abstract or first heading
        for line in lines:
            if line.flags.abstract_marker or line.flags.is_heading:
                break
            for email in EMAIL_PATTERN.findall(line.text):
                if email not in info.emails:
                    info.emails.append(email)
        return info
