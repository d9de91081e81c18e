"""
Document assembler module for manuscript reconstruction.

Provides:
- Document model (front matter, sections, tables, equations)
- Pipeline orchestration
- JSON envelope generation
- Metrics calculation
"""

import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Dict, Any

import numpy as np

from ..config import PipelineConfig, JSON_SCHEMA_VERSION
from .lines import Line, normalize_lines
from .tables import Table, build_exclusion_set
from .equations import Equation, ContextMarker
from .frontmatter import DetectedElement, AuthorInfo, FrontMatter
from .sections import Section
from .io import SourceDocument

logger = logging.getLogger(__name__)


PLACEHOLDER_TOKEN = re.compile(r'\[(TABLE|EQUATION)_(\d+)\]')


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class DocumentMetrics:
    """Metrics about document processing."""
    global_confidence: float = 0.0
    lines_total: int = 0
    front_matter_detected: int = 0

    sections_total: int = 0
    sections_generated: int = 0

    tables_total: int = 0
    tables_placed: int = 0

    equations_total: int = 0
    equations_high_confidence: int = 0
    equations_low_confidence: int = 0
    equations_placed: int = 0

    dangling_placeholders: int = 0
    processing_time_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global_confidence": round(self.global_confidence, 3),
            "lines_total": self.lines_total,
            "front_matter_detected": self.front_matter_detected,
            "sections": {
                "total": self.sections_total,
                "generated": self.sections_generated,
            },
            "tables": {
                "total": self.tables_total,
                "placed": self.tables_placed,
            },
            "equations": {
                "total": self.equations_total,
                "high_confidence": self.equations_high_confidence,
                "low_confidence": self.equations_low_confidence,
                "placed": self.equations_placed,
            },
            "dangling_placeholders": self.dangling_placeholders,
            "processing_time_seconds": round(self.processing_time_seconds, 3),
        }


@dataclass
class DocumentModel:
    """Complete recovered structure of one manuscript."""
    title: DetectedElement = field(default_factory=DetectedElement.not_detected)
    authors: DetectedElement = field(default_factory=DetectedElement.not_detected)
    abstract: DetectedElement = field(default_factory=DetectedElement.not_detected)
    keywords: DetectedElement = field(default_factory=DetectedElement.not_detected)
    affiliation: DetectedElement = field(default_factory=DetectedElement.not_detected)
    author_info: AuthorInfo = field(default_factory=AuthorInfo)

    sections: List[Section] = field(default_factory=list)
    tables: List[Table] = field(default_factory=list)
    equations: List[Equation] = field(default_factory=list)
    context_markers: List[ContextMarker] = field(default_factory=list)
    lines: List[Line] = field(default_factory=list)

    task_id: str = ""
    source_file: str = ""
    created_at: str = ""
    schema_version: str = JSON_SCHEMA_VERSION
    metrics: Optional[DocumentMetrics] = None

    def __post_init__(self):
        if not self.task_id:
            self.task_id = str(uuid.uuid4())
        if not self.created_at:
            self.created_at = datetime.now().isoformat()

    def table_by_id(self, table_id: int) -> Optional[Table]:
        return next((t for t in self.tables if t.id == table_id), None)

    def equation_by_id(self, equation_id: int) -> Optional[Equation]:
        return next((e for e in self.equations if e.id == equation_id), None)

    def find_dangling_placeholders(self) -> List[str]:
        """Placeholder tokens in section bodies with no matching table or equation."""
        table_ids = {t.id for t in self.tables}
        equation_ids = {e.id for e in self.equations}
        dangling = []
        for section in self.sections:
            for match in PLACEHOLDER_TOKEN.finditer(section.content):
                known = table_ids if match.group(1) == "TABLE" else equation_ids
                if int(match.group(2)) not in known:
                    dangling.append(match.group(0))
        return dangling

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "schema_version": self.schema_version,
            "source_file": self.source_file,
            "created_at": self.created_at,
            "metadata": {
                "title": self.title.to_dict(),
                "authors": self.authors.to_dict(),
                "abstract": self.abstract.to_dict(),
                "keywords": self.keywords.to_dict(),
                "affiliation": self.affiliation.to_dict(),
                "author_info": self.author_info.to_dict(),
            },
            "sections": [s.to_dict() for s in self.sections],
            "tables": [t.to_dict() for t in self.tables],
            "equations": [e.to_dict() for e in self.equations],
            "context_markers": [m.to_dict() for m in self.context_markers],
            "metrics": self.metrics.to_dict() if self.metrics else {},
        }


# ============================================================================
# Document Assembler
# ============================================================================

class DocumentAssembler:
    """
    Orchestrates the manuscript reconstruction pipeline.

    Coordinates:
    - Table extraction (and the exclusion set it feeds back)
    - Equation detection
    - Line classification
    - Front-matter detection
    - Section segmentation

    Rendering a finished model with another template never re-parses it.
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()

        # Initialize components lazily
        self._line_classifier = None
        self._table_extractor = None
        self._equation_extractor = None
        self._front_matter_detector = None
        self._segmenter = None

    @property
    def line_classifier(self):
        if self._line_classifier is None:
            from .lines import LineClassifier
            self._line_classifier = LineClassifier(self.config.classifier.max_heading_length)
        return self._line_classifier

    @property
    def table_extractor(self):
        if self._table_extractor is None:
            from .tables import TableExtractor
            self._table_extractor = TableExtractor(self.config.table)
        return self._table_extractor

    @property
    def equation_extractor(self):
        if self._equation_extractor is None:
            from .equations import EquationExtractor
            self._equation_extractor = EquationExtractor(self.config.equation)
        return self._equation_extractor

    @property
    def front_matter_detector(self):
        if self._front_matter_detector is None:
            from .frontmatter import FrontMatterDetector
            self._front_matter_detector = FrontMatterDetector(self.config.classifier)
        return self._front_matter_detector

    @property
    def segmenter(self):
        if self._segmenter is None:
            from .sections import SectionSegmenter
            self._segmenter = SectionSegmenter(self.config.section)
        return self._segmenter

    def process(self, source: SourceDocument) -> DocumentModel:
        """Process a loaded source document."""
        return self.process_text(
            source.raw_text,
            html=source.html,
            math_fragments=source.math_fragments,
            source_file=source.source_file or "",
        )

    def process_text(
        self,
        raw_text: str,
        html: Optional[str] = None,
        math_fragments: Optional[List[str]] = None,
        source_file: str = ""
    ) -> DocumentModel:
        """
        Run the full pipeline on raw inputs.

        Args:
            raw_text: Plain UTF-8 text of the manuscript
            html: Optional HTML rendering of the same document
            math_fragments: Optional OMML fragments
            source_file: Name recorded in the model

        Returns:
            DocumentModel, read-only from here on
        """
        start_time = time.time()

        lines = normalize_lines(raw_text)

        tables = self.table_extractor.extract(lines, html)
        exclusion = build_exclusion_set(tables)
        spans = self._table_spans(tables)

        classified = self.line_classifier.classify(lines, exclusion, spans)

        equations = self.equation_extractor.extract(raw_text, html, math_fragments, lines)
        equations = self._drop_table_equations(equations, classified)
        markers = self.equation_extractor.find_context_markers(lines)

        equation_lines = {e.line_index for e in equations if e.line_index is not None}
        if equation_lines:
            classified = self.line_classifier.classify(lines, exclusion, spans, equation_lines)

        front = self.front_matter_detector.detect(classified)
        equations = self._drop_abstract_equations(equations, front)
        sections = self.segmenter.segment(classified, tables, equations, markers, front)

        doc = DocumentModel(
            title=front.title,
            authors=front.authors,
            abstract=front.abstract,
            keywords=front.keywords,
            affiliation=front.affiliation,
            author_info=front.author_info,
            sections=sections,
            tables=tables,
            equations=equations,
            context_markers=markers,
            lines=classified,
            source_file=source_file,
        )

        dangling = doc.find_dangling_placeholders()
        if dangling:
            logger.warning(f"Dangling placeholders will be rendered as text: {', '.join(dangling)}")

        doc.metrics = self._calculate_metrics(doc, front, time.time() - start_time)
        logger.info(
            f"Assembled document: {len(sections)} section(s), {len(tables)} table(s), "
            f"{len(equations)} equation(s)"
        )
        return doc

    def render(self, document: DocumentModel, template: str = None) -> str:
        """Serialize an assembled model for one template."""
        from .export import LatexExporter
        template = template or self.config.export.default_template
        return LatexExporter(template, self.config.export, self.config.layout).generate(document)

    def _table_spans(self, tables: List[Table]) -> List[tuple]:
        spans = []
        for table in tables:
            if table.source_span.has_lines:
                spans.append((table.source_span.start_line, table.source_span.end_line))
            if table.caption_line is not None:
                spans.append((table.caption_line, table.caption_line))
        return spans

    def _drop_table_equations(
        self,
        equations: List[Equation],
        classified: List[Line]
    ) -> List[Equation]:
        """Text inside tables stays table content; renumber what is left."""
        kept = [
            e for e in equations
            if e.source != "text" or e.line_index is None
            or not classified[e.line_index].flags.in_table
        ]
        if len(kept) != len(equations):
            logger.debug(f"Ignored {len(equations) - len(kept)} equation(s) inside tables")
        for index, equation in enumerate(kept, start=1):
            equation.id = index
        return kept

    def _drop_abstract_equations(
        self,
        equations: List[Equation],
        front: FrontMatter
    ) -> List[Equation]:
        """Math in the abstract is rendered inline with the abstract text."""
        marked = set(front.abstract.line_indexes)
        kept = [e for e in equations if e.line_index not in marked]
        if len(kept) != len(equations):
            logger.debug(f"Left {len(equations) - len(kept)} equation(s) inline in the abstract")
            for index, equation in enumerate(kept, start=1):
                equation.id = index
        return kept

    def _calculate_metrics(
        self,
        doc: DocumentModel,
        front: FrontMatter,
        processing_time: float
    ) -> DocumentMetrics:
        """Calculate document-wide metrics."""
        metrics = DocumentMetrics()
        metrics.processing_time_seconds = processing_time
        metrics.lines_total = len(doc.lines)

        detected = [e for e in front.elements if e.detected]
        metrics.front_matter_detected = len(detected)

        metrics.sections_total = len(doc.sections)
        metrics.sections_generated = sum(1 for s in doc.sections if s.type == "generated")

        placed_tables = {i for s in doc.sections for i in s.table_ids}
        placed_equations = {i for s in doc.sections for i in s.equation_ids}

        metrics.tables_total = len(doc.tables)
        metrics.tables_placed = len(placed_tables)

        metrics.equations_total = len(doc.equations)
        thresholds = self.config.equation
        metrics.equations_high_confidence = sum(
            1 for e in doc.equations if thresholds.is_high_confidence(e.confidence)
        )
        metrics.equations_low_confidence = sum(
            1 for e in doc.equations if thresholds.is_low_confidence(e.confidence)
        )
        metrics.equations_placed = len(placed_equations)

        metrics.dangling_placeholders = len(doc.find_dangling_placeholders())

        all_confidences = (
            [e.confidence for e in detected]
            + [s.confidence for s in doc.sections]
            + [t.confidence for t in doc.tables]
            + [e.confidence for e in doc.equations]
        )
        if all_confidences:
            metrics.global_confidence = float(np.mean(all_confidences))

        return metrics
