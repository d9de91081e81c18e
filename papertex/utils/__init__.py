"""
Utility modules for the manuscript reconstruction pipeline.
"""

from .io import load_document, save_json, load_json, ensure_dir, InputAcquisitionError, SourceDocument
from .lines import Line, LineFlags, LineClassifier, normalize_lines, classify_lines
from .tables import TableExtractor, Table, TableSpan, build_exclusion_set
from .equations import EquationExtractor, Equation, ContextMarker
from .frontmatter import FrontMatterDetector, FrontMatter, DetectedElement
from .sections import SectionSegmenter, Section
from .templates import TemplateProfile, get_template, available_templates
from .layout import TableLayoutOptimizer, TableLayout
from .assembler import DocumentAssembler, DocumentModel, DocumentMetrics
from .export import LatexExporter, DocumentExporter, validate_latex_document

__all__ = [
    # IO
    "load_document", "save_json", "load_json", "ensure_dir",
    "InputAcquisitionError", "SourceDocument",
    # Lines
    "Line", "LineFlags", "LineClassifier", "normalize_lines", "classify_lines",
    # Tables
    "TableExtractor", "Table", "TableSpan", "build_exclusion_set",
    # Equations
    "EquationExtractor", "Equation", "ContextMarker",
    # Structure
    "FrontMatterDetector", "FrontMatter", "DetectedElement",
    "SectionSegmenter", "Section",
    # Layout and templates
    "TemplateProfile", "get_template", "available_templates",
    "TableLayoutOptimizer", "TableLayout",
    # Assembly
    "DocumentAssembler", "DocumentModel", "DocumentMetrics",
    # Export
    "LatexExporter", "DocumentExporter", "validate_latex_document",
]
