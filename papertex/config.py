"""
Configuration and constants for the manuscript-to-LaTeX pipeline.

This module provides:
- Global logging configuration
- Detection thresholds for every pipeline stage
- Table layout and export parameters
- Environment overrides
"""

import os
from dataclasses import dataclass, field
from typing import List, Dict, Tuple
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("papertex")


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class ClassifierConfig:
    """Line classification and front-matter detection configuration."""
    # Title must appear within the first N normalized lines
    title_search_lines: int = 5
    title_min_length: int = 10
    title_max_length: int = 200
    # Authors must follow the title within this many lines
    author_window: int = 2
    author_min_length: int = 2
    author_max_length: int = 60
    affiliation_window: int = 3
    affiliation_keywords: List[str] = field(default_factory=lambda: [
        "university", "department", "institute", "college", "school",
        "laboratory",
    ])
    # Headings longer than this are treated as prose
    max_heading_length: int = 120


@dataclass
class TableConfig:
    """Table extraction configuration."""
    fence: str = "||====||"
    row_delimiter: str = "||"
    column_delimiter: str = "|"
    # Lines before/after a table inspected for an external caption
    caption_search_window: int = 1
    caption_min_length: int = 5
    caption_max_length: int = 300
    caption_keywords: List[str] = field(default_factory=lambda: [
        "analysis", "comparison", "results", "summary", "overview",
        "limitations",
    ])
    # Duplicate-caption row removal
    token_overlap_threshold: float = 0.70
    similarity_threshold: float = 0.80
    label_max_length: int = 20


@dataclass
class EquationConfig:
    """Equation detection configuration."""
    min_confidence: float = 0.60
    high_confidence_threshold: float = 0.80
    low_confidence_threshold: float = 0.65
    # Confidence per detection method
    confidences: Dict[str, float] = field(default_factory=lambda: {
        "omml": 0.98,
        "display_delimiter": 0.98,
        "inline_delimiter": 0.95,
        "fraction": 0.95,
        "summation": 0.85,
        "integral": 0.85,
        "square_root": 0.85,
        "math_font": 0.90,
        "symbol_run": 0.70,
        "equation_structure": 0.65,
    })
    math_fonts: List[str] = field(default_factory=lambda: [
        "Cambria Math", "STIX Two Math", "Latin Modern Math", "Asana Math",
    ])
    context_window: int = 50
    symbol_run_min_length: int = 3

    def is_high_confidence(self, confidence: float) -> bool:
        return confidence >= self.high_confidence_threshold

    def is_low_confidence(self, confidence: float) -> bool:
        return confidence < self.low_confidence_threshold


@dataclass
class SectionConfig:
    """Section segmentation configuration."""
    # Minimum text length for the single synthetic section fallback
    fallback_min_length: int = 200
    fallback_number: str = "I."
    fallback_title: str = "Content"
    heading_confidence: float = 0.95
    fallback_confidence: float = 0.30
    references_titles: List[str] = field(default_factory=lambda: [
        "references", "reference", "bibliography",
    ])


@dataclass
class LayoutConfig:
    """Adaptive table layout configuration."""
    # (min exclusive max length, tier name, priority weight, abbreviation)
    density_tiers: List[Tuple[int, str, float, str]] = field(default_factory=lambda: [
        (70, "extreme", 6.0, "aggressive"),
        (50, "very_high", 5.0, "aggressive"),
        (35, "high", 4.0, "moderate"),
        (20, "medium", 3.0, "light"),
        (10, "low", 2.0, "none"),
        (-1, "very_low", 1.0, "none"),
    ])
    center_align_max_length: int = 10
    # Cells longer than this are hard-wrapped when line breaks are enabled
    wrap_threshold: int = 40
    wrap_width: int = 25


@dataclass
class ExportConfig:
    """Export configuration."""
    default_template: str = "ieee"
    abbreviate_tables: bool = True
    title_placeholder: str = "Document Title"
    author_placeholder: str = "Author Name"
    affiliation_placeholder: str = "Institution Name"
    write_json: bool = True


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    table: TableConfig = field(default_factory=TableConfig)
    equation: EquationConfig = field(default_factory=EquationConfig)
    section: SectionConfig = field(default_factory=SectionConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    # Global settings
    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    if os.environ.get("PAPERTEX_DEBUG", "").lower() == "true":
        config.debug_mode = True

    template = os.environ.get("PAPERTEX_TEMPLATE")
    if template:
        config.export.default_template = template.lower()

    min_conf = os.environ.get("PAPERTEX_MIN_EQUATION_CONFIDENCE")
    if min_conf:
        try:
            config.equation.min_confidence = float(min_conf)
        except ValueError:
            logger.warning(f"Ignoring invalid PAPERTEX_MIN_EQUATION_CONFIDENCE: {min_conf}")

    if os.environ.get("PAPERTEX_NO_ABBREVIATION", "").lower() == "true":
        config.export.abbreviate_tables = False

    return config


# ============================================================================
# Placeholder Tokens
# ============================================================================

TABLE_PLACEHOLDER = "[TABLE_{id}]"
EQUATION_PLACEHOLDER = "[EQUATION_{id}]"


# ============================================================================
# JSON Schema Version
# ============================================================================

JSON_SCHEMA_VERSION = "1.0"
