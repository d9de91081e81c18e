"""
Adaptive table layout module.

Provides:
- Per-column density analysis (max / average cell length, density tier)
- Proportional column width allocation within template bounds
- Environment, font size and spacing selection
- Content abbreviation and hard wrapping of long cells

Layout decisions are a pure function of the table grid and the template
profile; computing them twice yields equal results.
"""

import logging
import re
import textwrap
from dataclasses import dataclass
from typing import List, Optional, Tuple, Dict, Any

import numpy as np

from ..config import LayoutConfig
from .templates import TemplateProfile

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class ColumnProfile:
    """Density statistics of one column."""
    index: int
    max_length: int
    avg_length: float
    density: str
    priority: float
    abbreviation: str
    alignment: str  # "center" or "left"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "max_length": self.max_length,
            "avg_length": self.avg_length,
            "density": self.density,
            "priority": self.priority,
            "abbreviation": self.abbreviation,
            "alignment": self.alignment,
        }


@dataclass(frozen=True)
class TableLayout:
    """Layout decisions for one table under one template."""
    template: str
    columns: Tuple[ColumnProfile, ...]
    widths: Tuple[float, ...]
    total_density: int
    environment: str
    font_size: str
    spacing: str
    tabcolsep: Optional[str] = None
    array_stretch: Optional[float] = None
    abbreviation_level: str = "none"
    line_breaks: bool = False

    @property
    def col_specs(self) -> List[str]:
        specs = []
        for column, width in zip(self.columns, self.widths):
            align = "centering" if column.alignment == "center" else "raggedright"
            specs.append(f">{{\\{align}\\arraybackslash}}p{{{width:.3f}\\linewidth}}")
        return specs

    @property
    def total_width(self) -> float:
        return round(sum(self.widths), 3)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "template": self.template,
            "environment": self.environment,
            "font_size": self.font_size,
            "spacing": self.spacing,
            "tabcolsep": self.tabcolsep,
            "array_stretch": self.array_stretch,
            "abbreviation_level": self.abbreviation_level,
            "line_breaks": self.line_breaks,
            "total_density": self.total_density,
            "widths": list(self.widths),
            "columns": [c.to_dict() for c in self.columns],
        }


# ============================================================================
# Table Layout Optimizer
# ============================================================================

class TableLayoutOptimizer:
    """
    Chooses widths, font scale, environment and abbreviation for a table.

    Denser tables get smaller fonts, tighter spacing and stronger
    abbreviation. Only double-column templates promote a table to the
    page-spanning table* environment.
    """

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()

    def analyze(self, grid: List[List[str]]) -> Tuple[Tuple[ColumnProfile, ...], int]:
        """
        Compute per-column density profiles.

        Returns:
            Tuple of (column profiles, total density = sum of column max lengths)
        """
        num_cols = max((len(row) for row in grid), default=0)
        if not grid or num_cols == 0:
            return (), 0

        lengths = np.array(
            [[len(row[c]) if c < len(row) else 0 for c in range(num_cols)] for row in grid],
            dtype=float,
        )
        max_lengths = lengths.max(axis=0)
        avg_lengths = lengths.mean(axis=0)

        columns = []
        for index in range(num_cols):
            max_len = int(max_lengths[index])
            density, priority, abbreviation = self._tier(max_len)
            columns.append(ColumnProfile(
                index=index,
                max_length=max_len,
                avg_length=round(float(avg_lengths[index]), 2),
                density=density,
                priority=priority,
                abbreviation=abbreviation,
                alignment="center" if max_len < self.config.center_align_max_length else "left",
            ))

        return tuple(columns), int(max_lengths.sum())

    def _tier(self, max_length: int) -> Tuple[str, float, str]:
        for threshold, name, priority, abbreviation in self.config.density_tiers:
            if max_length > threshold:
                return name, priority, abbreviation
        _, name, priority, abbreviation = self.config.density_tiers[-1]
        return name, priority, abbreviation

    def allocate_widths(
        self,
        columns: Tuple[ColumnProfile, ...],
        profile: TemplateProfile
    ) -> Tuple[float, ...]:
        """Proportional widths clamped to the template bounds, scaled into budget."""
        if not columns:
            return ()

        priorities = np.array([c.priority for c in columns], dtype=float)
        proportional = priorities / priorities.sum() * profile.total_width
        widths = np.clip(proportional, profile.min_col_width, profile.max_col_width)

        total = widths.sum()
        if total > profile.total_width:
            widths = widths * (profile.total_width / total)

        return tuple(round(float(w), 4) for w in widths)

    def select_format(
        self,
        columns: Tuple[ColumnProfile, ...],
        total_density: int,
        profile: TemplateProfile
    ) -> Dict[str, Any]:
        """Pick environment, font, spacing and abbreviation level."""
        col_count = len(columns)
        densities = {c.density for c in columns}
        wide = "table*" if profile.is_double_column else "table"

        if "extreme" in densities or total_density > 300 or col_count > 6:
            return dict(environment=wide, font_size="\\tiny", spacing="ultra-compact",
                        tabcolsep="1pt", array_stretch=0.7,
                        abbreviation_level="aggressive", line_breaks=True)
        if "very_high" in densities or total_density > 200 or col_count > 5:
            return dict(environment=wide, font_size="\\scriptsize", spacing="compact",
                        tabcolsep="3pt", array_stretch=0.8,
                        abbreviation_level="moderate", line_breaks=False)
        if total_density > 150 or col_count > 4:
            return dict(environment="table", font_size="\\scriptsize", spacing="compact",
                        tabcolsep="3pt", array_stretch=0.9,
                        abbreviation_level="light", line_breaks=False)
        if total_density > 100:
            return dict(environment="table", font_size="\\footnotesize", spacing="normal",
                        tabcolsep=None, array_stretch=None,
                        abbreviation_level="none", line_breaks=False)
        return dict(environment="table", font_size="\\small", spacing="normal",
                    tabcolsep=None, array_stretch=None,
                    abbreviation_level="none", line_breaks=False)

    def optimize(self, grid: List[List[str]], profile: TemplateProfile) -> TableLayout:
        """
        Compute the full layout for a table grid.

        Args:
            grid: Table cells, row-major
            profile: Target template

        Returns:
            Immutable TableLayout
        """
        columns, total_density = self.analyze(grid)
        widths = self.allocate_widths(columns, profile)
        decisions = self.select_format(columns, total_density, profile)

        layout = TableLayout(
            template=profile.name,
            columns=columns,
            widths=widths,
            total_density=total_density,
            **decisions,
        )
        logger.debug(
            f"Layout for {profile.name}: {layout.environment}, {layout.font_size}, "
            f"density {total_density}, abbreviation {layout.abbreviation_level}"
        )
        return layout

    def process_cells(
        self,
        grid: List[List[str]],
        layout: TableLayout,
        profile: TemplateProfile,
        abbreviate: bool = True
    ) -> List[List[str]]:
        """
        Apply abbreviation and hard wrapping.

        Forced line breaks are returned as "\\n" inside the cell text so the
        caller can escape each piece before joining them.
        """
        level = layout.abbreviation_level if abbreviate else "none"
        substitutions = sorted(
            profile.abbreviation_map(level).items(), key=lambda kv: -len(kv[0])
        )

        processed = []
        for row in grid:
            new_row = []
            for cell in row:
                text = cell
                for full, short in substitutions:
                    text = re.sub(re.escape(full), short, text, flags=re.IGNORECASE)
                if layout.line_breaks and len(text) > self.config.wrap_threshold:
                    text = "\n".join(textwrap.wrap(text, self.config.wrap_width))
                new_row.append(text)
            processed.append(new_row)
        return processed
