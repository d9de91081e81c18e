"""
Publication template profiles.

Provides:
- TemplateProfile: document class, packages, column count, border style,
  width constraints and abbreviation dictionaries of one venue
- Built-in IEEE, ACM and Springer profiles
- Lookup by name
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple


# ============================================================================
# Abbreviation Dictionaries
# ============================================================================

# Empirically chosen substitutions, applied longest phrase first
ABBREVIATIONS: Dict[str, Dict[str, str]] = {
    "aggressive": {
        "Mobile-based multi-factor authentication": "Mobile MFA",
        "Advanced anti-spoofing methods for mobile devices": "Adv. anti-spoof",
        "Need for efficient resource management": "Resource mgmt",
        "Balance between security and performance": "Sec./perf.",
        "Integration with lightweight systems": "Lightweight",
        "Real-time location validation": "Real-time",
        "Comprehensive security": "Secure",
        "Complex implementation": "Complex",
        "Processing intensive": "Intensive",
        "Single factor only": "1-factor",
        "High computational cost": "High cost",
        "BLE-based proximity detection": "BLE prox.",
        "Enhanced QR Code": "QR Code",
    },
    "moderate": {
        "Mobile-based multi-factor authentication": "Mobile MFA framework",
        "Advanced anti-spoofing methods": "Advanced anti-spoofing",
        "Need for efficient resource management": "Efficient resource mgmt",
        "Balance between security and performance": "Security-performance balance",
        "BLE-based proximity detection": "BLE proximity detection",
    },
    "light": {
        "Mobile-based": "Mobile",
        "multi-factor": "MFA",
        "authentication": "auth.",
        "implementation": "impl.",
        "performance": "perf.",
        "detection": "detect.",
    },
    "none": {},
}


# ============================================================================
# Template Profile
# ============================================================================

@dataclass(frozen=True)
class TemplateProfile:
    """Static formatting rules of one publication venue."""
    name: str
    display_name: str
    document_class: str
    class_options: Tuple[str, ...] = ()
    packages: Tuple[str, ...] = ()
    preamble_extra: Tuple[str, ...] = ()
    columns: int = 2
    border_style: str = "lines"  # "lines" (| and \hline) or "rules" (booktabs)
    # Fractions of \linewidth
    total_width: float = 0.85
    min_col_width: float = 0.08
    max_col_width: float = 0.30
    # "ieee", "acm" or "llncs" front-matter conventions
    front_matter_style: str = "ieee"
    bibliography_style: str = "IEEEtran"
    abbreviations: Dict[str, Dict[str, str]] = field(
        default_factory=lambda: ABBREVIATIONS, hash=False, compare=False
    )

    @property
    def is_double_column(self) -> bool:
        return self.columns == 2

    @property
    def document_class_line(self) -> str:
        options = f"[{','.join(self.class_options)}]" if self.class_options else ""
        return f"\\documentclass{options}{{{self.document_class}}}"

    def abbreviation_map(self, level: str) -> Dict[str, str]:
        return self.abbreviations.get(level, {})


IEEE = TemplateProfile(
    name="ieee",
    display_name="IEEE Conference",
    document_class="IEEEtran",
    class_options=("conference",),
    packages=(
        "cite",
        "amsmath,amssymb,amsfonts",
        "graphicx",
        "textcomp",
        "xcolor",
        "array",
        "booktabs",
        "multirow",
    ),
    preamble_extra=("\\IEEEoverridecommandlockouts",),
    columns=2,
    border_style="lines",
    total_width=0.85,
    min_col_width=0.08,
    max_col_width=0.30,
    front_matter_style="ieee",
    bibliography_style="IEEEtran",
)

ACM = TemplateProfile(
    name="acm",
    display_name="ACM SIGCONF",
    document_class="acmart",
    class_options=("sigconf",),
    packages=(
        "amsmath",
        "graphicx",
        "array",
        "booktabs",
        "multirow",
    ),
    columns=2,
    border_style="rules",
    total_width=0.88,
    min_col_width=0.09,
    max_col_width=0.32,
    front_matter_style="acm",
    bibliography_style="ACM-Reference-Format",
)

SPRINGER = TemplateProfile(
    name="springer",
    display_name="Springer LNCS",
    document_class="llncs",
    packages=(
        "cite",
        "amsmath,amssymb",
        "graphicx",
        "url",
        "array",
        "booktabs",
    ),
    columns=1,
    border_style="rules",
    total_width=0.90,
    min_col_width=0.10,
    max_col_width=0.35,
    front_matter_style="llncs",
    bibliography_style="splncs04",
)

TEMPLATES: Dict[str, TemplateProfile] = {
    IEEE.name: IEEE,
    ACM.name: ACM,
    SPRINGER.name: SPRINGER,
}


def available_templates() -> List[str]:
    return list(TEMPLATES)


def get_template(name: str) -> TemplateProfile:
    """
    Look up a template profile by name (case-insensitive).

    Raises:
        ValueError: If the name is unknown
    """
    key = (name or "").strip().lower()
    if key not in TEMPLATES:
        raise ValueError(
            f"Unknown template '{name}'. Available: {', '.join(available_templates())}"
        )
    return TEMPLATES[key]
