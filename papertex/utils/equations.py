"""
Equation detection module for manuscript reconstruction.

Provides:
- OMML (Office math markup) to LaTeX conversion
- Delimiter detection ($...$, $$...$$, \\(...\\), \\[...\\], \\frac, \\sum)
- Math-font detection in the HTML rendering
- Unicode symbol runs and identifier = expression detection
- Contextual trigger phrases for equation placement
- Canonicalization, confidence scoring and de-duplication
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Dict, Any

from bs4 import BeautifulSoup
from lxml import etree

from ..config import EquationConfig, EQUATION_PLACEHOLDER

logger = logging.getLogger(__name__)


OMML_NS = "http://schemas.openxmlformats.org/officeDocument/2006/math"
WORD_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

# Lower rank wins ties between equally confident detections
SOURCE_RANKS = {"markup": 0, "html": 1, "text": 2}


# ============================================================================
# Symbol Tables
# ============================================================================

GREEK_TO_LATEX = {
    'α': r'\alpha', 'β': r'\beta', 'γ': r'\gamma', 'δ': r'\delta',
    'ε': r'\varepsilon', 'ζ': r'\zeta', 'η': r'\eta', 'θ': r'\theta',
    'ι': r'\iota', 'κ': r'\kappa', 'λ': r'\lambda', 'μ': r'\mu',
    'ν': r'\nu', 'ξ': r'\xi', 'ο': 'o', 'π': r'\pi',
    'ρ': r'\rho', 'σ': r'\sigma', 'ς': r'\varsigma', 'τ': r'\tau',
    'υ': r'\upsilon', 'φ': r'\phi', 'χ': r'\chi', 'ψ': r'\psi',
    'ω': r'\omega',
    # Uppercase letters without a LaTeX command are plain Latin capitals
    'Α': 'A', 'Β': 'B', 'Γ': r'\Gamma', 'Δ': r'\Delta',
    'Ε': 'E', 'Ζ': 'Z', 'Η': 'H', 'Θ': r'\Theta',
    'Ι': 'I', 'Κ': 'K', 'Λ': r'\Lambda', 'Μ': 'M',
    'Ν': 'N', 'Ξ': r'\Xi', 'Ο': 'O', 'Π': r'\Pi',
    'Ρ': 'P', 'Σ': r'\Sigma', 'Τ': 'T', 'Υ': r'\Upsilon',
    'Φ': r'\Phi', 'Χ': 'X', 'Ψ': r'\Psi', 'Ω': r'\Omega',
}

OPERATOR_TO_LATEX = {
    '±': r'\pm', '∓': r'\mp', '×': r'\times', '÷': r'\div',
    '≤': r'\leq', '≥': r'\geq', '≠': r'\neq', '≈': r'\approx',
    '≡': r'\equiv', '∝': r'\propto', '∞': r'\infty',
    '∑': r'\sum', '∏': r'\prod', '∫': r'\int', '∮': r'\oint',
    '√': r'\sqrt', '∂': r'\partial', '∇': r'\nabla',
    '→': r'\rightarrow', '←': r'\leftarrow', '↔': r'\leftrightarrow',
    '⇒': r'\Rightarrow', '⇔': r'\Leftrightarrow',
    '∈': r'\in', '∉': r'\notin', '⊂': r'\subset', '⊆': r'\subseteq',
    '⊃': r'\supset', '∪': r'\cup', '∩': r'\cap', '∅': r'\emptyset',
    '∀': r'\forall', '∃': r'\exists', '¬': r'\neg',
    '∧': r'\land', '∨': r'\lor', '·': r'\cdot', '∙': r'\cdot',
    '∘': r'\circ', '−': '-', '′': "'", '…': r'\ldots', '⋯': r'\cdots',
}

SCRIPT_TO_LATEX = {
    '⁰': '^{0}', '¹': '^{1}', '²': '^{2}', '³': '^{3}', '⁴': '^{4}',
    '⁵': '^{5}', '⁶': '^{6}', '⁷': '^{7}', '⁸': '^{8}', '⁹': '^{9}',
    '⁺': '^{+}', '⁻': '^{-}', 'ⁿ': '^{n}',
    '₀': '_{0}', '₁': '_{1}', '₂': '_{2}', '₃': '_{3}', '₄': '_{4}',
    '₅': '_{5}', '₆': '_{6}', '₇': '_{7}', '₈': '_{8}', '₉': '_{9}',
}

SYMBOL_TO_LATEX = {**GREEK_TO_LATEX, **OPERATOR_TO_LATEX, **SCRIPT_TO_LATEX}

# Characters that make a token "mathematical" in prose
MATH_CHARS = set(GREEK_TO_LATEX) | set(OPERATOR_TO_LATEX) | set(SCRIPT_TO_LATEX)
# Characters that relate or combine operands
OPERATOR_CHARS = (set(OPERATOR_TO_LATEX) | set("=<>+*/^")) - {'′', '…', '⋯'}

NARY_TO_LATEX = {'∑': r'\sum', '∏': r'\prod', '∫': r'\int', '∬': r'\iint', '∮': r'\oint'}
ACCENT_TO_LATEX = {
    '\u0302': r'\hat', '^': r'\hat', '\u0303': r'\tilde', '~': r'\tilde',
    '\u0304': r'\bar', '\u0305': r'\bar', '\u0307': r'\dot', '\u0308': r'\ddot',
    '\u20d7': r'\vec',
}
KNOWN_FUNCTIONS = {
    "sin", "cos", "tan", "cot", "sec", "csc", "log", "ln", "exp",
    "lim", "max", "min", "sup", "inf", "det", "arg", "sinh", "cosh", "tanh",
}


# ============================================================================
# Patterns
# ============================================================================

DELIMITER_PATTERNS = [
    # (name, pattern, method key in config, display)
    ("display_dollar", re.compile(r'\$\$(.+?)\$\$', re.DOTALL), "display_delimiter", True),
    ("display_bracket", re.compile(r'\\\[(.+?)\\\]', re.DOTALL), "display_delimiter", True),
    # Inline dollars: no space just inside, closing $ not followed by a digit
    ("inline_dollar", re.compile(r'(?<![\\$])\$(?![\s$])([^$\n]+?)(?<![\s\\])\$(?![\d$])'),
     "inline_delimiter", False),
    ("inline_paren", re.compile(r'\\\((.+?)\\\)', re.DOTALL), "inline_delimiter", False),
    ("fraction", re.compile(r'\\frac\{[^{}]+\}\{[^{}]+\}'), "fraction", False),
    ("summation", re.compile(r'\\sum(?:_\{[^{}]*\}|_\w)?(?:\^\{[^{}]*\}|\^\w)?|∑'), "summation", False),
    ("integral", re.compile(r'\\int(?:_\{[^{}]*\}|_\w)?(?:\^\{[^{}]*\}|\^\w)?|∫'), "integral", False),
    ("square_root", re.compile(r'\\sqrt\{[^{}]+\}|√\w+'), "square_root", False),
]

# Inline math left in prose, any length; group 1 or 2 is the content
INLINE_MATH = re.compile(
    r'(?<![\\$])\$(?![\s$])([^$\n]+?)(?<![\s\\])\$(?![\d$])|\\\((.+?)\\\)'
)

CITATION_PATTERNS = [
    re.compile(r'^\{[A-Za-z]+\d{4}\}$'),
    re.compile(r'^\{[A-Za-z\s&,.]+\d{4}\}$'),
    re.compile(r'^\{[A-Za-z]+\s*\d{4}[a-z]?\}$'),
    re.compile(r'^\\[A-Za-z]+\{\d{4}\}$'),
    re.compile(r'^\\(?:cite|citep|citet|ref)\{[^}]*\}$'),
]

EQUATION_STRUCTURE = re.compile(
    r'(?<![\w\\])[A-Za-z]\w{0,2}\s*=\s*[^A-Za-z\s=]{2,}(?:\s*[+\-*/^]\s*[\w.()^]+)*'
)

CONTEXT_PHRASES = [
    re.compile(r'\bthe\s+following\s+(?:equation|formula|expression)s?\b', re.IGNORECASE),
    re.compile(r'\bbelow\s+is\b.{0,60}?\b(?:equation|formula)s?\b', re.IGNORECASE),
    re.compile(r'\bhere\s+is\b.{0,60}?\bequations?\b', re.IGNORECASE),
    re.compile(r'\bequation\s+follows\b', re.IGNORECASE),
    re.compile(r'\bmathematical\s+expressions?\b', re.IGNORECASE),
]

_TOKEN = re.compile(r'\S+')
_SIMPLE_OPERAND = re.compile(r'^(?:[A-Za-z]\d*|\d+(?:\.\d+)?|[()\[\]{}=+\-*/<>^_|,.]+)$')
_TRAILING_PUNCT = '.,;:'


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class Equation:
    """A detected equation."""
    id: int
    raw_content: str
    canonical_form: str
    detection_method: str
    confidence: float
    source_span: Optional[Tuple[int, int]] = None  # character offsets in raw text
    surrounding_context: str = ""
    source: str = "text"  # markup, html, text
    position: int = 0
    line_index: Optional[int] = None
    display: bool = True

    @property
    def source_rank(self) -> int:
        return SOURCE_RANKS.get(self.source, len(SOURCE_RANKS))

    @property
    def placeholder(self) -> str:
        return EQUATION_PLACEHOLDER.format(id=self.id)

    @property
    def is_valid(self) -> bool:
        """Check if the canonical form appears to be valid LaTeX."""
        valid, _ = validate_latex(self.canonical_form)
        return valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "placeholder": self.placeholder,
            "raw_content": self.raw_content,
            "canonical_form": self.canonical_form,
            "method": self.detection_method,
            "confidence": self.confidence,
            "source": self.source,
            "source_span": list(self.source_span) if self.source_span else None,
            "line_index": self.line_index,
            "context": self.surrounding_context,
        }


@dataclass(frozen=True)
class ContextMarker:
    """A sentence announcing an equation without containing one."""
    line_index: int
    phrase: str

    def to_dict(self) -> Dict[str, Any]:
        return {"line_index": self.line_index, "phrase": self.phrase}


# ============================================================================
# Canonicalization Helpers
# ============================================================================

def symbols_to_latex(text: str) -> str:
    """Replace Unicode math symbols with LaTeX commands."""
    out = []
    for i, char in enumerate(text):
        replacement = SYMBOL_TO_LATEX.get(char)
        if replacement is None:
            out.append(char)
            continue
        out.append(replacement)
        following = text[i + 1] if i + 1 < len(text) else ""
        if replacement.startswith('\\') and replacement[-1].isalpha() and following.isalpha():
            out.append(' ')
    return "".join(out)


def to_canonical(content: str) -> str:
    """Canonical rendering form: LaTeX commands, collapsed whitespace."""
    return clean_latex(symbols_to_latex(content))


def dedup_key(canonical: str) -> str:
    return re.sub(r'\s+', '', canonical)


def is_citation(content: str) -> bool:
    content = content.strip()
    return any(pattern.match(content) for pattern in CITATION_PATTERNS)


def validate_latex(latex: str) -> Tuple[bool, str]:
    """
    Validate LaTeX syntax.

    Args:
        latex: LaTeX string

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not latex:
        return False, "Empty LaTeX string"

    # Check balanced braces
    brace_count = 0
    for char in latex:
        if char == '{':
            brace_count += 1
        elif char == '}':
            brace_count -= 1
        if brace_count < 0:
            return False, "Unbalanced braces"

    if brace_count != 0:
        return False, "Unbalanced braces"

    # Check for incomplete commands
    if latex.endswith('\\'):
        return False, "Incomplete command"

    return True, ""


def clean_latex(latex: str) -> str:
    """
    Clean and normalize LaTeX string.

    Args:
        latex: Raw LaTeX string

    Returns:
        Cleaned LaTeX string
    """
    if not latex:
        return ""

    latex = latex.strip()
    latex = re.sub(r'\s+', ' ', latex)

    # Normalize common variations
    latex = latex.replace('\\left(', '(')
    latex = latex.replace('\\right)', ')')
    latex = latex.replace('\\left[', '[')
    latex = latex.replace('\\right]', ']')

    return latex


# ============================================================================
# Equation Extractor Main Class
# ============================================================================

class EquationExtractor:
    """
    Main equation detection interface.

    Runs every detector independently, then merges the candidates: the
    most confident detection of a piece of math survives and any other
    detection contained in it (or containing it) is dropped.
    """

    def __init__(self, config: Optional[EquationConfig] = None):
        self.config = config or EquationConfig()
        self.omml = OmmlEquationDetector(self.config)
        self.delimiters = DelimiterEquationDetector(self.config)
        self.font_hint = FontHintEquationDetector(self.config)
        self.symbol_run = SymbolRunEquationDetector(self.config)

    def extract(
        self,
        raw_text: str,
        html: Optional[str] = None,
        math_fragments: Optional[List[str]] = None,
        lines: Optional[List[str]] = None
    ) -> List[Equation]:
        """
        Detect equations across all encodings.

        Args:
            raw_text: Plain text of the document
            html: Optional HTML rendering
            math_fragments: Optional OMML fragments as XML strings
            lines: Normalized lines, used to locate each equation's line

        Returns:
            Equations sorted by confidence desc then position, ids from 1
        """
        candidates: List[Equation] = []

        if math_fragments:
            candidates.extend(self.omml.detect(math_fragments))
        if html:
            candidates.extend(self.font_hint.detect(html))
        if raw_text:
            candidates.extend(self.delimiters.detect(raw_text))
            candidates.extend(self.symbol_run.detect(raw_text))

        logger.debug(f"Collected {len(candidates)} equation candidate(s)")

        accepted = self.merge(candidates)

        for index, equation in enumerate(accepted, start=1):
            equation.id = index
            if lines is not None:
                equation.line_index = locate_line(equation, lines)

        high = sum(1 for e in accepted if self.config.is_high_confidence(e.confidence))
        logger.info(f"Detected {len(accepted)} equation(s) ({high} high confidence)")
        return accepted

    def merge(self, candidates: List[Equation]) -> List[Equation]:
        """Drop weak and duplicate candidates and order the survivors."""
        ordered = sorted(
            (c for c in candidates if c.confidence >= self.config.min_confidence),
            key=lambda c: (-c.confidence, c.source_rank, c.position),
        )

        accepted: List[Equation] = []
        keys: List[str] = []
        for candidate in ordered:
            key = dedup_key(candidate.canonical_form)
            if len(key) < 2:
                continue
            if any(key in other or other in key for other in keys):
                continue
            if candidate.source_span and any(
                _spans_overlap(candidate.source_span, other.source_span)
                for other in accepted if other.source_span
            ):
                continue
            accepted.append(candidate)
            keys.append(key)

        return accepted

    def find_context_markers(self, lines: List[str]) -> List[ContextMarker]:
        return find_context_markers(lines)


def _spans_overlap(a: Tuple[int, int], b: Tuple[int, int]) -> bool:
    return a[0] < b[1] and b[0] < a[1]


def locate_line(equation: Equation, lines: List[str]) -> Optional[int]:
    """Index of the first normalized line holding the equation text."""
    needles = [n for n in (equation.raw_content.strip(), equation.canonical_form) if n]
    for needle in needles:
        for index, line in enumerate(lines):
            if needle in line:
                return index
    return None


def find_context_markers(lines: List[str]) -> List[ContextMarker]:
    """Find lines announcing an equation ("the following equation ...")."""
    markers = []
    for index, line in enumerate(lines):
        for pattern in CONTEXT_PHRASES:
            match = pattern.search(line)
            if match:
                markers.append(ContextMarker(line_index=index, phrase=match.group(0)))
                break
    return markers


def _context(text: str, start: int, end: int, window: int) -> str:
    return re.sub(r'\s+', ' ', text[max(0, start - window):end + window]).strip()


# ============================================================================
# OMML Detector
# ============================================================================

class OmmlEquationDetector:
    """Converts Office math markup fragments to LaTeX."""

    def __init__(self, config: EquationConfig):
        self.config = config

    def detect(self, fragments: List[str]) -> List[Equation]:
        results = []
        for index, fragment in enumerate(fragments):
            latex, flat = omml_to_latex(fragment)
            canonical = to_canonical(latex)
            if len(canonical) < 2:
                continue
            results.append(Equation(
                id=0,
                raw_content=flat,
                canonical_form=canonical,
                detection_method="omml",
                confidence=self.config.confidences["omml"],
                source="markup",
                position=index,
                display=True,
            ))
        return results


def _local(tag) -> str:
    # Comments and processing instructions have no string tag
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname


def _attr(element: Optional[etree._Element], name: str) -> Optional[str]:
    """Read an m:val style attribute regardless of namespace."""
    if element is None:
        return None
    for key, value in element.attrib.items():
        if _local(key) == name:
            return value
    return None


def _child(element: etree._Element, name: str) -> Optional[etree._Element]:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _property(element: etree._Element, pr_name: str, prop: str) -> Optional[str]:
    pr = _child(element, pr_name)
    if pr is None:
        return None
    return _attr(_child(pr, prop), "val")


def flatten_omml(xml: str) -> str:
    """Text-only fallback: concatenate <m:t> runs, else strip all tags."""
    runs = re.findall(r'<m:t[^>]*>(.*?)</m:t>', xml, re.DOTALL)
    if runs:
        return "".join(runs).strip()
    return re.sub(r'\s+', ' ', re.sub(r'<[^>]*>', ' ', xml)).strip()


def omml_to_latex(xml: str) -> Tuple[str, str]:
    """
    Convert an OMML fragment to LaTeX.

    Returns:
        Tuple of (latex, flattened text). The flattened text is what a
        plain-text rendering of the document shows for the equation.
    """
    flat = flatten_omml(xml)
    body = re.sub(r'^\s*<\?xml[^>]*\?>', '', xml)
    wrapped = f'<root xmlns:m="{OMML_NS}" xmlns:w="{WORD_NS}">{body}</root>'

    try:
        root = etree.fromstring(wrapped)
    except etree.XMLSyntaxError as e:
        logger.warning(f"Malformed math markup, falling back to text: {e}")
        return flat, flat

    math = next((el for el in root.iter() if _local(el.tag) == "oMath"), None)
    if math is None:
        logger.warning("Math markup has no oMath element, falling back to text")
        return flat, flat

    return _convert(math), flat


def _convert(element: etree._Element) -> str:
    name = _local(element.tag)

    if name.endswith("Pr"):
        return ""
    if name == "t":
        return element.text or ""
    if name == "r":
        return "".join(_convert(child) for child in element if _local(child.tag) == "t")

    if name == "f":
        num, den = _child(element, "num"), _child(element, "den")
        if num is not None and den is not None:
            return f"\\frac{{{_convert(num)}}}{{{_convert(den)}}}"

    if name in ("sSup", "sSub", "sSubSup"):
        base = _child(element, "e")
        if base is not None:
            result = _convert(base)
            sub, sup = _child(element, "sub"), _child(element, "sup")
            if sub is not None:
                result += f"_{{{_convert(sub)}}}"
            if sup is not None:
                result += f"^{{{_convert(sup)}}}"
            return result

    if name == "rad":
        radicand = _child(element, "e")
        if radicand is not None:
            deg = _child(element, "deg")
            degree = _convert(deg).strip() if deg is not None else ""
            if degree:
                return f"\\sqrt[{degree}]{{{_convert(radicand)}}}"
            return f"\\sqrt{{{_convert(radicand)}}}"

    if name == "d":
        opening = _property(element, "dPr", "begChr")
        closing = _property(element, "dPr", "endChr")
        separator = _property(element, "dPr", "sepChr") or ","
        parts = [_convert(child) for child in element if _local(child.tag) == "e"]
        opening = "(" if opening is None else opening
        closing = ")" if closing is None else closing
        # Braces need escaping, an empty delimiter is written as "."
        opening = {"{": r"\{", "": "."}.get(opening, opening)
        closing = {"}": r"\}", "": "."}.get(closing, closing)
        return f"\\left{opening}{separator.join(parts)}\\right{closing}"

    if name == "nary":
        symbol = _property(element, "naryPr", "chr") or "∫"
        result = NARY_TO_LATEX.get(symbol, symbol)
        sub, sup = _child(element, "sub"), _child(element, "sup")
        if sub is not None and _convert(sub):
            result += f"_{{{_convert(sub)}}}"
        if sup is not None and _convert(sup):
            result += f"^{{{_convert(sup)}}}"
        base = _child(element, "e")
        return f"{result} {_convert(base)}" if base is not None else result

    if name == "func":
        fname = _child(element, "fName")
        base = _child(element, "e")
        func = _convert(fname).strip() if fname is not None else ""
        if func in KNOWN_FUNCTIONS:
            func = "\\" + func
        arg = _convert(base) if base is not None else ""
        return f"{func} {arg}".strip()

    if name == "acc":
        symbol = _property(element, "accPr", "chr") or "\u0302"
        base = _child(element, "e")
        command = ACCENT_TO_LATEX.get(symbol, r'\hat')
        return f"{command}{{{_convert(base) if base is not None else ''}}}"

    if name == "bar":
        base = _child(element, "e")
        return f"\\overline{{{_convert(base) if base is not None else ''}}}"

    if name == "m":
        rows = []
        for mr in element:
            if _local(mr.tag) == "mr":
                rows.append(" & ".join(_convert(e) for e in mr if _local(e.tag) == "e"))
        return "\\begin{matrix}" + " \\\\ ".join(rows) + "\\end{matrix}"

    return "".join(_convert(child) for child in element)


# ============================================================================
# Delimiter Detector
# ============================================================================

class DelimiterEquationDetector:
    """LaTeX delimiters and control sequences written in plain text."""

    def __init__(self, config: EquationConfig):
        self.config = config

    def detect(self, text: str) -> List[Equation]:
        results = []
        for name, pattern, method, display in DELIMITER_PATTERNS:
            for match in pattern.finditer(text):
                content = match.group(1) if match.groups() else match.group(0)
                content = content.strip()
                if len(content) < 2 and content not in ("∑", "∫"):
                    continue
                if is_citation(content):
                    logger.debug(f"Skipping citation-like content: {content}")
                    continue
                results.append(Equation(
                    id=0,
                    raw_content=match.group(0),
                    canonical_form=to_canonical(content),
                    detection_method=name,
                    confidence=self.config.confidences[method],
                    source_span=(match.start(), match.end()),
                    surrounding_context=_context(text, match.start(), match.end(),
                                                 self.config.context_window),
                    source="text",
                    position=match.start(),
                    display=display,
                ))
        return results


# ============================================================================
# Font-Hint Detector
# ============================================================================

class FontHintEquationDetector:
    """Spans rendered in a math font in the HTML rendering."""

    def __init__(self, config: EquationConfig):
        self.config = config
        fonts = "|".join(re.escape(f) for f in config.math_fonts)
        self.style_pattern = re.compile(fonts, re.IGNORECASE)

    def detect(self, html: str) -> List[Equation]:
        soup = BeautifulSoup(html, "html.parser")
        results = []
        for index, span in enumerate(soup.find_all("span", style=self.style_pattern)):
            content = span.get_text(strip=True)
            if len(content) < 2 or is_citation(content):
                continue
            results.append(Equation(
                id=0,
                raw_content=content,
                canonical_form=to_canonical(content),
                detection_method="math_font",
                confidence=self.config.confidences["math_font"],
                source="html",
                position=index,
                display=False,
            ))
        return results


# ============================================================================
# Symbol-Run Detector
# ============================================================================

class SymbolRunEquationDetector:
    """
    Weak signals in prose: runs of math symbols and "x = 42" shapes.

    A symbol run is a maximal sequence of tokens that are either short
    operands (x, x1, 3.5, parentheses, ASCII operators) or contain a
    Unicode math character. It must contain an operator and a Unicode math
    character, so a lone Greek letter in a sentence is not an equation.
    """

    def __init__(self, config: EquationConfig):
        self.config = config

    def _is_math_token(self, token: str) -> bool:
        core = token.rstrip(_TRAILING_PUNCT) or token
        return any(c in MATH_CHARS for c in core) or bool(_SIMPLE_OPERAND.match(core))

    def detect(self, text: str) -> List[Equation]:
        results = []
        results.extend(self._symbol_runs(text))
        results.extend(self._structures(text))
        return results

    def _symbol_runs(self, text: str) -> List[Equation]:
        results = []
        for line_match in re.finditer(r'[^\n]+', text):
            line, offset = line_match.group(0), line_match.start()
            run: List[re.Match] = []
            for token in list(_TOKEN.finditer(line)) + [None]:
                if token is not None and self._is_math_token(token.group(0)):
                    run.append(token)
                    continue
                if run:
                    candidate = self._run_to_equation(text, line, offset, run)
                    if candidate is not None:
                        results.append(candidate)
                run = []
        return results

    def _run_to_equation(self, text, line, offset, run) -> Optional[Equation]:
        start = run[0].start()
        end = run[-1].end()
        while end > start and line[end - 1] in _TRAILING_PUNCT:
            end -= 1
        content = line[start:end]

        if len(content) < self.config.symbol_run_min_length:
            return None
        if not any(c in MATH_CHARS for c in content):
            return None
        if not any(c in OPERATOR_CHARS for c in content):
            return None

        return Equation(
            id=0,
            raw_content=content,
            canonical_form=to_canonical(content),
            detection_method="symbol_run",
            confidence=self.config.confidences["symbol_run"],
            source_span=(offset + start, offset + end),
            surrounding_context=_context(text, offset + start, offset + end,
                                         self.config.context_window),
            source="text",
            position=offset + start,
            display=False,
        )

    def _structures(self, text: str) -> List[Equation]:
        results = []
        for match in EQUATION_STRUCTURE.finditer(text):
            content = match.group(0).rstrip(_TRAILING_PUNCT).strip()
            if len(content) < self.config.symbol_run_min_length:
                continue
            start = match.start()
            end = start + len(content)
            results.append(Equation(
                id=0,
                raw_content=content,
                canonical_form=to_canonical(content),
                detection_method="equation_structure",
                confidence=self.config.confidences["equation_structure"],
                source_span=(start, end),
                surrounding_context=_context(text, start, end, self.config.context_window),
                source="text",
                position=start,
                display=False,
            ))
        return results


# ============================================================================
# Example Usage
# ============================================================================

if __name__ == "__main__":
    import sys

    if len(sys.argv) > 1:
        with open(sys.argv[1], encoding="utf-8") as f:
            text = f.read()

        equations = EquationExtractor().extract(text)

        print(f"Found {len(equations)} equations")
        for eq in equations:
            print(f"{eq.placeholder} [{eq.detection_method}, {eq.confidence:.2f}] {eq.canonical_form}")
    else:
        print("Usage: python -m papertex.utils.equations <manuscript.txt>")
