"""
Export module for manuscript reconstruction.

Provides:
- LaTeX serialization of a document model for a template profile
- Adaptive table rendering and numbered equations
- Bibliography generation from a references section
- Structural validation of generated LaTeX
- Multi-template export with a JSON dump of the model
"""

import logging
import re
from pathlib import Path
from typing import Dict, Any, Optional, List, Union

from ..config import ExportConfig, LayoutConfig
from .templates import TemplateProfile, get_template, available_templates
from .layout import TableLayoutOptimizer
from .sections import Section, TextSpan, TableRef, EquationRef, section_for_line
from .tables import Table
from .equations import Equation, INLINE_MATH, to_canonical, validate_latex

logger = logging.getLogger(__name__)


PLACEHOLDER_TOKEN = re.compile(r'\[(TABLE|EQUATION)_(\d+)\]')
CITATION_MARKER = re.compile(r'\s*\[\d+\]\s*')

LATEX_SPECIAL_CHARS = {
    '\\': '\\textbackslash{}',
    '&': '\\&',
    '%': '\\%',
    '$': '\\$',
    '#': '\\#',
    '_': '\\_',
    '{': '\\{',
    '}': '\\}',
    '~': '\\textasciitilde{}',
    '^': '\\textasciicircum{}',
}
_LATEX_SPECIAL = re.compile(r'[\\&%$#_{}~^]')

HEADING_COMMANDS = {1: "section", 2: "subsection", 3: "subsubsection"}


def escape_latex(text: str) -> str:
    """Escape special LaTeX characters in one pass."""
    if not text:
        return ""
    return _LATEX_SPECIAL.sub(lambda m: LATEX_SPECIAL_CHARS[m.group(0)], text)


def escape_math(latex: str) -> str:
    """Escape characters that end or comment out a math expression."""
    latex = re.sub(r'(?<!\\)([%#])', r'\\\1', latex)
    # '&' only separates columns inside an environment
    if "\\begin{" not in latex:
        latex = re.sub(r'(?<!\\)&', r'\\&', latex)
    return latex


def escape_text(text: str) -> str:
    """
    Escape prose, keeping inline math such as "$x$" as math.

    Math whose braces do not balance is escaped like the rest of the text.
    """
    if not text:
        return ""
    out = []
    last = 0
    for match in INLINE_MATH.finditer(text):
        content = (match.group(1) or match.group(2) or "").strip()
        if not validate_latex(content)[0]:
            continue
        out.append(escape_latex(text[last:match.start()]))
        out.append(f"${escape_math(to_canonical(content))}$")
        last = match.end()
    out.append(escape_latex(text[last:]))
    return "".join(out)


def heading_command(level: int) -> str:
    return HEADING_COMMANDS.get(level, "paragraph")


# ============================================================================
# LaTeX Exporter
# ============================================================================

class LatexExporter:
    """Serialize a document model for one template profile."""

    def __init__(
        self,
        template: Union[str, TemplateProfile] = "ieee",
        config: Optional[ExportConfig] = None,
        layout_config: Optional[LayoutConfig] = None
    ):
        self.profile = template if isinstance(template, TemplateProfile) else get_template(template)
        self.config = config or ExportConfig()
        self.optimizer = TableLayoutOptimizer(layout_config)

    def export(self, document: Any, output_path: Union[str, Path]) -> Path:
        """
        Export document to a LaTeX file.

        Args:
            document: Document model
            output_path: Output file path (.tex)

        Returns:
            Path to the generated LaTeX file
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        latex = self.generate(document)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(latex)

        logger.info(f"Exported {self.profile.display_name} LaTeX to: {output_path}")
        return output_path

    def generate(self, document: Any) -> str:
        """Generate the complete LaTeX source."""
        tables = {t.id: t for t in document.tables}
        equations = {e.id: e for e in document.equations}
        rendered: Dict[str, set] = {"TABLE": set(), "EQUATION": set()}

        lines = self._preamble()
        lines.append("\\begin{document}")
        lines.append("")
        lines.extend(self._front_matter(document))

        sections = document.sections
        pending = self._pending_by_section(document)
        references: Optional[Section] = None

        for position, section in enumerate(sections):
            if section.is_references and references is None:
                references = section
            else:
                title = escape_latex(section.title)
                lines.append(f"\\{heading_command(section.level)}{{{title}}}")
                lines.append("")
                lines.extend(self._render_body(section, tables, equations, rendered))

            for kind, item_id in pending.get(position, []):
                if item_id in rendered[kind]:
                    continue
                lines.extend(self._render_item(kind, item_id, tables, equations, rendered))

        if not sections:
            for kind, item_id in pending.get(None, []):
                lines.extend(self._render_item(kind, item_id, tables, equations, rendered))

        lines.extend(self._bibliography(references))
        lines.append("\\end{document}")
        lines.append("")

        latex = "\n".join(lines)
        issues = validate_latex_document(latex)
        for issue in issues:
            logger.warning(f"[{self.profile.name}] {issue}")
        return latex

    # ------------------------------------------------------------------
    # Preamble and front matter
    # ------------------------------------------------------------------

    def _preamble(self) -> List[str]:
        lines = [self.profile.document_class_line]
        lines.extend(self.profile.preamble_extra)
        for package in self.profile.packages:
            lines.append(f"\\usepackage{{{package}}}")
        lines.append("")
        return lines

    def _front_matter(self, document: Any) -> List[str]:
        cfg = self.config
        title = document.title.text if document.title.detected else cfg.title_placeholder
        names = list(document.author_info.names) or [
            document.authors.text if document.authors.detected else cfg.author_placeholder
        ]
        emails = list(document.author_info.emails)
        affiliation = (document.affiliation.text if document.affiliation.detected
                       else cfg.affiliation_placeholder)
        abstract = document.abstract.text if document.abstract.detected else ""
        keywords = document.keywords.text if document.keywords.detected else ""

        abstract_tex = "\n\n".join(escape_text(p) for p in abstract.split("\n") if p.strip())
        style = self.profile.front_matter_style

        if style == "acm":
            return self._acm_front_matter(title, names, emails, affiliation, abstract_tex, keywords)
        if style == "llncs":
            return self._llncs_front_matter(title, names, emails, affiliation, abstract_tex, keywords)
        return self._ieee_front_matter(title, names, emails, affiliation, abstract_tex, keywords)

    def _ieee_front_matter(self, title, names, emails, affiliation, abstract, keywords) -> List[str]:
        lines = [f"\\title{{{escape_text(title)}}}", ""]
        blocks = []
        for index, name in enumerate(names):
            contact = f"\\textit{{{escape_latex(affiliation)}}}"
            if index < len(emails):
                contact += f" \\\\\n{escape_latex(emails[index])}"
            blocks.append(
                f"\\IEEEauthorblockN{{{escape_latex(name)}}}\n"
                f"\\IEEEauthorblockA{{{contact}}}"
            )
        lines.append("\\author{" + "\n\\and\n".join(blocks) + "}")
        lines.append("")
        lines.append("\\maketitle")
        lines.append("")
        if abstract:
            lines.extend(["\\begin{abstract}", abstract, "\\end{abstract}", ""])
        if keywords:
            lines.extend(["\\begin{IEEEkeywords}", escape_latex(keywords),
                          "\\end{IEEEkeywords}", ""])
        return lines

    def _acm_front_matter(self, title, names, emails, affiliation, abstract, keywords) -> List[str]:
        lines = [f"\\title{{{escape_text(title)}}}", ""]
        for index, name in enumerate(names):
            lines.append(f"\\author{{{escape_latex(name)}}}")
            lines.append(f"\\affiliation{{\\institution{{{escape_latex(affiliation)}}}\\country{{}}}}")
            if index < len(emails):
                lines.append(f"\\email{{{escape_latex(emails[index])}}}")
        lines.append("")
        # acmart expects the abstract and keywords before \maketitle
        if abstract:
            lines.extend(["\\begin{abstract}", abstract, "\\end{abstract}", ""])
        if keywords:
            lines.extend([f"\\keywords{{{escape_latex(keywords)}}}", ""])
        lines.append("\\maketitle")
        lines.append("")
        return lines

    def _llncs_front_matter(self, title, names, emails, affiliation, abstract, keywords) -> List[str]:
        lines = [f"\\title{{{escape_text(title)}}}"]
        lines.append("\\author{" + " \\and ".join(escape_latex(n) for n in names) + "}")
        institute = escape_latex(affiliation)
        if emails:
            institute += "\\\\\n" + ", ".join(f"\\email{{{escape_latex(e)}}}" for e in emails)
        lines.append(f"\\institute{{{institute}}}")
        lines.append("")
        lines.append("\\maketitle")
        lines.append("")
        if abstract or keywords:
            lines.append("\\begin{abstract}")
            if abstract:
                lines.append(abstract)
            if keywords:
                terms = [escape_latex(k.strip()) for k in re.split(r'[;,]', keywords) if k.strip()]
                joined = " \\and ".join(terms)
                lines.append(f"\\keywords{{{joined}}}")
            lines.append("\\end{abstract}")
            lines.append("")
        return lines

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def _pending_by_section(self, document: Any) -> Dict[Optional[int], List[tuple]]:
        """Tables and equations keyed by the section they would belong to, in document order."""
        items = []
        for table in document.tables:
            span = table.source_span
            line = span.start_line if span.has_lines else table.caption_line
            items.append((line, "TABLE", table.id))
        for equation in document.equations:
            items.append((equation.line_index, "EQUATION", equation.id))
        # Items without a line go last, keeping their discovery order
        items.sort(key=lambda item: (item[0] is None, item[0] or 0))

        pending: Dict[Optional[int], List[tuple]] = {}
        for line, kind, item_id in items:
            key = section_for_line(document.sections, line)
            pending.setdefault(key, []).append((kind, item_id))
        return pending

    def _render_body(self, section: Section, tables, equations, rendered) -> List[str]:
        lines: List[str] = []
        for group in section.paragraphs:
            paragraph: List[str] = []
            for unit in group:
                if isinstance(unit, TextSpan):
                    for piece, block in self._render_text(unit.text, tables, equations, rendered):
                        if block:
                            if paragraph:
                                lines.extend([" ".join(paragraph), ""])
                                paragraph = []
                            lines.extend(block)
                        elif piece:
                            paragraph.append(piece)
                    continue

                kind = "TABLE" if isinstance(unit, TableRef) else "EQUATION"
                item_id = unit.table_id if isinstance(unit, TableRef) else unit.equation_id
                if paragraph:
                    lines.extend([" ".join(paragraph), ""])
                    paragraph = []
                lines.extend(self._render_item(kind, item_id, tables, equations, rendered))

            if paragraph:
                lines.extend([" ".join(paragraph), ""])
        return lines

    def _render_text(self, text: str, tables, equations, rendered) -> List[tuple]:
        """
        Escape prose, resolving any placeholder tokens written in it.

        Returns (escaped text, None) and ("", rendered block lines) pieces.
        Unknown tokens stay as literal text.
        """
        pieces = []
        last = 0
        for match in PLACEHOLDER_TOKEN.finditer(text):
            kind, item_id = match.group(1), int(match.group(2))
            known = tables if kind == "TABLE" else equations
            before = text[last:match.start()].strip()
            if before:
                pieces.append((escape_text(before), None))
            if item_id not in known:
                logger.debug(f"Dangling placeholder {match.group(0)} rendered as text")
                pieces.append((escape_latex(match.group(0)), None))
            elif item_id in rendered[kind]:
                pieces.append((self._cross_reference(kind, item_id, tables), None))
            else:
                pieces.append(("", self._render_item(kind, item_id, tables, equations, rendered)))
            last = match.end()
        rest = text[last:].strip()
        if rest:
            pieces.append((escape_text(rest), None))
        return pieces

    def _cross_reference(self, kind: str, item_id: int, tables) -> str:
        if kind == "TABLE":
            return f"Table~\\ref{{{tables[item_id].label}}}"
        return f"Eq.~(\\ref{{eq:{item_id}}})"

    def _render_item(self, kind, item_id, tables, equations, rendered) -> List[str]:
        known = tables if kind == "TABLE" else equations
        if item_id not in known:
            return [escape_latex(f"[{kind}_{item_id}]"), ""]
        if item_id in rendered[kind]:
            return [self._cross_reference(kind, item_id, tables), ""]
        rendered[kind].add(item_id)
        if kind == "TABLE":
            return self.table_to_latex(known[item_id]).split("\n") + [""]
        return self.equation_to_latex(known[item_id]).split("\n") + [""]

    def equation_to_latex(self, equation: Equation) -> str:
        if not equation.is_valid:
            logger.warning(f"Equation {equation.id} may not compile: {equation.canonical_form}")
        return "\n".join([
            "\\begin{equation}",
            escape_math(equation.canonical_form),
            f"\\label{{eq:{equation.id}}}",
            "\\end{equation}",
        ])

    def table_to_latex(self, table: Table) -> str:
        """Render a table with its adaptive layout."""
        layout = self.optimizer.optimize(table.grid, self.profile)
        cells = self.optimizer.process_cells(
            table.grid, layout, self.profile, abbreviate=self.config.abbreviate_tables
        )
        rules = self.profile.border_style == "rules"
        placement = "[!t]" if layout.environment == "table*" else "[htbp]"

        lines = [f"\\begin{{{layout.environment}}}{placement}", "\\centering", layout.font_size]
        if layout.tabcolsep:
            lines.append(f"\\setlength{{\\tabcolsep}}{{{layout.tabcolsep}}}")
        if layout.array_stretch is not None:
            lines.append(f"\\renewcommand{{\\arraystretch}}{{{layout.array_stretch}}}")
        lines.append(f"\\caption{{{escape_latex(table.caption)}}}")
        lines.append(f"\\label{{{table.label}}}")

        if rules:
            col_spec = "".join(layout.col_specs)
        else:
            col_spec = "|" + "|".join(layout.col_specs) + "|"
        lines.append(f"\\begin{{tabular}}{{{col_spec}}}")
        lines.append("\\toprule" if rules else "\\hline")

        for index, row in enumerate(cells):
            rendered_cells = [
                " \\newline ".join(escape_latex(part) for part in cell.split("\n"))
                for cell in row
            ]
            lines.append(" & ".join(rendered_cells) + " \\\\")
            if index == 0 and table.has_header_row and len(cells) > 1:
                lines.append("\\midrule" if rules else "\\hline")

        lines.append("\\bottomrule" if rules else "\\hline")
        lines.append("\\end{tabular}")
        lines.append(f"\\end{{{layout.environment}}}")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Bibliography
    # ------------------------------------------------------------------

    def _bibliography(self, references: Optional[Section]) -> List[str]:
        entries = []
        if references is not None:
            text = " ".join(u.text for u in references.body if isinstance(u, TextSpan))
            if CITATION_MARKER.search(text):
                entries = [e.strip() for e in CITATION_MARKER.split(text) if e.strip()]
            else:
                entries = [u.text for u in references.body if isinstance(u, TextSpan)]

        if not entries:
            entries = ["Reference entry."]

        lines = ["\\begin{thebibliography}{00}"]
        for index, entry in enumerate(entries, start=1):
            lines.append(f"\\bibitem{{b{index}}} {escape_latex(entry)}")
        lines.append("\\end{thebibliography}")
        lines.append("")
        return lines


# ============================================================================
# Validation
# ============================================================================

def validate_latex_document(latex: str) -> List[str]:
    """
    Check a generated document for structural problems.

    Returns:
        List of human-readable issues (empty when the document looks sound)
    """
    issues = []
    stripped = latex.replace("\\\\", "")
    stripped = re.sub(r'\\[{}$%&#_]', '', stripped)

    depth = 0
    for char in stripped:
        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth < 0:
                break
    if depth != 0:
        issues.append("Unbalanced braces")

    if stripped.count('$') % 2:
        issues.append("Unbalanced math delimiters ($)")

    if "\\begin{document}" not in latex:
        issues.append("Missing \\begin{document}")
    if "\\end{document}" not in latex:
        issues.append("Missing \\end{document}")

    for env in ("table", "table*", "tabular", "equation", "abstract"):
        begins = latex.count(f"\\begin{{{env}}}")
        ends = latex.count(f"\\end{{{env}}}")
        if begins != ends:
            issues.append(f"Unbalanced {env} environment ({begins} begin, {ends} end)")

    return issues


# ============================================================================
# Multi-Template Exporter
# ============================================================================

class DocumentExporter:
    """Convenience class for exporting to several templates at once."""

    def __init__(
        self,
        output_dir: Union[str, Path],
        base_name: str = "document",
        config: Optional[ExportConfig] = None,
        layout_config: Optional[LayoutConfig] = None
    ):
        self.output_dir = Path(output_dir)
        self.base_name = base_name
        self.config = config or ExportConfig()
        self.layout_config = layout_config

    def export(self, document: Any, templates: Optional[List[str]] = None) -> Dict[str, Path]:
        """
        Export document to LaTeX for each template.

        Args:
            document: Document model
            templates: Template names, or ["all"]; defaults to the configured one

        Returns:
            Dictionary mapping template name (and "json") to output path
        """
        from .io import save_json

        if not templates:
            templates = [self.config.default_template]
        if "all" in templates:
            templates = available_templates()

        self.output_dir.mkdir(parents=True, exist_ok=True)

        results = {}
        for name in templates:
            exporter = LatexExporter(name, self.config, self.layout_config)
            path = self.output_dir / f"{self.base_name}_{exporter.profile.name}.tex"
            results[exporter.profile.name] = exporter.export(document, path)

        if self.config.write_json:
            path = self.output_dir / "document.json"
            save_json(document.to_dict(), path)
            results["json"] = path

        return results
