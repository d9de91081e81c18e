#!/usr/bin/env python
"""
Generate sample manuscripts for testing the manuscript reconstruction pipeline.

This script creates sample manuscripts with:
- Front matter (title, authors, abstract, keywords)
- Roman and arabic numbered sections
- Delimited and HTML tables
- Delimited, symbolic and OMML equations

Usage:
    python examples/generate_samples.py
"""

import json
import zipfile
from pathlib import Path


def create_sample_roman_text() -> str:
    """An IEEE-style manuscript with roman headings and a delimited table."""
    return "\n".join([
        "Lightweight Multi-Factor Authentication for Campus Attendance",
        "Maria Santos, Jose Reyes",
        "Department of Computer Science, University of the Philippines",
        "maria.santos@up.edu.ph, jose.reyes@up.edu.ph",
        "Abstract— We present a mobile attendance system that combines QR codes,",
        "proximity detection and location validation.",
        "Index Terms— authentication, attendance, mobile security",
        "I. INTRODUCTION",
        "Attendance fraud is common in large lectures. Table 1 compares existing approaches.",
        "TABLE I: Comparison of existing approaches",
        "||====||",
        "||Approach|Strength|Limitation||",
        "||Enhanced QR Code|Fast enrollment|Single factor only||",
        "||BLE-based proximity detection|Passive|High computational cost||",
        "||====||",
        "II. METHODOLOGY",
        "The trust score is computed as follows:",
        "$$S = \\frac{w_1 q + w_2 b}{w_1 + w_2}$$",
        "where q and b are the QR and proximity scores.",
        "Location validation follows.",
        "A check-in is accepted when d ≤ r for the classroom radius r.",
        "III. CONCLUSION",
        "The system reduces proxy attendance without dedicated hardware.",
        "IV. REFERENCES",
        "[1] A. Author, \"QR attendance,\" in Proc. Conf., 2020.",
        "[2] B. Author, \"BLE presence,\" J. Mobile Syst., 2021.",
    ])


def create_sample_arabic_text() -> str:
    """A Springer-style manuscript with arabic numbering and inline math."""
    return "\n".join([
        "Density-Aware Table Layout for Academic Publishing",
        "Ana Cruz",
        "Institute of Mathematics, University of Manila",
        "Abstract: Tables in manuscripts rarely fit the column width of the venue.",
        "Keywords: typesetting, tables, layout",
        "1 Introduction",
        "Dense tables overflow narrow columns. The width of column $i$ is $w_i$.",
        "1.1 Motivation",
        "We minimize overflow subject to \\sum_{i=1}^{n} w_i \\le W as shown in the following equation.",
        "2 Method",
        "Each column receives a priority p_i = \\sqrt{m_i} based on its longest cell.",
        "3 Results",
        "The optimizer never exceeds the width budget.",
    ])


def create_sample_html() -> str:
    """An HTML manuscript with a captioned table and a math-font span."""
    return """<html><body>
<h1>Font Hints for Equation Recovery</h1>
<p>Lea Tan</p>
<p>Abstract: Word processors mark equations with dedicated math fonts.</p>
<p>Keywords: equations, fonts</p>
<h2>I. Introduction</h2>
<p>The energy is <span style="font-family: 'Cambria Math'">E = mc^2</span> for a body at rest.</p>
<p>Table 1: Detection methods</p>
<table>
<tr><th>Method</th><th>Confidence</th></tr>
<tr><td>OMML</td><td>0.98</td></tr>
<tr><td>Math font</td><td>0.90</td></tr>
</table>
<h2>II. Conclusion</h2>
<p>Font hints complement delimiter detection.</p>
</body></html>
"""


W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
M_NS = "http://schemas.openxmlformats.org/officeDocument/2006/math"


def _docx_paragraph(text: str) -> str:
    return f'<w:p><w:r><w:t xml:space="preserve">{text}</w:t></w:r></w:p>'


def create_sample_docx(path: Path) -> None:
    """A minimal Word document carrying one OMML fraction."""
    fraction = (
        '<w:p><m:oMath><m:r><m:t>y=</m:t></m:r>'
        '<m:f><m:num><m:r><m:t>a</m:t></m:r></m:num>'
        '<m:den><m:r><m:t>b</m:t></m:r></m:den></m:f></m:oMath></w:p>'
    )
    body = "".join([
        _docx_paragraph("Recovering Word Equations as LaTeX"),
        _docx_paragraph("Ken Ito"),
        _docx_paragraph("Abstract: We convert Office math markup into LaTeX."),
        _docx_paragraph("Keywords: OMML, LaTeX"),
        _docx_paragraph("I. Introduction"),
        _docx_paragraph("The ratio is defined below."),
        fraction,
        _docx_paragraph("II. Conclusion"),
        _docx_paragraph("Markup equations are recovered with high confidence."),
    ])
    document = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<w:document xmlns:w="{W_NS}" xmlns:m="{M_NS}"><w:body>{body}</w:body></w:document>'
    )
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("word/document.xml", document)


def create_expected_output(title: str, sections: list, tables: list, equations: int) -> dict:
    """Create the expected output used by eval.py."""
    return {
        "title": title,
        "sections": sections,
        "tables": tables,
        "equations": equations,
    }


def main():
    # Create output directories
    samples_dir = Path(__file__).parent / "sample_manuscripts"
    expected_dir = Path(__file__).parent / "expected_outputs"
    samples_dir.mkdir(exist_ok=True)
    expected_dir.mkdir(exist_ok=True)

    # Generate samples
    samples = [
        ("sample_roman.txt", create_sample_roman_text()),
        ("sample_arabic.txt", create_sample_arabic_text()),
        ("sample_html.html", create_sample_html()),
    ]

    for filename, content in samples:
        path = samples_dir / filename
        path.write_text(content, encoding="utf-8")
        print(f"Created: {path}")

    docx_path = samples_dir / "sample_docx.docx"
    create_sample_docx(docx_path)
    print(f"Created: {docx_path}")

    expected = {
        "sample_roman": create_expected_output(
            "Lightweight Multi-Factor Authentication for Campus Attendance",
            [
                {"title": "INTRODUCTION", "level": 1},
                {"title": "METHODOLOGY", "level": 1},
                {"title": "CONCLUSION", "level": 1},
                {"title": "REFERENCES", "level": 1},
            ],
            [{"num_rows": 3, "num_cols": 3}],
            2,
        ),
        "sample_arabic": create_expected_output(
            "Density-Aware Table Layout for Academic Publishing",
            [
                {"title": "Introduction", "level": 1},
                {"title": "Motivation", "level": 2},
                {"title": "Method", "level": 1},
                {"title": "Results", "level": 1},
            ],
            [],
            3,
        ),
    }

    for name, data in expected.items():
        expected_path = expected_dir / f"{name}.json"
        with open(expected_path, 'w') as f:
            json.dump(data, f, indent=2)
        print(f"Created: {expected_path}")

    print("\nSample generation complete!")
    print("Run: papertex --input examples/sample_manuscripts/sample_roman.txt --output output/sample_roman")


if __name__ == "__main__":
    main()
