"""
Manuscript Reconstruction Pipeline
==================================

Converts loosely formatted academic manuscripts (plain text, HTML or DOCX)
into publication-ready LaTeX for IEEE, ACM and Springer templates.

Main components:
- Line normalization and classification
- Table extraction (delimited text and HTML)
- Equation detection (OMML, LaTeX delimiters, math fonts, symbol runs)
- Front-matter detection (title, authors, abstract, keywords)
- Section segmentation with table and equation placement
- Adaptive table layout and template-specific LaTeX export
"""

__version__ = "1.0.0"
__author__ = "Manuscript Reconstruction Team"
