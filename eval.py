#!/usr/bin/env python
"""
Evaluation script for the Manuscript Reconstruction Pipeline.

Computes metrics on processed documents and compares against expected outputs.

Usage:
    python eval.py --input <document.json> [--expected <expected_json>]
    python eval.py --results-dir <dir> [--expected-dir <dir>] --report <report.json>

Expected JSON format (every key optional):
    {
        "title": "...",
        "abstract": "...",
        "keywords": "...",
        "sections": [{"title": "Introduction", "level": 1}, ...],
        "tables": [{"num_rows": 3, "num_cols": 2}, ...],
        "equations": 2
    }
"""

import argparse
import json
import logging
from pathlib import Path
from dataclasses import dataclass, asdict
from typing import List, Optional, Dict, Any
import sys

from papertex.config import EquationConfig

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class EvaluationMetrics:
    """Evaluation metrics for a processed document."""
    # Overall metrics
    global_confidence: float = 0.0
    front_matter_detected: int = 0

    # Section metrics
    sections_total: int = 0
    sections_generated: int = 0

    # Equation metrics
    equations_total: int = 0
    equations_high_confidence: int = 0
    equations_low_confidence: int = 0
    equation_confidence_avg: float = 0.0

    # Table metrics
    tables_total: int = 0
    tables_with_caption: int = 0
    tables_placed: int = 0

    dangling_placeholders: int = 0

    # Accuracy (if expected output provided)
    title_match: Optional[bool] = None
    abstract_similarity: Optional[float] = None
    keywords_match: Optional[bool] = None
    section_recall: Optional[float] = None
    section_level_accuracy: Optional[float] = None
    table_shape_accuracy: Optional[float] = None
    equation_count_match: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_document(json_path: Path) -> Dict[str, Any]:
    """Load a document JSON file."""
    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def evaluate_document(
    doc: Dict[str, Any],
    thresholds: Optional[EquationConfig] = None
) -> EvaluationMetrics:
    """Evaluate a single processed document."""
    thresholds = thresholds or EquationConfig()
    metrics = EvaluationMetrics()

    # Get pre-computed metrics if available
    doc_metrics = doc.get("metrics", {})
    metrics.global_confidence = doc_metrics.get("global_confidence", 0.0)
    metrics.front_matter_detected = doc_metrics.get("front_matter_detected", 0)
    metrics.dangling_placeholders = doc_metrics.get("dangling_placeholders", 0)
    metrics.tables_placed = doc_metrics.get("tables", {}).get("placed", 0)

    sections = doc.get("sections", [])
    metrics.sections_total = len(sections)
    metrics.sections_generated = sum(1 for s in sections if s.get("type") == "generated")

    equation_confidences = []
    for equation in doc.get("equations", []):
        confidence = equation.get("confidence", 0.0)
        metrics.equations_total += 1
        equation_confidences.append(confidence)

        if thresholds.is_high_confidence(confidence):
            metrics.equations_high_confidence += 1
        elif thresholds.is_low_confidence(confidence):
            metrics.equations_low_confidence += 1

    if equation_confidences:
        metrics.equation_confidence_avg = sum(equation_confidences) / len(equation_confidences)

    for table in doc.get("tables", []):
        metrics.tables_total += 1
        if table.get("caption", "").strip():
            metrics.tables_with_caption += 1

    return metrics


def compare_text(expected: str, actual: str) -> float:
    """
    Compare expected and actual text, return similarity score.
    Uses simple word-level Jaccard similarity.
    """
    if not expected or not actual:
        return 0.0

    expected_words = set(expected.lower().split())
    actual_words = set(actual.lower().split())

    if not expected_words:
        return 0.0

    intersection = expected_words & actual_words
    union = expected_words | actual_words

    return len(intersection) / len(union) if union else 0.0


def _normalize(text: str) -> str:
    return " ".join((text or "").lower().split())


def _metadata_text(doc: Dict[str, Any], name: str) -> str:
    return doc.get("metadata", {}).get(name, {}).get("text", "")


def evaluate_against_expected(
    doc: Dict[str, Any],
    expected: Dict[str, Any]
) -> EvaluationMetrics:
    """Evaluate document against expected output."""
    metrics = evaluate_document(doc)

    if "title" in expected:
        metrics.title_match = _normalize(_metadata_text(doc, "title")) == _normalize(expected["title"])

    if "abstract" in expected:
        metrics.abstract_similarity = compare_text(expected["abstract"], _metadata_text(doc, "abstract"))

    if "keywords" in expected:
        metrics.keywords_match = (
            _normalize(_metadata_text(doc, "keywords")) == _normalize(expected["keywords"])
        )

    expected_sections = expected.get("sections")
    if expected_sections:
        actual = {_normalize(s.get("title", "")): s.get("level") for s in doc.get("sections", [])}
        found = [s for s in expected_sections if _normalize(s.get("title", "")) in actual]
        metrics.section_recall = len(found) / len(expected_sections)
        if found:
            correct = sum(
                1 for s in found
                if "level" not in s or actual[_normalize(s["title"])] == s["level"]
            )
            metrics.section_level_accuracy = correct / len(found)

    expected_tables = expected.get("tables")
    if expected_tables:
        actual_tables = doc.get("tables", [])
        matched = sum(
            1 for exp, act in zip(expected_tables, actual_tables)
            if exp.get("num_rows") == act.get("num_rows") and exp.get("num_cols") == act.get("num_cols")
        )
        metrics.table_shape_accuracy = matched / len(expected_tables)

    if "equations" in expected:
        metrics.equation_count_match = metrics.equations_total == expected["equations"]

    return metrics


def _flag(value: Optional[bool]) -> str:
    return "yes" if value else "no"


def print_metrics(metrics: EvaluationMetrics, name: str = "Document"):
    """Print metrics in a formatted way."""
    print(f"\n{'='*60}")
    print(f"Evaluation Results: {name}")
    print('='*60)

    print("\nOverall Metrics:")
    print(f"  Global Confidence: {metrics.global_confidence:.1%}")
    print(f"  Front-matter Elements: {metrics.front_matter_detected}/4")
    print(f"  Dangling Placeholders: {metrics.dangling_placeholders}")

    print("\nSections:")
    print(f"  Total: {metrics.sections_total}")
    print(f"  Generated: {metrics.sections_generated}")

    print("\nEquations:")
    print(f"  Total: {metrics.equations_total}")
    print(f"  High Confidence: {metrics.equations_high_confidence}")
    print(f"  Low Confidence (<65%): {metrics.equations_low_confidence}")
    print(f"  Average Confidence: {metrics.equation_confidence_avg:.1%}")

    print("\nTables:")
    print(f"  Total: {metrics.tables_total}")
    print(f"  With Caption: {metrics.tables_with_caption}")
    print(f"  Placed: {metrics.tables_placed}")

    if metrics.title_match is not None or metrics.section_recall is not None:
        print("\nAccuracy (vs expected):")
        if metrics.title_match is not None:
            print(f"  Title Match: {_flag(metrics.title_match)}")
        if metrics.abstract_similarity is not None:
            print(f"  Abstract Similarity: {metrics.abstract_similarity:.1%}")
        if metrics.keywords_match is not None:
            print(f"  Keywords Match: {_flag(metrics.keywords_match)}")
        if metrics.section_recall is not None:
            print(f"  Section Recall: {metrics.section_recall:.1%}")
        if metrics.section_level_accuracy is not None:
            print(f"  Section Level Accuracy: {metrics.section_level_accuracy:.1%}")
        if metrics.table_shape_accuracy is not None:
            print(f"  Table Shape Accuracy: {metrics.table_shape_accuracy:.1%}")
        if metrics.equation_count_match is not None:
            print(f"  Equation Count Match: {_flag(metrics.equation_count_match)}")

    print('='*60)


def evaluate_directory(
    results_dir: Path,
    expected_dir: Optional[Path] = None
) -> Dict[str, EvaluationMetrics]:
    """
    Evaluate every document.json under a directory.

    Each run is expected in its own subdirectory (as written by the CLI);
    the expected file for results/<name>/document.json is expected/<name>.json.
    """
    results = {}

    for json_file in sorted(results_dir.rglob("document.json")):
        name = json_file.parent.name
        doc = load_document(json_file)

        # Check for expected output
        expected = None
        if expected_dir:
            expected_file = expected_dir / f"{name}.json"
            if expected_file.exists():
                expected = load_document(expected_file)

        if expected:
            metrics = evaluate_against_expected(doc, expected)
        else:
            metrics = evaluate_document(doc)

        results[name] = metrics

    return results


def _average(values: List[float]) -> Optional[float]:
    return round(sum(values) / len(values), 3) if values else None


def generate_report(
    results: Dict[str, EvaluationMetrics]
) -> Dict[str, Any]:
    """Generate a summary report from multiple evaluations."""
    if not results:
        return {"error": "No results to report"}

    # Aggregate metrics
    total_docs = len(results)
    metrics = list(results.values())

    avg_confidence = sum(m.global_confidence for m in metrics) / total_docs

    return {
        "summary": {
            "documents_evaluated": total_docs,
            "average_confidence": round(avg_confidence, 3),
            "total_sections": sum(m.sections_total for m in metrics),
            "total_equations": sum(m.equations_total for m in metrics),
            "total_tables": sum(m.tables_total for m in metrics),
            "total_dangling_placeholders": sum(m.dangling_placeholders for m in metrics),
            "title_accuracy": _average([float(m.title_match) for m in metrics if m.title_match is not None]),
            "average_section_recall": _average(
                [m.section_recall for m in metrics if m.section_recall is not None]
            ),
            "average_table_shape_accuracy": _average(
                [m.table_shape_accuracy for m in metrics if m.table_shape_accuracy is not None]
            ),
        },
        "individual_results": {
            name: m.to_dict()
            for name, m in results.items()
        }
    }


def main():
    parser = argparse.ArgumentParser(
        description="Evaluate Manuscript Reconstruction outputs"
    )

    parser.add_argument(
        "--input", "-i",
        type=Path,
        help="Path to a document.json output file"
    )

    parser.add_argument(
        "--expected", "-e",
        type=Path,
        help="Path to expected output JSON for comparison"
    )

    parser.add_argument(
        "--results-dir",
        type=Path,
        help="Directory containing one output directory per document"
    )

    parser.add_argument(
        "--expected-dir",
        type=Path,
        help="Directory containing expected outputs (<name>.json)"
    )

    parser.add_argument(
        "--report", "-r",
        type=Path,
        help="Output path for evaluation report JSON"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress printed output"
    )

    args = parser.parse_args()

    results = {}

    # Evaluate single file
    if args.input:
        if not args.input.exists():
            logger.error(f"Input file not found: {args.input}")
            sys.exit(1)

        doc = load_document(args.input)

        if args.expected and args.expected.exists():
            expected = load_document(args.expected)
            metrics = evaluate_against_expected(doc, expected)
        else:
            metrics = evaluate_document(doc)

        results[args.input.parent.name or args.input.stem] = metrics

        if not args.quiet:
            print_metrics(metrics, str(args.input))

    # Evaluate directory
    elif args.results_dir:
        if not args.results_dir.is_dir():
            logger.error(f"Results directory not found: {args.results_dir}")
            sys.exit(1)

        results = evaluate_directory(args.results_dir, args.expected_dir)

        if not args.quiet:
            for name, metrics in results.items():
                print_metrics(metrics, name)

    else:
        parser.print_help()
        sys.exit(1)

    # Generate and save report
    if args.report and results:
        report = generate_report(results)

        with open(args.report, 'w') as f:
            json.dump(report, f, indent=2)

        logger.info(f"Report saved to: {args.report}")

        if not args.quiet:
            print(f"\nReport saved to: {args.report}")
            print("\nSummary:")
            for key, value in report["summary"].items():
                print(f"  {key}: {value}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
