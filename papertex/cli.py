#!/usr/bin/env python
"""
Command-line interface for the Manuscript Reconstruction Pipeline.

Usage:
    papertex --input <manuscript> --output <output_dir> [options]

Examples:
    # Convert a text manuscript for IEEE
    papertex --input paper.txt --output ./output

    # Word document, every template
    papertex --input paper.docx --output ./output --template all

    # Plain text plus its HTML rendering (enables HTML tables and math fonts)
    papertex --input paper.txt --html paper.html --output ./output
"""

import argparse
import logging
import sys
import time
from pathlib import Path

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("papertex")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description="Manuscript Reconstruction Pipeline - Convert manuscripts to publication-ready LaTeX",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Convert a manuscript for the default template:
    papertex --input paper.txt --output ./output

  Export every template:
    papertex --input paper.docx --output ./output --template all

  Supply an HTML rendering alongside the text:
    papertex --input paper.txt --html paper.html --output ./output
        """
    )

    # Required arguments
    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input manuscript (.txt, .md, .html or .docx)"
    )

    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output directory for generated files"
    )

    # Optional arguments
    parser.add_argument(
        "--html",
        default=None,
        help="Optional HTML rendering of the same manuscript"
    )

    parser.add_argument(
        "--template", "-t",
        nargs="+",
        default=None,
        choices=["ieee", "acm", "springer", "all"],
        help="Target template(s) (default: ieee)"
    )

    parser.add_argument(
        "--no-abbreviation",
        action="store_true",
        help="Keep full cell text in dense tables"
    )

    parser.add_argument(
        "--no-json",
        action="store_true",
        help="Do not write the JSON dump of the document model"
    )

    parser.add_argument(
        "--min-equation-confidence",
        type=float,
        default=None,
        help="Discard equation candidates below this confidence (default: 0.60)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (write classified lines to debug/, re-raise unexpected errors)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 1.0.0"
    )

    return parser


def run_pipeline(args) -> int:
    """Run the manuscript reconstruction pipeline."""
    from papertex.config import get_config
    from papertex.utils.io import load_document, ensure_dir, save_json
    from papertex.utils.assembler import DocumentAssembler
    from papertex.utils.export import DocumentExporter

    start_time = time.time()

    config = get_config()
    if args.no_abbreviation:
        config.export.abbreviate_tables = False
    if args.no_json:
        config.export.write_json = False
    if args.min_equation_confidence is not None:
        config.equation.min_confidence = args.min_equation_confidence
    if args.debug:
        config.debug_mode = True

    templates = args.template or [config.export.default_template]

    # Load inputs (raises InputAcquisitionError)
    input_path = Path(args.input)
    source = load_document(input_path, args.html)

    output_dir = ensure_dir(args.output)

    logger.info("Processing manuscript...")
    assembler = DocumentAssembler(config)
    document = assembler.process(source)

    exporter = DocumentExporter(output_dir, input_path.stem, config.export, config.layout)
    export_results = exporter.export(document, templates)

    for name, path in export_results.items():
        logger.info(f"Exported {name}: {path}")

    # Classified lines for inspecting detector decisions
    if config.debug_mode:
        debug_path = save_json(
            {
                "lines": [line.to_dict() for line in document.lines],
                "context_markers": [m.to_dict() for m in document.context_markers],
            },
            output_dir / "debug" / f"{input_path.stem}_lines.json",
        )
        logger.debug(f"Saved debug dump: {debug_path}")

    # Print summary
    elapsed = time.time() - start_time
    metrics = document.metrics

    if not args.quiet:
        print("\n" + "=" * 60)
        print("MANUSCRIPT RECONSTRUCTION COMPLETE")
        print("=" * 60)
        print(f"Source: {input_path}")
        print(f"Output: {output_dir}")
        print(f"Processing time: {elapsed:.2f}s")
        print()
        print(f"Title: {document.title.text or '(not detected)'}")
        print("Metrics:")
        print(f"  Global confidence: {metrics.global_confidence:.2%}")
        print(f"  Front-matter elements: {metrics.front_matter_detected}/4")
        print(f"  Sections: {metrics.sections_total} "
              f"(generated: {metrics.sections_generated})")
        print(f"  Tables: {metrics.tables_total} (placed: {metrics.tables_placed})")
        print(f"  Equations: {metrics.equations_total} "
              f"(high: {metrics.equations_high_confidence}, "
              f"low: {metrics.equations_low_confidence})")
        if metrics.dangling_placeholders:
            print(f"  Dangling placeholders: {metrics.dangling_placeholders}")
        print("Files:")
        for name, path in export_results.items():
            print(f"  {name}: {path}")
        print("=" * 60)

    return 0


def main(argv=None):
    """Main entry point."""
    from papertex.utils.io import InputAcquisitionError

    parser = setup_argparser()
    args = parser.parse_args(argv)

    # Configure logging level
    if args.verbose or args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        exit_code = run_pipeline(args)
        sys.exit(exit_code)
    except InputAcquisitionError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.debug:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
