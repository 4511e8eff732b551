#!/usr/bin/env python
"""
Command-line interface for cadastral map text extraction.

Usage:
    cadastral-ocr --input <image_or_folder> --output <output_dir> [options]

Examples:
    # Extract place names and survey numbers from one map
    cadastral-ocr --input map.png --output ./output

    # Use two engines and export every format
    cadastral-ocr --input map.png --output ./output --engine tesseract easyocr --format all

    # Debug mode with bounding box visualization
    cadastral-ocr --input maps/ --output ./output --debug
"""

import sys
import argparse
import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import List

logger = logging.getLogger("cadastral_ocr")

ENGINE_CHOICES = ["tesseract", "paddleocr", "easyocr"]
ENGINE_PACKAGES = {"tesseract": "pytesseract", "paddleocr": "paddleocr", "easyocr": "easyocr"}


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description="Cadastral OCR - Extract place names and survey numbers from cadastral maps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Process one map and export CSV + JSON:
    cadastral-ocr --input map.png --output ./output

  Every export format, two engines:
    cadastral-ocr --input map.png --output ./output --engine tesseract easyocr --format all

  Try all four orientations, no tiling:
    cadastral-ocr --input map.png --output ./output --angles 0 90 180 270 --no-tiling

  Custom dictionary of known names and numbers:
    cadastral-ocr --input map.png --output ./output --dictionary names.json
        """
    )

    # Required arguments
    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input image file or folder of images"
    )

    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output directory for generated files"
    )

    # Optional arguments
    parser.add_argument(
        "--format", "-f",
        nargs="+",
        default=["csv", "json"],
        choices=["csv", "summary", "json", "all"],
        help="Output format(s) (default: csv json)"
    )

    parser.add_argument(
        "--engine", "-e",
        nargs="+",
        choices=ENGINE_CHOICES,
        default=None,
        help="OCR engine(s) to run on every variant (default: tesseract)"
    )

    parser.add_argument(
        "--dictionary", "-d",
        default=None,
        help="Reference dictionary (.json or Type,Value .csv) replacing the built-in one"
    )

    parser.add_argument(
        "--confidence-threshold",
        type=float,
        default=None,
        help=(
            "Minimum fused confidence (0-100) kept before dictionary correction "
            "(default: 85). Reads below it are dropped without ever receiving the "
            "correction boost; use --keep-all to let low-confidence misreads be corrected"
        )
    )

    parser.add_argument(
        "--keep-all",
        action="store_true",
        help="Keep fragments of any confidence, so every read is offered to dictionary correction"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-call recognition timeout in seconds (default: 60)"
    )

    parser.add_argument(
        "--angles",
        nargs="+",
        type=int,
        default=None,
        help="Rotation angles to try, any of 0 90 180 270 (default: 0)"
    )

    parser.add_argument(
        "--no-tiling",
        action="store_true",
        help="Recognize whole images instead of overlapping tiles"
    )

    parser.add_argument(
        "--use-gpu",
        action="store_true",
        help="Use GPU for EasyOCR/PaddleOCR if available"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (outputs debug images with bounding boxes)"
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


def check_dependencies(engines: List[str]) -> bool:
    """Check if required dependencies are available."""
    missing = []

    try:
        import cv2
    except ImportError:
        missing.append("opencv-python")

    try:
        import numpy
    except ImportError:
        missing.append("numpy")

    available = []
    for engine in engines:
        try:
            __import__(ENGINE_PACKAGES.get(engine, engine))
            available.append(engine)
        except ImportError:
            logger.warning(f"OCR engine '{engine}' is not installed (pip install {ENGINE_PACKAGES.get(engine, engine)})")

    if not available:
        missing.append(f"at least one OCR engine of: {', '.join(engines)}")

    if missing:
        logger.error("Missing required dependencies:")
        for dep in missing:
            logger.error(f"  - {dep}")
        logger.error("\nInstall with: pip install -e .")
        return False

    return True


def build_config(args):
    """Build the pipeline configuration from defaults, environment and arguments."""
    from cadastral_ocr.config import get_config

    config = get_config()

    if args.engine:
        config.recognition.engines = list(args.engine)
    if args.timeout is not None:
        config.recognition = replace(config.recognition, timeout_seconds=args.timeout)
    if args.use_gpu:
        config.recognition.use_gpu = True

    if args.keep_all:
        config.reconcile = replace(config.reconcile, min_confidence=None)
    elif args.confidence_threshold is not None:
        config.reconcile = replace(config.reconcile, min_confidence=args.confidence_threshold)

    profile_changes = {}
    if args.no_tiling:
        profile_changes["tile_size"] = None
    if args.angles:
        profile_changes["rotation_angles"] = tuple(args.angles)
    if profile_changes:
        config.profiles = {
            name: profile.with_options(**profile_changes)
            for name, profile in config.profiles.items()
        }

    if args.debug:
        config.debug_mode = True

    return config


def run_pipeline(args) -> int:
    """Run the cadastral extraction pipeline."""
    from cadastral_ocr.exceptions import CadastralOCRError, ConfigurationError
    from cadastral_ocr.utils.io import detect_input_type, list_image_files, ensure_dir
    from cadastral_ocr.utils.assembler import CadastralPipeline
    from cadastral_ocr.utils.dictionary import load_dictionary
    from cadastral_ocr.utils.export import ResultExporter

    start_time = time.time()

    try:
        config = build_config(args)
    except (ConfigurationError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    # Setup output directory
    output_dir = Path(args.output)
    ensure_dir(output_dir)

    # Detect input type
    input_path = Path(args.input)
    input_type = detect_input_type(input_path)

    logger.info(f"Input type detected: {input_type}")

    if input_type == "image":
        image_files = [input_path]
    elif input_type == "image_folder":
        image_files = list_image_files(input_path)
    else:
        logger.error(f"Unsupported input type: {input_type}")
        return 1

    dictionary = load_dictionary(args.dictionary) if args.dictionary else None

    pipeline = CadastralPipeline(config=config, dictionary=dictionary, output_dir=output_dir)

    results = []
    failed = 0
    for image_file in image_files:
        try:
            result = pipeline.process_file(image_file)
        except CadastralOCRError as e:
            logger.error(f"Failed to process {image_file}: {e}")
            failed += 1
            if args.debug:
                raise
            continue

        exporter = ResultExporter(output_dir, image_file.stem)
        for fmt, path in exporter.export(result, args.format).items():
            logger.info(f"Exported {fmt}: {path}")
        results.append(result)

    if not results:
        logger.error("No images were processed")
        return 1

    # Print summary
    elapsed = time.time() - start_time

    if not args.quiet:
        print("\n" + "=" * 60)
        print("CADASTRAL TEXT EXTRACTION COMPLETE")
        print("=" * 60)
        print(f"Source: {input_path}")
        print(f"Output: {output_dir}")
        print(f"Images processed: {len(results)} (failed: {failed})")
        print(f"Processing time: {elapsed:.2f}s")
        for result in results:
            print()
            print(f"{Path(result.source_file).name}:")
            print(f"  Place names: {len(result.characters)}")
            print(f"  Numbers: {len(result.numbers)}")
            print(f"  Mean confidence: {result.mean_confidence:.1f}")
            print(f"  Variants: {result.variants_processed}, engine calls: {result.recognition_calls} "
                  f"(failed: {result.recognition_failures}, timed out: {result.recognition_timeouts})")
            for fragment in result.fragments[:10]:
                print(f"    {fragment.kind:<10} {fragment.text:<20} {fragment.confidence:6.1f}")
        print("=" * 60)

    return 0 if failed == 0 else 1


def main():
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args()

    # Setup logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    # Check dependencies
    from cadastral_ocr.config import get_config

    if not check_dependencies(args.engine or get_config().recognition.engines):
        sys.exit(1)

    # Run pipeline
    try:
        exit_code = run_pipeline(args)
        sys.exit(exit_code)
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
