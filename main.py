#!/usr/bin/env python3
"""
Puzzle Edge Scanner - Main execution script
Finds corner and edge pieces in a photo of jigsaw pieces spread on a plain background.
"""

import argparse
import os
import sys

from piece_scanner.config import ScanConfig
from piece_scanner.pipeline import CaptureScanner, ScanSession
from piece_scanner.preprocessing import load_frame
from piece_scanner.sensitivity import Sensitivity
from piece_scanner.utils import setup_logging
from piece_scanner.visualization import save_results


def parse_args(argv=None) -> argparse.Namespace:
    defaults = ScanConfig()
    parser = argparse.ArgumentParser(description="Classify jigsaw pieces as corner, edge or non-edge")
    parser.add_argument("image", help="Photo of puzzle pieces")
    parser.add_argument("--sensitivity", choices=[s.value for s in Sensitivity],
                        default=Sensitivity.MEDIUM.value, help="Detection sensitivity")
    parser.add_argument("--target-width", type=int, default=defaults.capture_target_width,
                        help="Processing width in pixels (wider images are downscaled)")
    parser.add_argument("--max-pieces", type=int, default=defaults.max_pieces,
                        help="Maximum number of pieces to extract")
    parser.add_argument("--out", default="results/", help="Output directory")
    parser.add_argument("--log-level", default=defaults.logging_level,
                        help="Logging level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--no-save", action="store_true", help="Print results only")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ScanConfig:
    return ScanConfig(
        capture_target_width=args.target_width,
        max_pieces=args.max_pieces,
        logging_level=args.log_level,
    )


def main(argv=None) -> int:
    """Main execution function."""
    args = parse_args(argv)
    config = build_config(args)
    setup_logging(config.logging_level)

    print("=== Puzzle Edge Scanner ===\n")

    # Step 1: Load image
    print("Step 1: Loading image...")
    try:
        frame = load_frame(args.image)
    except FileNotFoundError as exc:
        print(f"Error: Could not load image: {exc}")
        return 1
    height, width = frame.shape[:2]
    print(f"Loaded {args.image} ({width}x{height})")

    # Step 2: Scan
    print(f"\nStep 2: Scanning pieces (sensitivity: {args.sensitivity})...")
    scanner = CaptureScanner(ScanSession(config))
    outcome = scanner.capture(frame, args.sensitivity)

    if not outcome.ok:
        failure = outcome.failure
        print(f"Error: Analysis failed ({failure.error_type}): {failure.message}")
        return 1

    result = outcome.result
    counts = result.counts
    print(f"Found {counts.total} pieces in {result.elapsed_s:.2f} seconds")
    print(f"  Corners:  {counts.corners}")
    print(f"  Edges:    {counts.edges}")
    print(f"  Non-edge: {counts.non_edge}")
    print(f"  Unknown:  {counts.unknown}")

    # Step 3: Guidance
    print(f"\nStep 3: Image quality ({result.status})")
    for item in result.guidance:
        print(f"  [{item.level}] {item.message}")

    if args.no_save:
        return 0

    # Step 4: Save results
    print("\nStep 4: Saving results...")
    save_results(result, frame, args.image, args.out)

    print("Results saved to:")
    print(f"  - {os.path.join(args.out, 'annotated.png')} (overlay)")
    print(f"  - {os.path.join(args.out, 'pieces.png')} (piece sheet)")
    print(f"  - {os.path.join(args.out, 'pieces')}/ (cutouts)")
    print(f"  - {os.path.join(args.out, 'scan_log.json')} (detailed log)")
    print(f"  - {os.path.join(args.out, 'summary.txt')} (summary)")

    if counts.corners + counts.edges == 0 and counts.total > 0:
        print("\n⚠ Warning: No corner or edge pieces found. You may need to:")
        print("  - Try a higher sensitivity")
        print("  - Make sure straight sides are not hidden by other pieces")

    return 0


if __name__ == "__main__":
    sys.exit(main())
