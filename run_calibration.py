#!/usr/bin/env python3
"""
run_calibration.py — Run the extraction calibration benchmark.

Usage:
    python run_calibration.py                      # Full run
    python run_calibration.py --corpus-dir path/   # Custom corpus location
    python run_calibration.py --floor 0.35         # Try a different confidence floor
    python run_calibration.py --decay 0.9          # Try a different soft decay
    python run_calibration.py --json               # Output JSON only (for CI)
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from shadowmapper.config import settings
from calibration.corpus_parser import parse_all_corpora
from calibration.benchmark import run_benchmark, format_report, save_report, result_to_json


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Shadow Mapper Calibration Runner")
    parser.add_argument(
        "--corpus-dir",
        default="calibration/corpus",
        help="Path to corpus directory (default: calibration/corpus)",
    )
    parser.add_argument(
        "--output-dir",
        default="calibration/reports",
        help="Directory for output reports (default: calibration/reports)",
    )
    parser.add_argument("--floor", type=float, help="Override the pass-2 confidence floor")
    parser.add_argument("--decay", type=float, help="Override the soft-penalty decay factor")
    parser.add_argument(
        "--min-length", type=int, help="Override the minimum sentence length"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output JSON only (for CI/automation)",
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    corpus_dir = Path(args.corpus_dir)
    if not corpus_dir.exists():
        print(f"Error: Corpus directory not found: {corpus_dir}")
        return 1

    samples = parse_all_corpora(corpus_dir)
    if not samples:
        print(f"Error: No samples found in {corpus_dir}")
        return 1

    overrides = {}
    if args.floor is not None:
        overrides["confidence_floor"] = args.floor
    if args.decay is not None:
        overrides["soft_decay"] = args.decay
    if args.min_length is not None:
        overrides["min_sentence_length"] = args.min_length
    thresholds = replace(settings.THRESHOLDS, **overrides)

    result = run_benchmark(corpus_dir=corpus_dir, thresholds=thresholds)

    if args.json:
        print(json.dumps(result_to_json(result), indent=2))
    else:
        print(f"Loaded {len(samples)} samples from {corpus_dir}")
        print(format_report(result))
        report_path, json_path = save_report(result, args.output_dir)
        print(f"\nReport saved to: {report_path}")
        print(f"JSON saved to:   {json_path}")

    # Exit code for CI
    if result.macro_f1 < 0.5 and result.total_samples > 5:
        if not args.json:
            print("\n⚠️  F1 below 0.5 — calibration failing")
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
