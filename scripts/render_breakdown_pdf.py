"""
Render a Crafternia breakdown package YAML into a printable PDF guide.

Usage:
    python scripts/render_breakdown_pdf.py \
        --package crafternia_breakdown.yaml \
        --output crafternia_guide.pdf
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on the Python path.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from crafternia import BreakdownPackage, BreakdownPDFBuilder  # noqa: E402
from crafternia.pdf_generation.builder import PAGE_SIZES  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert a Crafternia breakdown package YAML into a printable guide."
    )
    parser.add_argument(
        "--package",
        required=True,
        help="Path to the breakdown package YAML (output of run_breakdown.py).",
    )
    parser.add_argument(
        "--output",
        required=True,
        help="Destination PDF file path.",
    )
    parser.add_argument(
        "--page-size",
        choices=sorted(PAGE_SIZES.keys()),
        default="letter",
        help="Page size to render (default: letter).",
    )
    parser.add_argument(
        "--margin-mm",
        type=float,
        default=16.0,
        help="Page margin in millimetres (default: 16).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Timeout in seconds for downloading step images (default: 30).",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    package = BreakdownPackage.from_yaml(args.package)
    builder = BreakdownPDFBuilder(
        page_size=PAGE_SIZES[args.page_size],
        margin_mm=args.margin_mm,
        request_timeout=args.timeout,
    )
    builder.build(package, args.output)

    print(f"Rendered breakdown PDF to {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
