"""
Utility script to exercise the backends with a single master image.

Usage:
    python scripts/run_master_image.py \
        --concept "a felt owl ornament" \
        --category kids_crafts

Environment variables:
    REPLICATE_API_TOKEN      - required
    CRAFTERNIA_TEXT_API_KEY  - or GEMINI_API_KEY / LITELLM_API_KEY
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from crafternia import CrafterniaSettings, build_runtime  # noqa: E402
from crafternia.agents.tasks import GENERATE_MASTER_IMAGE  # noqa: E402


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate one Crafternia master image.")
    parser.add_argument("--concept", required=True, help="What to make.")
    parser.add_argument("--category", default="papercraft", help="Craft category id.")
    parser.add_argument(
        "--image-model",
        action="append",
        default=None,
        help="Replicate model to try, in order (repeatable). Defaults to the configured list.",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging verbosity.")
    return parser.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())

    settings = CrafterniaSettings.from_env(image_models=args.image_model)
    runtime = build_runtime(settings)

    print("Running generation with the following parameters:")
    print(f"  Concept  : {args.concept}")
    print(f"  Category : {args.category}")
    print(f"  Models   : {', '.join(settings.image_models)}")

    result = asyncio.run(
        runtime.orchestrator.dispatch(
            GENERATE_MASTER_IMAGE,
            {"concept": args.concept, "category": args.category},
        )
    )

    print("\nMaster image:")
    print(f"  URL  : {result.image_url}")
    print(f"  Seed : {result.seed}")
    print(result.structured_prompt.to_json(indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
