"""
CLI to run the complete Crafternia breakdown end-to-end.

Usage:
    python scripts/run_breakdown.py \
        --concept "a paper crane mobile" \
        --category papercraft \
        --output crane_breakdown.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict

from tqdm.auto import tqdm

# Ensure project root is on the Python path when running as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from crafternia import CrafterniaSettings, build_runtime  # noqa: E402
from crafternia.agents import default_registry, describe_profile  # noqa: E402


class ProgressTracker:
    """
    Provides user-friendly command-line progress updates for the breakdown pipeline.
    """

    def __init__(self) -> None:
        self._step_bar: tqdm | None = None

    def __call__(self, stage: str, payload: Dict[str, Any]) -> None:
        match stage:
            case "master:generating":
                category = payload.get("category", "craft")
                self._write(f"[1/4] Generating the {category} master image...")
            case "master:ready":
                self._write(f"[1/4] Master ready (seed {payload.get('seed')}).")
            case "dissection:running":
                self._write("[2/4] Dissecting the master into materials and steps...")
            case "dissection:ready":
                total = payload.get("total_steps", 0)
                complexity = payload.get("complexity", "Unknown")
                self._write(f"[3/4] {complexity} project with {total} steps. Rendering steps...")
                self._step_bar = tqdm(total=total, desc="Step images", unit="step")
            case "step:processing":
                if self._step_bar is not None:
                    title = payload.get("title") or ""
                    truncated = (title[:45] + "…") if len(title) > 45 else title
                    self._step_bar.set_description(f"Step {payload.get('step_number')}: {truncated}")
            case "step:done":
                if self._step_bar is not None:
                    self._step_bar.update(1)
            case "step:failed":
                self._write(f"  Step {payload.get('step_number')} failed: {payload.get('error')}")
                if self._step_bar is not None:
                    self._step_bar.update(1)
            case "pipeline:complete":
                failed = payload.get("failed_steps", 0)
                suffix = f" ({failed} steps failed)." if failed else "."
                self._write(f"[4/4] Pipeline complete{suffix}")
                self.close()

    def close(self) -> None:
        if self._step_bar is not None:
            self._step_bar.close()
            self._step_bar = None

    @staticmethod
    def _write(message: str) -> None:
        tqdm.write(message)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the full Crafternia breakdown pipeline.")
    parser.add_argument("--concept", help="What to make, e.g. 'a clay fox figurine'.")
    parser.add_argument(
        "--category",
        default="papercraft",
        help="Craft category id or display name (see --list-categories).",
    )
    parser.add_argument(
        "--mode",
        choices=("sequential", "incremental"),
        default=None,
        help="Step construction mode. Defaults to the category's preferred mode.",
    )
    parser.add_argument(
        "--output",
        default="crafternia_breakdown.yaml",
        help="Output YAML file to store the master, dissection and step images.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML settings file; environment variables fill the gaps.",
    )
    parser.add_argument(
        "--list-categories",
        action="store_true",
        help="Print the available craft categories and exit.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging verbosity.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_categories:
        for profile in default_registry():
            print(describe_profile(profile))
        return 0
    if not args.concept:
        print("--concept is required unless --list-categories is given.", file=sys.stderr)
        return 2

    settings = (
        CrafterniaSettings.from_yaml(args.config) if args.config else CrafterniaSettings.from_env()
    )
    runtime = build_runtime(settings)
    tracker = ProgressTracker()

    try:
        package = asyncio.run(
            runtime.pipeline.run(
                args.concept,
                args.category,
                mode=args.mode,
                progress_callback=tracker,
            )
        )
    finally:
        tracker.close()

    output_path = Path(args.output)
    output_path.write_text(package.to_yaml(), encoding="utf-8")
    print(f"Saved breakdown package to {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
