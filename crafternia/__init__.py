"""
Crafternia package exposing the craft agents, the breakdown pipeline and PDF tooling.
"""

from .bootstrap import CrafterniaRuntime, build_runtime
from .common import CrafterniaError, CrafterniaSettings
from .pdf_generation import BreakdownPDFBuilder
from .pipeline import BreakdownPackage, CraftBreakdownPipeline, StepAsset

__all__ = [
    "BreakdownPDFBuilder",
    "BreakdownPackage",
    "CraftBreakdownPipeline",
    "CrafterniaError",
    "CrafterniaRuntime",
    "CrafterniaSettings",
    "StepAsset",
    "build_runtime",
]
