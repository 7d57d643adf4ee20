"""
Breakdown pipeline wiring master generation, dissection and step images together.
"""

from .pipeline import BreakdownPackage, CraftBreakdownPipeline, ProgressCallback, StepAsset

__all__ = [
    "BreakdownPackage",
    "CraftBreakdownPipeline",
    "ProgressCallback",
    "StepAsset",
]
