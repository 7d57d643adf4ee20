"""
Structured scene model and progressive step construction.
"""

from .progressive import (
    DEFAULT_REMOVAL_HIERARCHY,
    StepMode,
    detail_percent,
    layers_removed_at,
    lock_arrangement,
    lock_continuity,
    raw_materials_baseline,
    validate_step_position,
)
from .structured_prompt import (
    Aesthetics,
    GenerationResult,
    Lighting,
    ObjectDescriptor,
    PhotographicCharacteristics,
    StructuredScenePrompt,
    parse_json_object,
)

__all__ = [
    "Aesthetics",
    "DEFAULT_REMOVAL_HIERARCHY",
    "GenerationResult",
    "Lighting",
    "ObjectDescriptor",
    "PhotographicCharacteristics",
    "StepMode",
    "StructuredScenePrompt",
    "detail_percent",
    "layers_removed_at",
    "lock_arrangement",
    "lock_continuity",
    "parse_json_object",
    "raw_materials_baseline",
    "validate_step_position",
]
