"""
Helpers for deriving per-step scene prompts from a master scene.

Two strategies are supported:

* sequential refinement, where every step refines the previous step's prompt one stage
  closer to the master and the final step reuses the master prompt itself;
* incremental reveal, where every step is derived straight from the master by removing the
  construction layers that are not yet finished at that step's completion percentage.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Sequence

from .structured_prompt import ObjectDescriptor, StructuredScenePrompt

logger = logging.getLogger(__name__)

# Ordered from the layer applied last (removed first) down to the bare material.
DEFAULT_REMOVAL_HIERARCHY: tuple[str, ...] = (
    "final finish and varnish",
    "fine details and highlights",
    "shading and depth",
    "secondary colors",
    "base colors and forms",
    "raw material",
)

ARRANGEMENT_FIELDS = ("location", "relationship", "relative_size", "number_of_objects", "orientation")


class StepMode(str, Enum):
    SEQUENTIAL = "sequential"
    INCREMENTAL = "incremental"

    @classmethod
    def parse(cls, value: "StepMode | str | None") -> "StepMode | None":
        if value is None or isinstance(value, StepMode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            choices = ", ".join(mode.value for mode in cls)
            raise ValueError(f"Unknown step mode '{value}'. Expected one of: {choices}.") from exc


def validate_step_position(step_number: int, total_steps: int) -> None:
    if total_steps < 1:
        raise ValueError(f"total_steps must be at least 1, got {total_steps}.")
    if not 1 <= step_number <= total_steps:
        raise ValueError(
            f"step_number must be between 1 and {total_steps}, got {step_number}."
        )


def detail_percent(step_number: int, total_steps: int) -> int:
    """
    Completion percentage of a step, rounded half up (6 steps: 17, 33, 50, 67, 83, 100).
    """
    validate_step_position(step_number, total_steps)
    return (200 * step_number + total_steps) // (2 * total_steps)


def layers_removed_at(
    percent: int,
    hierarchy: Sequence[str] = DEFAULT_REMOVAL_HIERARCHY,
) -> tuple[str, ...]:
    """
    Return the construction layers still missing at ``percent`` completion.

    At least the bare material is always visible and nothing is removed at 100%.
    """
    if not 0 <= percent <= 100:
        raise ValueError(f"percent must be between 0 and 100, got {percent}.")
    layer_count = len(hierarchy)
    if layer_count == 0:
        return ()
    visible = max(1, min(layer_count, (percent * layer_count + 50) // 100))
    return tuple(hierarchy[: layer_count - visible])


def lock_arrangement(
    derived: StructuredScenePrompt,
    reference: StructuredScenePrompt,
) -> StructuredScenePrompt:
    """
    Copy object count, placement and size from ``reference`` onto ``derived``.

    Objects are paired by index; the result always carries the reference's object count.
    Slots the derived prompt left out get only the reference's description and placement,
    never its surface detail.
    """
    if len(derived.objects) != len(reference.objects):
        logger.warning(
            "Derived prompt has %d objects, reference has %d; aligning to the reference.",
            len(derived.objects),
            len(reference.objects),
        )

    objects: list[ObjectDescriptor] = []
    for index, reference_object in enumerate(reference.objects):
        if index >= len(derived.objects):
            objects.append(_placement_only(reference_object, reference_object.description))
            continue
        arrangement = {name: getattr(reference_object, name) for name in ARRANGEMENT_FIELDS}
        objects.append(replace(derived.objects[index], **arrangement))

    return derived.evolve(objects=tuple(objects))


def lock_continuity(
    derived: StructuredScenePrompt,
    master: StructuredScenePrompt,
) -> StructuredScenePrompt:
    """
    Copy the scene-level continuity fields and the object arrangement from ``master``.
    """
    return lock_arrangement(derived, master).evolve(
        lighting=master.lighting,
        background_setting=master.background_setting,
        photographic_characteristics=master.photographic_characteristics,
        aesthetics=master.aesthetics,
    )


def raw_materials_baseline(master: StructuredScenePrompt) -> StructuredScenePrompt:
    """
    Starting point for sequential refinement: the master's objects as unworked materials.
    """
    objects = tuple(
        _placement_only(item, f"unworked raw materials for {item.description}")
        for item in master.objects
    )
    return master.evolve(
        short_description=f"Raw materials laid out for: {master.short_description}",
        objects=objects,
    )


def _placement_only(item: ObjectDescriptor, description: str) -> ObjectDescriptor:
    return ObjectDescriptor(
        description=description,
        **{name: getattr(item, name) for name in ARRANGEMENT_FIELDS},
    )
