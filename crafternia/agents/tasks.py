"""
Typed task variants parsed from REQUEST payloads, one per category-agent intent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from crafternia.scene.progressive import StepMode
from crafternia.scene.structured_prompt import StructuredScenePrompt

GENERATE_MASTER_IMAGE = "generate_master_image"
GENERATE_CRAFT_FROM_IMAGE = "generate_craft_from_image"
GENERATE_STEP_IMAGE = "generate_step_image"
DISSECT_CRAFT = "dissect_craft"
DISSECT_SELECTED_OBJECT = "dissect_selected_object"
GENERATE_PATTERN_SHEET = "generate_pattern_sheet"
IDENTIFY_OBJECT = "identify_object"
GENERATE_TURNTABLE_VIEW = "generate_turntable_view"

TURNTABLE_VIEWS = ("left", "right", "back")


@dataclass(frozen=True)
class GenerateMasterImageTask:
    concept: str


@dataclass(frozen=True)
class GenerateCraftFromImageTask:
    source_image: Any


@dataclass(frozen=True)
class GenerateStepImageTask:
    master_seed: int
    step_description: str
    master_prompt: StructuredScenePrompt
    step_number: int
    total_steps: int
    previous_step_prompt: StructuredScenePrompt | None = None
    mode: StepMode | None = None


@dataclass(frozen=True)
class DissectCraftTask:
    image: Any
    concept: str


@dataclass(frozen=True)
class DissectSelectedObjectTask:
    selected_image: Any
    full_image: Any
    label: str


@dataclass(frozen=True)
class GeneratePatternSheetTask:
    source_image: Any
    label: str | None = None


@dataclass(frozen=True)
class IdentifyObjectTask:
    selected_image: Any
    full_image: Any


@dataclass(frozen=True)
class GenerateTurntableViewTask:
    master_seed: int
    master_prompt: StructuredScenePrompt
    view: str


CategoryTask = (
    GenerateMasterImageTask
    | GenerateCraftFromImageTask
    | GenerateStepImageTask
    | DissectCraftTask
    | DissectSelectedObjectTask
    | GeneratePatternSheetTask
    | IdentifyObjectTask
    | GenerateTurntableViewTask
)


def parse_task(payload: Mapping[str, Any]) -> CategoryTask:
    """
    Build the task variant for ``payload["intent"]``; unknown intents raise ``ValueError``.
    """
    intent = payload.get("intent")
    fields = _PayloadReader(payload, str(intent))

    match intent:
        case "generate_master_image":
            return GenerateMasterImageTask(concept=fields.text("concept", "prompt"))
        case "generate_craft_from_image":
            return GenerateCraftFromImageTask(source_image=fields.value("source_image", "image"))
        case "generate_step_image":
            previous = payload.get("previous_step_prompt")
            return GenerateStepImageTask(
                master_seed=fields.integer("master_seed"),
                step_description=fields.text("step_description"),
                master_prompt=fields.prompt("master_prompt"),
                step_number=fields.integer("step_number"),
                total_steps=fields.integer("total_steps"),
                previous_step_prompt=_to_prompt(previous) if previous is not None else None,
                mode=StepMode.parse(payload.get("mode")),
            )
        case "dissect_craft":
            return DissectCraftTask(
                image=fields.value("image", "source_image"),
                concept=fields.text("concept", "prompt"),
            )
        case "dissect_selected_object":
            return DissectSelectedObjectTask(
                selected_image=fields.value("selected_image"),
                full_image=fields.value("full_image"),
                label=fields.text("label"),
            )
        case "generate_pattern_sheet":
            label = str(payload.get("label") or "").strip()
            return GeneratePatternSheetTask(
                source_image=fields.value("source_image", "image"),
                label=label or None,
            )
        case "identify_object":
            return IdentifyObjectTask(
                selected_image=fields.value("selected_image"),
                full_image=fields.value("full_image"),
            )
        case "generate_turntable_view":
            view = fields.text("view").lower()
            if view not in TURNTABLE_VIEWS:
                raise ValueError(
                    f"view must be one of {', '.join(TURNTABLE_VIEWS)}, got '{view}'."
                )
            return GenerateTurntableViewTask(
                master_seed=fields.integer("master_seed"),
                master_prompt=fields.prompt("master_prompt"),
                view=view,
            )
        case _:
            raise ValueError(f"Unknown intent for category agent: {intent}")


class _PayloadReader:
    def __init__(self, payload: Mapping[str, Any], intent: str) -> None:
        self._payload = payload
        self._intent = intent

    def value(self, *keys: str) -> Any:
        for key in keys:
            value = self._payload.get(key)
            if value is not None and value != "":
                return value
        raise ValueError(f"Missing required field '{keys[0]}' for intent {self._intent}.")

    def text(self, *keys: str) -> str:
        value = str(self.value(*keys)).strip()
        if not value:
            raise ValueError(f"Field '{keys[0]}' for intent {self._intent} must not be blank.")
        return value

    def integer(self, key: str) -> int:
        value = self.value(key)
        if isinstance(value, bool):
            raise ValueError(f"Field '{key}' must be an integer.")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Field '{key}' must be an integer, got {value!r}.") from exc

    def prompt(self, key: str) -> StructuredScenePrompt:
        return _to_prompt(self.value(key))


def _to_prompt(value: Any) -> StructuredScenePrompt:
    if isinstance(value, StructuredScenePrompt):
        return value
    if isinstance(value, Mapping):
        return StructuredScenePrompt.from_mapping(value)
    raise ValueError(f"Expected a structured prompt, got {type(value).__name__}.")
