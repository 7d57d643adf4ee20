"""
Category agent: one implementation of every craft intent, parameterized by a prompt profile.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any, Mapping, assert_never

from crafternia.a2a.agent import Agent
from crafternia.a2a.types import AgentCard, Capability, TaskEnvelope
from crafternia.ai_generation.replicate_service import ReplicateImageGenerator
from crafternia.ai_generation.structured_prompt_service import StructuredPromptService
from crafternia.resilience.rate_limiter import DISSECTION, IMAGE_GENERATION, AdmissionLimits
from crafternia.scene.progressive import (
    StepMode,
    detail_percent,
    layers_removed_at,
    lock_arrangement,
    lock_continuity,
    raw_materials_baseline,
    validate_step_position,
)
from crafternia.scene.structured_prompt import GenerationResult, StructuredScenePrompt

from . import templates
from .dissection import DISSECTION_SCHEMA, DissectionResult
from .profiles import CategoryPromptProfile, CategoryRegistry
from .tasks import (
    DISSECT_CRAFT,
    DISSECT_SELECTED_OBJECT,
    GENERATE_CRAFT_FROM_IMAGE,
    GENERATE_MASTER_IMAGE,
    GENERATE_PATTERN_SHEET,
    GENERATE_STEP_IMAGE,
    GENERATE_TURNTABLE_VIEW,
    IDENTIFY_OBJECT,
    CategoryTask,
    DissectCraftTask,
    DissectSelectedObjectTask,
    GenerateCraftFromImageTask,
    GenerateMasterImageTask,
    GeneratePatternSheetTask,
    GenerateStepImageTask,
    GenerateTurntableViewTask,
    IdentifyObjectTask,
    parse_task,
)

logger = logging.getLogger(__name__)

AGENT_VERSION = "1.0.0"
SELECTED_OBJECT_STEP_COUNT = len(templates.SELECTED_OBJECT_GROUPS)
FALLBACK_OBJECT_NAME = "Selected Object"


def build_capabilities(scope: str) -> tuple[Capability, ...]:
    return (
        Capability(
            GENERATE_MASTER_IMAGE,
            f"Generate a master reference image for {scope}.",
            {"concept": "string", "category": "string"},
        ),
        Capability(
            GENERATE_CRAFT_FROM_IMAGE,
            f"Re-create an uploaded image's composition in the style of {scope}.",
            {"source_image": "image", "category": "string"},
        ),
        Capability(
            GENERATE_STEP_IMAGE,
            f"Render one build step for {scope} with the master seed.",
            {
                "master_seed": "integer",
                "step_description": "string",
                "master_prompt": "StructuredScenePrompt",
                "step_number": "integer",
                "total_steps": "integer",
                "previous_step_prompt": "StructuredScenePrompt?",
                "mode": "sequential|incremental?",
            },
        ),
        Capability(
            DISSECT_CRAFT,
            f"Break a craft from {scope} into materials and ordered steps.",
            {"image": "image", "concept": "string"},
        ),
        Capability(
            DISSECT_SELECTED_OBJECT,
            "Break one selected object into four body-part steps.",
            {"selected_image": "image", "full_image": "image", "label": "string"},
        ),
        Capability(
            GENERATE_PATTERN_SHEET,
            f"Generate a printable pattern sheet for {scope}.",
            {"source_image": "image", "label": "string?"},
        ),
        Capability(
            IDENTIFY_OBJECT,
            "Name an object selected from a larger image.",
            {"selected_image": "image", "full_image": "image"},
        ),
        Capability(
            GENERATE_TURNTABLE_VIEW,
            f"Render a craft from {scope} from the left, right or back.",
            {"master_seed": "integer", "master_prompt": "StructuredScenePrompt", "view": "string"},
        ),
    )


class CategoryAgent(Agent):
    """
    Serves every craft intent for the category described by ``profile``.

    When a ``registry`` is supplied, a ``category`` field in the request payload selects
    another profile for that request, so a single agent can serve every category.
    """

    def __init__(
        self,
        profile: CategoryPromptProfile,
        *,
        text_service: StructuredPromptService,
        image_service: ReplicateImageGenerator,
        limits: AdmissionLimits,
        registry: CategoryRegistry | None = None,
        name: str | None = None,
        description: str | None = None,
    ) -> None:
        self.profile = profile
        self._text = text_service
        self._images = image_service
        self._limits = limits
        self._registry = registry
        self._card = AgentCard(
            name=name or profile.agent_name,
            version=AGENT_VERSION,
            description=description or profile.agent_description,
            capabilities=build_capabilities(
                "every registered craft category"
                if registry is not None
                else f"{profile.display_name} crafts"
            ),
        )

    @property
    def card(self) -> AgentCard:
        return self._card

    async def process_task(self, task: TaskEnvelope) -> TaskEnvelope:
        try:
            parsed = parse_task(task.payload)
            profile = self._resolve_profile(task.payload)
            result = await self._handle(parsed, profile)
        except Exception as exc:
            logger.warning(
                "%s failed task %s (%s): %s", self.card.name, task.task_id, task.intent, exc
            )
            return self.create_error_response(task, exc)
        return self.create_response(task, result)

    def _resolve_profile(self, payload: Mapping[str, Any]) -> CategoryPromptProfile:
        category = payload.get("category")
        if category is None or self._registry is None:
            return self.profile
        return self._registry.get(str(category))

    async def _handle(self, task: CategoryTask, profile: CategoryPromptProfile) -> Any:
        match task:
            case GenerateMasterImageTask(concept=concept):
                return await self.generate_master_image(concept, profile=profile)
            case GenerateCraftFromImageTask(source_image=source_image):
                return await self.generate_craft_from_image(source_image, profile=profile)
            case GenerateStepImageTask():
                return await self.generate_step_image(
                    task.master_seed,
                    task.step_description,
                    task.master_prompt,
                    task.step_number,
                    task.total_steps,
                    previous_step_prompt=task.previous_step_prompt,
                    mode=task.mode,
                    profile=profile,
                )
            case DissectCraftTask(image=image, concept=concept):
                return await self.dissect_craft(image, concept, profile=profile)
            case DissectSelectedObjectTask(
                selected_image=selected_image, full_image=full_image, label=label
            ):
                return await self.dissect_selected_object(selected_image, full_image, label)
            case GeneratePatternSheetTask(source_image=source_image, label=label):
                return await self.generate_pattern_sheet(source_image, label, profile=profile)
            case IdentifyObjectTask(selected_image=selected_image, full_image=full_image):
                return await self.identify_selected_object(selected_image, full_image)
            case GenerateTurntableViewTask(
                master_seed=master_seed, master_prompt=master_prompt, view=view
            ):
                return await self.generate_turntable_view(master_seed, master_prompt, view)
            case _:
                assert_never(task)

    async def generate_master_image(
        self,
        concept: str,
        *,
        profile: CategoryPromptProfile | None = None,
    ) -> GenerationResult:
        """
        Turn a concept into a structured scene and render it with a fresh seed.
        """
        profile = profile or self.profile
        self._limits.image_generation.check(IMAGE_GENERATION)
        prompt = await self._text.generate_prompt(profile.master_prompt(concept))
        return await self._images.render(prompt)

    async def generate_craft_from_image(
        self,
        source_image: Any,
        *,
        profile: CategoryPromptProfile | None = None,
    ) -> GenerationResult:
        """
        Re-create the composition of ``source_image`` in the category's materials.

        Only the adapted structured prompt reaches the image backend.
        """
        profile = profile or self.profile
        self._limits.image_generation.check(IMAGE_GENERATION)
        composition = await self._text.generate_prompt(
            templates.COMPOSITION_EXTRACTION_INSTRUCTION,
            images=[source_image],
        )
        adapted = await self._text.generate_prompt(
            templates.ADAPTATION_TEMPLATE.format(
                display_name=profile.display_name,
                composition_json=composition.to_json(indent=2),
                style_notes=profile.style_notes,
            )
        )
        return await self._images.render(lock_arrangement(adapted, composition))

    async def generate_step_image(
        self,
        master_seed: int,
        step_description: str,
        master_prompt: StructuredScenePrompt,
        step_number: int,
        total_steps: int,
        *,
        previous_step_prompt: StructuredScenePrompt | None = None,
        mode: StepMode | str | None = None,
        profile: CategoryPromptProfile | None = None,
    ) -> GenerationResult:
        """
        Render one build step with the master seed.

        Sequential mode refines the previous step's prompt and reuses ``master_prompt``
        unchanged for the final step. Incremental mode derives the step from the master by
        removing unfinished layers, then copies the master's continuity fields back in.
        """
        profile = profile or self.profile
        validate_step_position(step_number, total_steps)
        resolved_mode = StepMode.parse(mode)
        if resolved_mode is None:
            resolved_mode = (
                StepMode.SEQUENTIAL
                if previous_step_prompt is not None
                else profile.default_step_mode
            )

        step_prompt = profile.step_prompt(step_description)
        master_json = master_prompt.to_json(indent=2)

        match resolved_mode:
            case StepMode.SEQUENTIAL:
                if step_number == total_steps:
                    prompt = master_prompt
                else:
                    previous = previous_step_prompt or raw_materials_baseline(master_prompt)
                    prompt = await self._text.generate_prompt(
                        templates.REFINEMENT_TEMPLATE.format(
                            previous_json=previous.to_json(indent=2),
                            master_json=master_json,
                            step_number=step_number,
                            total_steps=total_steps,
                            step_prompt=step_prompt,
                        )
                    )
            case StepMode.INCREMENTAL:
                percent = detail_percent(step_number, total_steps)
                if step_number == total_steps:
                    removal_clause = templates.REVEAL_FINAL_CLAUSE
                else:
                    removed = layers_removed_at(percent, profile.removal_hierarchy)
                    removal_clause = "Remove these layers, which are not made yet: " + "; ".join(
                        removed
                    ) + "."
                derived = await self._text.generate_prompt(
                    templates.REVEAL_TEMPLATE.format(
                        master_json=master_json,
                        step_number=step_number,
                        total_steps=total_steps,
                        percent=percent,
                        removal_clause=removal_clause,
                        step_prompt=step_prompt,
                    )
                )
                prompt = lock_continuity(derived, master_prompt)
            case _:
                assert_never(resolved_mode)

        logger.info(
            "Rendering %s step %d/%d (%s).",
            profile.category_id,
            step_number,
            total_steps,
            resolved_mode.value,
        )
        return await self._images.render(prompt, seed=master_seed)

    async def dissect_craft(
        self,
        image: Any,
        concept: str,
        *,
        profile: CategoryPromptProfile | None = None,
    ) -> DissectionResult:
        profile = profile or self.profile
        self._limits.dissection.check(DISSECTION)
        instruction = "\n\n".join(
            [profile.dissection_prompt(concept), templates.schema_clause(DISSECTION_SCHEMA)]
        )
        payload = await self._text.request_json(
            system=templates.DISSECTION_SYSTEM_PROMPT,
            instruction=instruction,
            images=[image],
        )
        result = DissectionResult.from_wire(payload)
        return result.conform(profile.step_count, profile.mandated_step_titles)

    async def dissect_selected_object(
        self,
        selected_image: Any,
        full_image: Any,
        label: str,
    ) -> DissectionResult:
        """
        Dissect only the selected object, grouped into four body-part steps.
        """
        self._limits.dissection.check(DISSECTION)
        instruction = "\n\n".join(
            [
                templates.SELECTED_OBJECT_DISSECTION_TEMPLATE.format(
                    label=label,
                    step_plan=templates.numbered_plan(templates.SELECTED_OBJECT_GROUPS),
                ),
                templates.schema_clause(DISSECTION_SCHEMA),
            ]
        )
        payload = await self._text.request_json(
            system=templates.DISSECTION_SYSTEM_PROMPT,
            instruction=instruction,
            images=[selected_image, full_image],
        )
        return DissectionResult.from_wire(payload).conform(SELECTED_OBJECT_STEP_COUNT)

    async def generate_pattern_sheet(
        self,
        source_image: Any,
        label: str | None = None,
        *,
        profile: CategoryPromptProfile | None = None,
    ) -> str:
        profile = profile or self.profile
        self._limits.image_generation.check(IMAGE_GENERATION)
        return await self._images.edit(source_image, profile.pattern_sheet_prompt(label))

    async def identify_selected_object(self, selected_image: Any, full_image: Any) -> str:
        reply = await self._text.request_text(
            system="You identify objects in craft reference images.",
            instruction=templates.IDENTIFY_INSTRUCTION,
            images=[selected_image, full_image],
        )
        first_line = reply.strip().splitlines()[0] if reply.strip() else ""
        name = first_line.strip().strip("\"'`.").strip()
        return name or FALLBACK_OBJECT_NAME

    async def generate_turntable_view(
        self,
        master_seed: int,
        master_prompt: StructuredScenePrompt,
        view: str,
    ) -> GenerationResult:
        """
        Render the master from another side, changing only orientation and camera angle.
        """
        rotation = templates.TURNTABLE_ROTATIONS.get(view)
        if rotation is None:
            raise ValueError(f"Unsupported turntable view '{view}'.")
        self._limits.image_generation.check(IMAGE_GENERATION)

        rotated = await self._text.generate_prompt(
            templates.TURNTABLE_TEMPLATE.format(
                view=view,
                master_json=master_prompt.to_json(indent=2),
                rotation=rotation,
            )
        )
        objects = tuple(
            replace(item, orientation=rotated.objects[index].orientation or item.orientation)
            if index < len(rotated.objects)
            else item
            for index, item in enumerate(master_prompt.objects)
        )
        camera_angle = (
            rotated.photographic_characteristics.camera_angle
            or f"{view} side view, same height as the master"
        )
        prompt = master_prompt.evolve(
            objects=objects,
            photographic_characteristics=replace(
                master_prompt.photographic_characteristics, camera_angle=camera_angle
            ),
        )
        return await self._images.render(prompt, seed=master_seed)


def describe_profile(profile: CategoryPromptProfile) -> str:
    """Compact JSON summary of a profile, used by the CLI listing."""
    return json.dumps(
        {
            "category": profile.category_id,
            "name": profile.display_name,
            "steps": profile.step_count,
            "mode": profile.default_step_mode.value,
            "verbatim_titles": bool(profile.mandated_step_titles),
        }
    )
