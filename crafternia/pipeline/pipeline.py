"""
Orchestrates the full Crafternia breakdown from concept to master, dissection and step images.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import yaml

from crafternia.a2a.orchestrator import AgentOrchestrator
from crafternia.agents.dissection import DissectionResult, DissectionStep
from crafternia.agents.profiles import CategoryRegistry, default_registry
from crafternia.agents.tasks import DISSECT_CRAFT, GENERATE_MASTER_IMAGE, GENERATE_STEP_IMAGE
from crafternia.common.errors import CrafterniaError, NoAgentForIntent
from crafternia.scene.progressive import StepMode
from crafternia.scene.structured_prompt import GenerationResult, StructuredScenePrompt

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, dict[str, Any]], None]


@dataclass
class StepAsset:
    """One dissection step together with its rendered image, or the error that stopped it."""

    step: DissectionStep
    image_url: str | None = None
    structured_prompt: StructuredScenePrompt | None = None
    seed: int | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.image_url is not None

    @classmethod
    def from_result(cls, step: DissectionStep, result: GenerationResult) -> "StepAsset":
        return cls(
            step=step,
            image_url=result.image_url,
            structured_prompt=result.structured_prompt,
            seed=result.seed,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "step_number": self.step.step_number,
            "title": self.step.title,
            "description": self.step.description,
            "safety_warning": self.step.safety_warning,
            "image_url": self.image_url,
            "seed": self.seed,
            "structured_prompt": (
                self.structured_prompt.to_dict() if self.structured_prompt is not None else None
            ),
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, entry: Mapping[str, Any]) -> "StepAsset":
        try:
            step = DissectionStep(
                step_number=int(entry["step_number"]),
                title=str(entry["title"]).strip(),
                description=str(entry["description"]).strip(),
                safety_warning=entry.get("safety_warning") or None,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid step entry: {entry}") from exc

        raw_prompt = entry.get("structured_prompt")
        seed = entry.get("seed")
        return cls(
            step=step,
            image_url=entry.get("image_url") or None,
            structured_prompt=(
                StructuredScenePrompt.from_mapping(raw_prompt) if raw_prompt else None
            ),
            seed=int(seed) if seed is not None else None,
            error=entry.get("error") or None,
        )


@dataclass
class BreakdownPackage:
    """Aggregated output of the breakdown pipeline."""

    concept: str
    category: str
    mode: StepMode
    master: GenerationResult
    dissection: DissectionResult
    steps: list[StepAsset] = field(default_factory=list)

    @property
    def failed_steps(self) -> list[StepAsset]:
        return [asset for asset in self.steps if asset.error is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "concept": self.concept,
            "category": self.category,
            "mode": self.mode.value,
            "master": self.master.to_dict(),
            "dissection": {
                "complexity": self.dissection.complexity,
                "complexityScore": self.dissection.complexity_score,
                "materials": list(self.dissection.materials),
            },
            "steps": [asset.to_dict() for asset in self.steps],
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BreakdownPackage":
        for key in ("concept", "category", "master", "dissection", "steps"):
            if key not in payload:
                raise ValueError(f"Breakdown package payload must include '{key}'.")

        steps = [StepAsset.from_dict(entry) for entry in payload.get("steps") or []]
        raw_dissection = payload["dissection"]
        try:
            dissection = DissectionResult(
                complexity=str(raw_dissection["complexity"]),
                complexity_score=int(raw_dissection["complexityScore"]),
                materials=tuple(str(item) for item in raw_dissection.get("materials") or ()),
                steps=tuple(asset.step for asset in steps),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid dissection entry: {raw_dissection}") from exc

        return cls(
            concept=str(payload["concept"]).strip(),
            category=str(payload["category"]).strip(),
            mode=StepMode.parse(payload.get("mode")) or StepMode.SEQUENTIAL,
            master=GenerationResult.from_mapping(payload["master"]),
            dissection=dissection,
            steps=steps,
        )

    @classmethod
    def from_yaml(cls, source: str | Path) -> "BreakdownPackage":
        path = Path(source)
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if not isinstance(data, Mapping):
            raise ValueError("Breakdown package YAML must deserialize to a mapping.")
        return cls.from_dict(data)


class CraftBreakdownPipeline:
    """
    High-level coordinator that chains master generation, dissection and step rendering
    through the capability dispatcher.
    """

    def __init__(
        self,
        orchestrator: AgentOrchestrator,
        *,
        registry: CategoryRegistry | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._registry = registry or default_registry()

    async def run(
        self,
        concept: str,
        category: str,
        *,
        mode: StepMode | str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> BreakdownPackage:
        """
        Complete pipeline from a concept to a packaged master, dissection and step images.
        """
        profile = self._registry.get(category)
        resolved_mode = StepMode.parse(mode) or profile.default_step_mode

        self._notify(
            progress_callback,
            "master:generating",
            concept=concept,
            category=profile.category_id,
        )
        master: GenerationResult = await self._orchestrator.dispatch(
            GENERATE_MASTER_IMAGE,
            {"concept": concept, "category": profile.category_id},
        )
        self._notify(progress_callback, "master:ready", seed=master.seed, image_url=master.image_url)

        self._notify(progress_callback, "dissection:running")
        dissection: DissectionResult = await self._orchestrator.dispatch(
            DISSECT_CRAFT,
            {"image": master.image_url, "concept": concept, "category": profile.category_id},
        )
        self._notify(
            progress_callback,
            "dissection:ready",
            complexity=dissection.complexity,
            total_steps=len(dissection.steps),
        )

        steps = await self.visualize_steps(
            master,
            dissection.steps,
            category=profile.category_id,
            mode=resolved_mode,
            progress_callback=progress_callback,
        )

        package = BreakdownPackage(
            concept=concept,
            category=profile.category_id,
            mode=resolved_mode,
            master=master,
            dissection=dissection,
            steps=steps,
        )
        self._notify(
            progress_callback,
            "pipeline:complete",
            total_steps=len(steps),
            failed_steps=len(package.failed_steps),
        )
        return package

    async def visualize_steps(
        self,
        master: GenerationResult,
        steps: Sequence[DissectionStep],
        *,
        category: str,
        mode: StepMode | str,
        progress_callback: ProgressCallback | None = None,
    ) -> list[StepAsset]:
        """
        Render every step image for an existing master and dissection.

        Sequential mode renders one step after another, feeding each successful prompt into
        the next request. Incremental mode renders all steps concurrently. A failed step is
        recorded on its asset and does not stop the others.
        """
        resolved_mode = StepMode.parse(mode)
        if resolved_mode is None:
            raise ValueError("mode is required to visualize steps.")
        if resolved_mode is StepMode.SEQUENTIAL:
            return await self._visualize_sequential(master, steps, category, progress_callback)
        return await self._visualize_incremental(master, steps, category, progress_callback)

    async def _visualize_sequential(
        self,
        master: GenerationResult,
        steps: Sequence[DissectionStep],
        category: str,
        progress_callback: ProgressCallback | None,
    ) -> list[StepAsset]:
        assets: list[StepAsset] = []
        previous_prompt: StructuredScenePrompt | None = None
        total_steps = len(steps)

        for step in steps:
            self._notify(
                progress_callback,
                "step:processing",
                step_number=step.step_number,
                total_steps=total_steps,
                title=step.title,
            )
            payload = self._step_payload(master, step, total_steps, category, StepMode.SEQUENTIAL)
            payload["previous_step_prompt"] = previous_prompt
            try:
                result: GenerationResult = await self._orchestrator.dispatch(
                    GENERATE_STEP_IMAGE, payload
                )
            except NoAgentForIntent:
                raise
            except CrafterniaError as exc:
                assets.append(self._record_failure(step, exc, total_steps, progress_callback))
                continue

            previous_prompt = result.structured_prompt
            assets.append(StepAsset.from_result(step, result))
            self._notify(
                progress_callback,
                "step:done",
                step_number=step.step_number,
                total_steps=total_steps,
            )
        return assets

    async def _visualize_incremental(
        self,
        master: GenerationResult,
        steps: Sequence[DissectionStep],
        category: str,
        progress_callback: ProgressCallback | None,
    ) -> list[StepAsset]:
        total_steps = len(steps)
        self._notify(progress_callback, "steps:fan-out", total_steps=total_steps)
        outcomes = await asyncio.gather(
            *(
                self._orchestrator.dispatch(
                    GENERATE_STEP_IMAGE,
                    self._step_payload(master, step, total_steps, category, StepMode.INCREMENTAL),
                )
                for step in steps
            ),
            return_exceptions=True,
        )

        assets: list[StepAsset] = []
        for step, outcome in zip(steps, outcomes):
            if isinstance(outcome, NoAgentForIntent) or (
                isinstance(outcome, BaseException) and not isinstance(outcome, CrafterniaError)
            ):
                raise outcome
            if isinstance(outcome, CrafterniaError):
                assets.append(self._record_failure(step, outcome, total_steps, progress_callback))
                continue
            assets.append(StepAsset.from_result(step, outcome))
            self._notify(
                progress_callback,
                "step:done",
                step_number=step.step_number,
                total_steps=total_steps,
            )
        return assets

    @staticmethod
    def _step_payload(
        master: GenerationResult,
        step: DissectionStep,
        total_steps: int,
        category: str,
        mode: StepMode,
    ) -> dict[str, Any]:
        return {
            "category": category,
            "master_seed": master.seed,
            "master_prompt": master.structured_prompt,
            "step_description": f"{step.title}: {step.description}",
            "step_number": step.step_number,
            "total_steps": total_steps,
            "mode": mode.value,
        }

    def _record_failure(
        self,
        step: DissectionStep,
        error: CrafterniaError,
        total_steps: int,
        progress_callback: ProgressCallback | None,
    ) -> StepAsset:
        logger.warning("Step %d/%d failed: %s", step.step_number, total_steps, error)
        self._notify(
            progress_callback,
            "step:failed",
            step_number=step.step_number,
            total_steps=total_steps,
            error=str(error),
        )
        return StepAsset(step=step, error=str(error))

    @staticmethod
    def _notify(
        callback: ProgressCallback | None,
        stage: str,
        **payload: Any,
    ) -> None:
        if callback is not None:
            callback(stage, payload)
