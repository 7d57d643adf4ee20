"""
Dissection result model: complexity, materials and the ordered build steps.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping, Sequence

from crafternia.common.errors import MalformedResponse

logger = logging.getLogger(__name__)

COMPLEXITY_LEVELS = ("Simple", "Moderate", "Complex")

DISSECTION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "complexity": {"type": "string", "enum": list(COMPLEXITY_LEVELS)},
        "complexityScore": {"type": "number", "minimum": 1, "maximum": 10},
        "materials": {"type": "array", "items": {"type": "string"}},
        "steps": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "stepNumber": {"type": "number"},
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "safetyWarning": {"type": "string", "nullable": True},
                },
                "required": ["stepNumber", "title", "description"],
            },
        },
    },
    "required": ["complexity", "complexityScore", "materials", "steps"],
}


@dataclass(frozen=True)
class DissectionStep:
    step_number: int
    title: str
    description: str
    safety_warning: str | None = None

    @classmethod
    def from_wire(cls, data: Mapping[str, Any], *, position: int) -> "DissectionStep":
        if not isinstance(data, Mapping):
            raise MalformedResponse(f"Step {position} must be an object.")
        title = str(data.get("title") or "").strip()
        description = str(data.get("description") or "").strip()
        if not title or not description:
            raise MalformedResponse(f"Step {position} requires a title and a description.")
        try:
            step_number = int(data.get("stepNumber", position))
        except (TypeError, ValueError) as exc:
            raise MalformedResponse(f"Step {position} has an invalid stepNumber.") from exc
        warning = data.get("safetyWarning")
        warning_text = str(warning).strip() if warning else None
        return cls(
            step_number=step_number,
            title=title,
            description=description,
            safety_warning=warning_text or None,
        )

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "stepNumber": self.step_number,
            "title": self.title,
            "description": self.description,
        }
        if self.safety_warning:
            payload["safetyWarning"] = self.safety_warning
        return payload


@dataclass(frozen=True)
class DissectionResult:
    """Instruction breakdown returned by ``dissect_craft`` and ``dissect_selected_object``."""

    complexity: str
    complexity_score: int
    materials: tuple[str, ...]
    steps: tuple[DissectionStep, ...]

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "DissectionResult":
        if not isinstance(data, Mapping):
            raise MalformedResponse("Dissection payload must be a JSON object.")

        missing = [key for key in ("complexity", "complexityScore", "materials", "steps") if key not in data]
        if missing:
            raise MalformedResponse(
                f"Dissection payload is missing: {', '.join(missing)}.",
                details={"missing": missing},
            )

        complexity = _normalize_complexity(data["complexity"])

        try:
            score = round(float(data["complexityScore"]))
        except (TypeError, ValueError) as exc:
            raise MalformedResponse("complexityScore must be a number.") from exc
        if not 1 <= score <= 10:
            raise MalformedResponse(f"complexityScore must be between 1 and 10, got {score}.")

        raw_materials = data["materials"]
        if not isinstance(raw_materials, Sequence) or isinstance(raw_materials, str):
            raise MalformedResponse("materials must be a list of strings.")
        materials = tuple(str(item).strip() for item in raw_materials if str(item).strip())

        raw_steps = data["steps"]
        if not isinstance(raw_steps, Sequence) or isinstance(raw_steps, str):
            raise MalformedResponse("steps must be a list.")
        steps = tuple(
            DissectionStep.from_wire(item, position=index)
            for index, item in enumerate(raw_steps, start=1)
        )

        return cls(
            complexity=complexity,
            complexity_score=int(score),
            materials=materials,
            steps=steps,
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "complexity": self.complexity,
            "complexityScore": self.complexity_score,
            "materials": list(self.materials),
            "steps": [step.to_wire() for step in self.steps],
        }

    def conform(
        self,
        step_count: int,
        mandated_titles: Sequence[str] = (),
    ) -> "DissectionResult":
        """
        Enforce the fixed step count, renumber steps 1..N and apply mandated titles.
        """
        if len(self.steps) != step_count:
            raise MalformedResponse(
                f"Expected exactly {step_count} steps, got {len(self.steps)}.",
                details={"expected_steps": step_count, "received_steps": len(self.steps)},
            )
        if mandated_titles and len(mandated_titles) != step_count:
            raise ValueError("Mandated titles must match the step count.")

        conformed: list[DissectionStep] = []
        for index, step in enumerate(self.steps):
            title = mandated_titles[index] if mandated_titles else step.title
            if title != step.title:
                logger.warning(
                    "Replacing step %d title %r with mandated title %r.",
                    index + 1,
                    step.title,
                    title,
                )
            conformed.append(replace(step, step_number=index + 1, title=title))
        return replace(self, steps=tuple(conformed))


def _normalize_complexity(value: Any) -> str:
    candidate = str(value or "").strip().lower()
    for level in COMPLEXITY_LEVELS:
        if candidate == level.lower():
            return level
    raise MalformedResponse(
        f"complexity must be one of {', '.join(COMPLEXITY_LEVELS)}, got {value!r}."
    )
