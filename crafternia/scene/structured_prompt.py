"""
Structured scene descriptor exchanged with the language and image backends.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping

from crafternia.common.errors import MalformedResponse

logger = logging.getLogger(__name__)

DEFAULT_COMPOSITION = "centered, well-balanced, clean"
DEFAULT_COLOR_SCHEME = "natural, warm tones with neutral background"
DEFAULT_MOOD_ATMOSPHERE = "professional, instructional, clear"


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _clean_count(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedResponse(
            f"number_of_objects must be an integer, got {value!r}."
        ) from exc


def _require_mapping(value: Any, label: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise MalformedResponse(f"'{label}' must be an object, got {type(value).__name__}.")
    return value


def _compact(mapping: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in mapping.items() if value is not None}


@dataclass(frozen=True)
class ObjectDescriptor:
    description: str
    location: str | None = None
    relationship: str | None = None
    relative_size: str | None = None
    shape_and_color: str | None = None
    texture: str | None = None
    appearance_details: str | None = None
    number_of_objects: int | None = None
    action: str | None = None
    orientation: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ObjectDescriptor":
        data = _require_mapping(data, "objects[]")
        description = _clean_text(data.get("description"))
        if description is None:
            raise MalformedResponse("Every scene object requires a description.")
        return cls(
            description=description,
            location=_clean_text(data.get("location")),
            relationship=_clean_text(data.get("relationship")),
            relative_size=_clean_text(data.get("relative_size")),
            shape_and_color=_clean_text(data.get("shape_and_color")),
            texture=_clean_text(data.get("texture")),
            appearance_details=_clean_text(data.get("appearance_details")),
            number_of_objects=_clean_count(data.get("number_of_objects")),
            action=_clean_text(data.get("action")),
            orientation=_clean_text(data.get("orientation")),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact({item.name: getattr(self, item.name) for item in fields(self)})


@dataclass(frozen=True)
class Lighting:
    conditions: str | None = None
    direction: str | None = None
    shadows: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "Lighting":
        data = _require_mapping(data, "lighting")
        return cls(
            conditions=_clean_text(data.get("conditions")),
            direction=_clean_text(data.get("direction")),
            shadows=_clean_text(data.get("shadows")),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {"conditions": self.conditions, "direction": self.direction, "shadows": self.shadows}
        )


@dataclass(frozen=True)
class Aesthetics:
    """Composition, palette and mood; every field always carries a value."""

    composition: str = DEFAULT_COMPOSITION
    color_scheme: str = DEFAULT_COLOR_SCHEME
    mood_atmosphere: str = DEFAULT_MOOD_ATMOSPHERE

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "Aesthetics":
        data = _require_mapping(data, "aesthetics")
        values = {
            "composition": _clean_text(data.get("composition")),
            "color_scheme": _clean_text(data.get("color_scheme")),
            "mood_atmosphere": _clean_text(data.get("mood_atmosphere")),
        }
        missing = [key for key, value in values.items() if value is None]
        if missing:
            logger.warning("Filling missing aesthetics fields with defaults: %s", ", ".join(missing))
        return cls(**_compact(values))

    def to_dict(self) -> dict[str, Any]:
        return {
            "composition": self.composition,
            "color_scheme": self.color_scheme,
            "mood_atmosphere": self.mood_atmosphere,
        }


@dataclass(frozen=True)
class PhotographicCharacteristics:
    camera_angle: str | None = None
    depth_of_field: str | None = None
    focus: str | None = None
    lens_focal_length: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "PhotographicCharacteristics":
        data = _require_mapping(data, "photographic_characteristics")
        return cls(
            camera_angle=_clean_text(data.get("camera_angle")),
            depth_of_field=_clean_text(data.get("depth_of_field")),
            focus=_clean_text(data.get("focus")),
            lens_focal_length=_clean_text(data.get("lens_focal_length")),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "camera_angle": self.camera_angle,
                "depth_of_field": self.depth_of_field,
                "focus": self.focus,
                "lens_focal_length": self.lens_focal_length,
            }
        )


@dataclass(frozen=True)
class StructuredScenePrompt:
    """
    Machine-readable scene description rendered by the image backend.

    Instances are immutable; refinements are produced with :meth:`evolve`. The
    ``aesthetics`` block is always populated, falling back to instructional defaults.
    """

    short_description: str
    objects: tuple[ObjectDescriptor, ...] = ()
    background_setting: str | None = None
    lighting: Lighting = field(default_factory=Lighting)
    aesthetics: Aesthetics = field(default_factory=Aesthetics)
    photographic_characteristics: PhotographicCharacteristics = field(
        default_factory=PhotographicCharacteristics
    )
    style_medium: str | None = None
    context: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "StructuredScenePrompt":
        if not isinstance(data, Mapping):
            raise MalformedResponse(
                f"Structured prompt must be a JSON object, got {type(data).__name__}."
            )

        short_description = _clean_text(data.get("short_description"))
        if short_description is None:
            raise MalformedResponse("Structured prompt is missing 'short_description'.")

        raw_objects = data.get("objects") or []
        if not isinstance(raw_objects, (list, tuple)):
            raise MalformedResponse("'objects' must be a list.")

        return cls(
            short_description=short_description,
            objects=tuple(ObjectDescriptor.from_mapping(item) for item in raw_objects),
            background_setting=_clean_text(data.get("background_setting")),
            lighting=Lighting.from_mapping(data.get("lighting")),
            aesthetics=Aesthetics.from_mapping(data.get("aesthetics")),
            photographic_characteristics=PhotographicCharacteristics.from_mapping(
                data.get("photographic_characteristics")
            ),
            style_medium=_clean_text(data.get("style_medium")),
            context=_clean_text(data.get("context")),
        )

    @classmethod
    def from_json(cls, text: str) -> "StructuredScenePrompt":
        return cls.from_mapping(parse_json_object(text))

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "short_description": self.short_description,
            "objects": [item.to_dict() for item in self.objects],
            "background_setting": self.background_setting,
            "lighting": self.lighting.to_dict(),
            "aesthetics": self.aesthetics.to_dict(),
            "photographic_characteristics": self.photographic_characteristics.to_dict(),
            "style_medium": self.style_medium,
            "context": self.context,
        }
        return _compact(payload)

    def to_json(self, *, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)

    def evolve(self, **changes: Any) -> "StructuredScenePrompt":
        return replace(self, **changes)


def parse_json_object(text: str) -> dict[str, Any]:
    """
    Parse a JSON object out of an LLM reply, tolerating Markdown code fences.
    """
    candidate = (text or "").strip()
    if candidate.startswith("```"):
        candidate = candidate.strip("`")
        if candidate.lower().startswith("json"):
            candidate = candidate[4:]
        candidate = candidate.strip()

    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise MalformedResponse(
            "Backend reply is not valid JSON.", details={"reply": candidate[:500]}
        ) from exc

    if not isinstance(payload, dict):
        raise MalformedResponse(
            f"Backend reply must be a JSON object, got {type(payload).__name__}."
        )
    return payload


@dataclass(frozen=True)
class GenerationResult:
    """A rendered image together with the prompt and seed that produced it."""

    image_url: str
    structured_prompt: StructuredScenePrompt
    seed: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "image_url": self.image_url,
            "structured_prompt": self.structured_prompt.to_dict(),
            "seed": self.seed,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GenerationResult":
        try:
            return cls(
                image_url=str(data["image_url"]),
                structured_prompt=StructuredScenePrompt.from_mapping(data["structured_prompt"]),
                seed=int(data["seed"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid generation result: {data!r}") from exc
