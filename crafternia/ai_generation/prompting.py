"""
Prompt construction utilities shared by the language and image backends.
"""

from __future__ import annotations

import base64
import mimetypes
from pathlib import Path
from typing import Any, Mapping, Sequence

from crafternia.scene.structured_prompt import StructuredScenePrompt

ImageInput = str | Path | bytes

SCENE_SYSTEM_PROMPT = """You are a visual director who writes structured scene descriptions for an image model.
Reply with ONE JSON object and nothing else, using exactly these snake_case keys:
{
  "short_description": "one sentence summary of the image (required)",
  "objects": [
    {
      "description": "what the object is and what it is made of",
      "location": "where it sits in the frame",
      "relationship": "how it relates to the other objects",
      "relative_size": "small / medium / large within the frame",
      "shape_and_color": "dominant shapes and colors",
      "texture": "surface texture",
      "appearance_details": "distinctive details",
      "number_of_objects": 1,
      "action": "what it is doing, if anything",
      "orientation": "which way it faces"
    }
  ],
  "background_setting": "the backdrop",
  "lighting": {"conditions": "...", "direction": "...", "shadows": "..."},
  "aesthetics": {"composition": "...", "color_scheme": "...", "mood_atmosphere": "..."},
  "photographic_characteristics": {
    "camera_angle": "...", "depth_of_field": "...", "focus": "...", "lens_focal_length": "..."
  },
  "style_medium": "e.g. photograph",
  "context": "what the image is used for"
}"""

NEGATIVE_PROMPT = (
    "blurry, deformed, extra objects, cluttered background, watermark, text, logo, "
    "oversaturated, plastic CGI look"
)


def to_image_url(image: ImageInput) -> str:
    """
    Return a URL the chat backend accepts: remote and data URLs pass through, local
    files and raw bytes are inlined as base64 data URLs.
    """
    if isinstance(image, bytes):
        encoded = base64.b64encode(image).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    candidate = str(image)
    if candidate.lower().startswith(("http://", "https://", "data:")):
        return candidate

    image_path = Path(image).expanduser()
    if not image_path.exists():
        raise FileNotFoundError(f"Input image not found at '{image_path}'.")
    data = image_path.read_bytes()
    mime_type, _ = mimetypes.guess_type(image_path.name)
    base64_data = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or 'image/png'};base64,{base64_data}"


def build_user_content(text: str, images: Sequence[ImageInput] = ()) -> str | list[dict[str, Any]]:
    """Plain text content, or a multimodal part list with the images first."""
    if not images:
        return text
    parts: list[dict[str, Any]] = [
        {"type": "image_url", "image_url": {"url": to_image_url(image)}} for image in images
    ]
    parts.append({"type": "text", "text": text})
    return parts


def build_messages(
    system: str,
    text: str,
    images: Sequence[ImageInput] = (),
) -> list[dict[str, Any]]:
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": build_user_content(text, images)},
    ]


def render_text_prompt(prompt: StructuredScenePrompt) -> str:
    """
    Flatten a structured scene into a sectioned text prompt for text-only image models.
    """
    sections: list[str] = [prompt.short_description]

    object_lines: list[str] = []
    for item in prompt.objects:
        details = [
            item.description,
            item.shape_and_color,
            item.texture,
            item.appearance_details,
            item.location and f"at {item.location}",
            item.relative_size and f"{item.relative_size} size",
            item.orientation and f"facing {item.orientation}",
            item.action,
        ]
        count = f"{item.number_of_objects} x " if item.number_of_objects and item.number_of_objects > 1 else ""
        object_lines.append(count + ", ".join(detail for detail in details if detail))
    if object_lines:
        sections.append(_format_bullet_section("SUBJECTS", object_lines))

    if prompt.background_setting:
        sections.append(_format_bullet_section("BACKGROUND", [prompt.background_setting]))

    lighting_lines = _normalize_note_input(prompt.lighting.to_dict())
    if lighting_lines:
        sections.append(_format_bullet_section("LIGHTING", lighting_lines))

    sections.append(_format_bullet_section("AESTHETICS", _normalize_note_input(prompt.aesthetics.to_dict())))

    camera_lines = _normalize_note_input(prompt.photographic_characteristics.to_dict())
    if camera_lines:
        sections.append(_format_bullet_section("CAMERA", camera_lines))

    if prompt.style_medium:
        sections.append(_format_bullet_section("MEDIUM", [prompt.style_medium]))

    return "\n\n".join(sections)


def _normalize_note_input(
    value: str | Sequence[str] | Mapping[str, str] | None,
) -> list[str]:
    if value is None:
        return []

    if isinstance(value, Mapping):
        items = [f"{key.replace('_', ' ')}: {details}" for key, details in value.items()]
    elif isinstance(value, str):
        items = [value]
    else:
        items = [str(item) for item in value]

    lines: list[str] = []
    for item in items:
        for raw in item.replace("\r", "\n").split("\n"):
            cleaned = raw.strip(" \t-•")
            if cleaned:
                lines.append(cleaned)
    return lines


def _format_bullet_section(title: str, lines: Sequence[str]) -> str:
    bullet_block = "\n".join(f"- {line}" for line in lines if line.strip())
    return f"{title}\n{bullet_block}"
