"""
Backend adapters for Crafternia: structured scene prompting and Replicate rendering.
"""

from .prompting import build_messages, render_text_prompt, to_image_url
from .replicate_service import ReplicateImageGenerator, normalize_image_outputs
from .structured_prompt_service import StructuredPromptService

__all__ = [
    "ReplicateImageGenerator",
    "StructuredPromptService",
    "build_messages",
    "normalize_image_outputs",
    "render_text_prompt",
    "to_image_url",
]
