"""
Language-backend service producing structured scenes and JSON payloads via LiteLLM.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Sequence

from crafternia.common import ChatResult, CompletionCallable, call_chat_completion
from crafternia.common.errors import MalformedResponse
from crafternia.common.settings import DEFAULT_TEXT_MODELS
from crafternia.resilience import RetryPolicy
from crafternia.scene.structured_prompt import StructuredScenePrompt, parse_json_object

from .prompting import SCENE_SYSTEM_PROMPT, ImageInput, build_messages

logger = logging.getLogger(__name__)


class StructuredPromptService:
    """
    Thin resilience-wrapped layer over the chat completion helper.

    Every call runs over the ordered ``models`` list: overloads are retried with backoff
    and then fall back to the next model; any other failure propagates unchanged.
    """

    def __init__(
        self,
        *,
        models: Sequence[str] | None = None,
        api_key: str | None = None,
        completion_fn: CompletionCallable | None = None,
        retry_policy: RetryPolicy | None = None,
        temperature: float = 0.4,
        max_tokens: int | None = 2048,
    ) -> None:
        self._models = tuple(models or DEFAULT_TEXT_MODELS)
        if not self._models:
            raise ValueError("At least one text model is required.")
        self._api_key = (
            api_key
            or os.getenv("CRAFTERNIA_TEXT_API_KEY")
            or os.getenv("GEMINI_API_KEY")
            or os.getenv("LITELLM_API_KEY")
        )
        self._completion_fn: CompletionCallable = completion_fn or call_chat_completion
        self._retry_policy = retry_policy or RetryPolicy()
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def models(self) -> tuple[str, ...]:
        """Return the ordered model identifiers in use."""
        return self._models

    async def request_text(
        self,
        *,
        system: str,
        instruction: str,
        images: Sequence[ImageInput] = (),
        json_mode: bool = False,
    ) -> str:
        messages = build_messages(system, instruction, images)
        logger.debug("Text request (%d images): %s", len(images), instruction)

        async def _attempt(model: str) -> str:
            result: ChatResult = await self._completion_fn(
                model=model,
                messages=messages,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                api_key=self._api_key,
                json_mode=json_mode,
            )
            if not result.text:
                raise MalformedResponse(
                    "LLM response did not contain any text content.", details={"model": model}
                )
            return result.text

        return await self._retry_policy.run_with_fallback(_attempt, self._models)

    async def request_json(
        self,
        *,
        system: str,
        instruction: str,
        images: Sequence[ImageInput] = (),
    ) -> dict[str, Any]:
        text = await self.request_text(
            system=system,
            instruction=instruction,
            images=images,
            json_mode=True,
        )
        return parse_json_object(text)

    async def generate_prompt(
        self,
        instruction: str,
        *,
        images: Sequence[ImageInput] = (),
    ) -> StructuredScenePrompt:
        """
        Turn an instruction (and optional reference images) into a structured scene.
        """
        payload = await self.request_json(
            system=SCENE_SYSTEM_PROMPT,
            instruction=instruction,
            images=images,
        )
        return StructuredScenePrompt.from_mapping(payload)
