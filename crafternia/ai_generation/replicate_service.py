"""
Integration with Replicate for seeded scene rendering and image-conditioned edits.
"""

from __future__ import annotations

import json
import logging
import os
import random
from collections.abc import Iterable as IterableABC
from contextlib import ExitStack
from pathlib import Path
from typing import Any, BinaryIO, Callable, Sequence

import replicate

from crafternia.common.errors import BackendError
from crafternia.common.llm import translate_backend_exception
from crafternia.common.settings import DEFAULT_EDIT_MODELS, DEFAULT_IMAGE_MODELS
from crafternia.resilience import RetryPolicy
from crafternia.scene.structured_prompt import GenerationResult, StructuredScenePrompt

from .prompting import NEGATIVE_PROMPT, render_text_prompt

logger = logging.getLogger(__name__)

MAX_SEED = 2**31 - 1

SeedFactory = Callable[[], int]


def random_seed() -> int:
    return random.randint(1, MAX_SEED)


def _build_fibo_input(
    *,
    prompt: StructuredScenePrompt,
    seed: int,
    aspect_ratio: str,
) -> dict[str, Any]:
    return {
        "structured_prompt": prompt.to_json(),
        "seed": seed,
        "aspect_ratio": aspect_ratio,
        "negative_prompt": NEGATIVE_PROMPT,
    }


def _build_flux_dev_input(
    *,
    prompt: StructuredScenePrompt,
    seed: int,
    aspect_ratio: str,
) -> dict[str, Any]:
    return {
        "prompt": render_text_prompt(prompt),
        "seed": seed,
        "aspect_ratio": aspect_ratio,
        "output_format": "png",
        "num_outputs": 1,
    }


def _build_flux_kontext_input(
    *,
    instruction: str,
    image_input: str | BinaryIO,
    aspect_ratio: str,
) -> dict[str, Any]:
    return {
        "prompt": instruction,
        "input_image": image_input,
        "output_format": "png",
        "safety_tolerance": 2,
        "prompt_upsampling": False,
        "aspect_ratio": aspect_ratio,
    }


_RENDER_INPUT_BUILDERS: dict[str, Callable[..., dict[str, Any]]] = {
    "bria/fibo": _build_fibo_input,
    "black-forest-labs/flux-dev": _build_flux_dev_input,
    "black-forest-labs/flux-schnell": _build_flux_dev_input,
}

_EDIT_INPUT_BUILDERS: dict[str, Callable[..., dict[str, Any]]] = {
    "black-forest-labs/flux-kontext-pro": _build_flux_kontext_input,
    "black-forest-labs/flux-kontext-dev": _build_flux_kontext_input,
}


def _resolve_builder(
    model_identifier: str,
    builders: dict[str, Callable[..., dict[str, Any]]],
) -> Callable[..., dict[str, Any]]:
    normalized_identifier = model_identifier.strip().lower()
    builder = builders.get(normalized_identifier)
    if builder is None and ":" in normalized_identifier:
        base_identifier = normalized_identifier.split(":", maxsplit=1)[0]
        builder = builders.get(base_identifier)
    if builder is None:
        supported_models = ", ".join(sorted(builders))
        raise ValueError(
            "Model identifier "
            f"'{model_identifier}' is not configured with a default input payload. "
            f"Supported models: {supported_models}."
        )
    return builder


class ReplicateImageGenerator:
    """
    Convenience wrapper around the Replicate client for craft image generation.

    Parameters
    ----------
    api_token:
        Replicate API token. Falls back to ``REPLICATE_API_TOKEN`` environment variable.
    models:
        Ordered render models tried with overload fallback. Defaults to Bria FIBO, then
        FLUX dev.
    edit_models:
        Ordered image-conditioned edit models used for pattern sheets.
    client:
        Optional pre-configured :class:`replicate.Client`. Mainly useful for testing.
    retry_policy:
        Backoff settings shared with the other backend services.
    seed_factory:
        Produces the seed for renders that do not pass one explicitly.
    """

    def __init__(
        self,
        *,
        api_token: str | None = None,
        models: Sequence[str] | None = None,
        edit_models: Sequence[str] | None = None,
        client: replicate.Client | None = None,
        retry_policy: RetryPolicy | None = None,
        seed_factory: SeedFactory = random_seed,
    ) -> None:
        self._api_token = api_token or os.getenv("REPLICATE_API_TOKEN")
        if not self._api_token and not client:
            raise ValueError(
                "Replicate API token is required. Set REPLICATE_API_TOKEN or pass api_token."
            )

        self._models = tuple(models or DEFAULT_IMAGE_MODELS)
        self._edit_models = tuple(edit_models or DEFAULT_EDIT_MODELS)
        for model in self._models:
            _resolve_builder(model, _RENDER_INPUT_BUILDERS)
        for model in self._edit_models:
            _resolve_builder(model, _EDIT_INPUT_BUILDERS)

        self._client = client or replicate.Client(api_token=self._api_token)
        self._retry_policy = retry_policy or RetryPolicy()
        self._seed_factory = seed_factory

    @property
    def models(self) -> tuple[str, ...]:
        """Return the ordered render models."""
        return self._models

    @property
    def edit_models(self) -> tuple[str, ...]:
        return self._edit_models

    async def render(
        self,
        prompt: StructuredScenePrompt,
        *,
        seed: int | None = None,
        aspect_ratio: str = "1:1",
    ) -> GenerationResult:
        """
        Render ``prompt`` with ``seed``; a fresh seed is drawn when none is given.

        The returned result always reports the seed that was sent to the backend.
        """
        resolved_seed = seed if seed is not None else self._seed_factory()
        if not 1 <= resolved_seed <= MAX_SEED:
            raise ValueError(f"seed must be between 1 and {MAX_SEED}, got {resolved_seed}.")

        async def _attempt(model: str) -> str:
            builder = _resolve_builder(model, _RENDER_INPUT_BUILDERS)
            replicate_input = builder(prompt=prompt, seed=resolved_seed, aspect_ratio=aspect_ratio)
            return await self._run(model, replicate_input)

        image_url = await self._retry_policy.run_with_fallback(_attempt, self._models)
        logger.info("Rendered '%s' with seed %d.", prompt.short_description, resolved_seed)
        return GenerationResult(image_url=image_url, structured_prompt=prompt, seed=resolved_seed)

    async def edit(
        self,
        source_image: str | Path | BinaryIO,
        instruction: str,
        *,
        aspect_ratio: str = "16:9",
    ) -> str:
        """
        Produce a new image conditioned on ``source_image`` and a text instruction.
        """
        if not instruction or not instruction.strip():
            raise ValueError("instruction must be a non-empty string.")

        with ExitStack() as stack:
            image_input = _prepare_image_input(source_image, stack=stack)

            async def _attempt(model: str) -> str:
                builder = _resolve_builder(model, _EDIT_INPUT_BUILDERS)
                replicate_input = builder(
                    instruction=instruction,
                    image_input=image_input,
                    aspect_ratio=aspect_ratio,
                )
                if hasattr(image_input, "seek"):
                    image_input.seek(0)
                return await self._run(model, replicate_input)

            image_url = await self._retry_policy.run_with_fallback(_attempt, self._edit_models)

        logger.info("Generated edited image with %d-character instruction.", len(instruction))
        return image_url

    async def _run(self, model: str, replicate_input: dict[str, Any]) -> str:
        logger.debug(
            "Replicate input for %s: %s",
            model,
            json.dumps({k: v for k, v in replicate_input.items() if isinstance(v, (str, int, float))}),
        )
        try:
            outputs = await self._client.async_run(model, input=replicate_input)
        except Exception as exc:
            raise translate_backend_exception(exc, backend=model) from exc

        urls = normalize_image_outputs(outputs)
        if not urls:
            raise BackendError(f"Model {model} returned no image output.", backend=model)
        return urls[0]


def normalize_image_outputs(raw: Any) -> list[str]:
    """
    Normalize the image outputs returned by Replicate into a list of URL strings.
    """

    if raw is None:
        return []

    if isinstance(raw, str):
        return [raw]

    if isinstance(raw, bytes):
        return [raw.decode("utf-8", errors="ignore")]

    url = getattr(raw, "url", None)
    if isinstance(url, str):
        return [url]

    if isinstance(raw, IterableABC):
        collected = list(raw)
        if not collected:
            return []

        if all(isinstance(item, str) and len(item) == 1 for item in collected):
            return ["".join(collected)]

        normalized: list[str] = []
        for item in collected:
            normalized.extend(normalize_image_outputs(item))
        return normalized

    return [str(raw)]


def _prepare_image_input(
    input_image: str | Path | BinaryIO,
    *,
    stack: ExitStack,
) -> str | BinaryIO:
    """
    Normalize the image input so Replicate can consume it, keeping resources open via ExitStack.
    """
    if hasattr(input_image, "read"):
        # Assume file-like object, rely on caller to manage its lifecycle.
        return input_image  # type: ignore[return-value]

    if isinstance(input_image, Path):
        input_path = input_image.expanduser()
    else:
        input_candidate = str(input_image)
        if input_candidate.lower().startswith(("http://", "https://", "data:")):
            return input_candidate
        input_path = Path(input_candidate).expanduser()

    if not input_path.exists():
        raise FileNotFoundError(f"Input image not found at '{input_path}'.")

    file_handle = stack.enter_context(input_path.open("rb"))
    return file_handle
