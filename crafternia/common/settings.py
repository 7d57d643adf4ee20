"""
Runtime configuration for Crafternia, resolved from arguments, YAML and environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_TEXT_MODELS = ("gemini/gemini-2.5-flash", "gemini/gemini-2.0-flash")
DEFAULT_IMAGE_MODELS = ("bria/fibo", "black-forest-labs/flux-dev")
DEFAULT_EDIT_MODELS = ("black-forest-labs/flux-kontext-pro",)


def _split_models(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _coerce_models(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return _split_models(value)
    return tuple(str(item).strip() for item in value if str(item).strip())


@dataclass(frozen=True)
class CrafterniaSettings:
    """
    Settings shared by the backend adapters, the resilience layer and the admission limits.
    """

    text_models: tuple[str, ...] = DEFAULT_TEXT_MODELS
    text_api_key: str | None = None
    image_models: tuple[str, ...] = DEFAULT_IMAGE_MODELS
    edit_models: tuple[str, ...] = DEFAULT_EDIT_MODELS
    replicate_api_token: str | None = field(default=None, repr=False)
    retries: int = 3
    retry_delay: float = 2.0
    image_limit: int = 10
    dissection_limit: int = 20
    limit_window: float = 3600.0

    def __post_init__(self) -> None:
        if not self.text_models:
            raise ValueError("At least one text model must be configured.")
        if not self.image_models:
            raise ValueError("At least one image model must be configured.")
        if not self.edit_models:
            raise ValueError("At least one edit model must be configured.")
        if self.retries < 0:
            raise ValueError("retries must be zero or greater.")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be zero or greater.")

    @classmethod
    def from_env(cls, **overrides: Any) -> "CrafterniaSettings":
        """
        Build settings from explicit overrides, falling back to environment variables.
        """
        return cls.from_mapping({}, **overrides)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], **overrides: Any) -> "CrafterniaSettings":
        merged: dict[str, Any] = {key: value for key, value in data.items() if value is not None}
        merged.update({key: value for key, value in overrides.items() if value is not None})

        text_models = _coerce_models(merged.get("text_models")) or _split_models(
            os.getenv("CRAFTERNIA_TEXT_MODELS")
        ) or DEFAULT_TEXT_MODELS
        image_models = _coerce_models(merged.get("image_models")) or _split_models(
            os.getenv("CRAFTERNIA_IMAGE_MODELS")
        ) or DEFAULT_IMAGE_MODELS
        edit_models = _coerce_models(merged.get("edit_models")) or _split_models(
            os.getenv("CRAFTERNIA_EDIT_MODELS")
        ) or DEFAULT_EDIT_MODELS

        text_api_key = (
            merged.get("text_api_key")
            or os.getenv("CRAFTERNIA_TEXT_API_KEY")
            or os.getenv("GEMINI_API_KEY")
            or os.getenv("LITELLM_API_KEY")
        )
        replicate_api_token = merged.get("replicate_api_token") or os.getenv("REPLICATE_API_TOKEN")

        return cls(
            text_models=text_models,
            text_api_key=text_api_key,
            image_models=image_models,
            edit_models=edit_models,
            replicate_api_token=replicate_api_token,
            retries=int(merged.get("retries", os.getenv("CRAFTERNIA_RETRIES", 3))),
            retry_delay=float(merged.get("retry_delay", os.getenv("CRAFTERNIA_RETRY_DELAY", 2.0))),
            image_limit=int(merged.get("image_limit", os.getenv("CRAFTERNIA_IMAGE_LIMIT", 10))),
            dissection_limit=int(
                merged.get("dissection_limit", os.getenv("CRAFTERNIA_DISSECTION_LIMIT", 20))
            ),
            limit_window=float(
                merged.get("limit_window", os.getenv("CRAFTERNIA_LIMIT_WINDOW", 3600.0))
            ),
        )

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides: Any) -> "CrafterniaSettings":
        """Load settings from a YAML file; missing keys fall back to the environment."""
        config_path = Path(path).expanduser()
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, Mapping):
            raise ValueError(f"Settings file '{config_path}' must contain a mapping.")
        return cls.from_mapping(data, **overrides)
