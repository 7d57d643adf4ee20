"""Tests for configuration and the LiteLLM / Replicate adapters."""

import asyncio
import json
from types import SimpleNamespace

import pytest

from conftest import FakeCompletion, FakeReplicateClient, scene_payload
from crafternia.ai_generation import (
    ReplicateImageGenerator,
    StructuredPromptService,
    build_messages,
    normalize_image_outputs,
    render_text_prompt,
    to_image_url,
)
from crafternia.common import llm
from crafternia.common.errors import BackendError, BackendOverloaded, MalformedResponse
from crafternia.common.settings import DEFAULT_TEXT_MODELS, CrafterniaSettings
from crafternia.resilience import RetryPolicy
from crafternia.scene import StructuredScenePrompt

SETTINGS_ENV = (
    "CRAFTERNIA_TEXT_MODELS",
    "CRAFTERNIA_TEXT_API_KEY",
    "GEMINI_API_KEY",
    "LITELLM_API_KEY",
    "CRAFTERNIA_IMAGE_MODELS",
    "CRAFTERNIA_EDIT_MODELS",
    "REPLICATE_API_TOKEN",
    "CRAFTERNIA_RETRIES",
    "CRAFTERNIA_RETRY_DELAY",
    "CRAFTERNIA_IMAGE_LIMIT",
    "CRAFTERNIA_DISSECTION_LIMIT",
    "CRAFTERNIA_LIMIT_WINDOW",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestCrafterniaSettings:

    def test_defaults(self, clean_env):
        settings = CrafterniaSettings.from_env()
        assert settings.text_models == DEFAULT_TEXT_MODELS
        assert settings.retries == 3
        assert settings.retry_delay == 2.0
        assert settings.image_limit == 10
        assert settings.dissection_limit == 20
        assert settings.limit_window == 3600.0
        assert settings.replicate_api_token is None

    def test_environment_fallback(self, clean_env):
        clean_env.setenv("CRAFTERNIA_TEXT_MODELS", "openai/gpt-4o-mini, gemini/gemini-2.0-flash")
        clean_env.setenv("GEMINI_API_KEY", "gemini-key")
        clean_env.setenv("CRAFTERNIA_RETRIES", "5")
        clean_env.setenv("CRAFTERNIA_IMAGE_LIMIT", "3")

        settings = CrafterniaSettings.from_env()

        assert settings.text_models == ("openai/gpt-4o-mini", "gemini/gemini-2.0-flash")
        assert settings.text_api_key == "gemini-key"
        assert settings.retries == 5
        assert settings.image_limit == 3

    def test_explicit_overrides_win(self, clean_env):
        clean_env.setenv("CRAFTERNIA_RETRIES", "5")
        settings = CrafterniaSettings.from_env(retries=1, image_models=["black-forest-labs/flux-dev"])
        assert settings.retries == 1
        assert settings.image_models == ("black-forest-labs/flux-dev",)

    def test_from_yaml(self, clean_env, tmp_path):
        config = tmp_path / "crafternia.yaml"
        config.write_text(
            "text_models:\n  - gemini/gemini-2.0-flash\nretry_delay: 0.5\nlimit_window: 60\n",
            encoding="utf-8",
        )
        settings = CrafterniaSettings.from_yaml(config)
        assert settings.text_models == ("gemini/gemini-2.0-flash",)
        assert settings.retry_delay == 0.5
        assert settings.limit_window == 60.0

    def test_yaml_must_be_mapping(self, clean_env, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValueError):
            CrafterniaSettings.from_yaml(config)

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            CrafterniaSettings(retries=-1)


class TestChatCompletion:

    def test_json_mode_and_text_extraction(self, monkeypatch):
        captured = {}

        async def fake_acompletion(**payload):
            captured.update(payload)
            return {"choices": [{"message": {"content": "  {\"ok\": true}  "}}]}

        monkeypatch.setattr(llm, "acompletion", fake_acompletion)

        result = asyncio.run(
            llm.call_chat_completion(
                model="gemini/gemini-2.5-flash",
                messages=[{"role": "user", "content": "hi"}],
                temperature=0.2,
                api_key="key",
                json_mode=True,
            )
        )

        assert result.text == '{"ok": true}'
        assert captured["response_format"] == {"type": "json_object"}
        assert captured["temperature"] == 0.2
        assert "max_tokens" not in captured

    def test_provider_overload_is_translated(self, monkeypatch):
        async def fake_acompletion(**payload):
            error = RuntimeError("Service Unavailable")
            error.status_code = 503
            raise error

        monkeypatch.setattr(llm, "acompletion", fake_acompletion)

        with pytest.raises(BackendOverloaded) as excinfo:
            asyncio.run(llm.call_chat_completion(model="m", messages=[]))
        assert excinfo.value.status_code == 503
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_unexpected_shape(self, monkeypatch):
        async def fake_acompletion(**payload):
            return {"choices": []}

        monkeypatch.setattr(llm, "acompletion", fake_acompletion)

        with pytest.raises(BackendError):
            asyncio.run(llm.call_chat_completion(model="m", messages=[]))

    def test_translate_keeps_backend_errors(self):
        error = BackendError("already typed")
        assert llm.translate_backend_exception(error, backend="m") is error

    def test_translate_client_error(self):
        error = RuntimeError("bad request")
        error.status = "400"
        translated = llm.translate_backend_exception(error, backend="m")
        assert type(translated) is BackendError
        assert translated.status_code == 400


class TestStructuredPromptService:

    def test_falls_back_to_second_model(self, recording_sleep):
        completion = FakeCompletion(
            replies=[BackendOverloaded("busy"), BackendOverloaded("busy"), json.dumps(scene_payload())]
        )
        service = StructuredPromptService(
            models=["primary", "secondary"],
            api_key="key",
            completion_fn=completion,
            retry_policy=RetryPolicy(retries=1, sleep=recording_sleep),
        )

        prompt = asyncio.run(service.generate_prompt("describe a crane"))

        assert prompt.short_description == "a folded paper crane"
        assert [call["model"] for call in completion.calls] == ["primary", "primary", "secondary"]
        assert recording_sleep.delays == [2.0]

    def test_empty_reply_is_malformed(self):
        service = StructuredPromptService(models=["m"], api_key="key", completion_fn=FakeCompletion(replies=[""]))
        with pytest.raises(MalformedResponse):
            asyncio.run(service.request_text(system="s", instruction="i"))


class TestPrompting:

    def test_images_come_before_text(self):
        messages = build_messages("system", "describe", ["https://images.test/a.png"])
        content = messages[1]["content"]
        assert content[0] == {"type": "image_url", "image_url": {"url": "https://images.test/a.png"}}
        assert content[-1] == {"type": "text", "text": "describe"}

    def test_text_only_content_is_plain(self):
        assert build_messages("system", "describe")[1]["content"] == "describe"

    def test_local_file_becomes_data_url(self, tmp_path):
        image = tmp_path / "photo.png"
        image.write_bytes(b"\x89PNG")
        assert to_image_url(image).startswith("data:image/png;base64,")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            to_image_url(tmp_path / "missing.png")

    def test_render_text_prompt_sections(self):
        text = render_text_prompt(StructuredScenePrompt.from_mapping(scene_payload(objects=2)))
        assert text.startswith("a folded paper crane")
        assert "SUBJECTS" in text
        assert "AESTHETICS" in text


class TestReplicateImageGenerator:

    def make_generator(self, client, **kwargs):
        return ReplicateImageGenerator(client=client, seed_factory=lambda: 11, **kwargs)

    def test_render_draws_seed_when_missing(self):
        client = FakeReplicateClient()
        generator = self.make_generator(client)
        prompt = StructuredScenePrompt.from_mapping(scene_payload())

        result = asyncio.run(generator.render(prompt))

        assert result.seed == 11
        model, replicate_input = client.calls[0]
        assert model == "bria/fibo"
        assert replicate_input["aspect_ratio"] == "1:1"
        assert "negative_prompt" in replicate_input

    def test_render_rejects_out_of_range_seed(self):
        generator = self.make_generator(FakeReplicateClient())
        prompt = StructuredScenePrompt.from_mapping(scene_payload())
        with pytest.raises(ValueError):
            asyncio.run(generator.render(prompt, seed=0))

    def test_versioned_model_identifier(self):
        generator = self.make_generator(FakeReplicateClient(), models=["black-forest-labs/flux-dev:abc123"])
        assert generator.models == ("black-forest-labs/flux-dev:abc123",)

    def test_unknown_model_rejected(self):
        with pytest.raises(ValueError, match="Supported models"):
            self.make_generator(FakeReplicateClient(), models=["someone/unknown-model"])

    def test_token_required_without_client(self, monkeypatch):
        monkeypatch.delenv("REPLICATE_API_TOKEN", raising=False)
        with pytest.raises(ValueError):
            ReplicateImageGenerator()

    def test_empty_output_is_backend_error(self):
        class EmptyClient(FakeReplicateClient):
            async def async_run(self, model, input):
                return []

        generator = self.make_generator(EmptyClient())
        prompt = StructuredScenePrompt.from_mapping(scene_payload())
        with pytest.raises(BackendError, match="no image output"):
            asyncio.run(generator.render(prompt))

    def test_edit_requires_instruction(self):
        generator = self.make_generator(FakeReplicateClient())
        with pytest.raises(ValueError):
            asyncio.run(generator.edit("https://images.test/a.png", "  "))


class TestNormalizeImageOutputs:

    def test_string(self):
        assert normalize_image_outputs("https://images.test/a.png") == ["https://images.test/a.png"]

    def test_file_output_objects(self):
        outputs = [SimpleNamespace(url="https://images.test/a.png"), SimpleNamespace(url="https://images.test/b.png")]
        assert normalize_image_outputs(outputs) == ["https://images.test/a.png", "https://images.test/b.png"]

    def test_streamed_characters_are_joined(self):
        assert normalize_image_outputs(iter("https://x")) == ["https://x"]

    def test_none(self):
        assert normalize_image_outputs(None) == []
