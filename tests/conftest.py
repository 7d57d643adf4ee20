"""Shared fakes for the backend adapters: no test touches the network."""

import itertools
import json
import re

import pytest

from crafternia.agents.templates import DISSECTION_SYSTEM_PROMPT
from crafternia.common.llm import ChatResult
from crafternia.common.settings import CrafterniaSettings


def scene_payload(short_description="a folded paper crane", objects=1, **extra):
    payload = {
        "short_description": short_description,
        "objects": [
            {
                "description": f"paper crane {index}",
                "location": f"slot {index}",
                "relationship": "beside the others",
                "relative_size": "medium",
                "number_of_objects": 1,
                "orientation": "facing left",
            }
            for index in range(1, objects + 1)
        ],
        "background_setting": "plain white table",
        "lighting": {"conditions": "soft daylight", "direction": "top left", "shadows": "soft"},
        "aesthetics": {
            "composition": "centered",
            "color_scheme": "red and gold",
            "mood_atmosphere": "calm",
        },
        "photographic_characteristics": {"camera_angle": "eye level", "focus": "sharp"},
        "style_medium": "photograph",
    }
    payload.update(extra)
    return payload


def dissection_payload(step_count=6, titles=None):
    titles = titles or [f"Step title {index}" for index in range(1, step_count + 1)]
    return {
        "complexity": "Moderate",
        "complexityScore": 5,
        "materials": ["Origami paper", "Glue"],
        "steps": [
            {"stepNumber": index, "title": title, "description": f"Do part {index}."}
            for index, title in enumerate(titles, start=1)
        ],
    }


def user_text(messages):
    content = messages[-1]["content"]
    if isinstance(content, str):
        return content
    return next(part["text"] for part in content if part["type"] == "text")


def default_responder(model, messages):
    """Answer dissection requests with the requested step count, everything else with a scene."""
    if messages[0]["content"] == DISSECTION_SYSTEM_PROMPT:
        match = re.search(r"EXACTLY (\d+) steps", user_text(messages))
        return json.dumps(dissection_payload(int(match.group(1)) if match else 6))
    return json.dumps(scene_payload())


class FakeCompletion:
    """Async stand-in for the LiteLLM completion helper."""

    def __init__(self, replies=None, responder=default_responder):
        self.calls = []
        self._replies = list(replies or [])
        self._responder = responder

    async def __call__(self, *, model, messages, **kwargs):
        self.calls.append({"model": model, "messages": messages, **kwargs})
        reply = self._replies.pop(0) if self._replies else self._responder(model, messages)
        if isinstance(reply, Exception):
            raise reply
        return ChatResult(text=reply, raw=None)

    @property
    def instructions(self):
        return [user_text(call["messages"]) for call in self.calls]


class FakeReplicateClient:
    """Records ``async_run`` calls; queued failures are raised before any output is returned."""

    def __init__(self, failures=None):
        self.calls = []
        self._failures = list(failures or [])
        self._counter = itertools.count(1)

    async def async_run(self, model, input):
        self.calls.append((model, dict(input)))
        if self._failures:
            failure = self._failures.pop(0)
            if failure is not None:
                raise failure
        return [f"https://images.test/{next(self._counter)}.png"]


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def fake_completion():
    return FakeCompletion()


@pytest.fixture
def fake_client():
    return FakeReplicateClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def settings():
    return CrafterniaSettings(
        text_models=("gemini/gemini-2.5-flash", "gemini/gemini-2.0-flash"),
        text_api_key="test-key",
        image_models=("bria/fibo", "black-forest-labs/flux-dev"),
        replicate_api_token="test-token",
    )
