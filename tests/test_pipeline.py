"""Tests for the breakdown pipeline and its YAML package."""

import asyncio
import json
import re

import pytest

from conftest import FakeCompletion, FakeReplicateClient, default_responder, scene_payload
from crafternia.agents.templates import CATEGORY_TEMPLATES
from crafternia.bootstrap import build_runtime
from crafternia.common.errors import NoAgentForIntent
from crafternia.a2a import AgentOrchestrator
from crafternia.pipeline import BreakdownPackage, CraftBreakdownPipeline, StepAsset
from crafternia.scene import StepMode

MASTER_SEED = 2024


def numbered_scenes():
    """Responder giving every scene request a distinct short description."""
    counter = iter(range(1, 1000))

    def responder(model, messages):
        reply = default_responder(model, messages)
        if '"complexityScore"' in reply:
            return reply
        return json.dumps(scene_payload(short_description=f"scene {next(counter)}", objects=2))

    return responder


def make_runtime(settings, completion, client, clock, sleep):
    return build_runtime(
        settings,
        completion_fn=completion,
        replicate_client=client,
        sleep=sleep,
        clock=clock,
        seed_factory=lambda: MASTER_SEED,
    )


class ProgressRecorder:

    def __init__(self):
        self.events = []

    def __call__(self, stage, payload):
        self.events.append((stage, payload))

    @property
    def stages(self):
        return [stage for stage, _ in self.events]


class TestSequentialBreakdown:

    def test_full_run(self, settings, fake_client, clock, recording_sleep):
        completion = FakeCompletion(responder=numbered_scenes())
        runtime = make_runtime(settings, completion, fake_client, clock, recording_sleep)
        progress = ProgressRecorder()

        package = asyncio.run(
            runtime.pipeline.run("paper crane", "papercraft", progress_callback=progress)
        )

        assert package.mode is StepMode.SEQUENTIAL
        assert package.category == "papercraft"
        assert len(package.steps) == 6
        assert all(asset.succeeded for asset in package.steps)
        assert {asset.seed for asset in package.steps} == {MASTER_SEED}
        assert package.steps[-1].structured_prompt == package.master.structured_prompt
        assert len(fake_client.calls) == 7
        assert progress.stages[0] == "master:generating"
        assert progress.stages[-1] == "pipeline:complete"
        assert progress.stages.count("step:done") == 6

    def test_failed_step_keeps_last_good_prompt(self, settings, clock, recording_sleep):
        completion = FakeCompletion(responder=numbered_scenes())
        client = FakeReplicateClient(failures=[None, None, None, RuntimeError("invalid input")])
        runtime = make_runtime(settings, completion, client, clock, recording_sleep)
        progress = ProgressRecorder()

        package = asyncio.run(
            runtime.pipeline.run("paper crane", "papercraft", progress_callback=progress)
        )

        failed = package.failed_steps
        assert [asset.step.step_number for asset in failed] == [3]
        assert "invalid input" in failed[0].error
        assert failed[0].image_url is None
        assert len(package.steps) == 6
        assert "step:failed" in progress.stages

        # master is scene 1, steps one to three are scenes 2 to 4; step four refines scene 3
        step_four_instruction = next(
            text for text in completion.instructions if "This is step 4 of 6" in text
        )
        assert '"short_description": "scene 3"' in step_four_instruction
        assert '"short_description": "scene 4"' not in step_four_instruction

    def test_explicit_mode_overrides_category_default(self, settings, fake_completion, fake_client, clock, recording_sleep):
        runtime = make_runtime(settings, fake_completion, fake_client, clock, recording_sleep)
        package = asyncio.run(runtime.pipeline.run("harbor", "oil_painting", mode="sequential"))
        assert package.mode is StepMode.SEQUENTIAL
        assert any("Advance a step-by-step build" in text for text in fake_completion.instructions)


class TestIncrementalBreakdown:

    def test_oil_painting_fans_out(self, settings, fake_completion, fake_client, clock, recording_sleep):
        runtime = make_runtime(settings, fake_completion, fake_client, clock, recording_sleep)

        package = asyncio.run(runtime.pipeline.run("harbor at dusk", "Oil Painting"))

        assert package.mode is StepMode.INCREMENTAL
        assert package.category == "oil_painting"
        assert [asset.step.title for asset in package.steps] == list(
            CATEGORY_TEMPLATES["oil_painting"]["mandated_titles"]
        )
        assert {asset.seed for asset in package.steps} == {MASTER_SEED}
        percents = sorted(
            int(match.group(1))
            for text in fake_completion.instructions
            for match in [re.search(r"about (\d+)% complete", text)]
            if match
        )
        assert percents == [17, 33, 50, 67, 83, 100]

    def test_failures_do_not_abort_siblings(self, settings, fake_completion, clock, recording_sleep):
        client = FakeReplicateClient(failures=[None, RuntimeError("nsfw filter triggered")])
        runtime = make_runtime(settings, fake_completion, client, clock, recording_sleep)

        package = asyncio.run(runtime.pipeline.run("harbor at dusk", "oil_painting"))

        assert len(package.failed_steps) == 1
        assert sum(asset.succeeded for asset in package.steps) == 5

    def test_visualize_steps_standalone(self, settings, fake_completion, fake_client, clock, recording_sleep):
        runtime = make_runtime(settings, fake_completion, fake_client, clock, recording_sleep)
        master = asyncio.run(
            runtime.orchestrator.dispatch("generate_master_image", {"concept": "fox", "category": "drawing"})
        )
        dissection = asyncio.run(
            runtime.orchestrator.dispatch(
                "dissect_craft", {"image": master.image_url, "concept": "fox", "category": "drawing"}
            )
        )

        assets = asyncio.run(
            runtime.pipeline.visualize_steps(
                master, dissection.steps, category="drawing", mode=StepMode.INCREMENTAL
            )
        )
        assert [asset.step.step_number for asset in assets] == [1, 2, 3, 4, 5, 6]


class TestRoutingErrors:

    def test_missing_agent_propagates(self):
        pipeline = CraftBreakdownPipeline(AgentOrchestrator())
        with pytest.raises(NoAgentForIntent):
            asyncio.run(pipeline.run("paper crane", "papercraft"))

    def test_unknown_category(self):
        pipeline = CraftBreakdownPipeline(AgentOrchestrator())
        with pytest.raises(ValueError):
            asyncio.run(pipeline.run("paper crane", "basket weaving"))


class TestBreakdownPackage:

    def make_package(self, settings, completion, client, clock, sleep):
        runtime = make_runtime(settings, completion, client, clock, sleep)
        return asyncio.run(runtime.pipeline.run("paper crane", "papercraft"))

    def test_yaml_round_trip(self, tmp_path, settings, fake_completion, fake_client, clock, recording_sleep):
        package = self.make_package(settings, fake_completion, fake_client, clock, recording_sleep)
        package_path = tmp_path / "breakdown.yaml"
        package_path.write_text(package.to_yaml(), encoding="utf-8")

        restored = BreakdownPackage.from_yaml(package_path)

        assert restored.to_dict() == package.to_dict()
        assert restored.master == package.master
        assert restored.dissection.steps == package.dissection.steps

    def test_failed_steps_survive_round_trip(self, settings, fake_completion, clock, recording_sleep):
        client = FakeReplicateClient(failures=[None, RuntimeError("invalid input")])
        package = self.make_package(settings, fake_completion, client, clock, recording_sleep)

        restored = BreakdownPackage.from_dict(package.to_dict())

        assert restored.steps[0].error == package.steps[0].error
        assert restored.steps[0].structured_prompt is None

    def test_missing_keys_are_rejected(self):
        with pytest.raises(ValueError, match="master"):
            BreakdownPackage.from_dict({"concept": "x", "category": "y", "dissection": {}, "steps": []})

    def test_invalid_step_entry(self):
        with pytest.raises(ValueError):
            StepAsset.from_dict({"title": "no number"})

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ValueError):
            BreakdownPackage.from_yaml(path)
