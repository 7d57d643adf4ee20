"""Tests for the printable guide builder; image downloads are stubbed."""

import requests

from conftest import scene_payload
from crafternia.agents import DissectionResult, DissectionStep
from crafternia.pdf_generation import BreakdownPDFBuilder
from crafternia.pipeline import BreakdownPackage, StepAsset
from crafternia.scene import GenerationResult, StepMode, StructuredScenePrompt


def make_package():
    prompt = StructuredScenePrompt.from_mapping(scene_payload())
    steps = (
        DissectionStep(1, "Cut the pieces", "Cut along the solid lines.", "Use scissors with care & patience."),
        DissectionStep(2, "Fold <and> glue", "Crease every dashed line, then glue the tabs."),
    )
    return BreakdownPackage(
        concept="Paper crane & friends",
        category="papercraft",
        mode=StepMode.SEQUENTIAL,
        master=GenerationResult("https://images.test/master.png", prompt, 7),
        dissection=DissectionResult("Simple", 3, ("Origami paper", "Glue stick"), steps),
        steps=[
            StepAsset(steps[0], "https://images.test/1.png", prompt, 7),
            StepAsset(steps[1], error="nsfw filter triggered"),
        ],
    )


class TestBreakdownPDFBuilder:

    def setup_method(self):
        self.requested = []

    def offline_get(self, url, timeout):
        self.requested.append(url)
        raise requests.ConnectionError("offline")

    def test_build_writes_pdf_without_images(self, tmp_path, monkeypatch):
        monkeypatch.setattr(requests, "get", self.offline_get)
        output = tmp_path / "guide" / "crane.pdf"

        BreakdownPDFBuilder().build(make_package(), output)

        assert output.read_bytes().startswith(b"%PDF")
        assert self.requested == ["https://images.test/master.png", "https://images.test/1.png"]

    def test_build_from_yaml(self, tmp_path, monkeypatch):
        monkeypatch.setattr(requests, "get", self.offline_get)
        package_path = tmp_path / "crane.yaml"
        package_path.write_text(make_package().to_yaml(), encoding="utf-8")
        output = tmp_path / "crane.pdf"

        BreakdownPDFBuilder().build_from_yaml(package_path, output)

        assert output.exists()
        assert output.stat().st_size > 0
