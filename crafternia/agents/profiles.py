"""
Category prompt profiles and the registry that serves them by category id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Mapping

from crafternia.scene.progressive import DEFAULT_REMOVAL_HIERARCHY, StepMode

from . import templates


@dataclass(frozen=True)
class CategoryPromptProfile:
    """
    Everything that differs between craft categories, expressed as data.

    The four rendered templates cover master images, step images, dissection and pattern
    sheets; the remaining fields fix the step structure of the category.
    """

    category_id: str
    display_name: str
    agent_name: str
    agent_description: str
    master_template: str
    step_template: str
    dissection_template: str
    pattern_sheet_template: str
    style_notes: str
    step_count: int = 6
    mandated_step_titles: tuple[str, ...] = ()
    removal_hierarchy: tuple[str, ...] = DEFAULT_REMOVAL_HIERARCHY
    default_step_mode: StepMode = StepMode.SEQUENTIAL

    def __post_init__(self) -> None:
        if self.step_count < 1:
            raise ValueError(f"{self.category_id}: step_count must be positive.")
        if self.mandated_step_titles and len(self.mandated_step_titles) != self.step_count:
            raise ValueError(
                f"{self.category_id}: expected {self.step_count} mandated titles, "
                f"got {len(self.mandated_step_titles)}."
            )

    def master_prompt(self, concept: str) -> str:
        return self.master_template.format(concept=concept.strip())

    def step_prompt(self, step_description: str, label: str | None = None) -> str:
        return self.step_template.format(
            step_description=step_description.strip(),
            label_line=templates.label_line(label, "\nCRAFT: "),
        )

    def dissection_prompt(self, concept: str) -> str:
        return self.dissection_template.format(concept=concept.strip())

    def pattern_sheet_prompt(self, label: str | None = None) -> str:
        return self.pattern_sheet_template.format(label_line=templates.label_line(label))

    @classmethod
    def from_template_data(cls, category_id: str, data: Mapping[str, Any]) -> "CategoryPromptProfile":
        """Render the shared skeletons with one category's fragments."""
        display_name = data["display_name"]
        step_plan = list(data["step_plan"])
        step_count = int(data.get("step_count", len(step_plan)))
        titles = tuple(data.get("mandated_titles", ()))
        required = tuple(data.get("required_materials", ()))
        style_notes = templates.bullet_lines(data["style_notes"])

        materials_clause = ""
        if required:
            materials_clause = " You MUST include: " + ", ".join(required) + "."
        title_rule = ""
        if titles:
            title_rule = "Each step's title MUST be exactly the quoted title above.\n"

        # Escape braces so the rendered text survives the per-request .format() pass.
        def _escape(text: str) -> str:
            return text.replace("{", "{{").replace("}", "}}")

        master_template = templates.MASTER_TEMPLATE.format(
            display_name=display_name,
            concept="{concept}",
            style_notes=_escape(style_notes),
            view=_escape(data["view"]),
        )
        step_template = templates.STEP_TEMPLATE.format(
            display_name=display_name,
            step_description="{step_description}",
            label_line="{label_line}",
            step_notes=_escape(templates.bullet_lines(data["step_notes"])),
        )
        dissection_template = templates.DISSECTION_TEMPLATE.format(
            role=data["role"],
            concept="{concept}",
            materials_clause=_escape(materials_clause),
            step_count=step_count,
            step_plan=_escape(templates.numbered_plan(step_plan, titles)),
            title_rule=_escape(title_rule),
        )
        pattern_sheet_template = templates.PATTERN_SHEET_TEMPLATE.format(
            display_name=display_name,
            label_line="{label_line}",
            pattern_notes=_escape(templates.bullet_lines(data["pattern_notes"])),
        )

        return cls(
            category_id=category_id,
            display_name=display_name,
            agent_name=f"{display_name.replace(' ', '').replace('&', 'And')}Agent",
            agent_description=data["description"],
            master_template=master_template,
            step_template=step_template,
            dissection_template=dissection_template,
            pattern_sheet_template=pattern_sheet_template,
            style_notes=style_notes,
            step_count=step_count,
            mandated_step_titles=titles,
            removal_hierarchy=tuple(data.get("removal_hierarchy", DEFAULT_REMOVAL_HIERARCHY)),
            default_step_mode=data.get("default_step_mode", StepMode.SEQUENTIAL),
        )


class CategoryRegistry:
    """Profiles keyed by category id, looked up case-insensitively."""

    def __init__(self, profiles: Mapping[str, CategoryPromptProfile] | None = None) -> None:
        self._profiles: dict[str, CategoryPromptProfile] = {}
        for profile in (profiles or {}).values():
            self.register(profile)

    @staticmethod
    def _key(category: str) -> str:
        return category.strip().lower().replace(" ", "_").replace("-", "_").replace("&", "and")

    def register(self, profile: CategoryPromptProfile) -> None:
        self._profiles[self._key(profile.category_id)] = profile

    def get(self, category: str) -> CategoryPromptProfile:
        key = self._key(category)
        profile = self._profiles.get(key)
        if profile is None:
            for candidate in self._profiles.values():
                if self._key(candidate.display_name) == key:
                    return candidate
            known = ", ".join(sorted(self._profiles))
            raise ValueError(f"Unknown craft category '{category}'. Known categories: {known}.")
        return profile

    def __contains__(self, category: object) -> bool:
        if not isinstance(category, str):
            return False
        try:
            self.get(category)
        except ValueError:
            return False
        return True

    def __iter__(self) -> Iterator[CategoryPromptProfile]:
        return iter(self._profiles.values())

    def __len__(self) -> int:
        return len(self._profiles)

    def categories(self) -> list[str]:
        return [profile.category_id for profile in self._profiles.values()]


def default_registry() -> CategoryRegistry:
    """Registry holding every built-in category profile."""
    registry = CategoryRegistry()
    for category_id, data in templates.CATEGORY_TEMPLATES.items():
        registry.register(CategoryPromptProfile.from_template_data(category_id, data))
    return registry
