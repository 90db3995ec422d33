from __future__ import annotations

from pathlib import Path

from visualise.build.models import BuildSpecification
from visualise.build.prompts import (
    COMPONENT_PREVIEW_CHARS,
    PLAN_SEPARATOR,
    build_generation_prompt,
    build_refine_prompt,
    format_components,
    format_style_guide,
    split_plan_response,
)
from visualise.project import ColorToken, ComponentSnippet, FontSpec, ProjectStructure, StyleGuide


def _structure(tmp_path: Path) -> ProjectStructure:
    return ProjectStructure(
        type="react",
        framework="react",
        has_package_json=True,
        suggested_output_dir=tmp_path / "src",
    )


def test_generation_prompt_carries_instructions_and_format(tmp_path: Path) -> None:
    spec = BuildSpecification(detailedPrompt="Build a pricing page with three tiers.")

    prompt = build_generation_prompt(spec, structure=_structure(tmp_path), style_guide=None, components=[])

    assert "Build a pricing page with three tiers." in prompt
    assert "- Framework: react" in prompt
    assert "=== FILE: path/to/file.ext ===" in prompt
    assert "=== END FILE ===" in prompt
    assert "USER FEEDBACK" not in prompt


def test_generation_prompt_includes_user_feedback(tmp_path: Path) -> None:
    spec = BuildSpecification(detailedPrompt="Landing page", userFeedback="Make the hero darker")

    prompt = build_generation_prompt(spec, structure=_structure(tmp_path), style_guide=None, components=[])

    assert "USER FEEDBACK" in prompt
    assert "Make the hero darker" in prompt


def test_style_guide_formatting() -> None:
    guide = StyleGuide(
        colors=[ColorToken(name="primary", value="#0044ff")],
        fonts={"h1": FontSpec(family="Inter", weight=700, size=48, case="uppercase"), "body": FontSpec(family="Lato")},
        code_language="react",
    )

    text = format_style_guide(guide)

    assert "  - primary: #0044ff" in text
    assert "  - H1: Inter, 700 weight, 48px, text-transform: uppercase" in text
    assert "  - BODY: Lato, 400 weight, 16px" in text
    assert "**Preferred Framework:** react" in text
    assert format_style_guide(None) == ""


def test_components_are_truncated() -> None:
    long_code = "x" * (COMPONENT_PREVIEW_CHARS + 10)
    text = format_components([ComponentSnippet(name="Big", file_name="Big.tsx", code=long_code)])

    assert "Existing Components" in text
    assert "Big.tsx:" in text
    assert "// ... (truncated)" in text
    assert "x" * (COMPONENT_PREVIEW_CHARS + 1) not in text
    assert format_components([]) == ""


def test_refine_prompt_requests_two_part_answer() -> None:
    spec = BuildSpecification(detailedPrompt="Hero section", summary="A hero")

    prompt = build_refine_prompt(spec, "add a CTA button", style_guide=None)

    assert PLAN_SEPARATOR in prompt
    assert 'The user has this feedback: "add a CTA button"' in prompt


def test_split_plan_response() -> None:
    assert split_plan_response(f"Short summary\n{PLAN_SEPARATOR}\nLong prompt") == ("Short summary", "Long prompt")
    assert split_plan_response("  only one part ") == ("only one part", "only one part")


def test_font_sizes_with_units_are_not_suffixed_twice() -> None:
    guide = StyleGuide(
        fonts={
            "h2": FontSpec(family="Inter", size="32px"),
            "small": FontSpec(family="Inter", size="0.875rem"),
            "caption": FontSpec(family="Inter", size="12"),
        }
    )

    text = format_style_guide(guide)

    assert "H2: Inter, 400 weight, 32px" in text
    assert "32pxpx" not in text
    assert "SMALL: Inter, 400 weight, 0.875rem" in text
    assert "CAPTION: Inter, 400 weight, 12px" in text
