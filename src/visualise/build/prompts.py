"""Prompt assembly for generation and plan refinement."""

from __future__ import annotations

from visualise.build.models import BuildSpecification
from visualise.project import ComponentSnippet, ProjectStructure, StyleGuide

PLAN_SEPARATOR = "---DETAILED_PROMPT---"
COMPONENT_PREVIEW_CHARS = 3000


def _css_size(size: str | int | float) -> str:
    if isinstance(size, (int, float)):
        return f"{size:g}px"
    text = str(size).strip()
    try:
        float(text)
    except ValueError:
        return text
    return f"{text}px"


def format_style_guide(style_guide: StyleGuide | None) -> str:
    if style_guide is None:
        return ""
    parts: list[str] = []
    if style_guide.colors:
        color_lines = "\n".join(f"  - {color.name}: {color.value}" for color in style_guide.colors)
        parts.append(f"**Colors:**\n{color_lines}")
    if style_guide.fonts:
        font_lines: list[str] = []
        for element, font in style_guide.fonts.items():
            case = f", text-transform: {font.case}" if font.case and font.case != "none" else ""
            size = _css_size(font.size)
            font_lines.append(f"  - {element.upper()}: {font.family}, {font.weight} weight, {size}{case}")
        parts.append("**Typography:**\n" + "\n".join(font_lines))
    if style_guide.code_language:
        parts.append(f"**Preferred Framework:** {style_guide.code_language}")
    return "\n\n".join(parts)


def format_components(components: list[ComponentSnippet]) -> str:
    if not components:
        return ""
    blocks: list[str] = []
    for component in components:
        code = component.code[:COMPONENT_PREVIEW_CHARS]
        if len(component.code) > COMPONENT_PREVIEW_CHARS:
            code += "\n// ... (truncated)"
        label = component.file_name or component.name
        blocks.append(f"{label}:\n```\n{code}\n```")
    return "\n\n**Existing Components (import and reuse these):**\n" + "\n\n".join(blocks)


def build_generation_prompt(
    spec: BuildSpecification,
    *,
    structure: ProjectStructure,
    style_guide: StyleGuide | None,
    components: list[ComponentSnippet],
) -> str:
    framework = structure.framework or "Plain HTML/CSS/JS"
    style_text = format_style_guide(style_guide) or "Use sensible defaults."
    feedback = ""
    if spec.user_feedback.strip():
        feedback = f"\n\n**USER FEEDBACK (apply on top of the specifications):**\n{spec.user_feedback.strip()}"

    return f"""You are an expert front-end developer. Build the following based on the detailed specifications.

**Project Info:**
- Type: {structure.type}
- Framework: {framework}
- Output directory: {structure.suggested_output_dir}

**Style Guide:**
{style_text}
{format_components(components)}

**DETAILED BUILD SPECIFICATIONS:**
{spec.detailed_instructions}{feedback}

**CRITICAL INSTRUCTIONS:**
1. Reuse & adapt existing components: keep their structure but update content (text, images, links) to match the specifications.
2. Style every new element with the fonts and colors from the Style Guide; do not rely on browser defaults.
3. Write the COMPLETE content of every file, including all imports.
4. Follow the framework conventions ({structure.framework or "plain HTML"}).
5. Implement any implied interactivity (menus, sliders, modals, tabs).

**OUTPUT FORMAT:**
For each file, output in this exact format: