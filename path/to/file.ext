[complete file content]
=== END FILE ===

Generate all files now:"""


def build_refine_prompt(spec: BuildSpecification, feedback: str, *, style_guide: StyleGuide | None) -> str:
    style_text = format_style_guide(style_guide) or "No style guide configured."
    return f"""You previously created this build plan:

**Summary:**
{spec.summary}

**Detailed Prompt:**
{spec.detailed_instructions}

The user has this feedback: "{feedback}"

Please update the build plan based on this feedback. Respond in the same two-part format:
PART 1: Updated user-facing summary
{PLAN_SEPARATOR}
PART 2: Updated detailed build prompt

Style Guide to use:
{style_text}"""


def split_plan_response(response: str) -> tuple[str, str]:
    """Split a two-part plan; a missing separator keeps the whole text for both parts."""
    summary, separator, detailed = response.partition(PLAN_SEPARATOR)
    if not separator:
        text = response.strip()
        return text, text
    return summary.strip() or response.strip(), detailed.strip() or response.strip()
