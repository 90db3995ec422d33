"""Project folder discovery: descriptor, framework layout, components, style guide."""

from __future__ import annotations

import json
import logging as py_logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = py_logging.getLogger(__name__)

DESCRIPTOR_FILE = "package.json"
LAUNCH_SCRIPTS = ("dev", "start")
COMPONENT_SUFFIX = re.compile(r"\.(jsx?|tsx?|vue|svelte|html?)$", re.IGNORECASE)

_FRAMEWORK_DEPENDENCIES = (
    ("next", "nextjs"),
    ("react", "react"),
    ("vue", "vue"),
    ("svelte", "svelte"),
)


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class ColorToken(_WireModel):
    name: str
    value: str


class FontSpec(_WireModel):
    family: str = "inherit"
    weight: str | int = 400
    size: str | int | float = 16
    case: str = "none"


class StyleGuide(_WireModel):
    colors: list[ColorToken] = Field(default_factory=list)
    fonts: dict[str, FontSpec] = Field(default_factory=dict)
    code_language: str = ""


class ComponentSnippet(_WireModel):
    name: str
    file_name: str = ""
    code: str = ""


class ProjectStructure(_WireModel):
    type: str = "unknown"
    framework: str | None = None
    has_package_json: bool = False
    has_src_folder: bool = False
    suggested_output_dir: Path


@dataclass(frozen=True)
class ProjectDescriptor:
    path: Path
    scripts: dict[str, str] = field(default_factory=dict)
    dependencies: dict[str, str] = field(default_factory=dict)

    def preferred_launch_script(self) -> str | None:
        for name in LAUNCH_SCRIPTS:
            if self.scripts.get(name):
                return name
        return None


def _string_map(value: object) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(key): str(item) for key, item in value.items() if isinstance(key, str)}


def read_project_descriptor(project_root: Path) -> ProjectDescriptor | None:
    descriptor_path = project_root / DESCRIPTOR_FILE
    if not descriptor_path.is_file():
        return None
    try:
        payload = json.loads(descriptor_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Failed to parse project descriptor path=%s error=%s", descriptor_path, exc)
        return None
    if not isinstance(payload, dict):
        logger.warning("Project descriptor is not an object path=%s", descriptor_path)
        return None

    dependencies = _string_map(payload.get("dependencies"))
    dependencies.update(_string_map(payload.get("devDependencies")))
    return ProjectDescriptor(
        path=descriptor_path,
        scripts=_string_map(payload.get("scripts")),
        dependencies=dependencies,
    )


def detect_project_structure(project_root: Path) -> ProjectStructure:
    """Infer framework and the directory generated files should land in.

    Projects without a readable ``package.json`` are treated as plain HTML
    and always write to the project root, even when a ``src/`` folder holds
    assets. Component frameworks write to ``src/``; Next.js prefers ``app/``
    and falls back to ``pages/``.
    """
    descriptor = read_project_descriptor(project_root)
    project_type = "unknown"
    framework: str | None = None
    if descriptor is None:
        project_type = "html"
        framework = "html"
    else:
        for dependency, detected_type in _FRAMEWORK_DEPENDENCIES:
            if dependency in descriptor.dependencies:
                framework = dependency
                project_type = detected_type
                break

    has_src = (project_root / "src").is_dir()
    output_dir = project_root
    if has_src:
        if framework == "next":
            app_dir = project_root / "app"
            output_dir = app_dir if app_dir.is_dir() else project_root / "pages"
        elif framework not in {None, "html"}:
            output_dir = project_root / "src"

    structure = ProjectStructure(
        type=project_type,
        framework=framework,
        has_package_json=descriptor is not None,
        has_src_folder=has_src,
        suggested_output_dir=output_dir,
    )
    logger.debug(
        "Detected project structure root=%s type=%s framework=%s output=%s",
        project_root,
        structure.type,
        structure.framework,
        structure.suggested_output_dir,
    )
    return structure


def scan_project_components(project_root: Path, components_dir: str = "componentAI") -> list[ComponentSnippet]:
    directory = project_root / components_dir
    if not directory.is_dir():
        logger.debug("No components directory at %s", directory)
        return []

    components: list[ComponentSnippet] = []
    for entry in sorted(directory.iterdir(), key=lambda item: item.name.lower()):
        if not entry.is_file() or not COMPONENT_SUFFIX.search(entry.name):
            continue
        try:
            code = entry.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping unreadable component path=%s error=%s", entry, exc)
            continue
        components.append(ComponentSnippet(name=entry.stem, file_name=entry.name, code=code))
    logger.debug("Loaded %s components from %s", len(components), directory)
    return components


def load_style_guide(project_root: Path, settings_file: str = ".visualise-settings.json") -> StyleGuide | None:
    settings_path = project_root / settings_file
    if not settings_path.is_file():
        return None
    try:
        payload = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable style guide path=%s error=%s", settings_path, exc)
        return None
    if not isinstance(payload, dict) or payload.get("enabled") is False:
        return None
    try:
        return StyleGuide.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Ignoring invalid style guide path=%s error=%s", settings_path, exc)
        return None
