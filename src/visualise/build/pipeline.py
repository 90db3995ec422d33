"""Generate code for a build specification and write it into a project."""

from __future__ import annotations

import logging as py_logging
from pathlib import Path
from typing import Protocol

from visualise.build.client import GenerationClient
from visualise.build.models import BuildResult, BuildSpecification, ParsedFile, WrittenFile
from visualise.build.parser import parse_generated_files
from visualise.build.paths import resolve_output_path
from visualise.build.prompts import build_generation_prompt, build_refine_prompt, split_plan_response
from visualise.config import AppConfig
from visualise.errors import ExitCode, VisualiseError
from visualise.project import (
    ComponentSnippet,
    ProjectStructure,
    StyleGuide,
    detect_project_structure,
    load_style_guide,
    scan_project_components,
)

logger = py_logging.getLogger(__name__)


class Generator(Protocol):
    def generate(self, prompt: str) -> str: ...


def _project_relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def _require_project_root(project_root: Path | str) -> Path:
    root = Path(project_root).expanduser().resolve()
    if not root.is_dir():
        raise VisualiseError(
            f"Project folder does not exist: {root}",
            code=ExitCode.VALIDATION_ERROR,
            hint="Select an existing project folder before building.",
        )
    return root


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = content if content.endswith("\n") else content + "\n"
    path.write_text(text, encoding="utf-8")


class MaterializationPipeline:
    def __init__(self, config: AppConfig | None = None, *, client: Generator | None = None) -> None:
        self.config = config or AppConfig()
        self.client: Generator = client or GenerationClient(self.config)

    def _context(
        self, spec: BuildSpecification, root: Path
    ) -> tuple[ProjectStructure, StyleGuide | None, list[ComponentSnippet]]:
        structure = spec.project_structure or detect_project_structure(root)
        style_guide = spec.style_guide
        if style_guide is None:
            style_guide = load_style_guide(root, self.config.settings_file)
        components = spec.existing_components or scan_project_components(root, self.config.components_dir)
        return structure, style_guide, components

    def execute_build(self, spec: BuildSpecification, project_root: Path | str) -> BuildResult:
        root = _require_project_root(project_root)
        structure, style_guide, components = self._context(spec, root)
        prompt = build_generation_prompt(spec, structure=structure, style_guide=style_guide, components=components)
        logger.info(
            "Build started root=%s type=%s framework=%s components=%s",
            root,
            structure.type,
            structure.framework,
            len(components),
        )
        response = self.client.generate(prompt)
        return self._materialize(response, root, structure)

    def materialize_response(
        self,
        response: str,
        project_root: Path | str,
        *,
        structure: ProjectStructure | None = None,
    ) -> BuildResult:
        """Write files from an already generated response without calling the endpoint."""
        root = _require_project_root(project_root)
        return self._materialize(response, root, structure or detect_project_structure(root))

    def _materialize(self, response: str, root: Path, structure: ProjectStructure) -> BuildResult:
        parsed = parse_generated_files(response)
        logger.info("Parsed generated files count=%s", len(parsed))

        output_dir = Path(structure.suggested_output_dir)
        if not output_dir.is_absolute():
            output_dir = root / output_dir
        result = BuildResult(written_files=[], skipped_paths=[], raw_response=response)
        for item in parsed:
            written = self._save(item, root=root, output_dir=output_dir)
            if written is None:
                result.skipped_paths.append(item.relative_path)
            else:
                result.written_files.append(written)

        if not result.written_files:
            sentinel = self._write_sentinel(root, response)
            raise VisualiseError(
                f"Could not parse any files from the generated response. Raw output saved to {sentinel}",
                code=ExitCode.PARSE_DEGRADED,
                hint=f"Inspect {sentinel} and copy the code by hand, or rerun the build.",
            )

        logger.info(
            "Build finished root=%s written=%s skipped=%s",
            root,
            len(result.written_files),
            len(result.skipped_paths),
        )
        return result

    def _save(self, item: ParsedFile, *, root: Path, output_dir: Path) -> WrittenFile | None:
        try:
            target = resolve_output_path(
                item.relative_path,
                project_root=root,
                output_dir=output_dir,
                components_dir=self.config.components_dir,
            )
            _write_text(target, item.content)
        except VisualiseError as exc:
            logger.warning("Skipping generated file path=%s error=%s", item.relative_path, exc.message)
            return None
        except OSError as exc:
            logger.error("Failed to write generated file path=%s error=%s", item.relative_path, exc)
            return None
        logger.debug("Wrote generated file path=%s bytes=%s", target, len(item.content))
        return WrittenFile(project_relative_path=_project_relative(target, root), absolute_path=target)

    def _write_sentinel(self, root: Path, response: str) -> Path:
        sentinel = root / self.config.sentinel_file
        try:
            sentinel.write_text(response, encoding="utf-8")
        except OSError as exc:
            raise VisualiseError(
                f"Could not parse any files and failed to save raw output to {sentinel}: {exc}",
                code=ExitCode.PARSE_DEGRADED,
            ) from exc
        logger.warning("No files parsed; raw response saved path=%s chars=%s", sentinel, len(response))
        return sentinel

    def refine_build_plan(
        self,
        spec: BuildSpecification,
        feedback: str,
        project_root: Path | str | None = None,
    ) -> BuildSpecification:
        """Ask the model to revise a plan; returns a new specification."""
        if not feedback.strip():
            raise VisualiseError("Feedback must not be empty.", code=ExitCode.VALIDATION_ERROR)
        style_guide = spec.style_guide
        if style_guide is None and project_root is not None:
            style_guide = load_style_guide(Path(project_root).expanduser(), self.config.settings_file)

        response = self.client.generate(build_refine_prompt(spec, feedback.strip(), style_guide=style_guide))
        summary, detailed = split_plan_response(response)
        if not detailed:
            raise VisualiseError("Refinement returned an empty plan.", code=ExitCode.UPSTREAM_ERROR)
        logger.info("Build plan refined summary_chars=%s detailed_chars=%s", len(summary), len(detailed))
        return spec.model_copy(
            update={"summary": summary, "detailed_instructions": detailed, "user_feedback": feedback.strip()}
        )
