"""Materialization domain models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from visualise.project import ComponentSnippet, ProjectStructure, StyleGuide


class BuildSpecification(BaseModel):
    """Input of one materialization attempt. Immutable once constructed."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    detailed_instructions: str = Field(alias="detailedPrompt", min_length=1)
    summary: str = ""
    style_guide: StyleGuide | None = None
    existing_components: list[ComponentSnippet] = Field(default_factory=list, alias="components")
    project_structure: ProjectStructure | None = None
    user_feedback: str = ""


@dataclass(frozen=True)
class ParsedFile:
    relative_path: str
    content: str


@dataclass(frozen=True)
class WrittenFile:
    project_relative_path: str
    absolute_path: Path

    def to_payload(self) -> dict[str, str]:
        return {"path": self.project_relative_path, "fullPath": str(self.absolute_path)}


@dataclass
class BuildResult:
    written_files: list[WrittenFile]
    skipped_paths: list[str]
    raw_response: str

    @property
    def has_failures(self) -> bool:
        return bool(self.skipped_paths)
