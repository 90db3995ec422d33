"""Request/response control surface for a host shell.

Every method returns a plain camelCase dict; failures are reported as
``{"success": False, "error": ...}`` and never raised to the host.
"""

from __future__ import annotations

import logging as py_logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from typing_extensions import NotRequired, TypedDict

from visualise.build import BuildSpecification, MaterializationPipeline
from visualise.config import AppConfig
from visualise.errors import ExitCode, VisualiseError
from visualise.preview import PreviewOrchestrator, SourceKind
from visualise.terminal import TerminalRegistry, TerminalSubscriber

logger = py_logging.getLogger(__name__)


class FailurePayload(TypedDict):
    success: bool
    error: str
    needsRuntime: NotRequired[bool]


class PreviewPayload(TypedDict):
    success: bool
    url: str
    servedFrom: str
    spaFallback: bool
    sourceKind: str
    externalDevServer: bool
    startedScript: NotRequired[str]
    reusedDevProcess: NotRequired[bool]


class TerminalPayload(TypedDict):
    success: bool
    id: int


class BuildPayload(TypedDict):
    success: bool
    files: list[dict[str, str]]


class PlanPayload(TypedDict):
    success: bool
    summary: str
    detailedPrompt: str


class StatusPayload(TypedDict):
    success: bool


def _failure(exc: VisualiseError) -> FailurePayload:
    payload: FailurePayload = {"success": False, "error": str(exc)}
    if exc.needs_runtime:
        payload["needsRuntime"] = True
    return payload


def _unexpected(action: str, exc: Exception) -> FailurePayload:
    logger.exception("Unexpected failure action=%s", action)
    return {"success": False, "error": str(exc) or exc.__class__.__name__}


def _parse_specification(raw: BuildSpecification | Mapping[str, Any]) -> BuildSpecification:
    if isinstance(raw, BuildSpecification):
        return raw
    try:
        return BuildSpecification.model_validate(dict(raw))
    except ValidationError as exc:
        raise VisualiseError(
            "Invalid build specification.",
            code=ExitCode.VALIDATION_ERROR,
            hint=str(exc.errors()[0].get("msg", "")) if exc.errors() else "",
        ) from exc


class ControlSurface:
    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        orchestrator: PreviewOrchestrator | None = None,
        terminals: TerminalRegistry | None = None,
        pipeline: MaterializationPipeline | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.orchestrator = orchestrator or PreviewOrchestrator(self.config)
        self.terminals = terminals or TerminalRegistry(self.config)
        self.pipeline = pipeline or MaterializationPipeline(self.config)

    def start_preview(self, folder_path: str | Path) -> PreviewPayload | FailurePayload:
        try:
            session = self.orchestrator.start_preview(folder_path)
        except VisualiseError as exc:
            logger.warning("Preview failed folder=%s code=%s error=%s", folder_path, int(exc.code), exc.message)
            return _failure(exc)
        except Exception as exc:
            return _unexpected("start-preview", exc)

        payload: PreviewPayload = {
            "success": True,
            "url": session.url,
            "servedFrom": session.served_root,
            "spaFallback": session.spa_fallback_enabled,
            "sourceKind": session.source_kind.value,
            "externalDevServer": session.source_kind is SourceKind.EXTERNAL_DEV_SERVER,
        }
        if session.started_script:
            payload["startedScript"] = session.started_script
        if session.reused_dev_process:
            payload["reusedDevProcess"] = True
        return payload

    def stop_preview(self) -> StatusPayload | FailurePayload:
        try:
            self.orchestrator.stop_preview()
        except Exception as exc:
            return _unexpected("stop-preview", exc)
        return {"success": True}

    def terminal_create(
        self,
        subscriber: TerminalSubscriber,
        cwd: str | Path | None = None,
        cols: int | None = None,
        rows: int | None = None,
    ) -> TerminalPayload | FailurePayload:
        try:
            session = self.terminals.create(subscriber, cwd, cols or 80, rows or 24)
        except VisualiseError as exc:
            logger.warning("Terminal create failed cwd=%s error=%s", cwd, exc.message)
            return _failure(exc)
        except Exception as exc:
            return _unexpected("terminal-create", exc)
        return {"success": True, "id": session.terminal_id}

    def terminal_write(self, terminal_id: int, data: str) -> None:
        self.terminals.write(terminal_id, data)

    def terminal_resize(self, terminal_id: int, cols: int, rows: int) -> None:
        self.terminals.resize(terminal_id, cols, rows)

    def terminal_dispose(self, terminal_id: int) -> None:
        self.terminals.dispose(terminal_id)

    def execute_build(
        self,
        build_specification: BuildSpecification | Mapping[str, Any],
        folder_path: str | Path,
    ) -> BuildPayload | FailurePayload:
        try:
            spec = _parse_specification(build_specification)
            result = self.pipeline.execute_build(spec, folder_path)
        except VisualiseError as exc:
            logger.warning("Build failed folder=%s code=%s error=%s", folder_path, int(exc.code), exc.message)
            return _failure(exc)
        except Exception as exc:
            return _unexpected("execute-build", exc)
        return {"success": True, "files": [item.to_payload() for item in result.written_files]}

    def refine_build_plan(
        self,
        build_specification: BuildSpecification | Mapping[str, Any],
        feedback: str,
        folder_path: str | Path | None = None,
    ) -> PlanPayload | FailurePayload:
        try:
            spec = _parse_specification(build_specification)
            refined = self.pipeline.refine_build_plan(spec, feedback, folder_path)
        except VisualiseError as exc:
            logger.warning("Plan refinement failed code=%s error=%s", int(exc.code), exc.message)
            return _failure(exc)
        except Exception as exc:
            return _unexpected("refine-build-plan", exc)
        return {"success": True, "summary": refined.summary, "detailedPrompt": refined.detailed_instructions}

    def shutdown(self) -> None:
        try:
            self.orchestrator.stop_preview()
        finally:
            self.terminals.dispose_all()
        logger.info("Control surface shut down")
