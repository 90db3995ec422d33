"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import json
import logging as py_logging
import sys
import threading
from collections.abc import Callable, Sequence
from pathlib import Path

from pydantic import ValidationError

from .build import BuildSpecification, MaterializationPipeline
from .config import AppConfig, load_config
from .errors import ExitCode, VisualiseError, user_facing_error
from .logging import configure_logging, default_log_path
from .preview import PreviewOrchestrator

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")

Waiter = Callable[[], None]


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="visualise")
    parser.add_argument("--log-level", type=_log_level_type, default=None)
    parser.add_argument("--log-file", type=Path, default=None)
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    commands = parser.add_subparsers(dest="command", required=True)

    preview = commands.add_parser("preview", help="Serve a project folder until interrupted")
    preview.add_argument("folder", type=Path)

    build = commands.add_parser("build", help="Generate code from a build plan and write it into a project")
    build.add_argument("plan", type=Path, help="JSON file holding the build specification")
    build.add_argument("folder", type=Path)
    build.add_argument(
        "--response-file",
        type=Path,
        default=None,
        help="Materialize a saved model response instead of calling the generation endpoint",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _wait_forever() -> None:
    threading.Event().wait()


def _read_text(path: Path, *, what: str) -> str:
    try:
        return path.expanduser().read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise VisualiseError(
            f"Cannot read {what}: {path}",
            code=ExitCode.INVALID_ARGS,
            hint=str(exc),
        ) from exc


def load_build_specification(path: Path) -> BuildSpecification:
    text = _read_text(path, what="build plan")
    try:
        return BuildSpecification.model_validate_json(text)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise VisualiseError(
            f"Invalid build plan: {path}",
            code=ExitCode.VALIDATION_ERROR,
            hint=f"{location}: {first.get('msg', '')}".strip(": ") or "Check the plan JSON.",
        ) from exc


def run_preview(config: AppConfig, folder: Path, *, wait: Waiter = _wait_forever) -> int:
    orchestrator = PreviewOrchestrator(config)
    session = orchestrator.start_preview(folder)
    print(session.url)
    print(f"Serving {session.served_root} ({session.source_kind.value}). Press Ctrl+C to stop.", file=sys.stderr)
    try:
        wait()
    except KeyboardInterrupt:
        pass
    finally:
        orchestrator.stop_preview()
    return int(ExitCode.SUCCESS)


def run_build(
    config: AppConfig,
    plan: Path,
    folder: Path,
    *,
    response_file: Path | None = None,
    pipeline: MaterializationPipeline | None = None,
) -> int:
    spec = load_build_specification(plan)
    pipeline = pipeline or MaterializationPipeline(config)
    if response_file is not None:
        result = pipeline.materialize_response(
            _read_text(response_file, what="response file"),
            folder,
            structure=spec.project_structure,
        )
    else:
        result = pipeline.execute_build(spec, folder)
    json.dump([item.to_payload() for item in result.written_files], sys.stdout, indent=2)
    sys.stdout.write("\n")
    for skipped in result.skipped_paths:
        print(f"skipped: {skipped}", file=sys.stderr)
    return int(ExitCode.SUCCESS)


def main(argv: Sequence[str] | None = None, *, wait: Waiter | None = None) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    config = load_config(namespace.config)
    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    logger = configure_logging(level=namespace.log_level or config.log_level, log_file=log_path)

    try:
        if namespace.command == "preview":
            logger.debug("Starting preview flow folder=%s", namespace.folder)
            return run_preview(config, namespace.folder, wait=wait or _wait_forever)
        logger.debug("Starting build flow plan=%s folder=%s", namespace.plan, namespace.folder)
        return run_build(config, namespace.plan, namespace.folder, response_file=namespace.response_file)
    except VisualiseError as exc:
        logger.error(
            "Handled VisualiseError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        print(user_facing_error("Unexpected runtime failure", hint=f"Inspect logs: {log_path}"), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
