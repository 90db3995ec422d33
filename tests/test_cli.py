from __future__ import annotations

import argparse
import json
import socket
from pathlib import Path

import pytest

from visualise.cli import _log_level_type, build_parser, load_build_specification, main
from visualise.errors import ExitCode, VisualiseError


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


def _common_flags(tmp_path: Path) -> list[str]:
    return ["--config", str(tmp_path / "missing.toml"), "--log-file", str(tmp_path / "visualise.log")]


def _plan(tmp_path: Path, payload: object) -> Path:
    path = tmp_path / "plan.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_parser_accepts_preview_and_build_commands() -> None:
    parser = build_parser()

    preview = parser.parse_args(["preview", "site"])
    build = parser.parse_args(["--log-level", "debug", "build", "plan.json", "site", "--response-file", "out.txt"])

    assert preview.command == "preview"
    assert preview.folder == Path("site")
    assert build.command == "build"
    assert build.log_level == "DEBUG"
    assert build.response_file == Path("out.txt")


def test_log_level_aliases() -> None:
    assert _log_level_type("warning") == "WARN"
    with pytest.raises(argparse.ArgumentTypeError):
        _log_level_type("verbose")


def test_missing_command_is_invalid_args(tmp_path: Path) -> None:
    assert main(_common_flags(tmp_path)) == int(ExitCode.INVALID_ARGS)


def test_build_from_saved_response(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    project = tmp_path / "site"
    project.mkdir()
    plan = _plan(tmp_path, {"detailedPrompt": "Landing page"})
    response = tmp_path / "response.txt"
    response.write_text("=== FILE: index.html ===\n<h1>Hello</h1>\n=== END FILE ===\n", encoding="utf-8")

    code = main([*_common_flags(tmp_path), "build", str(plan), str(project), "--response-file", str(response)])

    assert code == int(ExitCode.SUCCESS)
    manifest = json.loads(capsys.readouterr().out)
    assert manifest == [{"path": "index.html", "fullPath": str(project.resolve() / "index.html")}]
    assert (project / "index.html").read_text(encoding="utf-8") == "<h1>Hello</h1>\n"


def test_build_with_unparseable_response_reports_sentinel(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    plan = _plan(tmp_path, {"detailedPrompt": "Landing page"})
    response = tmp_path / "response.txt"
    response.write_text("no files here", encoding="utf-8")

    code = main([*_common_flags(tmp_path), "build", str(plan), str(tmp_path), "--response-file", str(response)])

    assert code == int(ExitCode.PARSE_DEGRADED)
    assert "build-output.txt" in capsys.readouterr().err
    assert (tmp_path / "build-output.txt").read_text(encoding="utf-8") == "no files here"


def test_build_without_api_key_is_config_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    plan = _plan(tmp_path, {"detailedPrompt": "Landing page"})

    code = main([*_common_flags(tmp_path), "build", str(plan), str(tmp_path)])

    assert code == int(ExitCode.CONFIG_ERROR)
    assert "GEMINI_API_KEY" in capsys.readouterr().err


def test_invalid_plan_is_validation_error(tmp_path: Path) -> None:
    plan = _plan(tmp_path, {"summary": "no prompt"})

    with pytest.raises(VisualiseError) as exc_info:
        load_build_specification(plan)

    assert exc_info.value.code == ExitCode.VALIDATION_ERROR
    assert "detailedPrompt" in exc_info.value.hint


def test_unreadable_plan_is_invalid_args(tmp_path: Path) -> None:
    code = main([*_common_flags(tmp_path), "build", str(tmp_path / "nope.json"), str(tmp_path)])

    assert code == int(ExitCode.INVALID_ARGS)


def test_preview_serves_until_interrupted(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    port = _free_port()
    config = tmp_path / "config.toml"
    config.write_text(f"preview_ports = [{port}]\n", encoding="utf-8")
    site = tmp_path / "site"
    site.mkdir()
    (site / "index.html").write_text("<p>hi</p>", encoding="utf-8")

    def interrupt() -> None:
        raise KeyboardInterrupt

    code = main(
        ["--config", str(config), "--log-file", str(tmp_path / "v.log"), "preview", str(site)],
        wait=interrupt,
    )

    assert code == int(ExitCode.SUCCESS)
    assert capsys.readouterr().out.strip() == f"http://localhost:{port}"
