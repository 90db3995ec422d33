from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path


def _env_with_pythonpath() -> dict[str, str]:
    env = dict(os.environ)
    existing = env.get("PYTHONPATH", "")
    src_path = str(Path("src").resolve())
    env["PYTHONPATH"] = f"{src_path}{os.pathsep}{existing}" if existing else src_path
    env.pop("GEMINI_API_KEY", None)
    return env


def test_cli_module_reports_invalid_args_via_exit_code(tmp_path: Path) -> None:
    completed = subprocess.run(
        [
            sys.executable,
            "-m",
            "visualise",
            "--log-level",
            "loud",
            "--log-file",
            str(tmp_path / "v.log"),
            "preview",
            ".",
        ],
        capture_output=True,
        text=True,
        check=False,
        env=_env_with_pythonpath(),
    )

    assert completed.returncode == 2
    assert "--log-level must be one of" in completed.stderr


def test_cli_module_materializes_saved_response(tmp_path: Path) -> None:
    project = tmp_path / "app"
    (project / "src").mkdir(parents=True)
    (project / "package.json").write_text(json.dumps({"dependencies": {"react": "18"}}), encoding="utf-8")
    plan = tmp_path / "plan.json"
    plan.write_text(json.dumps({"detailedPrompt": "A hero section"}), encoding="utf-8")
    response = tmp_path / "response.md"
    response.write_text(
        "\n".join(
            [
                "### File 1: src/Hero.jsx",
                "```jsx",
                "export const Hero = () => <section>Hi</section>;",
                "```",
                "=== FILE: componentAI/Badge.jsx ===",
                "export const Badge = () => <span />;",
                "=== END FILE ===",
            ]
        ),
        encoding="utf-8",
    )

    completed = subprocess.run(
        [
            sys.executable,
            "-m",
            "visualise",
            "--log-level",
            "warning",
            "--log-file",
            str(tmp_path / "v.log"),
            "--config",
            str(tmp_path / "missing.toml"),
            "build",
            str(plan),
            str(project),
            "--response-file",
            str(response),
        ],
        capture_output=True,
        text=True,
        check=False,
        env=_env_with_pythonpath(),
    )

    assert completed.returncode == 0, completed.stderr
    manifest = json.loads(completed.stdout)
    assert [entry["path"] for entry in manifest] == ["src/Hero.jsx", "componentAI/Badge.jsx"]
    hero = (project / "src" / "Hero.jsx").read_text(encoding="utf-8")
    assert hero == "export const Hero = () => <section>Hi</section>;\n"


def test_cli_module_build_without_key_exits_with_config_error(tmp_path: Path) -> None:
    plan = tmp_path / "plan.json"
    plan.write_text(json.dumps({"detailedPrompt": "A hero section"}), encoding="utf-8")

    completed = subprocess.run(
        [
            sys.executable,
            "-m",
            "visualise",
            "--log-file",
            str(tmp_path / "v.log"),
            "--config",
            str(tmp_path / "missing.toml"),
            "build",
            str(plan),
            str(tmp_path),
        ],
        capture_output=True,
        text=True,
        check=False,
        env=_env_with_pythonpath(),
    )

    assert completed.returncode == 3
    assert "Next step:" in completed.stderr
