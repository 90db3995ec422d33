from __future__ import annotations

from pathlib import Path

import pytest

from visualise.build.paths import is_absolute_path, resolve_output_path
from visualise.errors import ExitCode, VisualiseError


def test_relative_path_lands_under_output_dir(tmp_path: Path) -> None:
    target = resolve_output_path("components/Hero.tsx", project_root=tmp_path, output_dir=tmp_path / "src")

    assert target == tmp_path / "src" / "components" / "Hero.tsx"


def test_leading_output_dir_segment_is_not_doubled(tmp_path: Path) -> None:
    target = resolve_output_path("src/App.tsx", project_root=tmp_path, output_dir=tmp_path / "src")

    assert target == tmp_path / "src" / "App.tsx"


def test_doubling_rule_applies_to_any_output_dir_name(tmp_path: Path) -> None:
    target = resolve_output_path("app/page.tsx", project_root=tmp_path, output_dir=tmp_path / "app")

    assert target == tmp_path / "app" / "page.tsx"


def test_output_dir_equal_to_root_keeps_src_segment(tmp_path: Path) -> None:
    target = resolve_output_path("src/main.js", project_root=tmp_path, output_dir=tmp_path)

    assert target == tmp_path / "src" / "main.js"


def test_components_dir_is_rooted_at_project(tmp_path: Path) -> None:
    target = resolve_output_path("componentAI/Card.jsx", project_root=tmp_path, output_dir=tmp_path / "src")

    assert target == tmp_path / "componentAI" / "Card.jsx"


def test_leading_dots_and_backslashes_are_normalized(tmp_path: Path) -> None:
    target = resolve_output_path(".\\styles\\main.css", project_root=tmp_path, output_dir=tmp_path)

    assert target == tmp_path / "styles" / "main.css"


def test_absolute_paths_are_used_verbatim(tmp_path: Path) -> None:
    absolute = tmp_path / "elsewhere" / "file.js"

    assert resolve_output_path(str(absolute), project_root=tmp_path, output_dir=tmp_path) == absolute


def test_is_absolute_path_accepts_both_styles() -> None:
    assert is_absolute_path("/usr/share/file")
    assert is_absolute_path("C:\\project\\index.html")
    assert not is_absolute_path("src/index.html")


@pytest.mark.security
def test_parent_traversal_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(VisualiseError) as exc_info:
        resolve_output_path("src/../../outside.js", project_root=tmp_path, output_dir=tmp_path / "src")

    assert exc_info.value.code == ExitCode.VALIDATION_ERROR


def test_empty_path_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(VisualiseError):
        resolve_output_path("   ", project_root=tmp_path, output_dir=tmp_path)
    with pytest.raises(VisualiseError):
        resolve_output_path("./", project_root=tmp_path, output_dir=tmp_path)
