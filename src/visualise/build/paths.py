"""Map model-emitted file paths onto the project tree."""

from __future__ import annotations

import os
import re
from pathlib import Path, PurePosixPath, PureWindowsPath

from visualise.errors import ExitCode, VisualiseError

_LEADING_NOISE = re.compile(r"^[./\\]+")


def is_absolute_path(value: str) -> bool:
    return PurePosixPath(value).is_absolute() or PureWindowsPath(value).is_absolute()


def _first_segment(relative: str) -> str:
    return re.split(r"[/\\]", relative, maxsplit=1)[0]


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def resolve_output_path(
    relative_path: str,
    *,
    project_root: Path,
    output_dir: Path,
    components_dir: str = "componentAI",
) -> Path:
    """Resolve one parsed path to its absolute write location.

    Absolute paths are trusted verbatim. Paths under ``components_dir`` are
    rooted at the project. Everything else is rooted under ``output_dir``
    unless its first segment repeats the output directory's own name (a model
    writing ``src/App.tsx`` while the output dir is already ``src``), in which
    case it is rooted at the output directory's parent so the segment is not
    doubled. Relative paths may not escape the project root.
    """
    raw = relative_path.strip()
    if not raw:
        raise VisualiseError("Empty output path.", code=ExitCode.VALIDATION_ERROR)
    if is_absolute_path(raw):
        return Path(raw)

    root = Path(os.path.normpath(project_root))
    normalized_components = components_dir.strip("/\\")
    if raw.replace("\\", "/").startswith(f"{normalized_components}/"):
        target = root / raw
    else:
        cleaned = _LEADING_NOISE.sub("", raw).replace("\\", "/")
        if not cleaned:
            raise VisualiseError(f"Output path has no file name: {relative_path}", code=ExitCode.VALIDATION_ERROR)
        base = Path(os.path.normpath(output_dir))
        if base != root and base.name and _first_segment(cleaned) == base.name:
            base = base.parent
        target = base / cleaned

    resolved = Path(os.path.normpath(target))
    if not _is_within(resolved, root):
        raise VisualiseError(
            f"Output path escapes the project: {relative_path}",
            code=ExitCode.VALIDATION_ERROR,
            hint="Generated files must stay inside the project folder.",
        )
    return resolved
