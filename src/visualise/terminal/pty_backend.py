"""Pseudo-terminal spawning: ptyprocess on POSIX, pywinpty on Windows."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path
from typing import Any

from visualise.errors import ExitCode, VisualiseError

PtySpawn = Callable[[list[str], str, dict[str, str], int, int], Any]

TERMINAL_TYPE = "xterm-256color"
READ_CHUNK_SIZE = 4096


def build_shell_command(
    shell: str = "", *, platform: str | None = None, environ: dict[str, str] | None = None
) -> list[str]:
    if shell.strip():
        return [shell.strip()]
    if (platform or sys.platform) == "win32":
        return ["powershell.exe", "-NoLogo"]
    source = os.environ if environ is None else environ
    return [source.get("SHELL") or "/bin/bash"]


def build_terminal_env(environ: dict[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ if environ is None else environ)
    env["TERM"] = TERMINAL_TYPE
    return env


def default_cwd(cwd: str | Path | None) -> str:
    if cwd is None or not str(cwd).strip():
        return str(Path.home())
    return str(Path(cwd).expanduser())


def _spawn_with_ptyprocess(command: list[str], cwd: str, env: dict[str, str], cols: int, rows: int) -> Any:
    from ptyprocess import PtyProcessUnicode

    return PtyProcessUnicode.spawn(command, cwd=cwd, env=env, dimensions=(rows, cols))


def _spawn_with_pywinpty(command: list[str], cwd: str, env: dict[str, str], cols: int, rows: int) -> Any:
    from winpty import PtyProcess

    return PtyProcess.spawn(command, cwd=cwd, env=env, dimensions=(rows, cols))


def spawn_pty(command: list[str], cwd: str, env: dict[str, str], cols: int, rows: int) -> Any:
    if not command:
        raise VisualiseError(
            "PTY command cannot be empty.",
            code=ExitCode.VALIDATION_ERROR,
            hint="Configure terminal_shell or set $SHELL.",
        )
    spawner = _spawn_with_pywinpty if sys.platform == "win32" else _spawn_with_ptyprocess
    try:
        return spawner(command, cwd, env, cols, rows)
    except ImportError as exc:
        raise VisualiseError(
            "PTY backend is unavailable.",
            code=ExitCode.RUNTIME_ERROR,
            hint="Install ptyprocess (POSIX) or pywinpty (Windows).",
        ) from exc
    except (OSError, ValueError) as exc:
        raise VisualiseError(
            f"Failed to start terminal shell {command[0]!r}.",
            code=ExitCode.RUNTIME_ERROR,
            hint=str(exc) or "Check the terminal shell installation and working directory.",
        ) from exc


def read_chunk(process: Any) -> str:
    """Blocking read; raises ``EOFError`` once the PTY is closed."""
    chunk = process.read(READ_CHUNK_SIZE)
    if isinstance(chunk, bytes):
        return chunk.decode("utf-8", errors="replace")
    return str(chunk)


def exit_status(process: Any) -> tuple[int | None, int | None]:
    with suppress(Exception):
        process.wait()
    code = getattr(process, "exitstatus", None)
    signal = getattr(process, "signalstatus", None)
    return code, signal


def terminate(process: Any) -> None:
    if _is_alive(process):
        with suppress(Exception):
            process.terminate(force=True)
    if hasattr(process, "close"):
        with suppress(Exception):
            process.close(force=True)


def _is_alive(process: Any) -> bool:
    if hasattr(process, "isalive"):
        try:
            return bool(process.isalive())
        except OSError:
            return False
    return True
