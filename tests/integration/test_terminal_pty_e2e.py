from __future__ import annotations

import shutil
import sys
import threading
import time
from pathlib import Path

import pytest

from visualise.config import AppConfig
from visualise.terminal import TerminalRegistry, TerminalState

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX PTY backend")

pytest.importorskip("ptyprocess")


class _Recorder:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.chunks: list[str] = []
        self.exits: list[tuple[int, int | None, int | None]] = []
        self.exited = threading.Event()

    def on_data(self, terminal_id: int, data: str) -> None:
        with self._lock:
            self.chunks.append(data)

    def on_exit(self, terminal_id: int, exit_code: int | None, signal: int | None) -> None:
        with self._lock:
            self.exits.append((terminal_id, exit_code, signal))
        self.exited.set()

    def text(self) -> str:
        with self._lock:
            return "".join(self.chunks)


def _shell() -> str:
    shell = shutil.which("sh")
    if shell is None:
        pytest.skip("no POSIX shell available")
    return shell


def test_real_shell_output_and_exit_code_reach_subscriber(tmp_path: Path) -> None:
    registry = TerminalRegistry(AppConfig(terminal_shell=_shell()))
    recorder = _Recorder()
    try:
        session = registry.create(recorder, tmp_path, 80, 24)
        registry.write(session.terminal_id, "echo visualise-$((40 + 2))\n")
        registry.write(session.terminal_id, "exit 3\n")

        assert recorder.exited.wait(15)
        time.sleep(0.2)

        assert "visualise-42" in recorder.text()
        assert recorder.exits == [(session.terminal_id, 3, None)]
        assert session.state is TerminalState.EXITED
        assert len(registry) == 0
    finally:
        registry.dispose_all()


def test_real_shell_dispose_twice_exits_once(tmp_path: Path) -> None:
    registry = TerminalRegistry(AppConfig(terminal_shell=_shell()))
    recorder = _Recorder()
    try:
        session = registry.create(recorder, tmp_path)

        registry.dispose(session.terminal_id)
        registry.dispose(session.terminal_id)
        registry.write(session.terminal_id, "echo ignored\n")

        assert recorder.exited.wait(15)
        time.sleep(0.2)

        assert len(recorder.exits) == 1
        assert recorder.exits[0][0] == session.terminal_id
        assert session.state is TerminalState.DISPOSED
        assert len(registry) == 0
    finally:
        registry.dispose_all()
