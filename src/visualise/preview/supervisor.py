"""Supervision of the single project dev-server process this app launches."""

from __future__ import annotations

import logging as py_logging
import os
import signal
import subprocess
import sys
import threading
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path
from typing import IO

from visualise.errors import ExitCode, VisualiseError
from visualise.preview.models import SupervisedProcess

logger = py_logging.getLogger(__name__)
dev_logger = py_logging.getLogger("visualise.preview.dev")

PopenFactory = Callable[..., subprocess.Popen[bytes]]

_TERMINATE_GRACE_SECONDS = 5.0


def npm_command() -> str:
    return "npm.cmd" if sys.platform == "win32" else "npm"


def build_script_command(script: str) -> list[str]:
    return [npm_command(), "run", script]


def _process_group_kwargs() -> dict[str, object]:
    if sys.platform == "win32":
        return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}
    return {"start_new_session": True}


class ProcessSupervisor:
    """Owns at most one dev process; only processes it started are ever killed."""

    def __init__(self, *, popen: PopenFactory = subprocess.Popen) -> None:
        self._popen = popen
        self._lock = threading.RLock()
        self._current: SupervisedProcess | None = None

    @property
    def current(self) -> SupervisedProcess | None:
        with self._lock:
            return self._current

    def is_running(self, working_directory: Path | None = None) -> bool:
        with self._lock:
            current = self._current
        if current is None or not current.is_alive():
            return False
        if working_directory is None:
            return True
        return current.working_directory == working_directory

    def spawn(self, working_directory: Path, script: str) -> SupervisedProcess:
        self.stop()
        command = build_script_command(script)
        env = dict(os.environ)
        env["BROWSER"] = "none"
        logger.info("Starting dev script cwd=%s command=%s", working_directory, " ".join(command))
        try:
            process = self._popen(
                command,
                cwd=str(working_directory),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                **_process_group_kwargs(),
            )
        except OSError as exc:
            logger.error("Failed to start dev script cwd=%s script=%s error=%s", working_directory, script, exc)
            raise VisualiseError(
                f"Could not run 'npm run {script}'.",
                code=ExitCode.RUNTIME_NOT_READY,
                hint=str(exc) or "Install Node.js and npm, then retry the preview.",
            ) from exc

        supervised = SupervisedProcess(
            process=process,
            working_directory=working_directory,
            script_name=script,
            started_by_app=True,
        )
        with self._lock:
            self._current = supervised

        self._forward(process.stdout, py_logging.INFO, script)
        self._forward(process.stderr, py_logging.WARNING, script)
        threading.Thread(
            target=self._watch_exit,
            args=(supervised,),
            name=f"dev-exit-{process.pid}",
            daemon=True,
        ).start()
        return supervised

    def stop(self) -> bool:
        """Terminate the supervised process if this app started it. Idempotent."""
        with self._lock:
            current = self._current
            self._current = None
        if current is None:
            return False
        if not current.started_by_app:
            logger.debug("Leaving detected process alone pid=%s", current.pid)
            return False
        if current.is_alive():
            logger.info("Stopping dev script pid=%s script=%s", current.pid, current.script_name)
            _terminate(current.process)
        return True

    def _forward(self, stream: IO[bytes] | None, level: int, script: str) -> None:
        if stream is None:
            return

        def _pump() -> None:
            with suppress(ValueError, OSError):
                for raw in iter(stream.readline, b""):
                    line = raw.decode("utf-8", errors="replace").rstrip()
                    if line:
                        dev_logger.log(level, "[%s] %s", script, line)
            with suppress(OSError):
                stream.close()

        threading.Thread(target=_pump, name=f"dev-output-{script}", daemon=True).start()

    def _watch_exit(self, supervised: SupervisedProcess) -> None:
        returncode = supervised.process.wait()
        logger.info("Dev script exited pid=%s code=%s", supervised.pid, returncode)
        with self._lock:
            if self._current is supervised:
                self._current = None


def _terminate(process: subprocess.Popen[bytes]) -> None:
    try:
        if sys.platform == "win32":
            process.terminate()
        else:
            os.killpg(os.getpgid(process.pid), signal.SIGTERM)
    except (ProcessLookupError, PermissionError, OSError):
        with suppress(OSError):
            process.terminate()
    try:
        process.wait(timeout=_TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning("Dev script ignored SIGTERM; killing pid=%s", process.pid)
        with suppress(OSError):
            process.kill()
        with suppress(subprocess.TimeoutExpired):
            process.wait(timeout=_TERMINATE_GRACE_SECONDS)
