"""Registry of live pseudo-terminal sessions.

Each session owns two threads. The reader blocks on the PTY and pushes
``data`` events, followed by exactly one ``exit`` event, onto a bounded
channel. The forwarder drains the channel and delivers events to the
subscriber, so a slow subscriber applies backpressure to its own reader only.
"""

from __future__ import annotations

import atexit
import itertools
import logging as py_logging
import queue
import threading
import weakref
from pathlib import Path
from typing import Any

from visualise.config import AppConfig
from visualise.errors import ExitCode, VisualiseError
from visualise.terminal import pty_backend
from visualise.terminal.models import TerminalEvent, TerminalSession, TerminalState, TerminalSubscriber
from visualise.terminal.pty_backend import PtySpawn, spawn_pty

logger = py_logging.getLogger(__name__)

_LIVE_REGISTRIES: weakref.WeakSet[TerminalRegistry] = weakref.WeakSet()


@atexit.register
def _dispose_live_registries() -> None:
    for registry in list(_LIVE_REGISTRIES):
        registry.dispose_all()


class TerminalRegistry:
    def __init__(self, config: AppConfig | None = None, *, spawn: PtySpawn = spawn_pty) -> None:
        self.config = config or AppConfig()
        self._spawn = spawn
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._sessions: dict[int, TerminalSession] = {}
        _LIVE_REGISTRIES.add(self)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get(self, terminal_id: int) -> TerminalSession | None:
        with self._lock:
            return self._sessions.get(terminal_id)

    def ids(self) -> list[int]:
        with self._lock:
            return sorted(self._sessions)

    def create(
        self,
        subscriber: TerminalSubscriber,
        cwd: str | Path | None = None,
        cols: int = 80,
        rows: int = 24,
    ) -> TerminalSession:
        if cols <= 0 or rows <= 0:
            raise VisualiseError(
                f"Invalid terminal size: {cols}x{rows}",
                code=ExitCode.VALIDATION_ERROR,
                hint="Use positive column and row counts.",
            )
        with self._lock:
            terminal_id = next(self._ids)

        command = pty_backend.build_shell_command(self.config.terminal_shell)
        working_directory = pty_backend.default_cwd(cwd)
        process = self._spawn(command, working_directory, pty_backend.build_terminal_env(), cols, rows)

        session = TerminalSession(
            terminal_id=terminal_id,
            process=process,
            subscriber=weakref.ref(subscriber),
            channel=queue.Queue(maxsize=self.config.terminal_channel_size),
            cwd=working_directory,
        )
        reader = threading.Thread(
            target=self._read_loop, args=(session,), name=f"terminal-{terminal_id}-reader", daemon=True
        )
        forwarder = threading.Thread(
            target=self._forward_loop, args=(session,), name=f"terminal-{terminal_id}-forwarder", daemon=True
        )
        session.threads.extend([reader, forwarder])
        with self._lock:
            self._sessions[terminal_id] = session
        session.state = TerminalState.RUNNING
        forwarder.start()
        reader.start()
        logger.info(
            "Terminal created id=%s cwd=%s command=%s size=%sx%s",
            terminal_id,
            working_directory,
            command[0],
            cols,
            rows,
        )
        return session

    def write(self, terminal_id: int, data: str) -> None:
        session = self.get(terminal_id)
        if session is None:
            return
        try:
            session.process.write(data)
        except (OSError, EOFError, ValueError) as exc:
            logger.debug("Dropped terminal write id=%s error=%s", terminal_id, exc)

    def resize(self, terminal_id: int, cols: int, rows: int) -> None:
        session = self.get(terminal_id)
        if session is None:
            return
        if cols <= 0 or rows <= 0:
            logger.warning("Ignoring invalid terminal size id=%s size=%sx%s", terminal_id, cols, rows)
            return
        try:
            session.process.setwinsize(rows, cols)
        except (OSError, ValueError) as exc:
            logger.warning("Terminal resize failed id=%s error=%s", terminal_id, exc)

    def dispose(self, terminal_id: int) -> None:
        with self._lock:
            session = self._sessions.pop(terminal_id, None)
        if session is None:
            return
        session.state = TerminalState.DISPOSED
        pty_backend.terminate(session.process)
        logger.info("Terminal disposed id=%s", terminal_id)

    def dispose_all(self) -> None:
        for terminal_id in self.ids():
            self.dispose(terminal_id)

    def _read_loop(self, session: TerminalSession) -> None:
        while True:
            try:
                chunk = pty_backend.read_chunk(session.process)
            except (EOFError, OSError, ValueError):
                break
            if chunk:
                session.channel.put(TerminalEvent.output(chunk))

        with self._lock:
            if self._sessions.get(session.terminal_id) is session:
                del self._sessions[session.terminal_id]
        if session.state != TerminalState.DISPOSED:
            session.state = TerminalState.EXITED
        exit_code, signal = pty_backend.exit_status(session.process)
        logger.info("Terminal exited id=%s code=%s signal=%s", session.terminal_id, exit_code, signal)
        session.channel.put(TerminalEvent.exited(exit_code, signal))

    def _forward_loop(self, session: TerminalSession) -> None:
        while True:
            event = session.channel.get()
            subscriber = session.subscriber_or_none()
            if subscriber is not None:
                self._deliver(subscriber, session.terminal_id, event)
            if event.is_exit:
                return

    @staticmethod
    def _deliver(subscriber: Any, terminal_id: int, event: TerminalEvent) -> None:
        try:
            if event.is_exit:
                subscriber.on_exit(terminal_id, event.exit_code, event.signal)
            else:
                subscriber.on_data(terminal_id, event.data)
        except Exception:
            logger.exception("Terminal subscriber failed id=%s event=%s", terminal_id, event.kind)
