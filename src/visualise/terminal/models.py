"""Terminal session domain models."""

from __future__ import annotations

import queue
import threading
import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class TerminalState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"
    DISPOSED = "disposed"


class TerminalSubscriber(Protocol):
    def on_data(self, terminal_id: int, data: str) -> None: ...

    def on_exit(self, terminal_id: int, exit_code: int | None, signal: int | None) -> None: ...


@dataclass(frozen=True)
class TerminalEvent:
    kind: str
    data: str = ""
    exit_code: int | None = None
    signal: int | None = None

    @classmethod
    def output(cls, data: str) -> TerminalEvent:
        return cls(kind="data", data=data)

    @classmethod
    def exited(cls, exit_code: int | None, signal: int | None) -> TerminalEvent:
        return cls(kind="exit", exit_code=exit_code, signal=signal)

    @property
    def is_exit(self) -> bool:
        return self.kind == "exit"


@dataclass
class TerminalSession:
    terminal_id: int
    process: Any
    subscriber: weakref.ReferenceType[Any]
    channel: queue.Queue[TerminalEvent]
    cwd: str = ""
    state: TerminalState = TerminalState.STARTING
    threads: list[threading.Thread] = field(default_factory=list)

    def subscriber_or_none(self) -> Any | None:
        return self.subscriber()
