"""Pseudo-terminal sessions streamed to subscribers."""

from .models import TerminalEvent, TerminalSession, TerminalState, TerminalSubscriber
from .pty_backend import build_shell_command, spawn_pty
from .registry import TerminalRegistry

__all__ = [
    "build_shell_command",
    "spawn_pty",
    "TerminalEvent",
    "TerminalRegistry",
    "TerminalSession",
    "TerminalState",
    "TerminalSubscriber",
]
