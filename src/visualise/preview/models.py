"""Preview domain models."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from visualise.preview.server import StaticPreviewServer


class SourceKind(str, Enum):
    STATIC_BUILD_OUTPUT = "static-build-output"
    STATIC_ROOT_INDEX = "static-root-index"
    RAW_FOLDER = "raw-folder"
    EXTERNAL_DEV_SERVER = "external-dev-server"
    SUPERVISED_DEV_SERVER = "supervised-dev-server"

    @property
    def is_dev_server(self) -> bool:
        return self in {SourceKind.EXTERNAL_DEV_SERVER, SourceKind.SUPERVISED_DEV_SERVER}


@dataclass(frozen=True)
class ProbeResult:
    port: int
    url: str
    ok: bool
    status: int | None = None


@dataclass
class SupervisedProcess:
    process: subprocess.Popen[bytes]
    working_directory: Path
    script_name: str
    started_by_app: bool = True

    @property
    def pid(self) -> int:
        return self.process.pid

    def is_alive(self) -> bool:
        return self.process.poll() is None


@dataclass(frozen=True)
class PreviewPlan:
    """Outcome of one resolver strategy.

    Static plans carry a ``served_root`` directory and, when SPA fallback is
    wanted, the ``index_path`` to answer unmatched HTML requests with. Dev
    server plans carry the live ``url`` and need no listener.
    """

    source_kind: SourceKind
    served_root: str
    index_path: Path | None = None
    url: str = ""
    port: int = 0
    started_script: str = ""
    reused_dev_process: bool = False


@dataclass
class PreviewSession:
    source_kind: SourceKind
    served_root: str
    port: int
    spa_fallback_enabled: bool = False
    listener: StaticPreviewServer | None = None
    started_script: str = ""
    reused_dev_process: bool = False

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}"
