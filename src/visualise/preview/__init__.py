"""Project preview: static serving, dev-server discovery and supervision."""

from .models import PreviewPlan, PreviewSession, ProbeResult, SourceKind, SupervisedProcess
from .orchestrator import PreviewOrchestrator
from .probe import find_running_server, probe_port
from .server import StaticPreviewServer, bind_preview_server
from .supervisor import ProcessSupervisor

__all__ = [
    "bind_preview_server",
    "find_running_server",
    "PreviewOrchestrator",
    "PreviewPlan",
    "PreviewSession",
    "ProbeResult",
    "probe_port",
    "ProcessSupervisor",
    "SourceKind",
    "StaticPreviewServer",
    "SupervisedProcess",
]
