"""Decide how a project folder is previewed and own the resulting session."""

from __future__ import annotations

import logging as py_logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from visualise.config import AppConfig
from visualise.errors import ExitCode, VisualiseError
from visualise.preview.models import PreviewPlan, PreviewSession, ProbeResult, SourceKind, SupervisedProcess
from visualise.preview.probe import PortProber, find_running_server, probe_port
from visualise.preview.server import StaticPreviewServer, bind_preview_server
from visualise.preview.supervisor import ProcessSupervisor
from visualise.project import read_project_descriptor

logger = py_logging.getLogger(__name__)

BUILD_OUTPUT_DIRS = ("dist", "build", "public")
INDEX_FILE = "index.html"


class Supervisor(Protocol):
    @property
    def current(self) -> SupervisedProcess | None: ...

    def is_running(self, working_directory: Path | None = None) -> bool: ...

    def spawn(self, working_directory: Path, script: str) -> SupervisedProcess: ...

    def stop(self) -> bool: ...


class ServerBinder(Protocol):
    def __call__(
        self,
        root: Path,
        *,
        ports: list[int],
        index_path: Path | None = None,
        host: str = ...,
    ) -> StaticPreviewServer: ...


Resolver = Callable[[Path], PreviewPlan | None]


class PreviewOrchestrator:
    """Single owner of the preview listener and the supervised dev process.

    Resolution runs an ordered list of strategies; the first one returning a
    plan wins. ``start_preview`` and ``stop_preview`` are serialized, and a
    new start tears the previous session down before anything is bound.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        prober: PortProber = probe_port,
        supervisor: Supervisor | None = None,
        server_binder: ServerBinder = bind_preview_server,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or AppConfig()
        self._prober = prober
        self._supervisor: Supervisor = supervisor or ProcessSupervisor()
        self._bind = server_binder
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.RLock()
        self._session: PreviewSession | None = None
        self.resolvers: list[Resolver] = [
            self._resolve_build_output,
            self._resolve_root_index,
            self._resolve_dev_server,
            self._resolve_raw_folder,
        ]

    @property
    def session(self) -> PreviewSession | None:
        return self._session

    @property
    def supervisor(self) -> Supervisor:
        return self._supervisor

    def start_preview(self, project_root: str | Path) -> PreviewSession:
        root = Path(project_root).expanduser().resolve()
        if not root.is_dir():
            raise VisualiseError(
                f"Project folder not found: {root}",
                code=ExitCode.VALIDATION_ERROR,
                hint="Open an existing project folder before starting a preview.",
            )

        with self._lock:
            self._teardown(keep_process_for=root)
            try:
                plan = self.resolve(root)
                if plan.source_kind is not SourceKind.SUPERVISED_DEV_SERVER:
                    self._release_dev_process()
                session = self._open_session(plan)
            except Exception:
                self._release_dev_process()
                raise
            self._session = session
            logger.info(
                "Preview ready root=%s kind=%s url=%s served_from=%s",
                root,
                session.source_kind.value,
                session.url,
                session.served_root,
            )
            return session

    def _open_session(self, plan: PreviewPlan) -> PreviewSession:
        if plan.source_kind.is_dev_server:
            return PreviewSession(
                source_kind=plan.source_kind,
                served_root=plan.url,
                port=plan.port,
                started_script=plan.started_script,
                reused_dev_process=plan.reused_dev_process,
            )
        listener = self._bind(
            Path(plan.served_root),
            ports=list(self.config.preview_ports),
            index_path=plan.index_path,
            host=self.config.preview_host,
        )
        return PreviewSession(
            source_kind=plan.source_kind,
            served_root=plan.served_root,
            port=listener.port,
            spa_fallback_enabled=plan.index_path is not None,
            listener=listener,
        )

    def _release_dev_process(self) -> None:
        current = self._supervisor.current
        if current is None:
            return
        logger.info("Stopping unused dev process pid=%s root=%s", current.pid, current.working_directory)
        self._supervisor.stop()

    def stop_preview(self) -> None:
        # Killing the process first releases a start_preview blocked on it.
        self._supervisor.stop()
        with self._lock:
            self._teardown(keep_process_for=None)

    def resolve(self, root: Path) -> PreviewPlan:
        for resolver in self.resolvers:
            plan = resolver(root)
            if plan is not None:
                logger.debug("Preview resolver matched resolver=%s kind=%s", resolver.__name__, plan.source_kind.value)
                return plan
        raise VisualiseError(
            f"No preview strategy applies to {root}.",
            code=ExitCode.RUNTIME_ERROR,
        )

    def _teardown(self, *, keep_process_for: Path | None) -> None:
        session = self._session
        self._session = None
        if session is not None and session.listener is not None:
            session.listener.close()
        current = self._supervisor.current
        if current is None:
            return
        if keep_process_for is not None and current.working_directory == keep_process_for:
            logger.debug("Keeping dev process for reuse pid=%s root=%s", current.pid, keep_process_for)
            return
        self._supervisor.stop()

    def _resolve_build_output(self, root: Path) -> PreviewPlan | None:
        for dir_name in BUILD_OUTPUT_DIRS:
            index_path = root / dir_name / INDEX_FILE
            if index_path.is_file():
                return PreviewPlan(
                    source_kind=SourceKind.STATIC_BUILD_OUTPUT,
                    served_root=str(index_path.parent),
                    index_path=index_path,
                )
        return None

    def _resolve_root_index(self, root: Path) -> PreviewPlan | None:
        if (root / INDEX_FILE).is_file():
            return PreviewPlan(source_kind=SourceKind.STATIC_ROOT_INDEX, served_root=str(root))
        return None

    def _resolve_raw_folder(self, root: Path) -> PreviewPlan | None:
        return PreviewPlan(source_kind=SourceKind.RAW_FOLDER, served_root=str(root))

    def _resolve_dev_server(self, root: Path) -> PreviewPlan | None:
        descriptor = read_project_descriptor(root)
        script = descriptor.preferred_launch_script() if descriptor else None
        if script is None:
            return None

        if self._supervisor.is_running(root):
            reused = self._wait_for_dev_server(
                self.config.reuse_timeout_seconds,
                self.config.reuse_poll_interval_seconds,
            )
            if reused is not None:
                return _dev_plan(SourceKind.SUPERVISED_DEV_SERVER, reused, script, reused_dev_process=True)

        running = self._find_dev_server()
        if running is not None:
            return _dev_plan(SourceKind.EXTERNAL_DEV_SERVER, running, "")

        supervised = self._supervisor.spawn(root, script)
        awaited = self._wait_for_dev_server(
            self.config.dev_server_timeout_seconds,
            self.config.dev_server_poll_interval_seconds,
            watch=supervised,
        )
        if awaited is not None:
            return _dev_plan(SourceKind.SUPERVISED_DEV_SERVER, awaited, script)

        exited = not supervised.is_alive()
        self._supervisor.stop()
        ports = ", ".join(str(port) for port in self._probe_ports())
        if exited:
            message = f"'npm run {script}' exited before a dev server responded."
        else:
            message = f"Started 'npm run {script}' but no dev server responded on ports {ports}."
        logger.warning("Dev server not ready root=%s script=%s exited=%s", root, script, exited)
        raise VisualiseError(
            message,
            code=ExitCode.RUNTIME_NOT_READY,
            hint="Check the script output in your project and make sure its dependencies are installed.",
        )

    def _probe_ports(self) -> list[int]:
        skipped = set(self.config.skip_probe_ports)
        return [port for port in self.config.dev_server_ports if port not in skipped]

    def _find_dev_server(self) -> ProbeResult | None:
        return find_running_server(
            self._probe_ports(),
            prober=self._prober,
            timeout=self.config.probe_timeout_seconds,
        )

    def _wait_for_dev_server(
        self,
        timeout: float,
        interval: float,
        *,
        watch: SupervisedProcess | None = None,
    ) -> ProbeResult | None:
        deadline = self._clock() + timeout
        while self._clock() < deadline:
            if watch is not None and not watch.is_alive():
                return None
            found = self._find_dev_server()
            if found is not None:
                return found
            self._sleep(interval)
        return None


def _dev_plan(kind: SourceKind, probe: ProbeResult, script: str, *, reused_dev_process: bool = False) -> PreviewPlan:
    return PreviewPlan(
        source_kind=kind,
        served_root=probe.url,
        url=probe.url,
        port=probe.port,
        started_script=script,
        reused_dev_process=reused_dev_process,
    )
