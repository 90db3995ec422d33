"""Static preview listener with optional SPA fallback routing."""

from __future__ import annotations

import logging as py_logging
import threading
from collections.abc import Iterable
from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

from visualise.errors import ExitCode, VisualiseError

logger = py_logging.getLogger(__name__)

_INDEX_NAMES = ("index.html", "index.htm")


class PreviewRequestHandler(SimpleHTTPRequestHandler):
    """Serves ``directory``; unmatched HTML GETs fall back to ``index_path``."""

    def __init__(self, *args: object, directory: str, index_path: Path | None = None, **kwargs: object) -> None:
        self.index_path = index_path
        super().__init__(*args, directory=directory, **kwargs)  # type: ignore[arg-type]

    def log_message(self, format: str, *args: object) -> None:
        logger.debug("preview-request client=%s %s", self.address_string(), format % args)

    def end_headers(self) -> None:
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def do_GET(self) -> None:
        if self._should_fallback():
            self._send_index(include_body=True)
            return
        super().do_GET()

    def do_HEAD(self) -> None:
        if self._should_fallback():
            self._send_index(include_body=False)
            return
        super().do_HEAD()

    def _should_fallback(self) -> bool:
        if self.index_path is None:
            return False
        target = Path(self.translate_path(self.path))
        if target.is_file():
            return False
        if target.is_dir() and any((target / name).is_file() for name in _INDEX_NAMES):
            return False
        accept = self.headers.get("Accept", "")
        return not accept or "text/html" in accept

    def _send_index(self, *, include_body: bool) -> None:
        if self.index_path is None:
            self.send_error(404, "File not found")
            return
        try:
            body = self.index_path.read_bytes()
        except OSError:
            self.send_error(404, "Index document missing")
            return
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if include_body:
            self.wfile.write(body)


class _PreviewHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_port = False

    def handle_error(self, request: object, client_address: object) -> None:
        logger.debug("Preview client error client=%s", client_address, exc_info=True)


class StaticPreviewServer:
    """Bound listener plus its serving thread. Owned by the orchestrator."""

    def __init__(self, httpd: ThreadingHTTPServer, *, root: Path, index_path: Path | None) -> None:
        self._httpd = httpd
        self.root = root
        self.index_path = index_path
        self._thread = threading.Thread(
            target=httpd.serve_forever,
            kwargs={"poll_interval": 0.2},
            name=f"preview-{self.port}",
            daemon=True,
        )
        self._closed = False
        self._thread.start()

    @property
    def port(self) -> int:
        return int(self._httpd.server_address[1])

    @property
    def spa_fallback(self) -> bool:
        return self.index_path is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._httpd.shutdown()
        self._httpd.server_close()
        self._thread.join(timeout=5)
        logger.info("Preview listener stopped port=%s", self.port)


def bind_preview_server(
    root: Path,
    *,
    ports: Iterable[int],
    index_path: Path | None = None,
    host: str = "127.0.0.1",
) -> StaticPreviewServer:
    """Bind the first free port in ``ports`` and start serving ``root``."""
    handler = partial(PreviewRequestHandler, directory=str(root), index_path=index_path)
    tried: list[int] = []
    for port in ports:
        tried.append(port)
        try:
            httpd = _PreviewHTTPServer((host, port), handler)
        except OSError as exc:
            logger.debug("Preview port unavailable port=%s error=%s", port, exc)
            continue
        server = StaticPreviewServer(httpd, root=root, index_path=index_path)
        logger.info(
            "Preview listener started port=%s root=%s spa_fallback=%s",
            server.port,
            root,
            server.spa_fallback,
        )
        return server

    raise VisualiseError(
        "No free port available for the preview listener.",
        code=ExitCode.RESOURCE_BUSY,
        hint=f"Tried ports: {', '.join(str(port) for port in tried) or 'none'}. Free one of them and retry.",
    )
