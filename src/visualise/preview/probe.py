"""Bounded-timeout HTTP liveness probes for local dev-server ports."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Iterable
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from visualise.preview.models import ProbeResult

logger = py_logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_SECONDS = 0.8


class PortProber(Protocol):
    def __call__(self, port: int, *, timeout: float = ...) -> ProbeResult: ...


def probe_url(port: int) -> str:
    return f"http://localhost:{port}"


def probe_port(port: int, *, timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS) -> ProbeResult:
    """GET ``http://localhost:<port>``; any 2xx/3xx answer counts as live."""
    url = probe_url(port)
    request = Request(url, method="GET")
    try:
        with urlopen(request, timeout=timeout) as response:  # nosec B310
            status = int(getattr(response, "status", response.getcode()))
    except HTTPError as exc:
        exc.close()
        return ProbeResult(port=port, url=url, ok=False, status=exc.code)
    except (URLError, OSError, ValueError):
        return ProbeResult(port=port, url=url, ok=False)
    return ProbeResult(port=port, url=url, ok=200 <= status < 400, status=status)


def find_running_server(
    ports: Iterable[int],
    *,
    prober: PortProber = probe_port,
    timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    skip_ports: Iterable[int] = (),
) -> ProbeResult | None:
    skipped = set(skip_ports)
    for port in ports:
        if port in skipped:
            continue
        result = prober(port, timeout=timeout)
        if result.ok:
            logger.info("Found running dev server url=%s status=%s", result.url, result.status or "unknown")
            return result
    return None
