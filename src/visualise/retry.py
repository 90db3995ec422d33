"""Retry/backoff helpers for transient upstream failures."""

from __future__ import annotations

import logging as py_logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

logger = py_logging.getLogger(__name__)


class RecoverableError(Exception):
    """Transient failure that can be retried."""


class FatalError(Exception):
    """Non-recoverable failure that should stop immediately."""


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff budget.

    ``max_retries`` counts the calls made *after* the first one, so the
    operation runs at most ``max_retries + 1`` times.
    """

    max_retries: int = 3
    initial_backoff_seconds: float = 1.0
    multiplier: float = 2.0

    def delays(self) -> list[float]:
        backoff = self.initial_backoff_seconds
        values: list[float] = []
        for _ in range(max(0, self.max_retries)):
            values.append(backoff)
            backoff *= self.multiplier
        return values


def run_with_retry(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "operation",
) -> T:
    last_error: RecoverableError | None = None
    delays = policy.delays()

    for attempt in range(len(delays) + 1):
        try:
            return operation()
        except FatalError:
            raise
        except RecoverableError as exc:
            last_error = exc
            if attempt >= len(delays):
                break
            backoff = delays[attempt]
            logger.warning(
                "retry label=%s attempt=%s backoff=%.2fs retries_left=%s reason=%s",
                label,
                attempt + 1,
                backoff,
                len(delays) - attempt,
                exc,
            )
            sleep(backoff)

    if last_error is not None:
        raise last_error
    raise RuntimeError("Retry policy exhausted without executing operation.")
