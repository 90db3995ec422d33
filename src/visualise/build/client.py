"""Gemini ``generateContent`` client with exponential backoff."""

from __future__ import annotations

import json
import logging as py_logging
import time
from collections.abc import Callable
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from visualise.config import AppConfig
from visualise.errors import ExitCode, VisualiseError
from visualise.logging import redact_secret
from visualise.retry import RecoverableError, RetryPolicy, run_with_retry

logger = py_logging.getLogger(__name__)

HttpResponse = tuple[int, str]


class HttpRequester(Protocol):
    def __call__(self, url: str, body: bytes, headers: dict[str, str], timeout: float) -> HttpResponse: ...


class TransientUpstreamError(RecoverableError):
    def __init__(self, message: str, *, status: int | None = None, payload: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload


def _default_requester(url: str, body: bytes, headers: dict[str, str], timeout: float) -> HttpResponse:
    request = Request(url, data=body, headers=headers, method="POST")
    try:
        with urlopen(request, timeout=timeout) as response:  # nosec B310
            status = int(getattr(response, "status", response.getcode()))
            return status, response.read().decode("utf-8", errors="replace")
    except HTTPError as exc:
        payload = ""
        if exc.fp is not None:
            payload = exc.read().decode("utf-8", errors="replace")
        return exc.code, payload


def extract_text(payload: str) -> str:
    """Join every text part of every candidate in a ``generateContent`` reply."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise VisualiseError(
            "Generation endpoint returned invalid JSON.",
            code=ExitCode.UPSTREAM_ERROR,
            hint="Retry the build in a moment.",
        ) from exc
    texts: list[str] = []
    candidates = data.get("candidates") if isinstance(data, dict) else None
    for candidate in candidates or []:
        if not isinstance(candidate, dict):
            continue
        content = candidate.get("content")
        if not isinstance(content, dict):
            continue
        for part in content.get("parts") or []:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                texts.append(part["text"])
    return "\n".join(texts).strip()


class GenerationClient:
    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        requester: HttpRequester | None = None,
        sleep: Callable[[float], None] = time.sleep,
        policy: RetryPolicy | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self._requester = requester or _default_requester
        self._sleep = sleep
        self.policy = policy or RetryPolicy(
            max_retries=self.config.retry_max_retries,
            initial_backoff_seconds=self.config.retry_initial_backoff_seconds,
        )

    def endpoint(self) -> str:
        base = self.config.gemini_api_base.rstrip("/")
        model = quote(self.config.gemini_model, safe="")
        key = quote(self.config.gemini_api_key, safe="")
        return f"{base}/{model}:generateContent?key={key}"

    def generate(self, prompt: str) -> str:
        if not self.config.gemini_api_key.strip():
            raise VisualiseError(
                "Missing GEMINI_API_KEY in environment.",
                code=ExitCode.CONFIG_ERROR,
                hint="Export GEMINI_API_KEY or set gemini_api_key in the config file.",
            )

        url = self.endpoint()
        body = json.dumps({"contents": [{"parts": [{"text": prompt}]}]}).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        log_url = redact_secret(url, self.config.gemini_api_key)

        def attempt() -> str:
            try:
                status, payload = self._requester(url, body, headers, self.config.request_timeout_seconds)
            except (URLError, OSError) as exc:
                reason = getattr(exc, "reason", exc)
                raise TransientUpstreamError(f"network error: {reason}") from exc
            if status >= 500:
                raise TransientUpstreamError(f"HTTP {status}", status=status, payload=payload)
            if status < 200 or status >= 300:
                logger.error("Generation request rejected url=%s status=%s", log_url, status)
                raise VisualiseError(
                    f"Gemini error {status}.",
                    code=ExitCode.UPSTREAM_ERROR,
                    hint=payload.strip()[:500] or "Check the API key and model name.",
                )
            return payload

        logger.info("Generation request url=%s prompt_chars=%s", log_url, len(prompt))
        try:
            payload = run_with_retry(attempt, policy=self.policy, sleep=self._sleep, label="gemini")
        except TransientUpstreamError as exc:
            logger.error("Generation request failed after retries url=%s error=%s", log_url, exc)
            raise VisualiseError(
                f"Generation endpoint unavailable ({exc}).",
                code=ExitCode.UPSTREAM_ERROR,
                hint=exc.payload.strip()[:500] or "Retry the build in a moment.",
            ) from exc
        return extract_text(payload)
