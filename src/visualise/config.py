"""XDG config loading with environment overrides."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

DEFAULT_CONFIG_PATH = Path("~/.config/visualise/config.toml").expanduser()
DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_DEV_SERVER_PORTS = [3000, 5173, 4173, 8080, 8000, 4200]
DEFAULT_PREVIEW_PORTS = [3000, 3001, 3002, 3003, 3004, 3005, 3006, 3007, 3008, 3009, 4000, 5000, 8000, 8080, 9000]

GEMINI_API_KEY_ENV = "GEMINI_API_KEY"
GEMINI_MODEL_ENV = "GEMINI_MODEL"
SKIP_PROBE_PORTS_ENV = "VISUALISE_SKIP_PROBE_PORTS"

_MIN_PORT = 1024
_MAX_PORT = 65535


def normalize_model_name(value: str) -> str:
    cleaned = value.strip()
    if cleaned.lower().startswith("models/"):
        cleaned = cleaned[len("models/") :]
    return cleaned or DEFAULT_GEMINI_MODEL


def _validate_ports(values: list[int]) -> list[int]:
    seen: set[int] = set()
    ordered: list[int] = []
    for port in values:
        if port < _MIN_PORT or port > _MAX_PORT:
            raise ValueError(f"Port out of range: {port}")
        if port in seen:
            continue
        seen.add(port)
        ordered.append(port)
    return ordered


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_api_base: str = DEFAULT_GEMINI_API_BASE
    request_timeout_seconds: float = Field(default=120.0, gt=0)
    retry_max_retries: int = Field(default=3, ge=0, le=10)
    retry_initial_backoff_seconds: float = Field(default=1.0, ge=0)

    dev_server_ports: list[int] = Field(default_factory=lambda: list(DEFAULT_DEV_SERVER_PORTS))
    preview_ports: list[int] = Field(default_factory=lambda: list(DEFAULT_PREVIEW_PORTS))
    skip_probe_ports: list[int] = Field(default_factory=list)
    preview_host: str = "127.0.0.1"
    probe_timeout_seconds: float = Field(default=0.8, gt=0)
    dev_server_timeout_seconds: float = Field(default=20.0, gt=0)
    dev_server_poll_interval_seconds: float = Field(default=1.0, gt=0)
    reuse_timeout_seconds: float = Field(default=5.0, gt=0)
    reuse_poll_interval_seconds: float = Field(default=0.5, gt=0)

    terminal_shell: str = ""
    terminal_channel_size: int = Field(default=256, ge=1)

    components_dir: str = "componentAI"
    settings_file: str = ".visualise-settings.json"
    sentinel_file: str = "build-output.txt"
    log_level: str = "INFO"

    @field_validator("dev_server_ports", "preview_ports")
    @classmethod
    def _validate_port_list(cls, value: list[int]) -> list[int]:
        ports = _validate_ports(value)
        if not ports:
            raise ValueError("Port list cannot be empty")
        return ports

    @field_validator("gemini_model")
    @classmethod
    def _normalize_model(cls, value: str) -> str:
        return normalize_model_name(value)

    @field_validator("components_dir", "settings_file", "sentinel_file")
    @classmethod
    def _validate_relative_name(cls, value: str) -> str:
        cleaned = value.strip().strip("/\\")
        if not cleaned or ".." in Path(cleaned).parts:
            raise ValueError(f"Invalid project-relative name: {value}")
        return cleaned


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _parse_port_csv(raw: str) -> list[int]:
    ports: list[int] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if chunk.isdigit():
            ports.append(int(chunk))
    return ports


def _sanitize(raw: dict[str, object]) -> AppConfig:
    cfg = AppConfig()
    for name in AppConfig.model_fields:
        if name not in raw:
            continue
        try:
            setattr(cfg, name, raw[name])
        except ValidationError:
            # Invalid entries keep their defaults.
            continue
    return cfg


def apply_env_overrides(cfg: AppConfig, env: dict[str, str] | None = None) -> AppConfig:
    source = os.environ if env is None else env
    api_key = source.get(GEMINI_API_KEY_ENV, "").strip()
    if api_key:
        cfg.gemini_api_key = api_key
    model = source.get(GEMINI_MODEL_ENV, "").strip()
    if model:
        cfg.gemini_model = model
    skip = source.get(SKIP_PROBE_PORTS_ENV, "").strip()
    if skip:
        cfg.skip_probe_ports = _parse_port_csv(skip)
    return cfg


def load_config(path: str | Path | None = None, *, env: dict[str, str] | None = None) -> AppConfig:
    resolved = get_config_path(path)
    cfg = AppConfig()
    if resolved.exists():
        try:
            with resolved.open("rb") as handle:
                raw = tomllib.load(handle)
        except (tomllib.TOMLDecodeError, OSError):
            raw = {}
        if isinstance(raw, dict):
            cfg = _sanitize(raw)
    return apply_env_overrides(cfg, env)
