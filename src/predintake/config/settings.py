"""TOML config loading, profiles and environment overrides."""

from __future__ import annotations

import logging
import os
import sys
import tomllib
from pathlib import Path
from typing import Any, TextIO

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"

CONFIG_DIR_ENV = "PREDINTAKE_CONFIG_DIR"
PROFILE_ENV = "PREDINTAKE_PROFILE"

# Environment variable -> (section, key); applied after the profile overlay.
ENV_OVERRIDES = {
    "INTAKE_API_BASE": ("intake", "api_base"),
    "INTAKE_DB_PATH": ("storage", "db_path"),
    "INTAKE_PUSH_WS_URL": ("push", "ws_url"),
    "INTAKE_LOG_LEVEL": ("logging", "level"),
}


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir(config_dir: Path | None = None) -> Path:
    if config_dir is not None:
        return Path(config_dir)
    if os.environ.get(CONFIG_DIR_ENV):
        return Path(os.environ[CONFIG_DIR_ENV])
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def _env_overlay(environ: dict[str, str]) -> dict[str, Any]:
    overlay: dict[str, Any] = {}
    for var, (section, key) in ENV_OVERRIDES.items():
        if environ.get(var):
            overlay.setdefault(section, {})[key] = environ[var]
    return overlay


def load_config(
    profile: str | None = None,
    config_dir: Path | None = None,
    environ: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Merge default.toml, the profile overlay, then INTAKE_* environment overrides."""
    env = dict(os.environ) if environ is None else environ
    config_dir = _find_config_dir(config_dir)
    default_path = config_dir / "default.toml"
    base = _load_toml(default_path) if default_path.exists() else {}
    profile = profile or env.get(PROFILE_ENV)
    if profile:
        profile_path = config_dir / f"{profile}.toml"
        if profile_path.exists():
            base = _deep_merge(base, _load_toml(profile_path))
    return _deep_merge(base, _env_overlay(env))


def get_settings(
    profile: str | None = None,
    config_dir: Path | None = None,
    environ: dict[str, str] | None = None,
) -> Settings:
    """Return Settings instance from merged config."""
    return Settings.from_dict(load_config(profile, config_dir, environ))


class Settings:
    """Intake console settings: service endpoint, push channel, Gamma feed, storage, logging."""

    def __init__(
        self,
        *,
        intake: dict[str, Any] | None = None,
        push: dict[str, Any] | None = None,
        polymarket: dict[str, Any] | None = None,
        storage: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
    ):
        self.intake = intake or {}
        self.push = push or {}
        self.polymarket = polymarket or {}
        self.storage = storage or {}
        self.logging = logging or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(**{section: raw.get(section) for section in ("intake", "push", "polymarket", "storage", "logging")})

    # Intake service
    @property
    def intake_api_base(self) -> str:
        return self.intake.get("api_base", "http://127.0.0.1:8000").rstrip("/")

    @property
    def http_timeout_sec(self) -> float:
        return float(self.intake.get("http_timeout_sec", 30.0))

    # Push channel
    @property
    def push_ws_url(self) -> str:
        return self.push.get("ws_url", "wss://ws-live-data.polymarket.com")

    @property
    def push_channels(self) -> list[str]:
        return list(self.push.get("channels") or ["markets", "orderbook"])

    @property
    def reconnect_base_delay_sec(self) -> float:
        return float(self.push.get("reconnect_base_delay_sec", 1.0))

    @property
    def reconnect_max_delay_sec(self) -> float:
        return float(self.push.get("reconnect_max_delay_sec", 60.0))

    @property
    def reconnect_max_retries(self) -> int:
        return int(self.push.get("reconnect_max_retries", 5))

    # Gamma feed (intake service side)
    @property
    def gamma_api_base(self) -> str:
        return self.polymarket.get("gamma_api_base", "https://gamma-api.polymarket.com")

    @property
    def gamma_events_limit(self) -> int:
        return int(self.polymarket.get("events_limit", 150))

    @property
    def db_path(self) -> str:
        return self.storage.get("db_path", "data/intake.duckdb")

    # Logging
    @property
    def logging_level(self) -> str:
        return str(self.logging.get("level", "INFO")).upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_file(self) -> str | None:
        """Log destination for the full-screen console; stderr when unset."""
        return self.logging.get("file") or None

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)


def configure_logging(settings: Settings, stream: TextIO | None = None) -> None:
    """Configure structlog. Logs go to stderr so `--json` output on stdout stays parseable."""
    import structlog

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=stream is None and sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=True,
    )
