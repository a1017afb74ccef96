"""Configuration constants and layered settings loading for the share server."""

from __future__ import annotations

import math
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlencode

from dotenv import dotenv_values

HOST: str = "0.0.0.0"
PORT_RANGE: range = range(8000, 8100)
SERVER_NAME: str = "dirshare/1.0"
BUFFER_SIZE: int = 1024
READ_CHUNK_SIZE: int = 65_536
SOCKET_TIMEOUT_SECS: int = 5
KEEPALIVE_TIMEOUT_SECS: int = 5
MAX_KEEPALIVE_REQUESTS: int = 100
MAX_REQUEST_BYTES: int = 1_048_576
MAX_HEADER_BYTES: int = 16_384
MAX_BODY_BYTES: int = 65_536
MAX_TARGET_LENGTH: int = 8_192
WORKER_COUNT: int = 8
REQUEST_QUEUE_SIZE: int = 64
DRAIN_TIMEOUT_SECS: float = 5.0
LOG_FORMAT: str = "plain"
LOG_FORMATS: tuple[str, ...] = ("plain", "json")
DEFAULT_CONFIG_FILE: str = "dirshare.env"

ENV_PREFIX = "DIRSHARE_"
SETTING_KEYS = ("ROOT", "HOST", "PORT", "SHUTDOWN_AFTER", "AUTH", "LISTING", "LOG_FORMAT")

_DURATION_UNITS: dict[str, float] = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Raised when a setting cannot be parsed or points at nothing."""


@dataclass(frozen=True, slots=True)
class AuthCredential:
    key: str
    value: str

    @property
    def query_string(self) -> str:
        return urlencode({self.key: self.value})


@dataclass(frozen=True, slots=True)
class ServeConfig:
    """Process-wide settings, built once at startup and shared read-only."""

    root: Path
    host: str = HOST
    port: int | None = None
    shutdown_after: float | None = None
    auth: AuthCredential | None = None
    listing: bool = True
    log_format: str = LOG_FORMAT
    worker_count: int = WORKER_COUNT
    request_queue_size: int = REQUEST_QUEUE_SIZE
    drain_timeout_secs: float = DRAIN_TIMEOUT_SECS

    @property
    def root_is_file(self) -> bool:
        return self.root.is_file()


def parse_duration(text: str) -> float:
    """Parse ``90``, ``90s``, ``1h30m`` or ``1.5m`` into seconds."""
    raw = text.strip().lower()
    if not raw:
        raise ConfigError("Duration cannot be empty")

    try:
        seconds = float(raw)
    except ValueError:
        position = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(raw):
            if match.start() != position:
                raise ConfigError(f"Malformed duration: {text!r}") from None
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            position = match.end()
        if position != len(raw):
            raise ConfigError(f"Malformed duration: {text!r}") from None

    if not math.isfinite(seconds) or seconds <= 0:
        raise ConfigError(f"Duration must be positive: {text!r}")
    return seconds


def parse_auth(text: str) -> AuthCredential:
    if "=" not in text:
        raise ConfigError("Auth must be given as key=value")
    key, value = text.split("=", 1)
    if not key:
        raise ConfigError("Auth key cannot be empty")
    return AuthCredential(key=key, value=value)


def parse_bool(text: str) -> bool:
    token = text.strip().lower()
    if token in _TRUE_WORDS:
        return True
    if token in _FALSE_WORDS:
        return False
    raise ConfigError(f"Expected a boolean, got {text!r}")


def parse_port(text: str) -> int:
    try:
        port = int(text)
    except ValueError as exc:
        raise ConfigError(f"Invalid port: {text!r}") from exc
    if not 0 <= port <= 65535:
        raise ConfigError(f"Port out of range: {port}")
    return port


def read_config_file(path: str | os.PathLike[str] | None, *, required: bool) -> dict[str, str]:
    """Read a dotenv-format settings file, keeping only known keys."""
    if path is None:
        return {}
    file_path = Path(path)
    if not file_path.is_file():
        if required:
            raise ConfigError(f"Config file not found: {file_path}")
        return {}
    values = dotenv_values(file_path)
    return _strip_prefix({key: value for key, value in values.items() if value is not None})


def read_environment(environ: Mapping[str, str]) -> dict[str, str]:
    return _strip_prefix(environ)


def _strip_prefix(values: Mapping[str, str]) -> dict[str, str]:
    settings: dict[str, str] = {}
    for key in SETTING_KEYS:
        full_key = ENV_PREFIX + key
        if full_key in values:
            settings[key] = values[full_key]
    return settings


def load_config(
    overrides: Mapping[str, str | None] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    config_file: str | None = None,
) -> ServeConfig:
    """Merge defaults, config file, environment and explicit flags, in that order."""
    environ = os.environ if environ is None else environ
    required = config_file is not None or f"{ENV_PREFIX}CONFIG" in environ
    if config_file is None:
        config_file = environ.get(f"{ENV_PREFIX}CONFIG", DEFAULT_CONFIG_FILE)

    merged: dict[str, str] = {}
    merged.update(read_config_file(config_file, required=required))
    merged.update(read_environment(environ))
    if overrides:
        merged.update({key: value for key, value in overrides.items() if value is not None})

    root = Path(merged.get("ROOT") or ".").expanduser()
    if not root.exists():
        raise ConfigError(f"Served path does not exist: {root}")

    auth = None
    if merged.get("AUTH"):
        auth = parse_auth(merged["AUTH"])

    log_format = merged.get("LOG_FORMAT", LOG_FORMAT)
    if log_format not in LOG_FORMATS:
        raise ConfigError(f"Unknown log format: {log_format!r}")

    return ServeConfig(
        root=root.resolve(),
        host=merged.get("HOST") or HOST,
        port=parse_port(merged["PORT"]) if merged.get("PORT") else None,
        shutdown_after=(
            parse_duration(merged["SHUTDOWN_AFTER"]) if merged.get("SHUTDOWN_AFTER") else None
        ),
        auth=auth,
        listing=parse_bool(merged["LISTING"]) if merged.get("LISTING") else True,
        log_format=log_format,
    )
