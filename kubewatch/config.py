"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubewatch.models.config import (
    ClusterSourceConfig,
    KubeWatchConfig,
    LogConfig,
    StreamConfig,
    TransportConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEWATCH_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None, max_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> KubeWatchConfig:
    """Load configuration from KUBEWATCH_* environment variables."""
    return KubeWatchConfig(
        cluster=ClusterSourceConfig(
            kubeconfig_path=_env("KUBECONFIG_PATH", ""),
            context=_env("CONTEXT", ""),
        ),
        transport=TransportConfig(
            connect_timeout=_env_float("CONNECT_TIMEOUT", 10.0, min_val=1.0, max_val=120.0),
            max_connections=_env_int("MAX_CONNECTIONS", 100, min_val=1, max_val=1000),
        ),
        stream=StreamConfig(
            max_line_bytes=_env_int("MAX_LINE_BYTES", 0, min_val=0),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
