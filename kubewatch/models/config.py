"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ClusterSourceConfig:
    """Where cluster and credentials are resolved from."""

    kubeconfig_path: str = ""
    context: str = ""


@dataclass
class TransportConfig:
    """HTTP transport configuration for watch connections."""

    connect_timeout: float = 10.0
    max_connections: int = 100


@dataclass
class StreamConfig:
    """Watch stream decoding configuration."""

    max_line_bytes: int = 0  # 0 = unbounded


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeWatchConfig:
    """Top-level kubewatch configuration."""

    cluster: ClusterSourceConfig = field(default_factory=ClusterSourceConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    log: LogConfig = field(default_factory=LogConfig)
