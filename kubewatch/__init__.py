"""kubewatch: a streaming watch client for Kubernetes-style API servers."""

from kubewatch.errors import (
    SERVER_SIDE_CLOSE,
    ConfigurationError,
    FramingError,
    ProtocolError,
    ServerSideClose,
    TransportError,
    WatchError,
)
from kubewatch.kubeconfig import KubeConfig
from kubewatch.models.events import EventType, WatchEvent
from kubewatch.watch.session import Watch, WatchHandle

__version__ = "0.1.0"

__all__ = [
    "SERVER_SIDE_CLOSE",
    "ConfigurationError",
    "EventType",
    "FramingError",
    "KubeConfig",
    "ProtocolError",
    "ServerSideClose",
    "TransportError",
    "Watch",
    "WatchError",
    "WatchEvent",
    "WatchHandle",
    "__version__",
]
