"""Core data structures for kubewatch."""

from kubewatch.models.config import KubeWatchConfig
from kubewatch.models.events import EventType, WatchEvent
from kubewatch.models.request import TLSMaterial, WatchRequest

__all__ = [
    "EventType",
    "KubeWatchConfig",
    "TLSMaterial",
    "WatchEvent",
    "WatchRequest",
]
