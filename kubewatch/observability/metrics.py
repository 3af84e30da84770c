"""Prometheus metrics for watch sessions.

All collectors live in the default registry so that an embedding process can
expose them with ``prometheus_client.start_http_server`` or its own endpoint.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

sessions_started_total = Counter(
    "kubewatch_sessions_started_total",
    "Watch sessions started.",
)

sessions_completed_total = Counter(
    "kubewatch_sessions_completed_total",
    "Watch sessions completed, by outcome.",
    ["outcome"],
)

events_total = Counter(
    "kubewatch_events_total",
    "Watch events delivered to handlers, by event type.",
    ["type"],
)

decode_failures_total = Counter(
    "kubewatch_decode_failures_total",
    "Stream lines dropped because they did not decode to a watch event.",
)

active_sessions = Gauge(
    "kubewatch_active_sessions",
    "Watch sessions currently holding a connection.",
)
