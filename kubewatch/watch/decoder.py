"""Per-line decoding of watch events.

Lines that do not decode to a JSON object are dropped: keep-alive probes and
partial control lines must not end an otherwise healthy watch.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from kubewatch.errors import DecodeError
from kubewatch.models.events import WatchEvent
from kubewatch.observability.metrics import decode_failures_total

_log = structlog.get_logger(component="watch.decoder")

# Truncate logged lines; bodies can carry whole resource specs.
_LOG_PREVIEW_BYTES = 120


def parse_event(line: bytes) -> WatchEvent:
    """Decode *line* into a WatchEvent.

    Raises:
        DecodeError: the line is empty, not UTF-8 JSON, or not a JSON object.
    """
    if not line.strip():
        raise DecodeError("empty line")
    # ValueError covers JSONDecodeError and UnicodeDecodeError; deep nesting
    # surfaces as RecursionError.
    try:
        data: Any = json.loads(line)
    except (ValueError, RecursionError) as exc:
        raise DecodeError(str(exc)) from exc
    if not isinstance(data, dict):
        raise DecodeError(f"expected a JSON object, got {type(data).__name__}")

    event_type = data.get("type")
    return WatchEvent(
        type=event_type if isinstance(event_type, str) else "",
        object=data.get("object"),
        raw=data,
    )


def decode_event(line: bytes) -> WatchEvent | None:
    """Decode *line*, returning None (and counting the drop) when it is not an event."""
    try:
        return parse_event(line)
    except DecodeError as exc:
        decode_failures_total.inc()
        _log.debug(
            "watch_line_dropped",
            reason=str(exc),
            line=line[:_LOG_PREVIEW_BYTES].decode("utf-8", errors="replace"),
        )
        return None
