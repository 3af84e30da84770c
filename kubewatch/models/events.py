"""Watch event data structures and enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EventType(StrEnum):
    """Phase tags emitted by the API server on a watch stream.

    Unknown tags are still delivered; this enum only names the known ones.
    """

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


@dataclass(frozen=True)
class WatchEvent:
    """One decoded line of a watch stream.

    Produced by the event decoder and handed to the caller's handler, which
    owns it from then on.  ``object`` is the primary payload; ``raw`` is the
    complete decoded line.
    """

    type: str
    object: Any
    raw: dict[str, Any] = field(default_factory=dict)
