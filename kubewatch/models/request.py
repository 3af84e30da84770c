"""Watch request data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

WATCH_METHOD = "GET"


@dataclass(frozen=True)
class TLSMaterial:
    """TLS settings applied by the cluster configuration.

    Hashable so that it can take part in the connection pool key.
    """

    ca_file: str | None = None
    cert_file: str | None = None
    key_file: str | None = None
    insecure_skip_verify: bool = False


@dataclass(frozen=True)
class WatchRequest:
    """A single streaming GET.

    Built once per session.  Auth decoration returns a new instance through
    ``dataclasses.replace``; nothing mutates a request after the call starts.
    """

    uri: str
    params: dict[str, str | list[str]] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    tls: TLSMaterial = field(default_factory=TLSMaterial)
    method: str = WATCH_METHOD
