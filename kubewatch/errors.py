"""Error taxonomy for kubewatch.

WatchError          -- Base class for every error surfaced by a watch session.
ConfigurationError  -- No resolvable cluster/endpoint.  Raised synchronously
                       from ``Watch.watch()`` before any connection attempt.
TransportError      -- Connect, TLS or mid-stream socket failure.
ServerSideClose     -- The server closed the connection in the middle of the
                       body.  ``SERVER_SIDE_CLOSE`` is the shared instance
                       delivered to ``on_done``.
ProtocolError       -- Non-200 status on the initial response.
FramingError        -- The line framer gave up on the byte stream.
DecodeError         -- A single line failed to decode.  Handled inside the
                       decoder and never delivered to callers.
"""

from __future__ import annotations


class WatchError(Exception):
    """Base class for watch session failures."""


class ConfigurationError(WatchError):
    """Raised when no cluster endpoint can be resolved."""


class TransportError(WatchError):
    """Raised when the HTTP transport fails (DNS, TLS, reset, timeout)."""


class ServerSideClose(TransportError):
    """The server ended the stream without completing the response body."""


SERVER_SIDE_CLOSE = ServerSideClose("Connection closed on server")


class ProtocolError(WatchError):
    """Raised when the watch response carries a non-success status.

    Attributes:
        status_code: HTTP status of the rejected response.
        message:     Diagnostic text (Status.message, reason phrase, or code).
    """

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class FramingError(WatchError):
    """Raised when a line exceeds the configured maximum size."""


class DecodeError(WatchError):
    """A line could not be decoded into a watch event."""
