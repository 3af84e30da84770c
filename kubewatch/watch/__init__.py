"""Watch stream core.

Submodules:
    transport -- PoolKey, ConnectionPools, HttpxRequest: opens the streaming GET.
    gate      -- ResponseGate: admits only 200 responses into the body stage.
    framer    -- LineFramer: bytes in arbitrary chunks -> complete lines.
    decoder   -- decode_event: one line -> WatchEvent, malformed lines dropped.
    guard     -- CompletionGuard: exactly-once completion after teardown.
    session   -- Watch, WatchHandle: wires the stages per call.
"""

from kubewatch.watch.decoder import decode_event, parse_event
from kubewatch.watch.framer import LineFramer
from kubewatch.watch.gate import ResponseGate, WatchStream
from kubewatch.watch.guard import CompletionGuard
from kubewatch.watch.session import Watch, WatchHandle
from kubewatch.watch.transport import (
    ConnectionPools,
    HttpxRequest,
    PoolKey,
    RequestInterface,
    close_default_pools,
    default_pools,
    pool_key_for,
)

__all__ = [
    "CompletionGuard",
    "ConnectionPools",
    "HttpxRequest",
    "LineFramer",
    "PoolKey",
    "RequestInterface",
    "ResponseGate",
    "Watch",
    "WatchHandle",
    "WatchStream",
    "close_default_pools",
    "decode_event",
    "default_pools",
    "parse_event",
    "pool_key_for",
]
