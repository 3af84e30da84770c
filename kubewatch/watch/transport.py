"""Connection opener for watch streams.

Watch connections live in their own httpx client pools, keyed by an explicit
PoolKey (one per scheme) plus the TLS material of the request.  They are never
pooled together with short-lived request traffic, so a long-lived watch can
not starve or be starved by ordinary API calls.

Exposes:
    PoolKey          -- Pool identity per scheme.
    ConnectionPools  -- Registry of httpx.AsyncClient per (PoolKey, TLSMaterial).
    RequestInterface -- Protocol every request implementation satisfies.
    HttpxRequest     -- Default implementation on top of httpx.
"""

from __future__ import annotations

import asyncio
import ssl
import weakref
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from enum import StrEnum
from typing import Protocol

import httpx
import structlog

from kubewatch.errors import ConfigurationError, TransportError
from kubewatch.models.request import TLSMaterial, WatchRequest
from kubewatch.watch.gate import ResponseGate, WatchStream, translate_http_error

_log = structlog.get_logger(component="watch.transport")


class PoolKey(StrEnum):
    """Connection pool identity for watch traffic."""

    HTTP = "watcher-http"
    HTTPS = "watcher-https"


def pool_key_for(uri: str) -> PoolKey:
    """Select the watch pool for *uri* by scheme.

    Raises:
        ConfigurationError: for anything other than http/https.
    """
    scheme = uri.split("://", 1)[0].lower() if "://" in uri else ""
    if scheme == "https":
        return PoolKey.HTTPS
    if scheme == "http":
        return PoolKey.HTTP
    raise ConfigurationError(f'Unknown protocol "{scheme}" in {uri!r}')


def build_ssl_context(tls: TLSMaterial) -> ssl.SSLContext:
    """Build the client SSL context for *tls*."""
    ctx = ssl.create_default_context(cafile=tls.ca_file)
    if tls.cert_file:
        ctx.load_cert_chain(certfile=tls.cert_file, keyfile=tls.key_file)
    if tls.insecure_skip_verify:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


class ConnectionPools:
    """httpx clients dedicated to watch connections.

    Args:
        connect_timeout: Seconds allowed for connect, write and pool waits.
                         Reads are unbounded; a quiet watch is not a failure.
        max_connections: Connection limit per pool.
        transport:       Optional httpx transport shared by every client
                         (tests inject ``httpx.MockTransport`` here).
    """

    def __init__(
        self,
        connect_timeout: float = 10.0,
        max_connections: int = 100,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = httpx.Timeout(connect_timeout, read=None)
        self._limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_connections,
        )
        self._transport = transport
        self._clients: dict[tuple[PoolKey, TLSMaterial], httpx.AsyncClient] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def client_for(self, request: WatchRequest) -> httpx.AsyncClient:
        """Return (creating on first use) the client serving *request*."""
        pool_key = pool_key_for(request.uri)
        key = (pool_key, request.tls)
        client = self._clients.get(key)
        if client is not None:
            return client

        verify: ssl.SSLContext | bool = True
        if pool_key is PoolKey.HTTPS:
            try:
                verify = build_ssl_context(request.tls)
            except (OSError, ssl.SSLError) as exc:
                raise TransportError(f"Cannot load TLS material: {exc}") from exc

        client = httpx.AsyncClient(
            verify=verify,
            timeout=self._timeout,
            limits=self._limits,
            headers={"Connection": "keep-alive"},
            transport=self._transport,
        )
        self._clients[key] = client
        _log.debug("watch_pool_created", pool=pool_key.value, pools=len(self._clients))
        return client

    async def aclose(self) -> None:
        """Close every client; later requests create fresh ones."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()


# One registry per event loop: httpx clients can not outlive their loop.
_default_pools: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, ConnectionPools] = weakref.WeakKeyDictionary()


def default_pools() -> ConnectionPools:
    """Return the process-wide watch pools for the running event loop."""
    loop = asyncio.get_running_loop()
    pools = _default_pools.get(loop)
    if pools is None:
        pools = ConnectionPools()
        _default_pools[loop] = pools
    return pools


async def close_default_pools() -> None:
    """Close the running loop's default pools.

    Embedders that rely on the default pools call this before their loop
    ends; the next ``default_pools()`` call starts a fresh registry.
    """
    pools = _default_pools.pop(asyncio.get_running_loop(), None)
    if pools is not None:
        await pools.aclose()


class RequestInterface(Protocol):
    """Anything that can open a gated watch stream for a request."""

    def open(self, request: WatchRequest) -> AbstractAsyncContextManager[WatchStream]: ...


class HttpxRequest:
    """Issues the streaming GET with httpx and gates the response.

    The response is closed when the ``open`` context exits, whatever the
    reason: normal end, error, or task cancellation.
    """

    def __init__(self, pools: ConnectionPools | None = None) -> None:
        self._pools = pools

    @asynccontextmanager
    async def open(self, request: WatchRequest) -> AsyncIterator[WatchStream]:
        """Send *request* and yield the admitted body stream.

        Raises:
            TransportError: connect/TLS failures.
            ProtocolError:  non-200 response status.
        """
        pools = self._pools if self._pools is not None else default_pools()
        client = pools.client_for(request)
        http_request = client.build_request(
            request.method,
            request.uri,
            params=request.params,
            headers=request.headers,
        )
        try:
            response = await client.send(http_request, stream=True)
        except httpx.HTTPError as exc:
            raise translate_http_error(exc) from exc

        try:
            yield await ResponseGate.admit(response)
        finally:
            await response.aclose()
