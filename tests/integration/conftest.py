"""Shared fixtures for kubewatch integration tests.

Sessions run end to end over ``httpx.MockTransport`` so that every stage
(opener, gate, framer, decoder, guard) is exercised without a real API server.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest

from kubewatch.errors import WatchError
from kubewatch.kubeconfig import KubeConfig
from kubewatch.watch.session import Watch
from kubewatch.watch.transport import ConnectionPools, HttpxRequest

SERVER = "http://kube.test:8080"
TOKEN = "test-token"

# ---------------------------------------------------------------------------
# Stream helpers
# ---------------------------------------------------------------------------


# ScriptedStream marker: suspend until the session is cancelled.
BLOCK = object()


class ScriptedStream(httpx.AsyncByteStream):
    """Response body that replays a script of chunks, errors and pauses.

    Script items:
        bytes          -- delivered as one chunk.
        Exception      -- raised at that point (mid-stream failure).
        BLOCK          -- suspend forever (until the session aborts).
    """

    def __init__(self, script: list[Any]) -> None:
        self._script = script
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for item in self._script:
            if item is BLOCK:
                await asyncio.Event().wait()
            elif isinstance(item, BaseException):
                raise item
            else:
                yield item

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class Recorder:
    """Collects on_event / on_done calls for assertions."""

    events: list[tuple[str, Any, dict[str, Any]]] = field(default_factory=list)
    outcomes: list[BaseException | None] = field(default_factory=list)

    def on_event(self, event_type: str, obj: Any, raw: dict[str, Any]) -> None:
        self.events.append((event_type, obj, raw))

    def on_done(self, err: BaseException | None) -> None:
        self.outcomes.append(err)


def kubeconfig_dict(server: str = SERVER, token: str = TOKEN) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "current-context": "test",
        "clusters": [{"name": "test-cluster", "cluster": {"server": server}}],
        "users": [{"name": "test-user", "user": {"token": token}}],
        "contexts": [{"name": "test", "context": {"cluster": "test-cluster", "user": "test-user"}}],
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def kube_config() -> KubeConfig:
    return KubeConfig.load_from_dict(kubeconfig_dict())


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_watch(kube_config: KubeConfig) -> Callable[..., Watch]:
    """Build a Watch whose requests are answered by *handler*."""

    def _make(handler: Callable[[httpx.Request], Any], max_line_bytes: int = 0) -> Watch:
        pools = ConnectionPools(transport=httpx.MockTransport(handler))
        return Watch(kube_config, HttpxRequest(pools), max_line_bytes=max_line_bytes)

    return _make


def respond_with(
    stream: ScriptedStream,
    status_code: int = 200,
    seen: list[httpx.Request] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """Handler returning *stream* as the body, recording requests in *seen*."""

    def _handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, stream=stream)

    return _handler


async def wait_done(handle: Any, timeout: float = 5.0) -> BaseException | None:
    return await asyncio.wait_for(handle.wait(), timeout=timeout)


def assert_watch_error(outcome: BaseException | None, kind: type[WatchError]) -> None:
    assert isinstance(outcome, kind), f"expected {kind.__name__}, got {outcome!r}"
