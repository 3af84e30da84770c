"""Watch session orchestration.

``Watch.watch()`` resolves the cluster, builds and decorates the request, and
spawns one asyncio task per session:

    HttpxRequest.open -> ResponseGate -> LineFramer -> decode_event -> on_event

The task never raises into the caller.  Every way it can end is routed into
the session's CompletionGuard, which fires ``on_done`` exactly once and only
after the response has been closed.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Mapping
from contextlib import aclosing
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

from kubewatch.errors import (
    SERVER_SIDE_CLOSE,
    ConfigurationError,
    FramingError,
    ProtocolError,
    ServerSideClose,
    TransportError,
)
from kubewatch.models.events import WatchEvent
from kubewatch.models.request import WatchRequest
from kubewatch.observability.metrics import (
    active_sessions,
    events_total,
    sessions_completed_total,
    sessions_started_total,
)
from kubewatch.watch.decoder import decode_event
from kubewatch.watch.framer import LineFramer
from kubewatch.watch.guard import CompletionGuard, DoneCallback, Outcome
from kubewatch.watch.transport import HttpxRequest, RequestInterface, pool_key_for

if TYPE_CHECKING:
    from kubewatch.kubeconfig import KubeConfig

_log = structlog.get_logger(component="watch.session")

EventCallback = Callable[[str, Any, dict[str, Any]], Awaitable[None] | None]


def _query_value(value: Any) -> str | list[str]:
    """Encode a query value the way the API server expects (``true``, not ``True``)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list | tuple):
        return [_query_value(v) for v in value]  # type: ignore[misc]
    return str(value)


def _outcome_label(outcome: Outcome, aborted: bool) -> str:
    if outcome is None:
        return "aborted" if aborted else "closed"
    if outcome is SERVER_SIDE_CLOSE:
        return "server_side_close"
    if isinstance(outcome, ProtocolError):
        return "protocol_error"
    if isinstance(outcome, FramingError):
        return "framing_error"
    if isinstance(outcome, TransportError):
        return "transport_error"
    return "handler_error"


class _WatchSession:
    """One watch connection and the task that drains it."""

    def __init__(
        self,
        request: WatchRequest,
        request_impl: RequestInterface,
        on_event: EventCallback,
        on_done: DoneCallback,
        max_line_bytes: int = 0,
    ) -> None:
        self.session_id = uuid4().hex[:12]
        self.request = request
        self._request_impl = request_impl
        self._on_event = on_event
        self._on_done = on_done
        self._framer = LineFramer(max_line_bytes=max_line_bytes)
        self._guard = CompletionGuard(abort=self.abort, on_done=self._complete)
        self._task: asyncio.Task[None] | None = None
        self._abort_requested = False
        self._log = _log.bind(session_id=self.session_id, uri=request.uri)

    @property
    def guard(self) -> CompletionGuard:
        return self._guard

    def start(self) -> None:
        sessions_started_total.inc()
        active_sessions.inc()
        self._task = asyncio.create_task(self._run(), name=f"watch-{self.session_id}")
        self._task.add_done_callback(self._on_task_done)

    def abort(self) -> None:
        """Tear down the connection.  Safe to call any number of times."""
        self._abort_requested = True
        task = self._task
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # Called from a handler inside the session; the loop exits after it returns.
            return
        task.cancel()

    async def _run(self) -> None:
        try:
            async with self._request_impl.open(self.request) as stream:
                self._log.info("watch_started", status_code=stream.status_code)
                chunks = stream.chunks()
                async with aclosing(chunks), aclosing(self._framer.frames(chunks)) as lines:
                    async for line in lines:
                        event = decode_event(line)
                        if event is None:
                            continue
                        await self._deliver(event)
                        if self._abort_requested:
                            break
        except ServerSideClose as exc:
            self._log.info("watch_closed_by_server", error=str(exc))
            self._guard.connection_error(SERVER_SIDE_CLOSE)
        except (TransportError, ProtocolError) as exc:
            self._guard.connection_error(exc)
        except FramingError as exc:
            self._guard.framer_error(exc)
        except asyncio.CancelledError:
            self._guard.fire(None)
            raise
        else:
            self._guard.framer_closed()

    async def _deliver(self, event: WatchEvent) -> None:
        events_total.labels(type=event.type or "unknown").inc()
        result = self._on_event(event.type, event.object, event.raw)
        if inspect.isawaitable(result):
            await result

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        active_sessions.dec()
        if task.cancelled():
            # Cancelled before _run got to its own handler (e.g. never started).
            self._guard.fire(None)
            return
        exc = task.exception()
        if exc is not None:
            self._log.warning("watch_handler_error", error=str(exc), error_type=type(exc).__name__)
            self._guard.fire(exc)

    def _complete(self, outcome: Outcome) -> Awaitable[None] | None:
        label = _outcome_label(outcome, self._abort_requested)
        sessions_completed_total.labels(outcome=label).inc()
        if outcome is None:
            self._log.info("watch_done", outcome=label)
        else:
            self._log.warning("watch_done", outcome=label, error=str(outcome))
        return self._on_done(outcome)


class WatchHandle:
    """Caller-side reference to a running watch session.

    ``abort()`` may be called any number of times, before or after the session
    completes; it never causes a second ``on_done``.
    """

    def __init__(self, session: _WatchSession) -> None:
        self._session = session

    @property
    def session_id(self) -> str:
        return self._session.session_id

    @property
    def request(self) -> WatchRequest:
        return self._session.request

    @property
    def done(self) -> bool:
        return self._session.guard.fired

    def abort(self) -> None:
        self._session.abort()

    async def wait(self) -> Outcome:
        """Wait until the session completes and return its outcome."""
        return await self._session.guard.wait()


class Watch:
    """Opens watch sessions against the current cluster of a KubeConfig.

    Args:
        config:         Cluster/auth collaborator.
        request_impl:   Request implementation; defaults to HttpxRequest on
                        the process-wide watch pools.
        max_line_bytes: Optional bound on a single stream line (0 = none).
    """

    def __init__(
        self,
        config: KubeConfig,
        request_impl: RequestInterface | None = None,
        max_line_bytes: int = 0,
    ) -> None:
        self.config = config
        self._request_impl: RequestInterface = request_impl or HttpxRequest()
        self._max_line_bytes = max_line_bytes

    async def watch(
        self,
        path: str,
        query_params: Mapping[str, Any] | None,
        on_event: EventCallback,
        on_done: DoneCallback,
    ) -> WatchHandle:
        """Start watching *path* and return immediately.

        ``on_event(type, object, raw)`` is called for each decoded event, in
        stream order.  ``on_done(error)`` is called exactly once: ``None`` on
        a clean close or caller abort, SERVER_SIDE_CLOSE if the server dropped
        the connection mid-body, otherwise the error that ended the stream.

        Raises:
            ConfigurationError: no current cluster, or an unusable server URL.
        """
        cluster = self.config.get_current_cluster()
        if cluster is None or not cluster.server:
            raise ConfigurationError("No currently active cluster")
        uri = cluster.server + path
        pool_key_for(uri)

        params = {str(k): _query_value(v) for k, v in (query_params or {}).items()}
        params["watch"] = "true"
        request = WatchRequest(uri=uri, params=params, headers={})
        request = await self.config.apply_to_request(request)

        session = _WatchSession(
            request=request,
            request_impl=self._request_impl,
            on_event=on_event,
            on_done=on_done,
            max_line_bytes=self._max_line_bytes,
        )
        session.start()
        return WatchHandle(session)
