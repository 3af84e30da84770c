"""Response gate: the headers stage in front of the body stage.

``ResponseGate.admit`` takes a response whose headers have arrived but whose
body has not been read.  A 200 yields a WatchStream over the body; any other
status raises ProtocolError and no body byte is ever handed downstream.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
import structlog

from kubewatch.errors import ProtocolError, ServerSideClose, TransportError

_log = structlog.get_logger(component="watch.gate")

WATCH_OK_STATUS = 200

# Error bodies are read for diagnostics only.
_MAX_ERROR_BODY_BYTES = 64 * 1024
_ERROR_BODY_TIMEOUT = 5.0


def translate_http_error(exc: httpx.HTTPError) -> TransportError:
    """Map an httpx failure onto the watch error taxonomy."""
    if isinstance(exc, httpx.RemoteProtocolError):
        return ServerSideClose(str(exc) or "peer closed connection")
    return TransportError(f"{type(exc).__name__}: {exc}")


class WatchStream:
    """Body stage of an admitted watch response."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield body bytes as the transport delivers them.

        Raises:
            TransportError: on any mid-stream transport failure.
            ServerSideClose: when the server drops the connection mid-body.
        """
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise translate_http_error(exc) from exc


def _status_message(response: httpx.Response, body: bytes) -> str:
    """Prefer the API server's Status.message, then the reason phrase."""
    if body:
        try:
            payload: Any = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            payload = None
        if isinstance(payload, dict) and isinstance(payload.get("message"), str) and payload["message"]:
            return str(payload["message"])
    return response.reason_phrase or str(response.status_code)


async def _read_error_body(response: httpx.Response) -> bytes:
    body = bytearray()
    try:
        async with asyncio.timeout(_ERROR_BODY_TIMEOUT):
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if len(body) >= _MAX_ERROR_BODY_BYTES:
                    break
    except TimeoutError:
        # Body held open by the server; report with what arrived.
        _log.debug("watch_error_body_timeout", status_code=response.status_code, read=len(body))
    except httpx.HTTPError as exc:
        # The status alone is enough to report; the body is best effort.
        _log.debug("watch_error_body_unreadable", status_code=response.status_code, error=str(exc))
    return bytes(body[:_MAX_ERROR_BODY_BYTES])


class ResponseGate:
    """Admits only successful watch responses into the body stage."""

    @staticmethod
    async def admit(response: httpx.Response) -> WatchStream:
        """Return the body stage for *response* or raise ProtocolError.

        Raises:
            ProtocolError: when the status is anything other than 200.
        """
        if response.status_code == WATCH_OK_STATUS:
            return WatchStream(response)

        body = await _read_error_body(response)
        message = _status_message(response, body)
        _log.warning(
            "watch_rejected",
            status_code=response.status_code,
            message=message,
            url=str(response.request.url),
        )
        raise ProtocolError(response.status_code, message)
