"""Exactly-once completion for a watch session.

Three sources may end a session, in any order and close together: a
connection error, a framer error, and the framer reaching end of stream.
CompletionGuard lets the first one through and ignores the rest.  Firing
aborts the connection first and only then notifies the caller.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

_log = structlog.get_logger(component="watch.guard")

Outcome = BaseException | None
DoneCallback = Callable[[Outcome], Awaitable[None] | None]


class CompletionGuard:
    """Single-fire gate around the caller's completion callback.

    The fired state is a one-shot ``asyncio.Future``.  ``fire`` checks and
    completes it without yielding to the event loop, so competing triggers
    scheduled on the same loop can never both pass.

    Args:
        abort:   Idempotent connection abort, called before notification.
        on_done: Caller callback; may be a plain function or a coroutine
                 function.  Exceptions it raises are logged, not propagated.
    """

    def __init__(self, abort: Callable[[], None], on_done: DoneCallback) -> None:
        self._abort = abort
        self._on_done = on_done
        self._outcome: asyncio.Future[Outcome] = asyncio.get_running_loop().create_future()
        self._callback_task: asyncio.Task[None] | None = None

    @property
    def fired(self) -> bool:
        return self._outcome.done()

    def fire(self, outcome: Outcome) -> bool:
        """Complete the session with *outcome*.

        Returns True for the call that completed it, False for every later
        call.
        """
        if self._outcome.done():
            return False
        self._abort()
        self._outcome.set_result(outcome)
        self._notify(outcome)
        return True

    def connection_error(self, exc: BaseException) -> bool:
        return self.fire(exc)

    def framer_error(self, exc: BaseException) -> bool:
        return self.fire(exc)

    def framer_closed(self) -> bool:
        return self.fire(None)

    async def wait(self) -> Outcome:
        """Wait for completion and return the outcome.

        An async ``on_done`` has finished running by the time this returns.
        """
        outcome = await asyncio.shield(self._outcome)
        if self._callback_task is not None:
            await asyncio.gather(self._callback_task, return_exceptions=True)
        return outcome

    def _notify(self, outcome: Outcome) -> None:
        try:
            result = self._on_done(outcome)
        except Exception as exc:  # noqa: BLE001
            _log.error("watch_done_callback_error", error=str(exc), exc_info=exc)
            return
        if result is not None:
            self._callback_task = asyncio.ensure_future(self._await_callback(result))

    async def _await_callback(self, result: Awaitable[None]) -> None:
        try:
            await result
        except Exception as exc:  # noqa: BLE001
            _log.error("watch_done_callback_error", error=str(exc), exc_info=exc)
