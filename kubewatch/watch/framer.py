"""Incremental line framing for watch streams.

A line is the run of bytes between two ``\\n`` boundaries, with the boundary
and one trailing ``\\r`` stripped.  Framing is independent of how the
transport chunks the stream.  A final partial line with no trailing boundary
is flushed as a record when the stream ends.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator

from kubewatch.errors import FramingError

_BOUNDARY = b"\n"


def _strip_cr(line: bytes) -> bytes:
    return line[:-1] if line.endswith(b"\r") else line


class LineFramer:
    """Turns arbitrarily sized byte chunks into complete lines.

    Args:
        max_line_bytes: Upper bound on a single pending line.  ``0`` (the
                        default) means unbounded.  When exceeded, ``feed``
                        raises FramingError.  Lines the same chunk completed
                        before the oversized tail are returned first and the
                        error is raised by the next ``feed``, ``flush`` or
                        ``check`` call.
    """

    def __init__(self, max_line_bytes: int = 0) -> None:
        self._buffer = bytearray()
        self._max_line_bytes = max_line_bytes
        self._overflow: FramingError | None = None

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet terminated by a boundary."""
        return len(self._buffer)

    def check(self) -> None:
        """Raise the FramingError held back by the last ``feed``, if any."""
        if self._overflow is not None:
            raise self._overflow

    def feed(self, chunk: bytes) -> list[bytes]:
        """Append *chunk* and return every line it completes, in order."""
        self.check()
        if not chunk:
            return []
        self._buffer.extend(chunk)
        lines: list[bytes] = []
        start = 0
        while True:
            idx = self._buffer.find(_BOUNDARY, start)
            if idx < 0:
                break
            lines.append(_strip_cr(bytes(self._buffer[start:idx])))
            start = idx + 1
        if start:
            del self._buffer[:start]
        if self._max_line_bytes and len(self._buffer) > self._max_line_bytes:
            size = len(self._buffer)
            self._buffer.clear()
            self._overflow = FramingError(
                f"Line exceeds {self._max_line_bytes} bytes without a boundary ({size} buffered)"
            )
            if not lines:
                raise self._overflow
        return lines

    def flush(self) -> bytes | None:
        """Return the trailing partial line at end of stream, if any."""
        self.check()
        if not self._buffer:
            return None
        line = _strip_cr(bytes(self._buffer))
        self._buffer.clear()
        return line

    async def frames(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
        """Yield lines from *chunks*; errors from the source propagate unchanged."""
        async for chunk in chunks:
            for line in self.feed(chunk):
                yield line
            self.check()
        tail = self.flush()
        if tail is not None:
            yield tail
