"""Blocking reader over an ASGI request body.

The publish saga runs in a worker thread and pulls the tarball with plain
``read(size)`` calls; each call hops back to the event loop for the next
chunk of ``request.stream()`` so the body is never buffered whole.
"""

from __future__ import annotations

from typing import AsyncIterator

import anyio.from_thread
from starlette.requests import Request


class RequestBodyReader:
    """Synchronous ``read(size)`` over an async chunk iterator.

    Must be used from a thread started by ``anyio.to_thread`` (or FastAPI's
    ``run_in_threadpool``).
    """

    def __init__(self, chunks: AsyncIterator[bytes]) -> None:
        self._chunks = chunks
        self._buffer = bytearray()
        self._eof = False

    @classmethod
    def from_request(cls, request: Request) -> "RequestBodyReader":
        return cls(request.stream().__aiter__())

    async def _next_chunk(self) -> bytes | None:
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            return None

    def read(self, size: int = -1) -> bytes:
        while not self._eof and (size < 0 or len(self._buffer) < size):
            chunk = anyio.from_thread.run(self._next_chunk)
            if chunk is None:
                self._eof = True
            elif chunk:
                self._buffer.extend(chunk)
        if size < 0 or size >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
            return data
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data
