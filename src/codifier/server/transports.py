# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Transport adapters connecting a ProtocolEngine to HTTP.

- ``UnaryTransport``: one request, one JSON response body. No session id.
- ``StreamTransport``: a server-sent event stream; responses to messages
  posted out-of-band are pushed as ``message`` events.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

logger = logging.getLogger(__name__)

MESSAGES_PATH = "/stream-messages"
KEEPALIVE_FRAME = ": keep-alive\n\n"

_CLOSE = object()


class TransportClosedError(RuntimeError):
    pass


class UnaryTransport:
    """Collects responses produced while handling a single HTTP request."""

    def __init__(self, session_id: str | None = None):
        self.session_id = session_id
        self.responses: list[Any] = []
        self.closed = False

    async def send(self, message: dict[str, Any] | list[dict[str, Any]]) -> None:
        if self.closed:
            raise TransportClosedError("Unary transport is closed")
        self.responses.append(message)

    async def close(self) -> None:
        self.closed = True

    @property
    def body(self) -> Any:
        """The single response payload, or None when nothing was owed."""
        if not self.responses:
            return None
        return self.responses[-1]


def sse_event(event: str, data: str) -> str:
    lines = "".join(f"data: {line}\n" for line in data.splitlines() or [""])
    return f"event: {event}\n{lines}\n"


class StreamTransport:
    """Server-sent event stream bound to one legacy session."""

    def __init__(self, session_id: str, keepalive_interval: float = 15.0):
        self.session_id = session_id
        self.keepalive_interval = keepalive_interval
        self.closed = False
        self._queue: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def endpoint(self) -> str:
        return f"{MESSAGES_PATH}?session={self.session_id}"

    async def send(self, message: dict[str, Any] | list[dict[str, Any]]) -> None:
        if self.closed:
            raise TransportClosedError(f"Stream {self.session_id} is closed")
        await self._queue.put(message)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(_CLOSE)

    async def events(self) -> AsyncIterator[str]:
        """Yield SSE frames until the transport is closed.

        The first frame announces the endpoint for posting messages. A
        keep-alive comment is emitted after each idle interval.
        """
        yield sse_event("endpoint", self.endpoint)
        while True:
            try:
                item = await asyncio.wait_for(self._queue.get(), timeout=self.keepalive_interval)
            except TimeoutError:
                yield KEEPALIVE_FRAME
                continue
            if item is _CLOSE:
                logger.debug(f"Stream {self.session_id} closed")
                return
            yield sse_event("message", json.dumps(item, default=str))
