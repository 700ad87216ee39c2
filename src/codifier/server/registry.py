# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Registry of open legacy stream sessions.

Each entry pairs a ``StreamTransport`` with the ``ProtocolEngine`` serving
it. These sessions live only as long as their stream and are unrelated to
persisted workflow sessions.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from .protocol import EngineFactory, ProtocolEngine
from .transports import StreamTransport

logger = logging.getLogger(__name__)


@dataclass
class ProtocolSession:
    """An open stream and the engine bound to it."""

    session_id: str
    transport: StreamTransport
    engine: ProtocolEngine
    created_at: float = field(default_factory=time.time)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def deliver(self, payload: Any) -> None:
        """Process one posted message; messages on a session run in order."""
        async with self.lock:
            await self.engine.receive(payload)


class LegacySessionRegistry:
    """Thread-safe map of session id to ``ProtocolSession``."""

    def __init__(self, keepalive_interval: float = 15.0):
        self.keepalive_interval = keepalive_interval
        self._sessions: dict[str, ProtocolSession] = {}
        self._lock = threading.Lock()

    def open(self, engine_factory: EngineFactory) -> ProtocolSession:
        """Create a transport and engine under a fresh server-generated id."""
        session_id = uuid.uuid4().hex
        transport = StreamTransport(session_id, keepalive_interval=self.keepalive_interval)
        engine = engine_factory()
        engine.connect(transport)
        session = ProtocolSession(session_id=session_id, transport=transport, engine=engine)

        with self._lock:
            self._sessions[session_id] = session
            count = len(self._sessions)
        logger.info(f"Stream session opened: {session_id} ({count} open)")
        return session

    def get(self, session_id: str) -> ProtocolSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> ProtocolSession | None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info(f"Stream session removed: {session_id}")
        return session

    async def close(self, session_id: str) -> bool:
        """Remove a session and close its engine and transport.

        Returns False when the id is unknown. Safe to call more than once.
        """
        session = self.remove(session_id)
        if session is None:
            return False
        await session.engine.close()
        return True

    async def close_all(self) -> None:
        """Close every open session (server shutdown)."""
        for session_id in self.session_ids():
            await self.close(session_id)

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
