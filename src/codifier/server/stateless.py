# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Stateless unary binding.

Every ``POST /rpc`` gets its own ``ProtocolEngine`` and ``UnaryTransport``.
Both are released as soon as the response payload exists, whether the
request succeeded, produced a protocol error, raised, or was cancelled by
a client disconnect. An ``Mcp-Session-Id`` header sent by the client is
ignored and none is ever returned.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .errors import internal_error, parse_error_response
from .protocol import EngineFactory
from .transports import UnaryTransport

logger = logging.getLogger(__name__)


class StatelessSessionExecutor:
    """Runs each request on a fresh engine/transport pair."""

    def __init__(self, engine_factory: EngineFactory):
        self.engine_factory = engine_factory

    async def execute(self, payload: Any) -> Any:
        """Process a decoded payload and return the response body (or None)."""
        engine = self.engine_factory()
        transport = UnaryTransport(session_id=None)
        try:
            engine.connect(transport)
            await engine.receive(payload)
            return transport.body
        finally:
            await engine.close()
            await transport.close()

    async def handle(self, request: Request) -> Response:
        """HTTP handler for ``POST /rpc``."""
        try:
            payload = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError):
            return parse_error_response()

        try:
            body = await self.execute(payload)
        except Exception as e:
            logger.exception("Unhandled error in stateless request")
            return internal_error(exc=e)

        if body is None:
            return Response(status_code=202)
        return JSONResponse(body)
