# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Standardized error responses for the Codifier HTTP server.

JSON-RPC endpoints answer with a JSON-RPC error envelope:
{
    "jsonrpc": "2.0",
    "error": {"code": -32600, "message": "..."},
    "id": null
}

Auth and discovery endpoints use a flat OAuth-style body:
{"error": "unauthorized", "error_description": "..."}
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from starlette.responses import JSONResponse

from ..core.exceptions import RoutingError
from ..core.logging import get_request_id

logger = logging.getLogger(__name__)

# =============================================================================
# JSON-RPC ERROR CODES
# =============================================================================

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000

# =============================================================================
# ERROR RESPONSE HELPERS
# =============================================================================


def rpc_error(code: int, message: str, request_id: Any = None, data: Any = None) -> dict[str, Any]:
    """Build a JSON-RPC error envelope."""
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "error": error, "id": request_id}


def rpc_error_response(
    code: int,
    message: str,
    status_code: int = 400,
    request_id: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Create a JSON-RPC error envelope as an HTTP response."""
    return JSONResponse(rpc_error(code, message, request_id), status_code=status_code, headers=headers)


def parse_error_response() -> JSONResponse:
    """Create a 400 response for an unparseable body."""
    return rpc_error_response(PARSE_ERROR, "Parse error", status_code=400)


def routing_error_response(exc: RoutingError) -> JSONResponse:
    """Map a ``RoutingError`` (unsupported verb, unknown session) to its status."""
    headers = {"Allow": exc.allow} if exc.allow else None
    return rpc_error_response(SERVER_ERROR, exc.message, status_code=exc.status_code, headers=headers)


def missing_session_response() -> JSONResponse:
    """Create a 400 for a stream message without a session parameter."""
    return rpc_error_response(SERVER_ERROR, "Bad Request: session query parameter is required", status_code=400)


def unauthorized_response(description: str) -> JSONResponse:
    """Create a 401 with the bearer challenge header."""
    return JSONResponse(
        {"error": "unauthorized", "error_description": description},
        status_code=401,
        headers={"WWW-Authenticate": 'Bearer realm="mcp"'},
    )


def not_found_response() -> JSONResponse:
    """Create a flat 404 for unknown discovery documents."""
    return JSONResponse({"error": "not_found"}, status_code=404)


def internal_error(
    message: str = "Internal server error",
    exc: BaseException | None = None,
) -> JSONResponse:
    """Create a 500 JSON-RPC internal error response.

    Always carries the request correlation id so the client report can be
    matched against the server log.
    """
    request_id = get_request_id()

    if exc is None:
        exc = sys.exc_info()[1]

    if exc is not None:
        logger.error("request_id=%s %s: %s", request_id, type(exc).__name__, exc)

    data = {"request_id": request_id} if request_id else None
    return JSONResponse(rpc_error(INTERNAL_ERROR, message, data=data), status_code=500)
