# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""JSON-RPC protocol engine for the MCP tool surface.

A ``ProtocolEngine`` is bound to exactly one transport for its lifetime.
The stateless binding creates one per HTTP request; the legacy streaming
binding creates one per open stream. Engines never share mutable state
with each other.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, Protocol

from ..tools.definitions import TOOLS
from ..tools.handlers import ToolContext, handle_tool
from .errors import INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST, METHOD_NOT_FOUND, rpc_error

logger = logging.getLogger(__name__)

SUPPORTED_PROTOCOL_VERSIONS = ("2025-03-26", "2024-11-05")
LATEST_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[0]

SERVER_INSTRUCTIONS = """Codifier keeps institutional memory for software and research projects.

1. Use manage_projects to create or switch to a project; every other tool takes its project_id.
2. Call fetch_context before making decisions about conventions, architecture or standards.
3. Record new rules, contracts and learnings with update_memory.
4. Use run_playbook and advance_step for guided workflows. When advance_step returns a
   generate_request, run its prompt through your model and send the output back on the
   next advance_step call.
"""


class Transport(Protocol):
    """Outbound half of a transport binding."""

    session_id: str | None

    async def send(self, message: dict[str, Any] | list[dict[str, Any]]) -> None: ...

    async def close(self) -> None: ...


class MethodNotFoundError(Exception):
    pass


class InvalidParamsError(Exception):
    pass


class ProtocolEngine:
    """Dispatches JSON-RPC messages to MCP methods and tool handlers."""

    def __init__(self, tool_context: ToolContext, server_name: str = "codifier", server_version: str = "0.0.0-dev"):
        self.tool_context = tool_context
        self.server_name = server_name
        self.server_version = server_version
        self.transport: Transport | None = None
        self.closed = False

    def connect(self, transport: Transport) -> None:
        if self.transport is not None:
            raise RuntimeError("ProtocolEngine is already connected to a transport")
        self.transport = transport

    async def close(self) -> None:
        """Disconnect from the transport and refuse further messages."""
        if self.closed:
            return
        self.closed = True
        transport, self.transport = self.transport, None
        if transport is not None:
            await transport.close()

    async def receive(self, payload: Any) -> None:
        """Process a decoded message or batch and send any responses."""
        if self.closed or self.transport is None:
            raise RuntimeError("ProtocolEngine is not connected")
        response = await self.process(payload)
        if response is not None:
            await self.transport.send(response)

    async def process(self, payload: Any) -> dict[str, Any] | list[dict[str, Any]] | None:
        """Return the response for a message or batch, or None when nothing is owed."""
        if isinstance(payload, list):
            if not payload:
                return rpc_error(INVALID_REQUEST, "Invalid Request: empty batch")
            responses = []
            for item in payload:
                response = await self.handle_message(item)
                if response is not None:
                    responses.append(response)
            return responses or None
        return await self.handle_message(payload)

    async def handle_message(self, message: Any) -> dict[str, Any] | None:
        """Handle a single JSON-RPC message.

        Returns:
            JSON-RPC response object, or None for notifications
        """
        if not isinstance(message, dict):
            return rpc_error(INVALID_REQUEST, "Invalid Request: expected an object")

        request_id = message.get("id")
        is_notification = "id" not in message

        if "jsonrpc" in message and message["jsonrpc"] != "2.0":
            return rpc_error(INVALID_REQUEST, "Invalid Request: wrong jsonrpc version", request_id)

        method = message.get("method")
        if not method or not isinstance(method, str):
            if "result" in message or "error" in message:
                # Client response to a server request; nothing to answer.
                return None
            return rpc_error(INVALID_REQUEST, "Invalid Request: missing or invalid method", request_id)

        params = message.get("params")
        if params is None:
            params = {}

        try:
            if not isinstance(params, dict):
                raise InvalidParamsError("params must be an object")
            result = await self._dispatch_method(method, params)
        except MethodNotFoundError as e:
            if is_notification:
                return None
            return rpc_error(METHOD_NOT_FOUND, str(e), request_id)
        except InvalidParamsError as e:
            if is_notification:
                return None
            return rpc_error(INVALID_PARAMS, str(e), request_id)
        except Exception:  # Intentionally broad: top-level method handler
            logger.exception(f"Error in method {method}")
            if is_notification:
                return None
            return rpc_error(INTERNAL_ERROR, "Internal error", request_id)

        if is_notification:
            return None
        return {"jsonrpc": "2.0", "result": result, "id": request_id}

    async def _dispatch_method(self, method: str, params: dict[str, Any]) -> Any:
        if method == "initialize":
            requested = params.get("protocolVersion")
            return {
                "protocolVersion": requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION,
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": self.server_name, "version": self.server_version},
                "instructions": SERVER_INSTRUCTIONS,
            }

        if method in ("notifications/initialized", "initialized", "ping"):
            return {}

        if method == "tools/list":
            return {
                "tools": [
                    {"name": tool.name, "description": tool.description, "inputSchema": tool.inputSchema}
                    for tool in TOOLS
                ]
            }

        if method == "tools/call":
            tool_name = params.get("name")
            arguments = params.get("arguments") or {}
            if not tool_name or not isinstance(tool_name, str):
                raise InvalidParamsError("Missing tool name")
            if not isinstance(arguments, dict):
                raise InvalidParamsError("Tool arguments must be an object")
            if tool_name not in {tool.name for tool in TOOLS}:
                raise InvalidParamsError(f"Unknown tool: {tool_name}")

            result = await handle_tool(tool_name, arguments, self.tool_context)
            return {
                "content": [{"type": "text", "text": json.dumps(result, indent=2, default=str)}],
                "isError": not result.get("success", True),
            }

        raise MethodNotFoundError(f"Method not found: {method}")


EngineFactory = Callable[[], ProtocolEngine]
