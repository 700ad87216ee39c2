"""Static capability discovery documents served under ``/.well-known/``."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .config import ServerSettings
from .errors import not_found_response
from .protocol import LATEST_PROTOCOL_VERSION, SUPPORTED_PROTOCOL_VERSIONS


def protected_resource_metadata(settings: ServerSettings) -> dict[str, Any]:
    """RFC 9728 Protected Resource Metadata.

    Codifier uses a static bearer token, so no authorization server is
    advertised.
    """
    return {
        "resource": f"{settings.base_url}/rpc",
        "authorization_servers": [],
        "bearer_methods_supported": ["header"],
        "resource_name": settings.server_name,
    }


def mcp_server_metadata(settings: ServerSettings) -> dict[str, Any]:
    """Describe the server and its transport bindings."""
    base = settings.base_url
    return {
        "name": settings.server_name,
        "version": settings.server_version,
        "protocolVersion": LATEST_PROTOCOL_VERSION,
        "supportedProtocolVersions": list(SUPPORTED_PROTOCOL_VERSIONS),
        "capabilities": {"tools": {"listChanged": False}},
        "authentication": {"type": "bearer", "header": "Authorization"},
        "transports": {
            "stateless": {"url": f"{base}/rpc", "methods": ["POST"]},
            "sse": {"url": f"{base}/stream", "messages": f"{base}/stream-messages"},
        },
        "health": f"{base}/health",
    }


DOCUMENTS: dict[str, Callable[[ServerSettings], dict[str, Any]]] = {
    "oauth-protected-resource": protected_resource_metadata,
    "mcp-server": mcp_server_metadata,
}


async def well_known_endpoint(request: Request) -> Response:
    """Serve a known discovery document, or a flat 404."""
    builder = DOCUMENTS.get(request.path_params["name"])
    if builder is None:
        return not_found_response()
    return JSONResponse(builder(request.app.state.settings))
