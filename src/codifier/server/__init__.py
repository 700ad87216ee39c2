"""Codifier HTTP MCP Server.

Serves the Codifier tool surface over two transport bindings with a shared
bearer token.

Usage:
    # Start the server
    codifier-server

    # Or with uvicorn directly
    uvicorn codifier.server.app:create_app --factory --port 3000
"""

from .config import ServerSettings, get_settings

__all__ = [
    "ServerSettings",
    "get_settings",
]
