# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Bearer token authentication for the HTTP MCP server."""

from __future__ import annotations

import logging
import secrets

from pydantic import SecretStr
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from ..core.exceptions import AuthError
from .errors import unauthorized_response

logger = logging.getLogger(__name__)

EXEMPT_PATHS = frozenset({"/health"})
EXEMPT_PREFIXES = ("/.well-known/",)


def is_exempt(path: str, method: str) -> bool:
    """Health, discovery and CORS preflight never require a token."""
    return method == "OPTIONS" or path in EXEMPT_PATHS or path.startswith(EXEMPT_PREFIXES)


def verify_authorization(header: str | None, expected: str) -> None:
    """Check an Authorization header against the shared secret.

    Raises:
        AuthError: with ``reason`` set to the client-facing description.
    """
    if not header:
        raise AuthError("Authentication failed: missing Authorization header", "Missing Authorization header")

    scheme, _, token = header.partition(" ")
    if scheme != "Bearer":
        raise AuthError("Authentication failed: invalid scheme", "Invalid authentication scheme (expected Bearer)")

    token = token.strip()
    if not token or not expected or not secrets.compare_digest(token.encode(), expected.encode()):
        raise AuthError("Authentication failed: invalid token", "Invalid API token")


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Reject requests without the configured bearer token."""

    def __init__(self, app: ASGIApp, token: SecretStr | str):
        super().__init__(app)
        self._token = token.get_secret_value() if isinstance(token, SecretStr) else token

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if is_exempt(path, request.method):
            return await call_next(request)

        try:
            verify_authorization(request.headers.get("authorization"), self._token)
        except AuthError as e:
            client = request.client.host if request.client else "unknown"
            logger.warning(f"{e.message} ({request.method} {path} from {client})")
            return unauthorized_response(e.reason)

        return await call_next(request)
