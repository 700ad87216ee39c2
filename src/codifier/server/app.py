# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""HTTP MCP server for Codifier.

Bindings:
- ``POST /rpc``: stateless unary JSON-RPC (``GET``/``DELETE`` answer 405)
- ``GET /stream`` + ``POST /stream-messages?session=<id>``: legacy SSE
- ``GET /health`` and ``GET /.well-known/*``: unauthenticated
- ``GET /metrics``: Prometheus text, authenticated
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from ..core.exceptions import RoutingError
from ..core.logging import configure_logging, request_context
from ..playbooks.loader import PlaybookLoader
from ..storage.backend import StorageBackend
from ..storage.memory import InMemoryStore
from ..tools.handlers import ToolContext
from .auth import BearerAuthMiddleware
from .config import ServerSettings, get_settings
from .discovery import well_known_endpoint
from .errors import (
    internal_error,
    missing_session_response,
    parse_error_response,
    routing_error_response,
)
from .metrics import MetricsMiddleware, RequestMetrics, metrics_endpoint
from .protocol import EngineFactory, ProtocolEngine
from .registry import LegacySessionRegistry
from .stateless import StatelessSessionExecutor

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}

SESSION_NOT_FOUND = "Not Found: Session not found"


# =============================================================================
# MIDDLEWARE
# =============================================================================


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id to every request and echo it as X-Request-Id."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        with request_context(request.headers.get("x-request-id")) as rid:
            response = await call_next(request)
            response.headers["X-Request-Id"] = rid
            return response


# =============================================================================
# ENDPOINTS
# =============================================================================


async def health_endpoint(request: Request) -> JSONResponse:
    """Health check endpoint. Never requires authentication."""
    settings: ServerSettings = request.app.state.settings
    store: StorageBackend = request.app.state.store

    try:
        healthy = await store.health_check()
    except Exception as e:
        logger.warning(f"Store health check failed: {e}")
        healthy = False

    return JSONResponse(
        {
            "status": "ok" if healthy else "unhealthy",
            "server": settings.server_name,
            "version": settings.server_version,
            "store": store.backend_type,
        },
        status_code=200 if healthy else 503,
    )


async def rpc_endpoint(request: Request) -> Response:
    """Stateless binding. Other verbs do not apply without a session."""
    if request.method != "POST":
        raise RoutingError("Method not allowed.", status_code=405, allow="POST")
    executor: StatelessSessionExecutor = request.app.state.executor
    return await executor.handle(request)


async def stream_endpoint(request: Request) -> Response:
    """Open a legacy SSE stream (GET) or close one explicitly (DELETE)."""
    registry: LegacySessionRegistry = request.app.state.registry

    if request.method == "DELETE":
        session_id = request.query_params.get("session")
        if not session_id:
            return missing_session_response()
        if not await registry.close(session_id):
            raise RoutingError(SESSION_NOT_FOUND)
        return Response(status_code=204)

    session = registry.open(request.app.state.engine_factory)

    async def event_stream() -> AsyncIterator[str]:
        try:
            async for frame in session.transport.events():
                yield frame
        except Exception:
            # Headers are already sent; nothing can be reported to the client.
            logger.exception(f"Stream {session.session_id} failed")
        finally:
            await registry.close(session.session_id)

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


async def stream_messages_endpoint(request: Request) -> Response:
    """Post one message (or batch) to an open legacy stream."""
    session_id = request.query_params.get("session")
    if not session_id:
        return missing_session_response()

    session = request.app.state.registry.get(session_id)
    if session is None:
        logger.warning(f"Message for unknown stream session {session_id}")
        raise RoutingError(SESSION_NOT_FOUND)

    try:
        payload = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        return parse_error_response()

    await session.deliver(payload)
    return Response("Accepted", status_code=202, media_type="text/plain")


async def routing_error_handler(request: Request, exc: RoutingError) -> Response:
    return routing_error_response(exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return internal_error(exc=exc)


# =============================================================================
# APPLICATION
# =============================================================================


def default_engine_factory(
    settings: ServerSettings,
    store: StorageBackend,
    loader: PlaybookLoader | None = None,
) -> EngineFactory:
    """Build a factory producing an independent engine per connection."""
    loader = loader or PlaybookLoader(settings.playbooks_dir)

    def factory() -> ProtocolEngine:
        context = ToolContext(store=store, loader=loader)
        return ProtocolEngine(context, server_name=settings.server_name, server_version=settings.server_version)

    return factory


@asynccontextmanager
async def lifespan(app: Starlette):
    """Application lifespan handler."""
    settings: ServerSettings = app.state.settings
    store: StorageBackend = app.state.store
    logger.info(f"Starting Codifier MCP server on {settings.host}:{settings.port} (store: {store.backend_type})")

    await store.initialize()

    yield

    logger.info("Codifier MCP server shutting down")
    await app.state.registry.close_all()
    await store.close()


def create_app(
    settings: ServerSettings | None = None,
    store: StorageBackend | None = None,
    registry: LegacySessionRegistry | None = None,
    engine_factory: EngineFactory | None = None,
) -> Starlette:
    """Create the Starlette ASGI application.

    Collaborators not supplied are built from settings. Everything lives on
    ``app.state``; no request handler reaches for process-wide state.
    """
    settings = settings or get_settings()
    if store is None:
        store = InMemoryStore()
    if registry is None:
        registry = LegacySessionRegistry(keepalive_interval=settings.keepalive_interval)
    if engine_factory is None:
        engine_factory = default_engine_factory(settings, store)
    metrics = RequestMetrics()

    routes = [
        Route("/health", health_endpoint, methods=["GET"]),
        Route("/.well-known/{name:path}", well_known_endpoint, methods=["GET"]),
        Route("/rpc", rpc_endpoint, methods=["POST", "GET", "DELETE"]),
        Route("/stream", stream_endpoint, methods=["GET", "DELETE"]),
        Route("/stream-messages", stream_messages_endpoint, methods=["POST"]),
        Route("/metrics", metrics_endpoint, methods=["GET"]),
    ]

    # Outermost first: CORS answers preflights before auth runs.
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", "Mcp-Session-Id", "X-Request-Id"],
            expose_headers=["X-Request-Id"],
        ),
        Middleware(RequestContextMiddleware),
        Middleware(MetricsMiddleware, metrics=metrics),
        Middleware(BearerAuthMiddleware, token=settings.api_auth_token),
    ]

    app = Starlette(
        routes=routes,
        middleware=middleware,
        lifespan=lifespan,
        exception_handlers={RoutingError: routing_error_handler, Exception: unhandled_exception_handler},
    )
    app.state.settings = settings
    app.state.store = store
    app.state.registry = registry
    app.state.metrics = metrics
    app.state.engine_factory = engine_factory
    app.state.executor = StatelessSessionExecutor(engine_factory)
    return app


def run() -> None:
    """Run the server using uvicorn."""
    import uvicorn

    configure_logging()
    settings = get_settings()

    logger.info(f"Starting Codifier HTTP MCP server on {settings.host}:{settings.port}")

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level="info",
    )


if __name__ == "__main__":
    run()
