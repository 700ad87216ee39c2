"""Tests for the main Starlette application."""

from __future__ import annotations

import asyncio
import json

import pytest
from starlette.testclient import TestClient

from codifier.server.app import create_app
from codifier.server.registry import LegacySessionRegistry
from codifier.storage.memory import InMemoryStore


def _rpc(method: str, request_id: int | None = 1, params: dict | None = None) -> dict:
    message = {"jsonrpc": "2.0", "method": method}
    if request_id is not None:
        message["id"] = request_id
    if params is not None:
        message["params"] = params
    return message


# ============================================================================
# Health Endpoint Tests
# ============================================================================


class TestHealthEndpoint:
    def test_healthy(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "server": "codifier", "version": "1.2.3", "store": "memory"}

    def test_unhealthy(self, settings):
        class DownStore(InMemoryStore):
            async def health_check(self) -> bool:
                raise ConnectionError("unreachable")

        client = TestClient(create_app(settings=settings, store=DownStore()), raise_server_exceptions=False)
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-Id": "trace-1"})
        assert response.headers["x-request-id"] == "trace-1"


# ============================================================================
# Stateless binding
# ============================================================================


class TestRpcEndpoint:
    def test_ping(self, client, auth_headers):
        response = client.post("/rpc", json=_rpc("ping"), headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"jsonrpc": "2.0", "result": {}, "id": 1}

    def test_notification_is_202_with_empty_body(self, client, auth_headers):
        response = client.post("/rpc", json=_rpc("notifications/initialized", request_id=None), headers=auth_headers)
        assert response.status_code == 202
        assert response.content == b""

    def test_parse_error(self, client, auth_headers):
        response = client.post("/rpc", content=b"{not json", headers={**auth_headers, "Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700

    def test_batch(self, client, auth_headers):
        response = client.post("/rpc", json=[_rpc("ping", 1), _rpc("tools/list", 2)], headers=auth_headers)
        assert [r["id"] for r in response.json()] == [1, 2]

    @pytest.mark.parametrize("method", ["GET", "DELETE"])
    def test_other_verbs_not_allowed(self, client, auth_headers, method):
        response = client.request(method, "/rpc", headers=auth_headers)
        assert response.status_code == 405
        assert response.headers["allow"] == "POST"
        assert response.json()["error"] == {"code": -32000, "message": "Method not allowed."}

    def test_playbook_over_http(self, client, auth_headers):
        started = client.post(
            "/rpc",
            json=_rpc("tools/call", params={"name": "run_playbook", "arguments": {"playbook_id": "onboard", "project_id": "p1"}}),
            headers=auth_headers,
        )
        session_id = json.loads(started.json()["result"]["content"][0]["text"])["session_id"]

        # A later, unrelated request continues the persisted workflow session
        advanced = client.post(
            "/rpc",
            json=_rpc(
                "tools/call",
                request_id=2,
                params={"name": "advance_step", "arguments": {"session_id": session_id, "input": {"repo_url": "https://a"}}},
            ),
            headers=auth_headers,
        )
        payload = json.loads(advanced.json()["result"]["content"][0]["text"])
        assert payload["step_number"] == 2
        assert payload["generate_request"]["generator"] == "rules-from-context"


# ============================================================================
# Legacy streaming binding
# ============================================================================


def _stream_scope(headers: dict[str, str]) -> dict:
    return {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.3"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/stream",
        "raw_path": b"/stream",
        "root_path": "",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("127.0.0.1", 50000),
        "server": ("127.0.0.1", 3000),
    }


class TestStreamEndpoint:
    async def test_open_announce_and_disconnect(self, app, registry, auth_headers):
        body = bytearray()
        keepalive_seen = asyncio.Event()
        disconnected = asyncio.Event()
        statuses = []

        async def receive():
            await disconnected.wait()
            return {"type": "http.disconnect"}

        async def send(message):
            if message["type"] == "http.response.start":
                statuses.append(message["status"])
            elif message["type"] == "http.response.body":
                body.extend(message.get("body", b""))
                if b": keep-alive" in body:
                    keepalive_seen.set()

        task = asyncio.create_task(app(_stream_scope(auth_headers), receive, send))
        # Keep-alive interval comes from the injected registry (0.05s)
        await asyncio.wait_for(keepalive_seen.wait(), timeout=5)

        assert statuses == [200]
        assert len(registry) == 1
        session_id = registry.session_ids()[0]
        assert body.decode().startswith(f"event: endpoint\ndata: /stream-messages?session={session_id}\n\n")

        disconnected.set()
        await asyncio.wait_for(task, timeout=5)
        assert len(registry) == 0

    def test_requires_auth(self, client):
        assert client.get("/stream").status_code == 401

    def test_delete_requires_session_param(self, client, auth_headers):
        assert client.delete("/stream", headers=auth_headers).status_code == 400


class TestCreateApp:
    def test_keeps_injected_collaborators(self, settings, store, engine_factory):
        registry = LegacySessionRegistry(keepalive_interval=0.2)
        assert len(registry) == 0

        app = create_app(settings=settings, store=store, registry=registry, engine_factory=engine_factory)
        assert app.state.registry is registry
        assert app.state.store is store
        assert app.state.engine_factory is engine_factory

    def test_builds_missing_collaborators(self, settings):
        app = create_app(settings=settings)
        assert isinstance(app.state.store, InMemoryStore)
        assert app.state.registry.keepalive_interval == settings.keepalive_interval


class TestStreamMessages:
    def test_missing_session_param(self, client, auth_headers):
        response = client.post("/stream-messages", json=_rpc("ping"), headers=auth_headers)
        assert response.status_code == 400

    def test_unknown_session(self, client, auth_headers):
        response = client.post("/stream-messages?session=nope", json=_rpc("ping"), headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Not Found: Session not found"

    def test_known_session_accepts(self, client, registry, engine_factory, auth_headers):
        session = registry.open(engine_factory)
        response = client.post(f"/stream-messages?session={session.session_id}", json=_rpc("ping", 11), headers=auth_headers)

        assert response.status_code == 202
        assert session.transport._queue.get_nowait() == {"jsonrpc": "2.0", "result": {}, "id": 11}

    def test_parse_error(self, client, registry, engine_factory, auth_headers):
        session = registry.open(engine_factory)
        response = client.post(
            f"/stream-messages?session={session.session_id}",
            content=b"[broken",
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700

    def test_delete_stream(self, client, registry, engine_factory, auth_headers):
        session = registry.open(engine_factory)
        assert client.delete(f"/stream?session={session.session_id}", headers=auth_headers).status_code == 204
        assert session.session_id not in registry
        assert session.engine.closed
        assert client.delete(f"/stream?session={session.session_id}", headers=auth_headers).status_code == 404


# ============================================================================
# Discovery
# ============================================================================


class TestWellKnown:
    def test_mcp_server_metadata(self, client):
        body = client.get("/.well-known/mcp-server").json()
        assert body["name"] == "codifier"
        assert body["version"] == "1.2.3"
        assert body["transports"]["stateless"]["url"].endswith("/rpc")
        assert body["transports"]["sse"]["messages"].endswith("/stream-messages")

    def test_protected_resource_metadata(self, client):
        body = client.get("/.well-known/oauth-protected-resource").json()
        assert body["resource"] == "http://127.0.0.1:3000/rpc"
        assert body["bearer_methods_supported"] == ["header"]

    def test_unknown_document(self, client):
        response = client.get("/.well-known/openid-configuration")
        assert response.status_code == 404
        assert response.json() == {"error": "not_found"}


class TestLifespan:
    def test_shutdown_closes_streams(self, app, registry, engine_factory):
        with TestClient(app):
            session = registry.open(engine_factory)
        assert len(registry) == 0
        assert session.engine.closed
