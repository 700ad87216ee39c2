"""Tests for the stateless unary binding."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from starlette.testclient import TestClient

from codifier.server.app import create_app
from codifier.server.stateless import StatelessSessionExecutor


class RecordingFactory:
    """Wraps an engine factory and keeps every engine it builds."""

    def __init__(self, factory):
        self.factory = factory
        self.engines = []

    def __call__(self):
        engine = self.factory()
        self.engines.append(engine)
        return engine


@pytest.fixture
def recording(engine_factory) -> RecordingFactory:
    return RecordingFactory(engine_factory)


class TestStatelessSessionExecutor:
    async def test_fresh_engine_per_request_and_closed(self, recording):
        executor = StatelessSessionExecutor(recording)
        first = await executor.execute({"jsonrpc": "2.0", "id": 1, "method": "ping"})
        second = await executor.execute({"jsonrpc": "2.0", "id": 2, "method": "ping"})

        assert first["id"] == 1
        assert second["id"] == 2
        assert len(recording.engines) == 2
        assert recording.engines[0] is not recording.engines[1]
        assert all(engine.closed for engine in recording.engines)

    async def test_notification_returns_none(self, recording):
        executor = StatelessSessionExecutor(recording)
        assert await executor.execute({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None
        assert recording.engines[0].closed

    async def test_engine_closed_when_processing_raises(self, recording, monkeypatch):
        executor = StatelessSessionExecutor(recording)

        def build():
            engine = recording()

            async def boom(payload):
                raise RuntimeError("kaput")

            monkeypatch.setattr(engine, "process", boom)
            return engine

        executor.engine_factory = build
        with pytest.raises(RuntimeError):
            await executor.execute({"jsonrpc": "2.0", "id": 1, "method": "ping"})
        assert recording.engines[0].closed


class TestStatelessHttp:
    def test_each_request_uses_new_engine(self, settings, store, recording, auth_headers):
        client = TestClient(create_app(settings=settings, store=store, engine_factory=recording))
        for i in range(3):
            client.post("/rpc", json={"jsonrpc": "2.0", "id": i, "method": "ping"}, headers=auth_headers)

        assert len(recording.engines) == 3
        assert len({id(e) for e in recording.engines}) == 3
        assert all(engine.closed for engine in recording.engines)

    def test_mcp_session_id_ignored(self, client, auth_headers):
        payload = {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "2025-03-26"}}
        plain = client.post("/rpc", json=payload, headers=auth_headers)
        stale = client.post("/rpc", json=payload, headers={**auth_headers, "Mcp-Session-Id": "stale-session"})

        assert plain.status_code == stale.status_code == 200
        assert plain.json() == stale.json()
        assert "mcp-session-id" not in plain.headers
        assert "mcp-session-id" not in stale.headers

    def test_internal_error_carries_request_id(self, settings, store, auth_headers):
        def broken_factory():
            raise RuntimeError("cannot build engine")

        client = TestClient(create_app(settings=settings, store=store, engine_factory=broken_factory))
        response = client.post("/rpc", json={"jsonrpc": "2.0", "id": 1, "method": "ping"}, headers=auth_headers)

        assert response.status_code == 500
        body = response.json()
        assert body["error"]["code"] == -32603
        assert body["error"]["data"]["request_id"] == response.headers["x-request-id"]
        assert "cannot build engine" not in response.text


def _call(name: str, arguments: dict, request_id: int = 1) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "method": "tools/call", "params": {"name": name, "arguments": arguments}}


def _result(response: httpx.Response) -> dict:
    return json.loads(response.json()["result"]["content"][0]["text"])


class TestConcurrentStatelessRequests:
    async def test_concurrent_advances_stay_isolated(self, settings, store, recording, auth_headers):
        app = create_app(settings=settings, store=store, engine_factory=recording)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver", headers=auth_headers) as client:
            started = await asyncio.gather(
                *(
                    client.post("/rpc", json=_call("run_playbook", {"playbook_id": "onboard", "project_id": f"p{i}"}))
                    for i in range(4)
                )
            )
            session_ids = [_result(r)["session_id"] for r in started]
            assert len(set(session_ids)) == 4

            advanced = await asyncio.gather(
                *(
                    client.post(
                        "/rpc",
                        json=_call(
                            "advance_step",
                            {"session_id": sid, "input": {"repo_url": f"https://example.com/repo-{i}"}},
                            request_id=i,
                        ),
                    )
                    for i, sid in enumerate(session_ids)
                )
            )

        for i, response in enumerate(advanced):
            assert response.status_code == 200
            assert response.json()["id"] == i
            payload = _result(response)
            assert payload["session_id"] == session_ids[i]
            assert payload["generate_request"]["context"] == {"repo_url": f"https://example.com/repo-{i}"}

        assert len(recording.engines) == 8
        assert all(engine.closed for engine in recording.engines)
