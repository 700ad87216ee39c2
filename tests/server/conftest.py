"""Server-specific test fixtures."""

from __future__ import annotations

import pytest
from starlette.testclient import TestClient

from codifier.server.app import create_app, default_engine_factory
from codifier.server.config import ServerSettings
from codifier.server.protocol import ProtocolEngine
from codifier.server.registry import LegacySessionRegistry
from codifier.tools.handlers import ToolContext

TEST_TOKEN = "test-token-0123456789abcdef"


@pytest.fixture
def settings(playbooks_dir) -> ServerSettings:
    return ServerSettings(api_auth_token=TEST_TOKEN, playbooks_dir=playbooks_dir, server_version="1.2.3")


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_TOKEN}"}


@pytest.fixture
def registry() -> LegacySessionRegistry:
    return LegacySessionRegistry(keepalive_interval=0.05)


@pytest.fixture
def tool_context(store, loader, packer, athena) -> ToolContext:
    return ToolContext(store=store, loader=loader, packer=packer, athena_factory=lambda: athena)


@pytest.fixture
def protocol_engine(tool_context) -> ProtocolEngine:
    return ProtocolEngine(tool_context, server_name="codifier", server_version="1.2.3")


@pytest.fixture
def app(settings, store, registry):
    return create_app(settings=settings, store=store, registry=registry)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def engine_factory(settings, store, loader):
    return default_engine_factory(settings, store, loader)
