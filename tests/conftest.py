"""Global test fixtures for the Codifier test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from codifier.integrations.repomix import PackResult
from codifier.playbooks.loader import PlaybookLoader
from codifier.storage.memory import InMemoryStore

ONBOARD_PLAYBOOK = """\
id: onboard
name: Onboard
role: developer
description: Three step onboarding used by the tests
steps:
  - id: repo
    title: Repository
    prompt: Which repository should be analysed?
    action: store
    store_as: document
    collect: [repo_url]
  - id: summary
    title: Summary
    prompt: Generate a summary of the collected answers.
    action: generate
    generator: rules-from-context
  - id: confirm
    title: Confirmed summary
    prompt: Review the generated summary and confirm it.
    action: store
    store_as: learning
"""


# ============================================================================
# Environment / cache reset
# ============================================================================


@pytest.fixture(autouse=True)
def reset_caches(monkeypatch):
    """Reset lazily-built globals and isolate from the developer's environment."""
    import codifier.core.config as core_config
    import codifier.playbooks.loader as loader_module
    import codifier.server.config as server_config

    for var in (
        "CODIFIER_API_AUTH_TOKEN",
        "API_AUTH_TOKEN",
        "CODIFIER_EXTERNAL_URL",
        "CODIFIER_HOST",
        "CODIFIER_PRODUCTION",
        "CODIFIER_PLAYBOOKS_DIR",
        "GITHUB_TOKEN",
        "GITLAB_TOKEN",
        "BITBUCKET_TOKEN",
        "ATHENA_DATABASE",
    ):
        monkeypatch.delenv(var, raising=False)

    core_config._config = None
    server_config._settings = None
    loader_module._loader = None

    yield

    core_config._config = None
    server_config._settings = None
    loader_module._loader = None


# ============================================================================
# Playbooks
# ============================================================================


@pytest.fixture
def playbooks_dir(tmp_path) -> Path:
    """A definitions directory holding the three-step ``onboard`` playbook."""
    root = tmp_path / "definitions"
    (root / "developer").mkdir(parents=True)
    (root / "developer" / "onboard.yaml").write_text(ONBOARD_PLAYBOOK)
    return root


@pytest.fixture
def loader(playbooks_dir) -> PlaybookLoader:
    return PlaybookLoader(playbooks_dir)


# ============================================================================
# Storage and collaborators
# ============================================================================


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


class FakePacker:
    """Records requested URLs and returns a fixed snapshot."""

    def __init__(self, snapshot: str = "packed snapshot", error: Exception | None = None):
        self.snapshot = snapshot
        self.error = error
        self.calls: list[str] = []

    async def __call__(self, url: str) -> PackResult:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return PackResult(snapshot=self.snapshot, token_count=42, file_count=3)


class FakeAthena:
    """Stands in for ``AthenaClient``; records each ``run`` call."""

    def __init__(self, output: Any = "ok", error: Exception | None = None):
        self.output = output
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def run(self, operation, *, query=None, table_names=None, database=None):
        self.calls.append(
            {"operation": operation, "query": query, "table_names": table_names, "database": database}
        )
        if self.error is not None:
            raise self.error
        return self.output


@pytest.fixture
def packer() -> FakePacker:
    return FakePacker()


@pytest.fixture
def athena() -> FakeAthena:
    return FakeAthena()
