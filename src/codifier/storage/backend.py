"""Persistence adapter abstraction.

The playbook engine and the tools only ever talk to a ``StorageBackend``;
they never see how records are stored. Every method is a coroutine because
every call into a real store is an I/O suspension point.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class SessionStatus(StrEnum):
    """Lifecycle of a persisted workflow session."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class MemoryType(StrEnum):
    """Kinds of knowledge records a project accumulates."""

    RULE = "rule"
    DOCUMENT = "document"
    API_CONTRACT = "api_contract"
    LEARNING = "learning"
    RESEARCH_FINDING = "research_finding"


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ProjectRecord:
    """A project; every other record is scoped to one."""

    id: str
    name: str
    org: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "org": self.org,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class MemoryRecord:
    """A knowledge record (rule, document, learning, ...)."""

    id: str
    project_id: str
    memory_type: str
    title: str
    content: dict[str, Any]
    tags: list[str] = field(default_factory=list)
    category: str | None = None
    description: str | None = None
    confidence: float = 1.0
    source_role: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "memory_type": self.memory_type,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "category": self.category,
            "description": self.description,
            "confidence": self.confidence,
            "source_role": self.source_role,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class RepositoryRecord:
    """A condensed repository snapshot."""

    id: str
    project_id: str
    url: str
    snapshot: str
    file_tree: dict[str, Any] = field(default_factory=dict)
    version_label: str | None = None
    token_count: int | None = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self, include_snapshot: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "project_id": self.project_id,
            "url": self.url,
            "version_label": self.version_label,
            "token_count": self.token_count,
            "snapshot_chars": len(self.snapshot),
            "created_at": self.created_at.isoformat(),
        }
        if include_snapshot:
            data["snapshot"] = self.snapshot
        return data


@dataclass
class WorkflowSession:
    """Persisted progress through a playbook.

    ``current_step`` points at the step about to execute. ``version`` is
    bumped on every write and used for compare-and-set updates.
    """

    id: str
    project_id: str
    playbook_id: str
    current_step: int = 0
    collected_data: dict[str, Any] = field(default_factory=dict)
    status: SessionStatus = SessionStatus.ACTIVE
    version: int = 1
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "playbook_id": self.playbook_id,
            "current_step": self.current_step,
            "collected_data": dict(self.collected_data),
            "status": self.status.value,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class StorageBackend(ABC):
    """Interface every persistence adapter implements.

    Implementations raise ``DataStoreError`` for backend failures and
    ``ConflictError`` when a compare-and-set session update loses a race.
    """

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Type of backend (e.g., 'memory')."""

    async def initialize(self) -> None:
        """Prepare connections. No-op by default."""

    async def close(self) -> None:
        """Release connections. No-op by default."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True when the backend is reachable."""

    # -- projects -----------------------------------------------------------

    @abstractmethod
    async def create_project(self, name: str, org: str | None = None) -> ProjectRecord: ...

    @abstractmethod
    async def list_projects(self) -> list[ProjectRecord]: ...

    @abstractmethod
    async def get_project(self, project_id: str) -> ProjectRecord | None: ...

    # -- knowledge ----------------------------------------------------------

    @abstractmethod
    async def upsert_memory(
        self,
        project_id: str,
        memory_type: str,
        title: str,
        content: dict[str, Any],
        *,
        memory_id: str | None = None,
        tags: list[str] | None = None,
        category: str | None = None,
        description: str | None = None,
        confidence: float = 1.0,
        source_role: str | None = None,
    ) -> MemoryRecord:
        """Insert a knowledge record, or update it in place when ``memory_id`` is given."""

    @abstractmethod
    async def fetch_memories(
        self,
        project_id: str,
        memory_type: str | None = None,
        tags: list[str] | None = None,
        query: str | None = None,
        limit: int = 20,
    ) -> list[MemoryRecord]:
        """Newest first. ``tags`` must all be present; ``query`` matches title or content."""

    # -- repositories -------------------------------------------------------

    @abstractmethod
    async def save_repository(
        self,
        project_id: str,
        url: str,
        snapshot: str,
        *,
        file_tree: dict[str, Any] | None = None,
        version_label: str | None = None,
        token_count: int | None = None,
    ) -> RepositoryRecord: ...

    # -- workflow sessions --------------------------------------------------

    @abstractmethod
    async def create_session(self, playbook_id: str, project_id: str) -> WorkflowSession:
        """Create an active session at step 0 with no collected data."""

    @abstractmethod
    async def get_session(self, session_id: str) -> WorkflowSession | None: ...

    @abstractmethod
    async def update_session(
        self,
        session_id: str,
        *,
        current_step: int | None = None,
        collected_data: dict[str, Any] | None = None,
        status: SessionStatus | None = None,
        expected_version: int | None = None,
    ) -> WorkflowSession:
        """Apply a partial update and return the new row.

        When ``expected_version`` is given the write only happens if the
        stored version still matches; otherwise ``ConflictError`` is raised.
        """
