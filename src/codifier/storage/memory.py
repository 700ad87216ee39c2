"""In-process storage backend.

Used for development, tests, and single-replica deployments. Records live
in dicts guarded by one lock; every read hands back a deep copy so callers
can never mutate stored state behind the store's back.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from dataclasses import replace
from typing import Any

from ..core.exceptions import ConflictError, DataStoreError
from .backend import (
    MemoryRecord,
    ProjectRecord,
    RepositoryRecord,
    SessionStatus,
    StorageBackend,
    WorkflowSession,
    utcnow,
)

logger = logging.getLogger(__name__)


class InMemoryStore(StorageBackend):
    """Thread-safe dict-backed implementation of ``StorageBackend``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._projects: dict[str, ProjectRecord] = {}
        self._memories: dict[str, MemoryRecord] = {}
        self._repositories: dict[str, RepositoryRecord] = {}
        self._sessions: dict[str, WorkflowSession] = {}

    @property
    def backend_type(self) -> str:
        return "memory"

    async def health_check(self) -> bool:
        return True

    # -- projects -----------------------------------------------------------

    async def create_project(self, name: str, org: str | None = None) -> ProjectRecord:
        project = ProjectRecord(id=str(uuid.uuid4()), name=name, org=org)
        with self._lock:
            self._projects[project.id] = project
        logger.info("Project created", extra={"extra_data": {"id": project.id, "name": name}})
        return copy.deepcopy(project)

    async def list_projects(self) -> list[ProjectRecord]:
        with self._lock:
            projects = sorted(self._projects.values(), key=lambda p: p.created_at, reverse=True)
            return copy.deepcopy(projects)

    async def get_project(self, project_id: str) -> ProjectRecord | None:
        with self._lock:
            return copy.deepcopy(self._projects.get(project_id))

    # -- knowledge ----------------------------------------------------------

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
        fields = {
            "memory_type": memory_type,
            "title": title,
            "content": copy.deepcopy(content),
            "tags": list(tags or []),
            "category": category,
            "description": description,
            "confidence": confidence,
            "source_role": source_role,
        }
        with self._lock:
            if memory_id is not None:
                existing = self._memories.get(memory_id)
                if existing is None or existing.project_id != project_id:
                    raise DataStoreError(f"Failed to update memory: {memory_id} not found in project {project_id}")
                record = replace(existing, updated_at=utcnow(), **fields)
            else:
                record = MemoryRecord(id=str(uuid.uuid4()), project_id=project_id, **fields)
            self._memories[record.id] = record

        logger.info(
            "Memory upserted",
            extra={"extra_data": {"id": record.id, "project_id": project_id, "memory_type": memory_type}},
        )
        return copy.deepcopy(record)

    async def fetch_memories(
        self,
        project_id: str,
        memory_type: str | None = None,
        tags: list[str] | None = None,
        query: str | None = None,
        limit: int = 20,
    ) -> list[MemoryRecord]:
        needle = query.lower() if query else None
        with self._lock:
            matches = []
            for record in self._memories.values():
                if record.project_id != project_id:
                    continue
                if memory_type and record.memory_type != memory_type:
                    continue
                if tags and not set(tags).issubset(record.tags):
                    continue
                if needle and needle not in record.title.lower() and needle not in str(record.content).lower():
                    continue
                matches.append(record)
            matches.sort(key=lambda r: r.created_at, reverse=True)
            if limit > 0:
                matches = matches[:limit]
            return copy.deepcopy(matches)

    # -- repositories -------------------------------------------------------

    async def save_repository(
        self,
        project_id: str,
        url: str,
        snapshot: str,
        *,
        file_tree: dict[str, Any] | None = None,
        version_label: str | None = None,
        token_count: int | None = None,
    ) -> RepositoryRecord:
        record = RepositoryRecord(
            id=str(uuid.uuid4()),
            project_id=project_id,
            url=url,
            snapshot=snapshot,
            file_tree=dict(file_tree or {}),
            version_label=version_label,
            token_count=token_count,
        )
        with self._lock:
            self._repositories[record.id] = record
        logger.info("Repository snapshot saved", extra={"extra_data": {"id": record.id, "url": url}})
        return copy.deepcopy(record)

    # -- workflow sessions --------------------------------------------------

    async def create_session(self, playbook_id: str, project_id: str) -> WorkflowSession:
        session = WorkflowSession(id=str(uuid.uuid4()), project_id=project_id, playbook_id=playbook_id)
        with self._lock:
            self._sessions[session.id] = session
        logger.info("Session created", extra={"extra_data": {"id": session.id, "playbook_id": playbook_id}})
        return copy.deepcopy(session)

    async def get_session(self, session_id: str) -> WorkflowSession | None:
        with self._lock:
            return copy.deepcopy(self._sessions.get(session_id))

    async def update_session(
        self,
        session_id: str,
        *,
        current_step: int | None = None,
        collected_data: dict[str, Any] | None = None,
        status: SessionStatus | None = None,
        expected_version: int | None = None,
    ) -> WorkflowSession:
        with self._lock:
            existing = self._sessions.get(session_id)
            if existing is None:
                raise DataStoreError(f"Failed to update session: {session_id} not found")
            if expected_version is not None and existing.version != expected_version:
                raise ConflictError(
                    f"Session {session_id} was modified concurrently "
                    f"(expected version {expected_version}, found {existing.version})",
                    existing_id=session_id,
                )

            changes: dict[str, Any] = {"version": existing.version + 1, "updated_at": utcnow()}
            if current_step is not None:
                changes["current_step"] = current_step
            if collected_data is not None:
                changes["collected_data"] = copy.deepcopy(collected_data)
            if status is not None:
                changes["status"] = SessionStatus(status)

            updated = replace(existing, **changes)
            self._sessions[session_id] = updated

        logger.info(
            "Session updated",
            extra={"extra_data": {"id": session_id, "status": updated.status.value, "version": updated.version}},
        )
        return copy.deepcopy(updated)

    async def abandon_session(self, session_id: str) -> WorkflowSession:
        """Administrative transition to ``abandoned``; the engine never calls this."""
        return await self.update_session(session_id, status=SessionStatus.ABANDONED)
