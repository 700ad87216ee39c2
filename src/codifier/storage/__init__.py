"""Persistence for projects, memories, repositories and workflow sessions."""

from .backend import (
    MemoryRecord,
    MemoryType,
    ProjectRecord,
    RepositoryRecord,
    SessionStatus,
    StorageBackend,
    WorkflowSession,
)
from .memory import InMemoryStore

__all__ = [
    "StorageBackend",
    "InMemoryStore",
    "SessionStatus",
    "MemoryType",
    "ProjectRecord",
    "MemoryRecord",
    "RepositoryRecord",
    "WorkflowSession",
]
