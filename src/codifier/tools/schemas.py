"""Argument models for the tool handlers."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

MemoryTypeName = Literal["rule", "document", "api_contract", "learning", "research_finding"]


class ToolArgs(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class FetchContextArgs(ToolArgs):
    project_id: str = Field(min_length=1)
    memory_type: MemoryTypeName | None = None
    tags: list[str] | None = None
    query: str | None = None
    limit: int = Field(default=20, ge=1, le=100)


class UpdateMemoryArgs(ToolArgs):
    project_id: str = Field(min_length=1)
    memory_type: MemoryTypeName
    title: str = Field(min_length=1)
    content: dict[str, Any]
    id: str | None = None
    tags: list[str] | None = None
    category: str | None = None
    description: str | None = None
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    source_role: str | None = None


class ManageProjectsArgs(ToolArgs):
    operation: Literal["create", "list", "switch"]
    name: str | None = None
    org: str | None = None
    project_id: str | None = None

    @model_validator(mode="after")
    def _operation_fields(self) -> ManageProjectsArgs:
        if self.operation == "create" and not self.name:
            raise ValueError('Parameter "name" is required for the "create" operation')
        if self.operation == "switch" and not self.project_id:
            raise ValueError('Parameter "project_id" is required for the "switch" operation')
        return self


class PackRepoArgs(ToolArgs):
    url: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    version_label: str | None = None


class QueryDataArgs(ToolArgs):
    operation: Literal["list-tables", "describe-tables", "execute-query"]
    project_id: str = Field(min_length=1)
    database: str | None = None
    query: str | None = None
    table_names: list[str] | None = None

    @model_validator(mode="after")
    def _operation_fields(self) -> QueryDataArgs:
        if self.operation == "execute-query" and not self.query:
            raise ValueError('Parameter "query" is required for the "execute-query" operation')
        if self.operation == "describe-tables" and not self.table_names:
            raise ValueError('Parameter "table_names" is required for the "describe-tables" operation')
        return self


class RunPlaybookArgs(ToolArgs):
    playbook_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)


class AdvanceStepArgs(ToolArgs):
    session_id: str = Field(min_length=1)
    input: dict[str, Any]


def format_validation_error(exc: Any) -> str:
    """Render a pydantic ValidationError as ``field: message`` pairs."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return ", ".join(parts)
