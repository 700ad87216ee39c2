"""Codifier tool definitions.

Contains TOOLS -- the list of all Tool() definitions advertised by tools/list.
"""

from __future__ import annotations

from mcp.types import Tool

MEMORY_TYPES = ["rule", "document", "api_contract", "learning", "research_finding"]

TOOLS = [
    Tool(
        name="fetch_context",
        description=(
            "Retrieve institutional memory for a project: rules, documents, API contracts, "
            "learnings and research findings.\n\n"
            "Call this BEFORE making decisions about project conventions, architecture or "
            "coding standards so your work stays consistent with what has already been agreed."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "project_id": {
                    "type": "string",
                    "description": "The project UUID to scope the query",
                },
                "memory_type": {
                    "type": "string",
                    "enum": MEMORY_TYPES,
                    "description": "Filter by memory type",
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Filter by tags (all supplied tags must be present)",
                },
                "query": {
                    "type": "string",
                    "description": "Text search applied to title and content",
                },
                "limit": {
                    "type": "integer",
                    "default": 20,
                    "minimum": 1,
                    "maximum": 100,
                    "description": "Maximum number of results to return",
                },
            },
            "required": ["project_id"],
        },
    ),
    Tool(
        name="update_memory",
        description=(
            "Create or update an institutional memory record for a project.\n\n"
            "Use this when you discover a rule, convention, API contract or lesson worth keeping. "
            "Pass `id` to update an existing record in place."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "project_id": {"type": "string", "description": "The project UUID to scope this memory"},
                "memory_type": {
                    "type": "string",
                    "enum": MEMORY_TYPES,
                    "description": "Type of memory being stored",
                },
                "title": {"type": "string", "description": "Short descriptive title"},
                "content": {
                    "type": "object",
                    "description": "Structured content payload",
                    "additionalProperties": True,
                },
                "id": {
                    "type": "string",
                    "description": "Existing memory UUID; when given the record is updated",
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Tags for filtering and categorization",
                },
                "category": {"type": "string", "description": "Category grouping (e.g., 'security')"},
                "description": {"type": "string", "description": "Human-readable summary"},
                "confidence": {
                    "type": "number",
                    "minimum": 0,
                    "maximum": 1,
                    "description": "Confidence score between 0 and 1 (default 1.0)",
                },
                "source_role": {
                    "type": "string",
                    "description": "Role that produced this memory (e.g., 'developer', 'researcher')",
                },
            },
            "required": ["project_id", "memory_type", "title", "content"],
        },
    ),
    Tool(
        name="manage_projects",
        description=(
            "Create, list, or switch to a project. Every memory, repository snapshot and "
            "playbook session belongs to a project."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "operation": {
                    "type": "string",
                    "enum": ["create", "list", "switch"],
                    "description": "Operation to perform",
                },
                "name": {"type": "string", "description": "Project name; required for 'create'"},
                "org": {"type": "string", "description": "Organisation name; optional for 'create'"},
                "project_id": {"type": "string", "description": "Project UUID; required for 'switch'"},
            },
            "required": ["operation"],
        },
    ),
    Tool(
        name="pack_repo",
        description=(
            "Condense a repository into a single text snapshot with repomix and store it "
            "against the project for later context retrieval."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "Repository URL (https://github.com/org/repo) or local path",
                },
                "project_id": {"type": "string", "description": "Project UUID to associate the snapshot with"},
                "version_label": {
                    "type": "string",
                    "description": "Optional version label for this snapshot (e.g., 'v1.2.3', 'sprint-5')",
                },
            },
            "required": ["url", "project_id"],
        },
    ),
    Tool(
        name="query_data",
        description=(
            "Query AWS Athena for schema discovery and data analysis. "
            "Use 'list-tables' to see available tables, 'describe-tables' for schema details, "
            "or 'execute-query' to run a SELECT statement. Only SELECT queries are permitted."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "operation": {
                    "type": "string",
                    "enum": ["list-tables", "describe-tables", "execute-query"],
                    "description": "Athena operation to perform",
                },
                "project_id": {"type": "string", "description": "Project UUID for scoping"},
                "database": {
                    "type": "string",
                    "description": "Athena database; overrides the ATHENA_DATABASE setting",
                },
                "query": {"type": "string", "description": "SQL SELECT query; required for 'execute-query'"},
                "table_names": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Table names; required for 'describe-tables'",
                },
            },
            "required": ["operation", "project_id"],
        },
    ),
    Tool(
        name="run_playbook",
        description=(
            "Start a guided playbook session. A playbook is a multi-step workflow that collects "
            "project context and generates institutional memory artifacts. "
            "Returns the first step prompt and a session ID to use with advance_step."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "playbook_id": {
                    "type": "string",
                    "description": (
                        "ID of the playbook to start, e.g. initialize-project, "
                        "brownfield-onboard, research-analyze."
                    ),
                },
                "project_id": {"type": "string", "description": "UUID of the project this session belongs to"},
            },
            "required": ["playbook_id", "project_id"],
        },
    ),
    Tool(
        name="advance_step",
        description=(
            "Submit your response to the current playbook step and advance to the next one. "
            "When a generate step is reached, the response includes a prompt to run through "
            "your model; send its output back on the next advance_step call."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "session_id": {"type": "string", "description": "The session ID returned by run_playbook"},
                "input": {
                    "type": "object",
                    "description": "Key-value pairs for this step, matching the fields the prompt asks for",
                    "additionalProperties": True,
                },
            },
            "required": ["session_id", "input"],
        },
    ),
]

TOOL_NAMES = frozenset(tool.name for tool in TOOLS)
