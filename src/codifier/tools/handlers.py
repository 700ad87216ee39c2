"""Tool dispatch and handler mapping.

Provides:
    HANDLERS -- tool name to handler coroutine mapping
    handle_tool -- validate arguments, dispatch, and shape the result dict

Handlers return plain dicts with a ``success`` key. Domain failures become
``{"success": False, "error": ...}`` results rather than protocol errors,
so the caller sees them as ``isError`` tool results.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from ..core.exceptions import CodifierException
from ..core.logging import tool_logger
from ..integrations.athena import AthenaClient
from ..integrations.repomix import pack_repository
from ..playbooks.actions import Packer, StepActionDispatcher
from ..playbooks.engine import PlaybookEngine
from ..playbooks.generators import build_generator_prompt
from ..playbooks.loader import get_loader
from ..storage.backend import StorageBackend
from .schemas import (
    AdvanceStepArgs,
    FetchContextArgs,
    ManageProjectsArgs,
    PackRepoArgs,
    QueryDataArgs,
    RunPlaybookArgs,
    UpdateMemoryArgs,
    format_validation_error,
)

logger = logging.getLogger(__name__)


@dataclass
class ToolContext:
    """Collaborators shared by the tool handlers for one protocol engine."""

    store: StorageBackend
    loader: Any = None
    packer: Packer = pack_repository
    athena_factory: Callable[[], AthenaClient] = AthenaClient
    _engine: PlaybookEngine | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.loader is None:
            self.loader = get_loader()

    @property
    def engine(self) -> PlaybookEngine:
        if self._engine is None:
            dispatcher = StepActionDispatcher(self.store, packer=self.packer, athena=self.athena_factory())
            self._engine = PlaybookEngine(self.store, loader=self.loader, dispatcher=dispatcher)
        return self._engine


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def fetch_context(ctx: ToolContext, args: FetchContextArgs) -> dict[str, Any]:
    memories = await ctx.store.fetch_memories(
        args.project_id,
        memory_type=args.memory_type,
        tags=args.tags,
        query=args.query,
        limit=args.limit,
    )
    return {
        "success": True,
        "project_id": args.project_id,
        "count": len(memories),
        "memories": [m.to_dict() for m in memories],
    }


async def update_memory(ctx: ToolContext, args: UpdateMemoryArgs) -> dict[str, Any]:
    record = await ctx.store.upsert_memory(
        args.project_id,
        args.memory_type,
        args.title,
        args.content,
        memory_id=args.id,
        tags=args.tags,
        category=args.category,
        description=args.description,
        confidence=args.confidence,
        source_role=args.source_role,
    )
    return {
        "success": True,
        "action": "updated" if args.id else "created",
        "memory": record.to_dict(),
    }


async def manage_projects(ctx: ToolContext, args: ManageProjectsArgs) -> dict[str, Any]:
    if args.operation == "create":
        project = await ctx.store.create_project(args.name, org=args.org)
        return {"success": True, "operation": "create", "project": project.to_dict()}

    if args.operation == "list":
        projects = await ctx.store.list_projects()
        return {
            "success": True,
            "operation": "list",
            "count": len(projects),
            "projects": [p.to_dict() for p in projects],
        }

    project = await ctx.store.get_project(args.project_id)
    if project is None:
        return {"success": False, "error": f"Project not found: {args.project_id}"}
    return {
        "success": True,
        "operation": "switch",
        "project": project.to_dict(),
        "message": f"Active project is now {project.name}. Pass project_id {project.id} to other tools.",
    }


async def pack_repo(ctx: ToolContext, args: PackRepoArgs) -> dict[str, Any]:
    packed = await ctx.packer(args.url)
    repository = await ctx.store.save_repository(
        args.project_id,
        args.url,
        packed.snapshot,
        version_label=args.version_label,
        token_count=packed.token_count,
    )
    return {
        "success": True,
        "repository": repository.to_dict(),
        "file_count": packed.file_count,
        "token_count": packed.token_count,
    }


async def query_data(ctx: ToolContext, args: QueryDataArgs) -> dict[str, Any]:
    output = await ctx.athena_factory().run(
        args.operation,
        query=args.query,
        table_names=args.table_names,
        database=args.database,
    )
    return {
        "success": True,
        "operation": args.operation,
        "project_id": args.project_id,
        "result": output,
    }


async def run_playbook(ctx: ToolContext, args: RunPlaybookArgs) -> dict[str, Any]:
    started = await ctx.engine.start(args.playbook_id, args.project_id)
    playbook = ctx.loader.load(args.playbook_id)
    return {
        "success": True,
        "playbook": playbook.summary(),
        "session_id": started.session.id,
        "step_number": 1,
        "total_steps": started.total_steps,
        "step": started.step.to_dict(),
        "prompt": started.prompt,
        "next": (
            f'When you have your answer, call advance_step with session_id "{started.session.id}" '
            "and an input object containing the fields requested above."
        ),
    }


async def advance_step(ctx: ToolContext, args: AdvanceStepArgs) -> dict[str, Any]:
    advanced = await ctx.engine.advance(args.session_id, args.input)
    result: dict[str, Any] = {"success": True, "session_id": args.session_id}
    if advanced.action_outcome is not None:
        result["action_outcome"] = advanced.action_outcome.to_dict()

    if advanced.completed:
        result.update(
            status="completed",
            message=(
                f"All steps have been completed for session {args.session_id}. "
                "The collected data is saved and available via fetch_context."
            ),
        )
        return result

    step = advanced.step
    result.update(
        status="active",
        step_number=advanced.session.current_step + 1,
        step=step.to_dict(),
    )

    if advanced.generate_request is not None:
        generator = advanced.generate_request.generator
        result.update(
            generate_request={
                "generator": generator,
                "context": advanced.generate_request.context,
                "prompt": build_generator_prompt(generator, advanced.generate_request.context),
            },
            next=(
                f'Run the prompt through your model, then call advance_step with session_id "{args.session_id}" '
                f'and input {{"{generator}_output": "<model response>"}}.'
            ),
        )
        return result

    result.update(
        prompt=advanced.prompt,
        next=(
            f'When you have your answer, call advance_step with session_id "{args.session_id}" '
            "and an input object containing the fields requested above."
        ),
    )
    return result


Handler = Callable[[ToolContext, Any], Awaitable[dict[str, Any]]]

# Tool name to (argument model, handler) mapping
HANDLERS: dict[str, tuple[type[BaseModel], Handler]] = {
    "fetch_context": (FetchContextArgs, fetch_context),
    "update_memory": (UpdateMemoryArgs, update_memory),
    "manage_projects": (ManageProjectsArgs, manage_projects),
    "pack_repo": (PackRepoArgs, pack_repo),
    "query_data": (QueryDataArgs, query_data),
    "run_playbook": (RunPlaybookArgs, run_playbook),
    "advance_step": (AdvanceStepArgs, advance_step),
}


async def handle_tool(name: str, arguments: dict[str, Any] | None, ctx: ToolContext) -> dict[str, Any]:
    """Handle a tool call.

    Args:
        name: Tool name
        arguments: Raw tool arguments
        ctx: Shared collaborators

    Returns:
        Tool result dictionary
    """
    entry = HANDLERS.get(name)
    if entry is None:
        return {"success": False, "error": f"Unknown tool: {name}"}
    model, handler = entry

    arguments = arguments or {}
    tool_logger.log_call(name, arguments)
    start = time.perf_counter()

    try:
        args = model.model_validate(arguments)
    except ValidationError as e:
        result = {"success": False, "error": f"Invalid parameters for {name}: {format_validation_error(e)}"}
    else:
        try:
            result = await handler(ctx, args)
        except CodifierException as e:
            logger.warning(f"Tool {name} failed: {e.message}")
            result = {"success": False, "error": e.message, "error_type": type(e).__name__, **e.details}

    tool_logger.log_result(name, result.get("success", True), (time.perf_counter() - start) * 1000)
    return result
