"""Step action payloads and their dispatcher.

Each action kind has its own payload type. ``build_action`` turns the step
being left plus the merged collected data into one payload, and
``StepActionDispatcher.dispatch`` matches on it exhaustively.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, assert_never

from ..integrations.athena import AthenaClient
from ..integrations.repomix import PackResult, pack_repository
from ..storage.backend import StorageBackend
from .models import ActionOutcome, PlaybookStep, StepAction

logger = logging.getLogger(__name__)

Packer = Callable[[str], Awaitable[PackResult]]

DEFAULT_QUERY_OPERATION = "execute-query"


@dataclass(frozen=True)
class PersistInput:
    project_id: str
    memory_type: str
    title: str
    content: dict[str, Any]


@dataclass(frozen=True)
class InvokeExternalTool:
    project_id: str
    url: str | None


@dataclass(frozen=True)
class RequestGeneration:
    generator: str | None
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RunDataQuery:
    project_id: str
    operation: str
    query: str | None = None
    table_names: tuple[str, ...] = ()
    database: str | None = None


StepActionPayload = PersistInput | InvokeExternalTool | RequestGeneration | RunDataQuery


def _narrow(step: PlaybookStep, data: dict[str, Any]) -> dict[str, Any]:
    if step.collect:
        return {key: data[key] for key in step.collect if key in data}
    return dict(data)


def _repo_url(data: dict[str, Any]) -> str | None:
    url = data.get("repo_url")
    if not url:
        urls = data.get("repo_urls")
        if isinstance(urls, list) and urls:
            url = urls[0]
    return url if isinstance(url, str) and url.strip() else None


def build_action(step: PlaybookStep, project_id: str, collected_data: dict[str, Any]) -> StepActionPayload | None:
    """Build the payload for ``step`` from the merged data.

    Returns None for a ``store`` step that declares no ``store_as`` tag.
    """
    match step.action:
        case StepAction.STORE:
            if not step.store_as:
                return None
            return PersistInput(
                project_id=project_id,
                memory_type=step.store_as,
                title=step.title,
                content=_narrow(step, collected_data),
            )
        case StepAction.SKILL_INVOKE:
            return InvokeExternalTool(project_id=project_id, url=_repo_url(collected_data))
        case StepAction.GENERATE:
            return RequestGeneration(generator=step.generator, context=dict(collected_data))
        case StepAction.DATA_QUERY:
            table_names = collected_data.get("table_names") or ()
            if isinstance(table_names, str):
                table_names = (table_names,)
            return RunDataQuery(
                project_id=project_id,
                operation=step.query_operation or DEFAULT_QUERY_OPERATION,
                query=collected_data.get("query") or None,
                table_names=tuple(table_names),
                database=collected_data.get("database") or None,
            )
        case _:
            assert_never(step.action)


class StepActionDispatcher:
    """Runs step action payloads against the store and external tools."""

    def __init__(
        self,
        store: StorageBackend,
        packer: Packer | None = None,
        athena: AthenaClient | None = None,
    ):
        self.store = store
        self.packer = packer or pack_repository
        self._athena = athena

    @property
    def athena(self) -> AthenaClient:
        if self._athena is None:
            self._athena = AthenaClient()
        return self._athena

    async def dispatch(self, action: StepActionPayload) -> ActionOutcome:
        match action:
            case PersistInput():
                return await self._persist(action)
            case InvokeExternalTool():
                return await self._invoke_external_tool(action)
            case RequestGeneration():
                return ActionOutcome(StepAction.GENERATE)
            case RunDataQuery():
                return await self._run_data_query(action)
            case _:
                assert_never(action)

    async def _persist(self, action: PersistInput) -> ActionOutcome:
        record = await self.store.upsert_memory(
            action.project_id,
            action.memory_type,
            action.title,
            action.content,
            source_role="playbook",
            confidence=1.0,
        )
        logger.debug(f"Stored {action.memory_type} memory {record.id} for project {action.project_id}")
        return ActionOutcome(StepAction.STORE, result={"memory_id": record.id})

    async def _invoke_external_tool(self, action: InvokeExternalTool) -> ActionOutcome:
        if not action.url:
            logger.debug("No repository URL collected; skipping repository pack")
            return ActionOutcome(StepAction.SKILL_INVOKE, handled=False, skipped=True, reason="no repository url")

        packed = await self.packer(action.url)
        repository = await self.store.save_repository(
            action.project_id,
            action.url,
            packed.snapshot,
            token_count=packed.token_count,
        )
        return ActionOutcome(
            StepAction.SKILL_INVOKE,
            result={
                "repository_id": repository.id,
                "token_count": packed.token_count,
                "file_count": packed.file_count,
            },
        )

    async def _run_data_query(self, action: RunDataQuery) -> ActionOutcome:
        if action.operation == "execute-query" and not action.query:
            return ActionOutcome(StepAction.DATA_QUERY, handled=False, skipped=True, reason="no query")
        if action.operation == "describe-tables" and not action.table_names:
            return ActionOutcome(StepAction.DATA_QUERY, handled=False, skipped=True, reason="no table_names")

        output = await self.athena.run(
            action.operation,
            query=action.query,
            table_names=list(action.table_names),
            database=action.database,
        )
        return ActionOutcome(StepAction.DATA_QUERY, result={"operation": action.operation, "output": output})
