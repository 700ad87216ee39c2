"""Linear state machine driving playbook sessions.

A session moves through its playbook's steps one ``advance`` at a time:

- ``start`` creates an active session at step 0 and returns the first step.
- ``advance`` merges the caller's input into the collected data, runs the
  side effect of the step being left, and moves to the next step. Advancing
  past the last step marks the session completed.

Side-effect failures are logged and never block progress. Session writes
are compare-and-set on ``version``; a lost race surfaces as
``ConflictError`` and is not retried.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ..core.exceptions import InternalError, NotFoundError, WorkflowStateError
from ..storage.backend import SessionStatus, StorageBackend
from .actions import RequestGeneration, StepActionDispatcher, build_action
from .loader import get_loader
from .models import ActionOutcome, AdvanceResult, GenerateRequest, Playbook, PlaybookStep, StartResult, StepAction

logger = logging.getLogger(__name__)


class PlaybookSource(Protocol):
    def load(self, playbook_id: str) -> Playbook: ...


class PlaybookEngine:
    """Starts and advances workflow sessions against a ``StorageBackend``."""

    def __init__(
        self,
        store: StorageBackend,
        loader: PlaybookSource | None = None,
        dispatcher: StepActionDispatcher | None = None,
    ):
        self.store = store
        self.loader = loader or get_loader()
        self.dispatcher = dispatcher or StepActionDispatcher(store)

    def _load(self, playbook_id: str) -> Playbook:
        playbook = self.loader.load(playbook_id)
        if not playbook.steps:
            raise NotFoundError("Playbook", f"{playbook_id} (no steps)")
        return playbook

    async def start(self, playbook_id: str, project_id: str) -> StartResult:
        """Create a session for ``playbook_id`` and return its first step."""
        playbook = self._load(playbook_id)
        session = await self.store.create_session(playbook_id, project_id)
        first = playbook.steps[0]

        logger.info(
            f"Started playbook {playbook_id}",
            extra={"extra_data": {"session_id": session.id, "project_id": project_id, "first_step": first.id}},
        )
        return StartResult(session=session, step=first, prompt=first.prompt, total_steps=playbook.total_steps)

    async def advance(self, session_id: str, input: dict[str, Any] | None = None) -> AdvanceResult:
        """Submit input for the current step and move to the next one."""
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        if not session.is_active:
            raise WorkflowStateError(session_id, session.status.value)

        playbook = self._load(session.playbook_id)
        index = session.current_step
        if not 0 <= index < len(playbook.steps):
            raise InternalError(
                f'Session "{session_id}" references out-of-bounds step index {index} '
                f"(playbook {playbook.id} has {len(playbook.steps)} steps)"
            )
        current = playbook.steps[index]

        merged = {**session.collected_data, **(input or {})}
        # Not rolled back if the write below raises ConflictError.
        outcome = await self._run_side_effect(current, session.project_id, merged)

        next_index = index + 1
        if next_index >= len(playbook.steps):
            updated = await self.store.update_session(
                session_id,
                status=SessionStatus.COMPLETED,
                collected_data=merged,
                expected_version=session.version,
            )
            logger.info(f"Playbook session {session_id} completed")
            return AdvanceResult(session=updated, completed=True, action_outcome=outcome)

        updated = await self.store.update_session(
            session_id,
            current_step=next_index,
            collected_data=merged,
            expected_version=session.version,
        )
        next_step = playbook.steps[next_index]
        logger.debug(f"Session {session_id} advanced to step {next_index} ({next_step.id})")

        generate_request = None
        if next_step.action == StepAction.GENERATE and next_step.generator:
            generate_request = GenerateRequest(generator=next_step.generator, context=dict(merged))

        return AdvanceResult(
            session=updated,
            completed=False,
            step=next_step,
            prompt=next_step.prompt,
            generate_request=generate_request,
            action_outcome=outcome,
        )

    async def _run_side_effect(
        self, step: PlaybookStep, project_id: str, merged: dict[str, Any]
    ) -> ActionOutcome | None:
        action = build_action(step, project_id, merged)
        if action is None or isinstance(action, RequestGeneration):
            return None
        try:
            return await self.dispatcher.dispatch(action)
        except Exception as e:
            logger.warning(f"Side effect for step {step.id} failed, continuing: {e}")
            return ActionOutcome(step.action, handled=False, reason=str(e))
