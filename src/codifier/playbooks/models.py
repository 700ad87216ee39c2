"""Playbook definition models and engine result types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..storage.backend import WorkflowSession


class StepAction(StrEnum):
    """What happens when a step is answered. Values are the YAML wire names."""

    STORE = "store"
    SKILL_INVOKE = "skill-invoke"
    GENERATE = "generate"
    DATA_QUERY = "data-query"


class PlaybookStep(BaseModel):
    """One step of a playbook."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    prompt: str = Field(min_length=1)
    action: StepAction
    store_as: str | None = None
    generator: str | None = None
    query_operation: str | None = None
    collect: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class Playbook(BaseModel):
    """A named, ordered list of steps for one role."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    role: Literal["developer", "researcher"]
    description: str = Field(min_length=1)
    steps: list[PlaybookStep]

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "description": self.description,
            "total_steps": self.total_steps,
        }


@dataclass(frozen=True)
class GenerateRequest:
    """Ask the caller to run a generator over the full collected context."""

    generator: str
    context: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"generator": self.generator, "context": dict(self.context)}


@dataclass(frozen=True)
class ActionOutcome:
    """Result of dispatching a step action."""

    action: StepAction
    handled: bool = True
    skipped: bool = False
    reason: str | None = None
    result: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"action": self.action.value, "handled": self.handled, "skipped": self.skipped}
        if self.reason:
            data["reason"] = self.reason
        if self.result is not None:
            data["result"] = self.result
        return data


@dataclass
class StartResult:
    session: WorkflowSession
    step: PlaybookStep
    prompt: str
    total_steps: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "session": self.session.to_dict(),
            "step": self.step.to_dict(),
            "prompt": self.prompt,
            "step_number": self.session.current_step + 1,
            "total_steps": self.total_steps,
        }


@dataclass
class AdvanceResult:
    """Outcome of one advance.

    Exactly one of three shapes: ``completed`` with no step, a next step with
    a ``generate_request``, or a plain next step.
    """

    session: WorkflowSession
    completed: bool
    step: PlaybookStep | None = None
    prompt: str | None = None
    generate_request: GenerateRequest | None = None
    action_outcome: ActionOutcome | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "session": self.session.to_dict(),
            "completed": self.completed,
        }
        if self.step is not None:
            data["step"] = self.step.to_dict()
            data["prompt"] = self.prompt
        if self.generate_request is not None:
            data["generate_request"] = self.generate_request.to_dict()
        if self.action_outcome is not None:
            data["action_outcome"] = self.action_outcome.to_dict()
        return data
