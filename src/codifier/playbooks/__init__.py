"""Playbook definitions, loading and the step engine."""

from .engine import PlaybookEngine
from .loader import PlaybookLoader, clear_loader_cache, get_loader
from .models import (
    ActionOutcome,
    AdvanceResult,
    GenerateRequest,
    Playbook,
    PlaybookStep,
    StartResult,
    StepAction,
)

__all__ = [
    "PlaybookEngine",
    "PlaybookLoader",
    "get_loader",
    "clear_loader_cache",
    "Playbook",
    "PlaybookStep",
    "StepAction",
    "GenerateRequest",
    "ActionOutcome",
    "StartResult",
    "AdvanceResult",
]
