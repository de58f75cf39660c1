"""
Working memory of one agent run.

AgentState is immutable; every change goes through apply_update(), which
applies one reducer per field:
  - append: investigation_results, messages, applied_changes
  - merge:  files_read (new paths added, existing paths overwritten)
  - replace: everything else (pending_tool_calls is replaced each step)

iteration and token_usage may only grow. A state in a terminal phase
cannot be updated at all.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from agent.models import FailureSignature, FileChange, ToolCall


class Phase(str, Enum):
    ANALYZING = "analyzing"
    INVESTIGATING = "investigating"
    REASONING = "reasoning"
    EXECUTING_TOOLS = "executing-tools"
    FIXING = "fixing"
    VERIFYING = "verifying"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETE, Phase.FAILED)


class TerminalStateError(RuntimeError):
    """Raised on any attempt to update a complete or failed state."""


@dataclass(frozen=True)
class InvestigationRecord:
    tool: str
    query: str
    result: str
    success: bool
    timestamp: float


@dataclass(frozen=True)
class Message:
    role: str  # system | user | assistant | tool
    content: str


@dataclass(frozen=True)
class ProposedFix:
    explanation: str
    confidence: float
    changes: tuple[FileChange, ...]


_APPEND_FIELDS = ("investigation_results", "messages", "applied_changes")
_MERGE_FIELDS = ("files_read",)
_MONOTONIC_FIELDS = ("iteration", "token_usage")


@dataclass(frozen=True)
class AgentState:
    # --- Task context (set once at run start) ---
    failure: FailureSignature
    project_context: str = ""
    build_output: str = ""
    target_version: str = ""

    # --- Phase and budgets ---
    phase: Phase = Phase.ANALYZING
    iteration: int = 0
    iteration_budget: int = 15
    token_usage: int = 0
    token_budget: int = 500_000

    # --- Evidence ---
    investigation_results: tuple[InvestigationRecord, ...] = ()
    files_read: dict[str, str] = field(default_factory=dict)
    related_packages: tuple[str, ...] = ()
    messages: tuple[Message, ...] = ()

    # --- Tool calls and fixes ---
    pending_tool_calls: tuple[ToolCall, ...] = ()
    planned_fixes: tuple[ProposedFix, ...] = ()
    applied_changes: tuple[FileChange, ...] = ()

    # --- Outcome ---
    success: bool = False
    confidence: float = 0.0
    reasoning: str = ""
    suggestions_for_user: tuple[str, ...] = ()

    def budget_exhausted(self) -> bool:
        return self.iteration >= self.iteration_budget or self.token_usage >= self.token_budget

    def budget_reason(self) -> str:
        if self.iteration >= self.iteration_budget:
            return f"iteration budget of {self.iteration_budget} exhausted"
        return f"token budget of {self.token_budget} exhausted ({self.token_usage} used)"


def apply_update(state: AgentState, **updates: Any) -> AgentState:
    """Return a new state with updates folded in by each field's reducer."""
    if state.phase.is_terminal:
        raise TerminalStateError(f"Cannot update state in terminal phase '{state.phase.value}'")

    changes: dict[str, Any] = {}
    for name, value in updates.items():
        current = getattr(state, name)
        if name in _APPEND_FIELDS:
            changes[name] = current + tuple(value)
        elif name in _MERGE_FIELDS:
            changes[name] = {**current, **value}
        elif name in _MONOTONIC_FIELDS:
            if value < current:
                raise ValueError(f"{name} must not decrease ({current} -> {value})")
            changes[name] = value
        elif name in ("pending_tool_calls", "planned_fixes", "related_packages", "suggestions_for_user"):
            changes[name] = tuple(value)
        else:
            changes[name] = value
    return replace(state, **changes)
