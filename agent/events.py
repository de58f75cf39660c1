"""
Events consumed by the agent's transition function.

Each node returns exactly one AgentEvent. The event names what happened
and carries the state updates the node produced; transition() folds the
updates into the state and picks the next phase.

Event types are string constants to keep them JSON-serializable in logs.
"""

from dataclasses import dataclass, field
from typing import Any

from agent.models import FileChange, ToolCall
from agent.state import InvestigationRecord, Message, ProposedFix

# --- Event type constants ---
ANALYZED = "analyzed"
INVESTIGATED = "investigated"
REASONED = "reasoned"
TOOLS_EXECUTED = "tools_executed"
FIXES_APPLIED = "fixes_applied"
VERIFIED = "verified"
ABORTED = "aborted"


@dataclass(frozen=True)
class AgentEvent:
    type: str
    message: str
    updates: dict[str, Any] = field(default_factory=dict)

    @property
    def proposal(self) -> ProposedFix | None:
        fixes = self.updates.get("planned_fixes") or ()
        return fixes[0] if fixes else None


# --- Constructor helpers, one per event type ---

def analyzed_event(messages: list[Message], related_packages: list[str]) -> AgentEvent:
    return AgentEvent(
        type=ANALYZED,
        message="Failure analyzed, conversation seeded",
        updates={"messages": messages, "related_packages": related_packages},
    )


def investigated_event(
    records: list[InvestigationRecord],
    messages: list[Message],
) -> AgentEvent:
    return AgentEvent(
        type=INVESTIGATED,
        message=f"Initial investigation produced {len(records)} record(s)",
        updates={"investigation_results": records, "messages": messages},
    )


def reasoned_event(
    response: str,
    tool_calls: list[ToolCall],
    iteration: int,
    token_usage: int,
    messages: list[Message],
    proposal: ProposedFix | None = None,
    records: list[InvestigationRecord] = (),
) -> AgentEvent:
    updates: dict[str, Any] = {
        "messages": messages,
        "pending_tool_calls": [] if proposal else tool_calls,
        "iteration": iteration,
        "token_usage": token_usage,
        "investigation_results": records,
    }
    if proposal:
        updates.update(
            planned_fixes=[proposal],
            confidence=proposal.confidence,
            reasoning=proposal.explanation,
        )
    names = ", ".join(call.name for call in tool_calls) or "none"
    return AgentEvent(type=REASONED, message=f"Reasoning step {iteration}: tool calls {names}", updates=updates)


def tools_executed_event(
    records: list[InvestigationRecord],
    messages: list[Message],
    files_read: dict[str, str],
    proposal: ProposedFix | None = None,
) -> AgentEvent:
    updates: dict[str, Any] = {
        "investigation_results": records,
        "messages": messages,
        "files_read": files_read,
        "pending_tool_calls": [],
    }
    if proposal:
        updates.update(
            planned_fixes=[proposal],
            confidence=proposal.confidence,
            reasoning=proposal.explanation,
        )
    return AgentEvent(type=TOOLS_EXECUTED, message=f"Executed {len(records)} tool call(s)", updates=updates)


def fixes_applied_event(changes: list[FileChange]) -> AgentEvent:
    return AgentEvent(
        type=FIXES_APPLIED,
        message=f"Converted planned fixes into {len(changes)} file change(s)",
        updates={"applied_changes": changes},
    )


def verified_event(suggestions: list[str]) -> AgentEvent:
    return AgentEvent(
        type=VERIFIED,
        message="Changes verified structurally",
        updates={"success": True, "suggestions_for_user": suggestions},
    )


def aborted_event(reason: str) -> AgentEvent:
    return AgentEvent(type=ABORTED, message=reason, updates={"reasoning": reason})
