"""
Pure transition function of the agent state machine.

    analyzing -> investigating -> reasoning <-> executing-tools
                                  reasoning / executing-tools -> fixing
    fixing -> verifying -> complete

Any non-terminal phase can end in failed. The budget is checked before
entering investigating, before every entry into reasoning, and before
executing-tools unless a proposeChanges call is pending, so a run
performs at most iteration_budget reasoning steps.
"""

import logging

from agent import events
from agent.events import AgentEvent
from agent.state import AgentState, Phase, TerminalStateError, apply_update
from sandbox.definitions import PROPOSE_CHANGES

logger = logging.getLogger(__name__)

FAILURE_SUGGESTIONS = (
    "Review the investigation results for clues",
    "Consider manually inspecting the affected files",
    "Check the framework's migration guide for this specific issue",
)

# event type -> phase it is valid in
_SOURCE_PHASE = {
    events.ANALYZED: Phase.ANALYZING,
    events.INVESTIGATED: Phase.INVESTIGATING,
    events.REASONED: Phase.REASONING,
    events.TOOLS_EXECUTED: Phase.EXECUTING_TOOLS,
    events.FIXES_APPLIED: Phase.FIXING,
    events.VERIFIED: Phase.VERIFYING,
}


def _next_phase(state: AgentState, event: AgentEvent) -> Phase:
    if event.type == events.ANALYZED:
        return Phase.INVESTIGATING
    if event.type == events.INVESTIGATED:
        return Phase.REASONING
    if event.type == events.REASONED:
        if event.proposal:
            return Phase.FIXING
        if state.pending_tool_calls:
            return Phase.EXECUTING_TOOLS
        return Phase.REASONING
    if event.type == events.TOOLS_EXECUTED:
        return Phase.FIXING if event.proposal else Phase.REASONING
    if event.type == events.FIXES_APPLIED:
        return Phase.VERIFYING
    if event.type == events.VERIFIED:
        return Phase.COMPLETE
    raise ValueError(f"Unknown event type: {event.type}")


def _guarded(state: AgentState, target: Phase) -> bool:
    if target in (Phase.INVESTIGATING, Phase.REASONING):
        return True
    # a pending proposeChanges may still complete the run
    if target is Phase.EXECUTING_TOOLS:
        return not any(call.name == PROPOSE_CHANGES for call in state.pending_tool_calls)
    return False


def fail(state: AgentState, reason: str) -> AgentState:
    """Move a non-terminal state to failed with the fixed user suggestions."""
    logger.info("Agent failed: %s", reason)
    return apply_update(
        state,
        phase=Phase.FAILED,
        success=False,
        reasoning=state.reasoning or f"Could not determine a fix: {reason}",
        suggestions_for_user=FAILURE_SUGGESTIONS,
    )


def transition(state: AgentState, event: AgentEvent) -> AgentState:
    """
    Apply event to state and return the successor state.

    Raises:
        TerminalStateError: state is already complete or failed
        ValueError: event is not valid in the current phase
    """
    if state.phase.is_terminal:
        raise TerminalStateError(f"No transitions out of '{state.phase.value}'")

    if event.type == events.ABORTED:
        return fail(apply_update(state, **event.updates), event.message)

    expected = _SOURCE_PHASE.get(event.type)
    if expected is None:
        raise ValueError(f"Unknown event type: {event.type}")
    if state.phase is not expected:
        raise ValueError(
            f"Event '{event.type}' is not valid in phase '{state.phase.value}'"
        )

    state = apply_update(state, **event.updates)
    target = _next_phase(state, event)

    if _guarded(state, target) and state.budget_exhausted():
        return fail(state, state.budget_reason())

    logger.info("Phase %s -> %s (%s)", state.phase.value, target.value, event.message)
    return apply_update(state, phase=target)
