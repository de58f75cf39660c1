"""
Verifying node: structural check and follow-up suggestions.

No build runs here; correctness is checked by whoever applies the
changes and rebuilds.
"""

from agent.events import AgentEvent, verified_event
from agent.state import AgentState
from diagnosis.fast_path import REBUILD_SUGGESTION, REINSTALL_SUGGESTION
from diagnosis.signatures import ENVIRONMENT_ONLY_PACKAGES
from llm.guardrails import touches_manifest


async def verify(state: AgentState) -> AgentEvent:
    suggestions = []
    if any(touches_manifest(c.file) for c in state.applied_changes):
        suggestions.append(REINSTALL_SUGGESTION)
    if any(p in ENVIRONMENT_ONLY_PACKAGES for p in state.related_packages):
        suggestions.append("Test the application in the browser to verify the runtime error is fixed.")
    suggestions.append(REBUILD_SUGGESTION)
    return verified_event(suggestions)
