"""Fixing node: flatten planned fixes into the run's FileChange list."""

import logging

from agent.events import AgentEvent, fixes_applied_event
from agent.state import AgentState

logger = logging.getLogger(__name__)


async def apply_fixes(state: AgentState) -> AgentEvent:
    changes = [change for fix in state.planned_fixes for change in fix.changes]
    for change in changes:
        logger.info("Planned %s %s", change.type, change.file)
    return fixes_applied_event(changes)
