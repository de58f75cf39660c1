"""
Execute-tools node: run every pending call concurrently.

Results are collected in request order regardless of completion order.
Each call adds one tool message (truncated to 2000 chars) and one
investigation record (truncated to 1000 chars).
"""

import asyncio
import json
import logging
import time

from agent.events import AgentEvent, tools_executed_event
from agent.state import AgentState, InvestigationRecord, Message, ProposedFix
from sandbox.definitions import PROPOSE_CHANGES
from sandbox.executor import ToolExecutor

logger = logging.getLogger(__name__)

MAX_MESSAGE_RESULT_CHARS = 2000
MAX_RECORD_RESULT_CHARS = 1000


async def execute_tools(state: AgentState, executor: ToolExecutor) -> AgentEvent:
    calls = state.pending_tool_calls
    logger.info("Executing %d tool(s): %s", len(calls), ", ".join(c.name for c in calls))

    # gather preserves argument order
    results = await asyncio.gather(
        *(executor.execute(call.name, call.arguments) for call in calls)
    )

    records: list[InvestigationRecord] = []
    messages: list[Message] = []
    files_read: dict[str, str] = {}
    proposal = None

    for call, result in zip(calls, results):
        messages.append(
            Message("tool", f"Tool Result ({call.name}): {result.result[:MAX_MESSAGE_RESULT_CHARS]}")
        )
        records.append(
            InvestigationRecord(
                tool=call.name,
                query=json.dumps(call.arguments),
                result=result.result[:MAX_RECORD_RESULT_CHARS],
                success=result.success,
                timestamp=time.time(),
            )
        )
        if call.name == "readFile" and result.success:
            path = call.arguments.get("path") or call.arguments.get("filePath")
            files_read[str(path)] = result.result
        if call.name == PROPOSE_CHANGES and result.success and proposal is None:
            proposal = ProposedFix(
                explanation=result.metadata["explanation"],
                confidence=result.metadata["confidence"],
                changes=tuple(result.metadata["changes"]),
            )

    return tools_executed_event(records, messages, files_read, proposal)
