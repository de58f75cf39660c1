"""
Investigate node: evidence gathered before the first reasoning step.

When the failure text looks like a known runtime error or mentions
dependency packages, the analyzeRuntimeError tool runs once up front and
its result is added to the conversation, so the first reasoning step
already has a partial diagnosis to work from.
"""

import json
import logging
import time

from agent.events import AgentEvent, investigated_event
from agent.state import AgentState, InvestigationRecord, Message
from diagnosis.signatures import match_pattern
from llm.prompt_loader import render_template
from sandbox.executor import ToolExecutor

logger = logging.getLogger(__name__)


async def investigate(state: AgentState, executor: ToolExecutor) -> AgentEvent:
    failure = state.failure
    stack = state.build_output or failure.raw_output
    records: list[InvestigationRecord] = []
    messages: list[Message] = []

    if state.related_packages:
        messages.append(
            Message(
                "user",
                render_template(
                    "agent", "investigation", {"packages": ", ".join(state.related_packages)}
                ),
            )
        )

    if state.related_packages or match_pattern(f"{failure.message}\n{stack}"):
        args = {"errorMessage": failure.message, "stackTrace": stack}
        result = await executor.execute("analyzeRuntimeError", args)
        records.append(
            InvestigationRecord(
                tool="analyzeRuntimeError",
                query=json.dumps({"errorMessage": failure.message}),
                result=result.result[:1000],
                success=result.success,
                timestamp=time.time(),
            )
        )
        messages.append(Message("tool", f"Tool Result (analyzeRuntimeError): {result.result[:2000]}"))
        logger.info(
            "Initial runtime analysis: issue_type=%s confidence=%s",
            result.metadata.get("issue_type"),
            result.metadata.get("confidence"),
        )

    return investigated_event(records, messages)
