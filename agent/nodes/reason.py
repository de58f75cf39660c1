"""
Reason node: one call to the reasoning provider.

The conversation so far is flattened into a prompt together with the tool
definitions. The reply is scanned for tool calls. When the only call is
proposeChanges it is validated right here, so a valid proposal moves the
run straight to fixing without a separate tool-execution step.
"""

import json
import logging
import time

from agent.events import AgentEvent, reasoned_event
from agent.state import AgentState, InvestigationRecord, Message, ProposedFix
from agent.tool_calls import parse_tool_calls
from llm.client import ReasoningClient
from llm.context_builder import estimate_tokens, render_conversation
from llm.prompt_loader import get_system_prompt, render_template
from sandbox.definitions import PROPOSE_CHANGES, render_tool_definitions
from sandbox.executor import ToolExecutor

logger = logging.getLogger(__name__)


def build_prompt(state: AgentState) -> str:
    conversation = render_conversation(
        (m.role, m.content) for m in state.messages if m.role != "system"
    )
    return render_template(
        "agent",
        "reasoning_turn",
        {"conversation": conversation, "tool_definitions": render_tool_definitions()},
    )


async def reason(
    state: AgentState,
    client: ReasoningClient,
    executor: ToolExecutor,
) -> AgentEvent:
    iteration = state.iteration + 1
    system_prompt = get_system_prompt("agent")
    prompt = build_prompt(state)

    response = await client.complete(system_prompt, prompt, kind="agent")
    tokens = estimate_tokens(system_prompt, prompt, response)
    calls = parse_tool_calls(response)
    logger.debug(
        "iteration=%d tokens=%d total=%d calls=%s",
        iteration, tokens, state.token_usage + tokens, [c.name for c in calls],
    )

    messages = [Message("assistant", response)]
    records: list[InvestigationRecord] = []
    proposal = None

    if not calls:
        messages.append(Message("user", render_template("agent", "no_tool_call", {})))
    elif len(calls) == 1 and calls[0].name == PROPOSE_CHANGES:
        result = await executor.execute(PROPOSE_CHANGES, calls[0].arguments)
        records.append(
            InvestigationRecord(
                tool=PROPOSE_CHANGES,
                query=json.dumps(calls[0].arguments)[:1000],
                result=result.result[:1000],
                success=result.success,
                timestamp=time.time(),
            )
        )
        if result.success:
            proposal = ProposedFix(
                explanation=result.metadata["explanation"],
                confidence=result.metadata["confidence"],
                changes=tuple(result.metadata["changes"]),
            )
        else:
            messages.append(Message("tool", f"Tool Result ({PROPOSE_CHANGES}): {result.result[:2000]}"))
            calls = []

    return reasoned_event(
        response,
        calls,
        iteration=iteration,
        token_usage=state.token_usage + tokens,
        messages=messages,
        proposal=proposal,
        records=records,
    )
