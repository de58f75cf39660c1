"""
State machine runner for the diagnostic-and-repair agent.

Topology (see agent/transitions.py for the guards):

  analyze
     ↓
  investigate
     ↓
  reason ⇄ execute_tools
     ↓ (proposeChanges accepted)
  apply_fixes
     ↓
  verify → complete

  any phase → failed  (budget exhausted or run cancelled)

Nodes accept state plus their collaborators; collaborators are bound via
functools.partial when the node table is built, so tests can inject a
scripted provider and a sandboxed executor.
"""

import asyncio
import functools
import logging
from typing import AsyncGenerator, Awaitable, Callable

from agent.events import AgentEvent, aborted_event
from agent.models import FailureSignature
from agent.nodes.analyze import analyze
from agent.nodes.apply_fixes import apply_fixes
from agent.nodes.execute_tools import execute_tools
from agent.nodes.investigate import investigate
from agent.nodes.reason import reason
from agent.nodes.verify import verify
from agent.state import AgentState, Phase
from agent.transitions import transition
from llm.client import ReasoningClient
from sandbox.executor import ToolExecutor

logger = logging.getLogger(__name__)

Node = Callable[[AgentState], Awaitable[AgentEvent]]


def build_graph(client: ReasoningClient, executor: ToolExecutor) -> dict[Phase, Node]:
    """Node table keyed by the phase each node runs in."""
    return {
        Phase.ANALYZING: analyze,
        Phase.INVESTIGATING: functools.partial(investigate, executor=executor),
        Phase.REASONING: functools.partial(reason, client=client, executor=executor),
        Phase.EXECUTING_TOOLS: functools.partial(execute_tools, executor=executor),
        Phase.FIXING: apply_fixes,
        Phase.VERIFYING: verify,
    }


def make_initial_state(
    failure: FailureSignature,
    project_context: str = "",
    build_output: str = "",
    target_version: str = "",
    max_iterations: int = 15,
    max_token_budget: int = 500_000,
) -> AgentState:
    return AgentState(
        failure=failure,
        project_context=project_context,
        build_output=build_output,
        target_version=target_version,
        iteration_budget=max_iterations,
        token_budget=max_token_budget,
    )


async def stream_agent(
    state: AgentState,
    client: ReasoningClient,
    executor: ToolExecutor,
    cancel_event: asyncio.Event | None = None,
) -> AsyncGenerator[tuple[AgentEvent, AgentState], None]:
    """
    Drive state to a terminal phase, yielding (event, new_state) per step.

    Provider errors propagate to the caller; tool failures never do.
    """
    graph = build_graph(client, executor)
    while not state.phase.is_terminal:
        if cancel_event is not None and cancel_event.is_set():
            event = aborted_event("Run cancelled")
        else:
            event = await graph[state.phase](state)
        state = transition(state, event)
        yield event, state


async def run_agent(
    failure: FailureSignature,
    client: ReasoningClient,
    executor: ToolExecutor,
    project_context: str = "",
    build_output: str = "",
    target_version: str = "",
    max_iterations: int = 15,
    max_token_budget: int = 500_000,
    cancel_event: asyncio.Event | None = None,
) -> AgentState:
    """Run the agent to completion and return the terminal state."""
    state = make_initial_state(
        failure,
        project_context=project_context,
        build_output=build_output,
        target_version=target_version,
        max_iterations=max_iterations,
        max_token_budget=max_token_budget,
    )
    async for _, state in stream_agent(state, client, executor, cancel_event):
        pass

    logger.info(
        "Agent finished: phase=%s iterations=%d tokens=%d changes=%d",
        state.phase.value,
        state.iteration,
        state.token_usage,
        len(state.applied_changes),
    )
    return state
