"""
Tests for the agent state machine.

Uses MockProvider throughout: no network access required. Provider replies
are scripted so that each test drives the run through a specific path.
"""

import asyncio
import json

import pytest

from agent import events
from agent.events import AgentEvent
from agent.graph import make_initial_state, run_agent, stream_agent
from agent.models import FailureCategory, FailureSignature, FileChange, ToolCall, ToolResult
from agent.nodes.execute_tools import execute_tools
from agent.state import AgentState, Message, Phase, TerminalStateError, apply_update
from agent.transitions import FAILURE_SUGGESTIONS, transition
from diagnosis.fast_path import REBUILD_SUGGESTION
from llm.client import ReasoningClient
from llm.errors import ProviderError
from llm.providers.mock_provider import MockProvider
from llm.retry import RetryPolicy

TEMPLATE_FAILURE = FailureSignature(
    message="NG8001: 'app-foo' is not a known element",
    category=FailureCategory.TEMPLATE,
    file="src/app.component.ts",
    line=1,
)


async def _no_sleep(_delay):
    return None


def make_client(*responses) -> tuple[ReasoningClient, MockProvider]:
    provider = MockProvider(responses)
    return ReasoningClient(provider=provider, retry_policy=RetryPolicy(sleep=_no_sleep)), provider


def propose(changes, explanation="Register the component", confidence=0.8) -> str:
    payload = {"changes": changes, "explanation": explanation, "confidence": confidence}
    return f"I have enough evidence.\nTOOL_CALL: proposeChanges({json.dumps(payload)})"


VALID_CHANGE = {
    "file": "src/app.component.ts",
    "type": "modify",
    "search": "export class AppComponent {}",
    "replace": "export class AppComponent { standalone = true; }",
}


# --- Reducers ---

def test_append_and_merge_reducers():
    state = AgentState(failure=TEMPLATE_FAILURE, messages=(Message("user", "a"),), files_read={"x": "1"})
    state = apply_update(state, messages=[Message("assistant", "b")], files_read={"y": "2", "x": "3"})
    assert [m.content for m in state.messages] == ["a", "b"]
    assert state.files_read == {"x": "3", "y": "2"}


def test_replace_reducer_for_pending_calls():
    call = ToolCall(id="call_0", name="readFile", arguments={"path": "a"})
    state = apply_update(AgentState(failure=TEMPLATE_FAILURE), pending_tool_calls=[call])
    state = apply_update(state, pending_tool_calls=[])
    assert state.pending_tool_calls == ()


def test_iteration_and_tokens_never_decrease():
    state = AgentState(failure=TEMPLATE_FAILURE, iteration=2, token_usage=100)
    with pytest.raises(ValueError):
        apply_update(state, iteration=1)
    with pytest.raises(ValueError):
        apply_update(state, token_usage=99)


def test_terminal_state_is_frozen():
    state = AgentState(failure=TEMPLATE_FAILURE, phase=Phase.COMPLETE)
    with pytest.raises(TerminalStateError):
        apply_update(state, reasoning="late")
    with pytest.raises(TerminalStateError):
        transition(state, AgentEvent(type=events.VERIFIED, message="again"))


def test_event_in_wrong_phase_is_rejected():
    state = AgentState(failure=TEMPLATE_FAILURE)
    with pytest.raises(ValueError):
        transition(state, AgentEvent(type=events.VERIFIED, message="too early"))


# --- Full runs ---

@pytest.mark.asyncio
async def test_zero_iteration_budget_fails_without_provider_calls(executor):
    client, provider = make_client()
    state = await run_agent(TEMPLATE_FAILURE, client, executor, max_iterations=0)
    assert state.phase is Phase.FAILED
    assert provider.call_count == 0
    assert state.success is False
    assert state.suggestions_for_user == FAILURE_SUGGESTIONS
    assert "iteration budget of 0 exhausted" in state.reasoning


class RecordingExecutor:
    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    async def execute(self, name, args):
        self.calls.append(name)
        return await self.inner.execute(name, args)


@pytest.mark.asyncio
async def test_zero_iteration_budget_skips_investigation(executor):
    failure = FailureSignature(
        message="TypeError: Cannot convert undefined or null to object",
        raw_output="    at Object.<anonymous> (node_modules/whatwg-url/lib/URL.js:14:8)",
    )
    recording = RecordingExecutor(executor)
    client, provider = make_client()
    state = await run_agent(failure, client, recording, max_iterations=0)

    assert state.phase is Phase.FAILED
    assert recording.calls == []
    assert provider.call_count == 0
    assert state.investigation_results == ()



@pytest.mark.asyncio
async def test_replies_without_tool_calls_exhaust_iteration_budget(executor):
    client, provider = make_client()
    state = await run_agent(TEMPLATE_FAILURE, client, executor, max_iterations=3)
    assert state.phase is Phase.FAILED
    assert provider.call_count == 3
    assert state.iteration == 3
    # every reply without a tool call is followed by a nudge
    nudges = [m for m in state.messages if m.role == "user" and "No tool call was found" in m.content]
    assert len(nudges) == 3


@pytest.mark.asyncio
async def test_token_budget_stops_the_run(executor):
    client, provider = make_client()
    state = await run_agent(TEMPLATE_FAILURE, client, executor, max_token_budget=1)
    assert state.phase is Phase.FAILED
    assert provider.call_count == 1
    assert state.token_usage > 1
    assert "token budget of 1 exhausted" in state.reasoning


@pytest.mark.asyncio
async def test_proposal_completes_the_run(executor):
    client, provider = make_client(propose([VALID_CHANGE]))
    state = await run_agent(TEMPLATE_FAILURE, client, executor)
    assert state.phase is Phase.COMPLETE
    assert state.success is True
    assert provider.call_count == 1
    assert state.confidence == 0.8
    assert state.reasoning == "Register the component"
    assert [c.file for c in state.applied_changes] == ["src/app.component.ts"]
    assert isinstance(state.applied_changes[0], FileChange)
    assert state.suggestions_for_user == (REBUILD_SUGGESTION,)


@pytest.mark.asyncio
async def test_investigation_then_proposal(executor):
    client, provider = make_client(
        'Let me look around.\n'
        'TOOL_CALL: readFile({"path": "src/app.component.ts"})\n'
        'TOOL_CALL: searchCode({"pattern": "app-foo", "filePattern": "*.{ts,html}"})',
        propose([VALID_CHANGE]),
    )
    state = await run_agent(TEMPLATE_FAILURE, client, executor)

    assert state.phase is Phase.COMPLETE
    assert provider.call_count == 2
    assert state.iteration == 2
    assert [r.tool for r in state.investigation_results] == ["readFile", "searchCode", "proposeChanges"]
    assert state.files_read["src/app.component.ts"] == "export class AppComponent {}\n"
    tool_messages = [m.content for m in state.messages if m.role == "tool"]
    assert tool_messages[0].startswith("Tool Result (readFile): export class AppComponent")
    assert tool_messages[1] == "Tool Result (searchCode): No matches found"


@pytest.mark.asyncio
async def test_invalid_proposal_loops_back_to_reasoning(executor):
    bad = {"file": "../outside.ts", "type": "create", "content": "x"}
    client, provider = make_client(propose([bad]), propose([VALID_CHANGE]))
    state = await run_agent(TEMPLATE_FAILURE, client, executor)

    assert state.phase is Phase.COMPLETE
    assert provider.call_count == 2
    assert state.investigation_results[0].success is False
    assert any("Invalid proposeChanges payload" in m.content for m in state.messages if m.role == "tool")
    assert [c.file for c in state.applied_changes] == ["src/app.component.ts"]


@pytest.mark.asyncio
async def test_pending_proposal_may_finish_on_last_iteration(executor):
    reply = 'TOOL_CALL: readFile({"path": "src/main.ts"})\n' + propose([VALID_CHANGE]).split("\n", 1)[1]
    client, provider = make_client(reply)
    state = await run_agent(TEMPLATE_FAILURE, client, executor, max_iterations=1)
    assert state.phase is Phase.COMPLETE
    assert provider.call_count == 1


@pytest.mark.asyncio
async def test_runtime_failure_is_investigated_before_reasoning(executor):
    failure = FailureSignature(
        message="TypeError: Cannot convert undefined or null to object",
        raw_output="    at Object.<anonymous> (node_modules/whatwg-url/lib/URL.js:14:8)",
    )
    client, provider = make_client()
    state = await run_agent(failure, client, executor, max_iterations=1)
    assert state.related_packages == ("whatwg-url",)
    assert state.investigation_results[0].tool == "analyzeRuntimeError"
    assert "whatwg-url" in provider.requests[0].user_prompt


@pytest.mark.asyncio
async def test_provider_errors_propagate(executor):
    client, provider = make_client(ProviderError("bad request", status_code=400))
    with pytest.raises(ProviderError):
        await run_agent(TEMPLATE_FAILURE, client, executor)
    assert provider.call_count == 1


@pytest.mark.asyncio
async def test_cancellation_fails_the_run(executor):
    client, provider = make_client()
    cancel = asyncio.Event()
    cancel.set()
    state = await run_agent(TEMPLATE_FAILURE, client, executor, cancel_event=cancel)
    assert state.phase is Phase.FAILED
    assert state.reasoning == "Run cancelled"
    assert provider.call_count == 0


@pytest.mark.asyncio
async def test_stream_yields_every_phase(executor):
    client, _ = make_client(propose([VALID_CHANGE]))
    phases = [
        state.phase
        async for _, state in stream_agent(make_initial_state(TEMPLATE_FAILURE), client, executor)
    ]
    assert phases == [
        Phase.INVESTIGATING,
        Phase.REASONING,
        Phase.FIXING,
        Phase.VERIFYING,
        Phase.COMPLETE,
    ]


# --- Concurrent tool execution ---

class SlowExecutor:
    """Finishes calls in reverse order of submission."""

    def __init__(self):
        self.completed = []

    async def execute(self, name, args):
        await asyncio.sleep(0.05 if args["path"] == "first.ts" else 0.0)
        self.completed.append(args["path"])
        return ToolResult(True, f"contents of {args['path']}")


@pytest.mark.asyncio
async def test_tool_results_keep_request_order():
    executor = SlowExecutor()
    state = AgentState(
        failure=TEMPLATE_FAILURE,
        phase=Phase.EXECUTING_TOOLS,
        pending_tool_calls=(
            ToolCall(id="call_0", name="readFile", arguments={"path": "first.ts"}),
            ToolCall(id="call_1", name="readFile", arguments={"path": "second.ts"}),
        ),
    )
    event = await execute_tools(state, executor)

    assert executor.completed == ["second.ts", "first.ts"]
    records = event.updates["investigation_results"]
    assert [r.result for r in records] == ["contents of first.ts", "contents of second.ts"]
    assert event.updates["pending_tool_calls"] == []
