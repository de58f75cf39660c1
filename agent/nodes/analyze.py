"""
Analyze node: seed the conversation for the run.

No provider call happens here. The node builds the system message and
the analysis prompt (failure signature, truncated build output and
project context) and records which dependency packages the failure
text mentions.
"""

import logging

from agent.events import AgentEvent, analyzed_event
from agent.state import AgentState, Message
from diagnosis.signatures import extract_packages
from llm.context_builder import truncate
from llm.prompt_loader import get_system_prompt, render_template

logger = logging.getLogger(__name__)

MAX_BUILD_OUTPUT_CHARS = 3000
MAX_PROJECT_CONTEXT_CHARS = 2000


async def analyze(state: AgentState) -> AgentEvent:
    failure = state.failure
    build_output = state.build_output or failure.raw_output
    related = extract_packages(f"{failure.message}\n{build_output}")

    prompt = render_template(
        "agent",
        "analysis",
        {
            "message": failure.message,
            "file": failure.file or "unknown",
            "line": failure.line or "unknown",
            "category": failure.category.value,
            "target_version": state.target_version or "unknown",
            "build_output": truncate(build_output, MAX_BUILD_OUTPUT_CHARS),
            "project_context": truncate(state.project_context, MAX_PROJECT_CONTEXT_CHARS),
        },
    )
    logger.info("Analyzing failure: %s (related packages: %s)", failure.message, related or "none")
    return analyzed_event(
        [Message("system", get_system_prompt("agent")), Message("user", prompt)],
        related,
    )
