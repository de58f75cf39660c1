"""
Parse tool calls out of free-text reasoning responses.

Primary syntax:   TOOL_CALL: readFile({"path": "src/main.ts"})
Fallback syntax:  readFile({"path": "src/main.ts"})

The fallback only accepts registered tool names, and only names the
primary pass did not already capture. Arguments that are not valid JSON
get one repair attempt (single quotes to double quotes, bare keys
quoted); a call that still does not parse is dropped with a warning.
"""

import json
import logging
import re

from agent.models import ToolCall
from llm.schema_validator import extract_json_object
from sandbox.definitions import TOOL_NAMES

logger = logging.getLogger(__name__)

_MARKER_PATTERN = re.compile(r"TOOL_CALL:\s*(\w+)\s*\(")
_FALLBACK_PATTERN = re.compile(r"\b(\w+)\s*\(\s*(?=\{)")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_]\w*)\s*:")


def _repair_json(text: str) -> str:
    return _BARE_KEY.sub(r'\1"\2":', text.replace("'", '"'))


def parse_arguments(text: str) -> dict | None:
    """JSON object from text, with one repair attempt. None if unparsable."""
    for candidate in (text, _repair_json(text)):
        try:
            parsed = json.loads(candidate, strict=False)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _arguments_at(response: str, start: int) -> str | None:
    """The balanced object starting at start (after optional whitespace)."""
    offset = start
    while offset < len(response) and response[offset].isspace():
        offset += 1
    if offset >= len(response) or response[offset] != "{":
        return None
    return extract_json_object(response, offset)


def parse_tool_calls(response: str) -> list[ToolCall]:
    calls: list[ToolCall] = []

    def add(name: str, args: dict) -> None:
        calls.append(ToolCall(id=f"call_{len(calls)}", name=name, arguments=args))

    for match in _MARKER_PATTERN.finditer(response):
        name = match.group(1)
        raw = _arguments_at(response, match.end())
        args = parse_arguments(raw) if raw is not None else None
        if args is None:
            logger.warning("Could not parse tool call: %s", name)
            continue
        add(name, args)

    captured = {call.name for call in calls}
    for match in _FALLBACK_PATTERN.finditer(response):
        name = match.group(1)
        if name not in TOOL_NAMES or name in captured:
            continue
        raw = _arguments_at(response, match.end())
        args = parse_arguments(raw) if raw is not None else None
        if args is None:
            logger.warning("Could not parse tool call: %s", name)
            continue
        add(name, args)
        captured.add(name)

    return calls
