"""Tests for parsing tool calls out of free-text reasoning replies."""

import logging

from agent.tool_calls import parse_arguments, parse_tool_calls


def test_marker_syntax():
    calls = parse_tool_calls('Let me look.\nTOOL_CALL: readFile({"path": "src/main.ts"})')
    assert len(calls) == 1
    assert calls[0].name == "readFile"
    assert calls[0].arguments == {"path": "src/main.ts"}
    assert calls[0].id == "call_0"


def test_multiple_calls_keep_reply_order():
    reply = (
        'TOOL_CALL: searchCode({"pattern": "whatwg-url"})\n'
        'TOOL_CALL: checkPackage({"packageName": "whatwg-url"})\n'
    )
    calls = parse_tool_calls(reply)
    assert [c.name for c in calls] == ["searchCode", "checkPackage"]
    assert [c.id for c in calls] == ["call_0", "call_1"]


def test_nested_braces_inside_string_values():
    reply = (
        'TOOL_CALL: proposeChanges({"changes": [{"file": "src/a.ts", "type": "modify", '
        '"search": "if (x) { y(); }", "replace": "if (x) { z(); }"}], '
        '"explanation": "rename", "confidence": 0.6}) and that is all'
    )
    calls = parse_tool_calls(reply)
    assert calls[0].arguments["changes"][0]["replace"] == "if (x) { z(); }"
    assert calls[0].arguments["confidence"] == 0.6


def test_single_quoted_arguments_are_repaired():
    calls = parse_tool_calls("TOOL_CALL: readFile({'path': 'src/main.ts'})")
    assert calls[0].arguments == {"path": "src/main.ts"}


def test_bare_keys_are_repaired():
    assert parse_arguments('{pattern: "whatwg", caseSensitive: true}') == {
        "pattern": "whatwg",
        "caseSensitive": True,
    }


def test_unparsable_call_is_dropped_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="agent.tool_calls"):
        calls = parse_tool_calls(
            "TOOL_CALL: readFile(src/main.ts)\nTOOL_CALL: listFiles({\"directory\": \"src\"})"
        )
    assert [c.name for c in calls] == ["listFiles"]
    assert "Could not parse tool call: readFile" in caplog.text


def test_fallback_syntax_for_registered_tools():
    calls = parse_tool_calls('I will now call listFiles({"directory": "src"}) to see the layout.')
    assert [c.name for c in calls] == ["listFiles"]


def test_fallback_ignores_unregistered_names():
    assert parse_tool_calls('console.log({"a": 1}); JSON.stringify({"b": 2})') == []


def test_fallback_skips_names_already_captured():
    reply = (
        'TOOL_CALL: readFile({"path": "a.ts"})\n'
        'Afterwards I might readFile({"path": "b.ts"}) too.'
    )
    calls = parse_tool_calls(reply)
    assert len(calls) == 1
    assert calls[0].arguments == {"path": "a.ts"}


def test_no_calls():
    assert parse_tool_calls("The error is caused by a missing import.") == []
