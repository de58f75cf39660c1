"""
Tool definitions advertised to the reasoning provider.

Each entry is {name, description, parameters}; parameters is a JSON
Schema object and is also used by the executor to validate arguments.
"""

import json

PROPOSE_CHANGES = "proposeChanges"

TOOL_DEFINITIONS: list[dict] = [
    {
        "name": "readFile",
        "description": (
            "Read the contents of a file from the project. Use this to examine "
            "source code, configuration files, or any text file."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Relative path from project root to the file"},
                "startLine": {"type": "integer", "minimum": 1, "description": "Starting line number (1-indexed). Optional."},
                "endLine": {"type": "integer", "minimum": 1, "description": "Ending line number (inclusive). Optional."},
            },
            "required": ["path"],
        },
    },
    {
        "name": "searchCode",
        "description": (
            "Search for code patterns or text across project files. Use this to "
            "find usages, imports, or specific code patterns."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "pattern": {"type": "string", "description": "Text or regex pattern to search for"},
                "filePattern": {"type": "string", "description": 'Glob for files to search (e.g. "*.ts", "*.{ts,js}")'},
                "caseSensitive": {"type": "boolean", "description": "Whether the search is case sensitive"},
            },
            "required": ["pattern"],
        },
    },
    {
        "name": "listFiles",
        "description": "List files in a directory. Use this to explore project structure.",
        "parameters": {
            "type": "object",
            "properties": {
                "directory": {"type": "string", "description": "Directory path relative to project root"},
                "recursive": {"type": "boolean", "description": "Whether to list files recursively"},
                "pattern": {"type": "string", "description": 'Glob to filter file names (e.g. "*.ts")'},
            },
            "required": ["directory"],
        },
    },
    {
        "name": "runCommand",
        "description": "Run a shell command in the project directory. Use for builds, package manager commands, etc.",
        "parameters": {
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "The shell command to execute"},
                "cwd": {"type": "string", "description": "Working directory relative to project root (optional)"},
                "timeout": {"type": "number", "exclusiveMinimum": 0, "description": "Command timeout in milliseconds (optional)"},
            },
            "required": ["command"],
        },
    },
    {
        "name": "checkPackage",
        "description": (
            "Check whether a dependency is browser-compatible. Use this when "
            "investigating runtime errors related to packages."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "packageName": {"type": "string", "description": "The package name to check"},
                "checkBrowserCompat": {"type": "boolean", "description": "Whether to check browser compatibility"},
            },
            "required": ["packageName"],
        },
    },
    {
        "name": "analyzeRuntimeError",
        "description": (
            "Analyze a runtime error to diagnose the root cause. Use this for "
            "browser console errors or application crashes."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "errorMessage": {"type": "string", "description": "The error message from the console or logs"},
                "stackTrace": {"type": "string", "description": "The full stack trace if available"},
                "context": {"type": "string", "description": "When or where the error occurs"},
            },
            "required": ["errorMessage"],
        },
    },
    {
        "name": PROPOSE_CHANGES,
        "description": (
            "Propose file changes to fix the issue. Only use this when you have "
            "diagnosed the problem and are confident in the solution."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "changes": {
                    "type": "array",
                    "minItems": 1,
                    "description": "File changes to apply",
                    "items": {
                        "type": "object",
                        "properties": {
                            "file": {"type": "string", "minLength": 1, "description": "File path"},
                            "type": {"type": "string", "enum": ["create", "modify", "delete"]},
                            "content": {"type": "string", "description": "New content (for create/modify)"},
                            "search": {"type": "string", "description": "Text to find (for modify)"},
                            "replace": {"type": "string", "description": "Replacement text (for modify)"},
                            "reasoning": {"type": "string", "description": "Why this change is needed"},
                        },
                        "required": ["file", "type"],
                    },
                },
                "explanation": {"type": "string", "description": "Overall explanation of the fix"},
                "confidence": {"type": "number", "minimum": 0, "maximum": 1, "description": "Confidence in this fix (0-1)"},
            },
            "required": ["changes", "explanation", "confidence"],
        },
    },
]

TOOLS_BY_NAME: dict[str, dict] = {tool["name"]: tool for tool in TOOL_DEFINITIONS}

TOOL_NAMES = frozenset(TOOLS_BY_NAME)


def render_tool_definitions() -> str:
    """Tool list as it appears in the reasoning prompt."""
    return "\n\n".join(
        f"- {tool['name']}: {tool['description']}\n  Parameters: {json.dumps(tool['parameters'])}"
        for tool in TOOL_DEFINITIONS
    )
