"""
ToolExecutor: dispatches tool calls by name against one project root.

Every call returns a ToolResult. Unknown tool names, invalid arguments,
paths outside the root and unexpected exceptions all come back as
success=False with a descriptive message; nothing is raised to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from agent.models import CHANGE_TYPES, FileChange, SearchReplace, ToolResult
from llm.schema_validator import StructuredOutputError, validate_payload
from .command_runner import run_command_tool
from .definitions import PROPOSE_CHANGES, TOOLS_BY_NAME
from .file_tools import list_files, read_file, search_code
from .package_tools import analyze_runtime_error_tool, check_package
from .paths import PathEscapeError, resolve_in_root

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolContext:
    project_root: Path
    max_file_size: int = 15000
    # seconds; runCommand's own timeout argument is in milliseconds
    command_timeout: float = 120.0


class ProposalError(ValueError):
    """A proposeChanges payload that cannot be applied."""


def build_file_changes(root: Path, changes: list[dict[str, Any]]) -> list[FileChange]:
    """
    Convert raw proposeChanges entries into FileChange objects.

    Raises ProposalError on a path outside the root or an entry that
    carries neither content nor a search/replace pair where one is needed.
    """
    resolved_root = root.resolve()
    out = []
    for index, raw in enumerate(changes):
        change_type = raw.get("type", "modify")
        if change_type not in CHANGE_TYPES:
            raise ProposalError(f"changes[{index}]: unknown change type '{change_type}'")
        try:
            full = resolve_in_root(resolved_root, raw["file"])
        except PathEscapeError as exc:
            raise ProposalError(f"changes[{index}]: {exc}") from exc

        pairs = []
        if raw.get("search") is not None:
            if raw.get("replace") is None:
                raise ProposalError(f"changes[{index}]: 'search' without 'replace'")
            pairs.append(SearchReplace(search=raw["search"], replace=raw["replace"]))

        content = raw.get("content")
        if change_type == "create" and content is None:
            raise ProposalError(f"changes[{index}]: create requires 'content'")
        if change_type == "modify" and content is None and not pairs:
            raise ProposalError(f"changes[{index}]: modify requires 'content' or 'search'/'replace'")

        out.append(
            FileChange(
                file=full.relative_to(resolved_root).as_posix(),
                type=change_type,
                content=None if pairs else content,
                search_replace=pairs,
                reasoning=raw.get("reasoning"),
            )
        )
    return out


class ToolExecutor:
    def __init__(self, context: ToolContext, logger: logging.Logger | None = None) -> None:
        self._context = context
        self._root = Path(context.project_root)
        self._log = logger or logging.getLogger(__name__)

    @property
    def context(self) -> ToolContext:
        return self._context

    async def execute(self, name: str, args: dict[str, Any] | None) -> ToolResult:
        definition = TOOLS_BY_NAME.get(name)
        if definition is None:
            self._log.warning("Rejected unknown tool: %s", name)
            return ToolResult(False, f"Unknown tool: {name}")

        args = dict(args or {})
        if name == "readFile" and "path" not in args and "filePath" in args:
            args["path"] = args.pop("filePath")

        try:
            validate_payload(args, definition["parameters"])
        except StructuredOutputError as exc:
            return ToolResult(False, f"Invalid arguments for {name}: {exc}")

        self._log.debug("Executing tool %s args=%s", name, args)
        try:
            return await self._dispatch(name, args)
        except Exception as exc:
            self._log.exception("Tool %s failed", name)
            return ToolResult(False, f"Tool {name} failed: {exc}")

    async def _dispatch(self, name: str, args: dict[str, Any]) -> ToolResult:
        ctx = self._context
        if name == "readFile":
            return await asyncio.to_thread(
                read_file,
                self._root,
                args["path"],
                args.get("startLine"),
                args.get("endLine"),
                ctx.max_file_size,
            )
        if name == "searchCode":
            return await asyncio.to_thread(
                search_code,
                self._root,
                args["pattern"],
                args.get("filePattern"),
                bool(args.get("caseSensitive", False)),
            )
        if name == "listFiles":
            return await asyncio.to_thread(
                list_files,
                self._root,
                args["directory"],
                bool(args.get("recursive", False)),
                args.get("pattern"),
            )
        if name == "runCommand":
            return await run_command_tool(
                self._root,
                args["command"],
                args.get("cwd"),
                args.get("timeout"),
                ctx.command_timeout,
            )
        if name == "checkPackage":
            return await asyncio.to_thread(
                check_package,
                self._root,
                args["packageName"],
                bool(args.get("checkBrowserCompat", True)),
            )
        if name == "analyzeRuntimeError":
            return analyze_runtime_error_tool(args["errorMessage"], args.get("stackTrace") or "")
        if name == PROPOSE_CHANGES:
            return self._propose_changes(args)
        return ToolResult(False, f"Unknown tool: {name}")

    def _propose_changes(self, args: dict[str, Any]) -> ToolResult:
        """Shape and confinement check only; nothing is written."""
        try:
            changes = build_file_changes(self._root, args["changes"])
        except ProposalError as exc:
            return ToolResult(False, f"Invalid proposeChanges payload: {exc}")

        files = ", ".join(c.file for c in changes)
        return ToolResult(
            True,
            f"Proposed {len(changes)} change(s) to: {files}",
            {
                "changes": changes,
                "explanation": args["explanation"],
                "confidence": float(args["confidence"]),
            },
        )
