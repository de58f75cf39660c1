"""
readFile, searchCode and listFiles.

These are synchronous and pure-Python (no grep/rg subprocess); the
executor runs them in a worker thread. Every function returns a
ToolResult and never raises for missing or inaccessible paths.
"""

import fnmatch
import os
import re
from pathlib import Path

from agent.models import ToolResult
from .paths import EXCLUDED_DIRS, PathEscapeError, resolve_in_root

FILE_TRUNCATED_MARKER = "\n\n... [FILE TRUNCATED - Use startLine/endLine to read specific sections]"
NO_MATCHES = "No matches found"
DEFAULT_SEARCH_GLOB = "*.{ts,js,json,html}"
MAX_SEARCH_RESULTS = 50
# files larger than this are skipped by searchCode
_MAX_SEARCH_FILE_BYTES = 2 * 1024 * 1024


def expand_braces(pattern: str) -> list[str]:
    """'*.{ts,js}' -> ['*.ts', '*.js']. Nested braces are expanded recursively."""
    match = re.search(r"\{([^{}]*)\}", pattern)
    if not match:
        return [pattern]
    head, tail = pattern[:match.start()], pattern[match.end():]
    expanded = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(head + option + tail))
    return expanded


def _glob_matches(rel_path: str, globs: list[str]) -> bool:
    name = rel_path.rsplit("/", 1)[-1]
    for glob in globs:
        target = rel_path if "/" in glob else name
        if fnmatch.fnmatchcase(target, glob):
            return True
    return False


def read_file(
    root: Path,
    path: str,
    start_line: int | None = None,
    end_line: int | None = None,
    max_file_size: int = 15000,
) -> ToolResult:
    try:
        full = resolve_in_root(root, path)
    except PathEscapeError:
        return ToolResult(False, f"File not found or access denied: {path}")
    if not full.is_file():
        return ToolResult(False, f"File not found or access denied: {path}")

    try:
        content = full.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        return ToolResult(False, f"Error reading file: {exc}")

    lines = content.split("\n")
    if start_line is not None or end_line is not None:
        start = max(0, (start_line or 1) - 1)
        end = min(len(lines), end_line if end_line is not None else len(lines))
        result = "\n".join(f"{start + i + 1}: {line}" for i, line in enumerate(lines[start:end]))
    elif len(content) > max_file_size:
        result = content[:max_file_size] + FILE_TRUNCATED_MARKER
    else:
        result = content

    return ToolResult(True, result, {"totalLines": len(lines), "fileSize": len(content)})


def iter_project_files(root: Path, globs: list[str]):
    """Yield (relative posix path, absolute path) for matching files, sorted."""
    root = root.resolve()
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if d not in EXCLUDED_DIRS and not d.startswith(".")
        )
        for filename in sorted(filenames):
            full = Path(dirpath) / filename
            rel = full.relative_to(root).as_posix()
            # symlinked files may point outside the root
            if full.is_symlink() and not full.resolve().is_relative_to(root):
                continue
            if _glob_matches(rel, globs):
                yield rel, full


def search_code(
    root: Path,
    pattern: str,
    file_pattern: str | None = None,
    case_sensitive: bool = False,
) -> ToolResult:
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        regex = re.compile(pattern, flags)
    except re.error:
        # not a valid regex; search for it literally
        regex = re.compile(re.escape(pattern), flags)

    globs = expand_braces(file_pattern or DEFAULT_SEARCH_GLOB)
    matches: list[str] = []
    for rel, full in iter_project_files(root, globs):
        try:
            if full.stat().st_size > _MAX_SEARCH_FILE_BYTES:
                continue
            text = full.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        for lineno, line in enumerate(text.split("\n"), start=1):
            if regex.search(line):
                matches.append(f"{rel}:{lineno}:{line}")

    if not matches:
        return ToolResult(True, NO_MATCHES, {"matchCount": 0})

    result = "\n".join(matches[:MAX_SEARCH_RESULTS])
    if len(matches) > MAX_SEARCH_RESULTS:
        result += f"\n\n... [{len(matches) - MAX_SEARCH_RESULTS} more results truncated]"
    return ToolResult(True, result, {"matchCount": len(matches)})


def files_from_search(result: str) -> list[str]:
    """Unique file paths from searchCode output lines, first-seen order."""
    files = []
    for line in result.split("\n"):
        match = re.match(r"^(?:\./)?(.+?\.(?:ts|js|tsx|jsx|json|html)):\d+:", line)
        if match:
            files.append(match.group(1))
    return list(dict.fromkeys(files))


def list_files(
    root: Path,
    directory: str,
    recursive: bool = False,
    pattern: str | None = None,
) -> ToolResult:
    try:
        base = resolve_in_root(root, directory or ".")
    except PathEscapeError:
        return ToolResult(False, f"Directory not found or access denied: {directory}")
    if not base.is_dir():
        return ToolResult(False, f"Directory not found: {directory}")

    entries: list[str] = []

    def walk(current: Path) -> None:
        for child in sorted(current.iterdir(), key=lambda p: p.name):
            if child.name in EXCLUDED_DIRS or child.name.startswith("."):
                continue
            rel = child.relative_to(base).as_posix()
            if child.is_dir():
                entries.append(f"{rel}/")
                if recursive and not child.is_symlink():
                    walk(child)
            elif not pattern or fnmatch.fnmatchcase(child.name, pattern):
                entries.append(rel)

    try:
        walk(base)
    except OSError as exc:
        return ToolResult(False, f"Error listing files: {exc}")

    return ToolResult(
        True,
        "\n".join(entries) if entries else "Directory is empty",
        {"fileCount": len(entries)},
    )
