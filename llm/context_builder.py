"""
Character-budget helpers for prompt assembly.

Token counting is approximate (character-based) since we do not want
to import a tokenizer as a hard dependency.
The approximation: 1 token ≈ 4 characters.
"""

import math
from typing import Iterable

_CHARS_PER_TOKEN = 4


def estimate_tokens(*texts: str) -> int:
    """ceil(total characters / 4) across all given texts."""
    total = sum(len(t) for t in texts)
    return math.ceil(total / _CHARS_PER_TOKEN)


def truncate(text: str, max_chars: int) -> str:
    """Hard-truncate to max_chars."""
    return text[:max_chars]


def excerpt_around_line(content: str, line: int, context_lines: int = 30) -> str:
    """
    Numbered excerpt of content around a 1-indexed line.
    The target line is prefixed with '>>> ', others with four spaces.
    """
    lines = content.split("\n")
    start = max(0, line - context_lines - 1)
    end = min(len(lines), line + context_lines)
    out = []
    for offset, text in enumerate(lines[start:end]):
        number = start + offset + 1
        marker = ">>> " if number == line else "    "
        out.append(f"{marker}{number}: {text}")
    return "\n".join(out)


def render_conversation(messages: Iterable[tuple[str, str]]) -> str:
    """
    Flatten (role, content) pairs into one prompt.
    Roles: system | user | assistant | tool.
    """
    labels = {
        "system": "System",
        "user": "User",
        "assistant": "Assistant",
        "tool": "Tool Result",
    }
    return "\n\n".join(
        f"{labels.get(role, 'Message')}: {content}" for role, content in messages
    )
