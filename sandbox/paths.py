"""Path confinement for every tool that touches the project tree."""

from pathlib import Path

# Directories never walked by searches and listings
EXCLUDED_DIRS = frozenset({"node_modules", ".git", ".hg", ".svn", "dist", ".angular"})


class PathEscapeError(ValueError):
    """The requested path resolves outside the project root."""


def resolve_in_root(root: Path, user_path: str) -> Path:
    """
    Resolve user_path against root, following symlinks.

    Absolute paths are accepted only if they already point inside root.
    Raises PathEscapeError otherwise.
    """
    root = root.resolve()
    candidate = Path(user_path)
    full = (candidate if candidate.is_absolute() else root / candidate).resolve()
    if not full.is_relative_to(root):
        raise PathEscapeError(f"Path outside project root: {user_path}")
    return full
