"""
Request and response guardrails for direct fix requests.

A rejection is returned as a reason string, never raised: the caller
turns it into a failed response with the reason attached.
"""

from agent.models import FileChange

REQUEST_KINDS = ("refactor", "template-fix", "migration-reasoning")

MANIFEST_FILE = "package.json"


def check_request(kind: str, message: str, file_content: str, constraints: list[str]) -> str | None:
    """Return a rejection reason, or None if the request may proceed."""
    if kind not in REQUEST_KINDS:
        return f"Unsupported request kind: {kind}"
    # version resolution belongs to the dependency resolver
    if "version" in message.lower():
        return "Version resolution must not be delegated to the reasoning service"
    if not file_content:
        return "File content is required for a fix request"
    if not constraints:
        return "Constraints are required for a fix request"
    return None


def touches_manifest(path: str) -> bool:
    return path == MANIFEST_FILE or path.replace("\\", "/").endswith("/" + MANIFEST_FILE)


def check_changes(changes: list[FileChange]) -> str | None:
    """Return a rejection reason for the proposed changes, or None."""
    if not changes:
        return "No changes proposed"
    for change in changes:
        if touches_manifest(change.file):
            return "Manifest edits are not allowed from a direct fix request"
    return None
