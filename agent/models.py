"""
Data model shared by the diagnoser, the tool layer and the agent.

FailureSignature is the immutable input of one fix request.
FixResult is what goes back to the build-fix loop (and into the cache),
so it round-trips through plain JSON via to_dict() / from_dict().
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class FailureCategory(str, Enum):
    COMPILATION = "compilation"
    TYPE_SYSTEM = "type-system"
    TEMPLATE = "template"
    IMPORT = "import"
    DEPENDENCY = "dependency"
    ROUTING = "routing"
    REACTIVE_STREAM = "reactive-stream"
    COMPONENT_REGISTRATION = "component-registration"
    UNKNOWN = "unknown"


# --- Issue types produced by diagnosis ---
ENVIRONMENT_ONLY_PACKAGE = "environment-only-package"
BROWSER_COMPATIBILITY = "browser-compatibility"
DEPRECATED_API = "deprecated-api"
RUNTIME_ERROR = "runtime-error"
MISSING_DEPENDENCY = "missing-dependency"

CHANGE_TYPES = ("create", "modify", "delete")


@dataclass(frozen=True)
class FailureSignature:
    """One build or runtime failure, as reported by the build-fix loop."""
    message: str
    category: FailureCategory = FailureCategory.UNKNOWN
    file: str | None = None
    line: int | None = None
    column: int | None = None
    raw_output: str = ""


@dataclass
class SearchReplace:
    search: str
    replace: str


@dataclass
class FileChange:
    """
    A single edit. Either search_replace pairs (localized, preferred)
    or a full content replacement. Deletes carry neither.
    """
    file: str
    type: str = "modify"
    content: str | None = None
    search_replace: list[SearchReplace] = field(default_factory=list)
    diff: str | None = None
    reasoning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileChange":
        return cls(
            file=data["file"],
            type=data.get("type", "modify"),
            content=data.get("content"),
            search_replace=[
                SearchReplace(search=pair["search"], replace=pair["replace"])
                for pair in data.get("search_replace") or []
            ],
            diff=data.get("diff"),
            reasoning=data.get("reasoning"),
        )


@dataclass
class FixResult:
    """Outcome of one fix request, consumed by the build-fix loop."""
    success: bool
    changes: list[FileChange] = field(default_factory=list)
    reasoning: str | None = None
    confidence: float | None = None
    suggestion: str | None = None
    error: str | None = None
    requires_manual_intervention: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FixResult":
        return cls(
            success=bool(data.get("success", False)),
            changes=[FileChange.from_dict(c) for c in data.get("changes") or []],
            reasoning=data.get("reasoning"),
            confidence=data.get("confidence"),
            suggestion=data.get("suggestion"),
            error=data.get("error"),
            requires_manual_intervention=bool(
                data.get("requires_manual_intervention", False)
            ),
        )


@dataclass
class Diagnosis:
    issue_type: str
    root_cause: str = ""
    affected_files: list[str] = field(default_factory=list)
    severity: str = "high"  # critical | high | medium | low
    confidence: float = 0.0
    evidence: list[str] = field(default_factory=list)
    suggested_fix: str | None = None
    problematic_packages: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ToolCall:
    """A parsed request from the reasoning provider to run one tool."""
    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class ToolResult:
    """
    Outcome of one tool invocation. result is always human-readable text;
    metadata carries structured data for programmatic consumers.
    """
    success: bool
    result: str
    metadata: dict[str, Any] = field(default_factory=dict)
