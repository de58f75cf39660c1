"""
Failure signature tables and runtime-error heuristics.

Everything here is pure: no file or network access. The Fast-Path
Diagnoser, the analyzeRuntimeError tool and runtime-output parsing all
read the same tables so they agree on what a known failure looks like.
"""

import re
from dataclasses import dataclass, field

from agent.models import (
    BROWSER_COMPATIBILITY,
    DEPRECATED_API,
    ENVIRONMENT_ONLY_PACKAGE,
    MISSING_DEPENDENCY,
    RUNTIME_ERROR,
    Diagnosis,
    FailureCategory,
    FailureSignature,
)

# Packages that only run in a server runtime and break in the browser
ENVIRONMENT_ONLY_PACKAGES = frozenset({
    "whatwg-url", "node-fetch", "fs", "path", "crypto", "stream", "buffer",
    "util", "os", "child_process", "http", "https", "net", "tls", "dns",
    "dgram", "cluster", "readline", "repl", "vm", "v8", "worker_threads",
})


@dataclass(frozen=True)
class ErrorPattern:
    pattern: re.Pattern
    issue_type: str
    hint: str


# Ordered: first match wins
RUNTIME_ERROR_PATTERNS: tuple[ErrorPattern, ...] = (
    ErrorPattern(
        re.compile(r"Cannot convert undefined or null to object", re.IGNORECASE),
        BROWSER_COMPATIBILITY,
        "Server-only package being used in browser context",
    ),
    ErrorPattern(
        re.compile(r"is not a function", re.IGNORECASE),
        DEPRECATED_API,
        "API may have changed or been removed in newer version",
    ),
    ErrorPattern(
        re.compile(r"Cannot read propert(?:y|ies) of (?:undefined|null)", re.IGNORECASE),
        RUNTIME_ERROR,
        "Object or module not properly initialized",
    ),
    ErrorPattern(
        re.compile(r"Module not found|Cannot find module", re.IGNORECASE),
        MISSING_DEPENDENCY,
        "Missing or incorrectly installed package",
    ),
    ErrorPattern(
        re.compile(r"getPrototypeOf|Object\.prototype", re.IGNORECASE),
        ENVIRONMENT_ONLY_PACKAGE,
        "Server-specific code running in browser",
    ),
)


@dataclass(frozen=True)
class KnownSignature:
    """An exact, high-confidence failure: a package plus one of its error texts."""
    package: str
    substrings: tuple[str, ...]
    root_cause: str
    suggested_fix: str


KNOWN_SIGNATURES: tuple[KnownSignature, ...] = (
    KnownSignature(
        package="whatwg-url",
        substrings=("Cannot convert undefined or null to object", "getPrototypeOf"),
        root_cause=(
            "whatwg-url is a server-side implementation of the URL standard. "
            "Browsers have native URL support."
        ),
        suggested_fix=(
            "Remove the whatwg-url package and its imports. Use the browser's "
            "native URL and URLSearchParams APIs instead."
        ),
    ),
)


@dataclass(frozen=True)
class Alternative:
    native: bool
    alternative: str
    example: str


ALTERNATIVES: dict[str, Alternative] = {
    "whatwg-url": Alternative(
        native=True,
        alternative="Browser native URL and URLSearchParams APIs",
        example=(
            "// Before\nimport { URL } from 'whatwg-url';\n\n"
            "// After (no import needed)\nconst url = new URL('https://example.com');\n"
            "const params = new URLSearchParams('key=value');"
        ),
    ),
    "whatwg-fetch": Alternative(
        native=True,
        alternative="Browser native fetch API",
        example="// Before\nimport 'whatwg-fetch';\n\n// After (no import needed)\nfetch('/api/data').then(res => res.json());",
    ),
    "node-fetch": Alternative(
        native=True,
        alternative="Browser native fetch API",
        example="// Before\nimport fetch from 'node-fetch';\n\n// After (no import needed)\nconst response = await fetch('/api/data');",
    ),
    "buffer": Alternative(
        native=False,
        alternative="Use Uint8Array or TextEncoder/TextDecoder",
        example="// Before\nimport { Buffer } from 'buffer';\n\n// After\nconst data = new Uint8Array([1, 2, 3]);",
    ),
    "crypto": Alternative(
        native=True,
        alternative="Web Crypto API (window.crypto)",
        example=(
            "// Before\nimport crypto from 'crypto';\nconst hash = crypto.createHash('sha256');\n\n"
            "// After\nconst hash = await crypto.subtle.digest('SHA-256', data);"
        ),
    ),
    "path": Alternative(
        native=False,
        alternative="String manipulation or the URL API",
        example="// Before\nimport path from 'path';\nconst joined = path.join('a', 'b');\n\n// After\nconst joined = ['a', 'b'].join('/');",
    ),
    "fs": Alternative(
        native=False,
        alternative="File System Access API or IndexedDB",
        example="const [fileHandle] = await window.showOpenFilePicker();\nconst file = await fileHandle.getFile();",
    ),
}

_DEPENDENCY_MARKER = re.compile(r"node_modules/([^/\s]+)")
_SOURCE_LOCATION = re.compile(r"([^/\s]+\.(?:js|ts|tsx|jsx)):(\d+)")
_STACK_FILE = re.compile(r"([^\s(]+\.(?:ts|js|tsx|jsx))")
_STACK_LINE = re.compile(r"\.(?:js|ts):\d+")


def extract_packages(text: str) -> list[str]:
    """Package names found under dependency-directory markers, first-seen order."""
    return list(dict.fromkeys(_DEPENDENCY_MARKER.findall(text)))


def match_pattern(text: str) -> ErrorPattern | None:
    for entry in RUNTIME_ERROR_PATTERNS:
        if entry.pattern.search(text):
            return entry
    return None


def match_known_signature(text: str) -> KnownSignature | None:
    for known in KNOWN_SIGNATURES:
        if known.package in text and any(s in text for s in known.substrings):
            return known
    return None


@dataclass
class ParsedRuntimeError:
    message: str
    stack_trace: str
    source_file: str | None = None
    line_number: int | None = None
    involved_packages: list[str] = field(default_factory=list)


def parse_runtime_error(error_output: str) -> ParsedRuntimeError:
    """Split browser console output into message, stack and packages."""
    lines = error_output.split("\n")
    message = lines[0] if lines and lines[0] else "Unknown error"
    stack_lines = [
        line for line in lines
        if "at " in line or "node_modules" in line or _STACK_LINE.search(line)
    ]
    source = _SOURCE_LOCATION.search(error_output)
    return ParsedRuntimeError(
        message=message,
        stack_trace="\n".join(stack_lines),
        source_file=source.group(1) if source else None,
        line_number=int(source.group(2)) if source else None,
        involved_packages=extract_packages(error_output),
    )


def signature_from_runtime_output(error_output: str) -> FailureSignature:
    parsed = parse_runtime_error(error_output)
    if any(p in ENVIRONMENT_ONLY_PACKAGES for p in parsed.involved_packages):
        category = FailureCategory.DEPENDENCY
    elif "import" in error_output or "require" in error_output:
        category = FailureCategory.IMPORT
    elif "TypeError" in error_output:
        category = FailureCategory.TYPE_SYSTEM
    else:
        category = FailureCategory.UNKNOWN

    return FailureSignature(
        message=parsed.message,
        category=category,
        file=parsed.source_file,
        line=parsed.line_number,
        raw_output=error_output,
    )


def analyze_runtime_error(error_message: str, stack_trace: str = "") -> Diagnosis:
    """
    Partial diagnosis of one runtime error. Later checks override earlier
    ones: pattern (0.7), denylisted package in the stack (0.9), known
    signature in the message (0.95); nothing matched gives 0.3.
    """
    diagnosis = Diagnosis(issue_type="", severity="high")

    pattern = match_pattern(error_message)
    if pattern:
        diagnosis.issue_type = pattern.issue_type
        diagnosis.evidence.append(f"Matched pattern: {pattern.hint}")
        diagnosis.confidence = 0.7

    if stack_trace:
        diagnosis.affected_files = list(dict.fromkeys(_STACK_FILE.findall(stack_trace)))
        for package in extract_packages(stack_trace):
            if package in ENVIRONMENT_ONLY_PACKAGES:
                diagnosis.issue_type = ENVIRONMENT_ONLY_PACKAGE
                diagnosis.root_cause = (
                    f"Package '{package}' is a server-only package and cannot run in the browser"
                )
                diagnosis.suggested_fix = (
                    f"Remove '{package}' from dependencies or replace it with a "
                    "browser-compatible alternative"
                )
                diagnosis.confidence = 0.9
                diagnosis.severity = "critical"
                diagnosis.problematic_packages = [package]
                diagnosis.evidence.append(f"Found server-only package in stack trace: {package}")
                break

    if "whatwg-url" in error_message or "getPrototypeOf" in error_message:
        known = KNOWN_SIGNATURES[0]
        diagnosis.issue_type = ENVIRONMENT_ONLY_PACKAGE
        diagnosis.root_cause = known.root_cause
        diagnosis.suggested_fix = known.suggested_fix
        diagnosis.severity = "critical"
        diagnosis.confidence = 0.95
        if "whatwg-url" in error_message and known.package not in diagnosis.problematic_packages:
            diagnosis.problematic_packages.append(known.package)

    if not diagnosis.issue_type:
        diagnosis.issue_type = RUNTIME_ERROR
        diagnosis.root_cause = "Unknown runtime error - requires investigation"
        diagnosis.confidence = 0.3

    return diagnosis
