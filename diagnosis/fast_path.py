"""
Fast-Path Diagnoser and Fast Fix Generator.

diagnose() is a pure function over the failure text. When it is confident
enough, generate_fast_fix() turns an environment-only-package diagnosis
into concrete edits: the package's import statements are removed from
every source file that references it, and the package is dropped from
both dependency sections of the manifest.
"""

import asyncio
import json
import logging
import re

from agent.models import (
    ENVIRONMENT_ONLY_PACKAGE,
    Diagnosis,
    FailureSignature,
    FileChange,
    FixResult,
    SearchReplace,
)
from sandbox.executor import ToolExecutor
from sandbox.file_tools import NO_MATCHES, files_from_search
from sandbox.package_tools import MANIFEST, read_manifest
from sandbox.paths import PathEscapeError, resolve_in_root
from .import_remover import find_package_imports
from .signatures import (
    ALTERNATIVES,
    ENVIRONMENT_ONLY_PACKAGES,
    extract_packages,
    match_known_signature,
    match_pattern,
)

logger = logging.getLogger(__name__)

SOURCE_GLOB = "*.{ts,js,tsx,jsx}"

REINSTALL_SUGGESTION = "Run `npm install` after applying these changes to update node_modules."
REBUILD_SUGGESTION = "Re-run the build to verify the fix."


def diagnose(failure: FailureSignature, raw_output: str = "") -> Diagnosis | None:
    """
    Order: known signature (0.95), first matching error pattern (0.7),
    denylisted packages in the stack (0.85). None when nothing matches.
    """
    text = f"{failure.message}\n{raw_output or failure.raw_output}"
    packages = extract_packages(text)
    problematic = [p for p in packages if p in ENVIRONMENT_ONLY_PACKAGES]

    known = match_known_signature(text)
    if known:
        return Diagnosis(
            issue_type=ENVIRONMENT_ONLY_PACKAGE,
            root_cause=known.root_cause,
            severity="critical",
            confidence=0.95,
            evidence=[f"Known failure signature for '{known.package}'"],
            suggested_fix=known.suggested_fix,
            problematic_packages=[known.package],
        )

    pattern = match_pattern(text)
    if pattern:
        return Diagnosis(
            issue_type=pattern.issue_type,
            root_cause=pattern.hint,
            severity="high",
            confidence=0.7,
            evidence=[f"Matched pattern: {pattern.hint}"],
            suggested_fix=pattern.hint,
            problematic_packages=problematic,
        )

    if problematic:
        return Diagnosis(
            issue_type=ENVIRONMENT_ONLY_PACKAGE,
            root_cause=f"Browser-incompatible package(s) detected: {', '.join(problematic)}",
            severity="critical",
            confidence=0.85,
            evidence=[f"Found in stack trace: {', '.join(problematic)}"],
            suggested_fix=(
                "Remove or replace browser-incompatible packages: " + ", ".join(problematic)
            ),
            problematic_packages=problematic,
        )

    return None


def usage_pattern(package: str) -> str:
    quoted = r"""['"]""" + re.escape(package) + r"""(?:/[^'"]*)?['"]"""
    return rf"(?:from|import)\s+{quoted}|require\(\s*{quoted}\s*\)"


async def find_package_usages(executor: ToolExecutor, package: str) -> list[str]:
    result = await executor.execute(
        "searchCode",
        {"pattern": usage_pattern(package), "filePattern": SOURCE_GLOB, "caseSensitive": True},
    )
    if not result.success or result.result == NO_MATCHES:
        return []
    return files_from_search(result.result)


def generate_reasoning(diagnosis: Diagnosis) -> str:
    parts = [f"**Issue Type:** {diagnosis.issue_type}", ""]
    if diagnosis.problematic_packages:
        parts += [f"**Problematic Packages:** {', '.join(diagnosis.problematic_packages)}", ""]
    parts += ["**Root Cause:**", diagnosis.root_cause, "", "**Solution:**", diagnosis.suggested_fix or ""]

    for package in diagnosis.problematic_packages:
        alternative = ALTERNATIVES.get(package)
        if alternative:
            parts += [
                "",
                f"**{package}:** {alternative.alternative}",
                "```typescript",
                alternative.example,
                "```",
            ]
    return "\n".join(parts)


def _manifest_change(executor: ToolExecutor, packages: list[str]) -> FileChange | None:
    manifest = read_manifest(executor.context.project_root)
    if manifest is None:
        return None

    removed = []
    for section in ("dependencies", "devDependencies"):
        deps = manifest.get(section)
        if not isinstance(deps, dict):
            continue
        for package in packages:
            if package in deps:
                del deps[package]
                removed.append(package)

    if not removed:
        return None
    return FileChange(
        file=MANIFEST,
        type="modify",
        content=json.dumps(manifest, indent=2) + "\n",
        diff=f"Removed packages: {', '.join(dict.fromkeys(removed))}",
        reasoning="Environment-only packages cannot run in the browser",
    )


async def generate_fast_fix(diagnosis: Diagnosis, executor: ToolExecutor) -> FixResult | None:
    """Concrete edits for an environment-only-package diagnosis, or None."""
    if diagnosis.issue_type != ENVIRONMENT_ONLY_PACKAGE or not diagnosis.problematic_packages:
        return None

    root = executor.context.project_root
    packages = diagnosis.problematic_packages
    usages: dict[str, list[str]] = {}
    for package in packages:
        for file in await find_package_usages(executor, package):
            usages.setdefault(file, []).append(package)
    diagnosis.affected_files = list(usages)

    changes: list[FileChange] = []
    for file, file_packages in usages.items():
        try:
            path = resolve_in_root(root, file)
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (PathEscapeError, OSError) as exc:
            logger.warning("Could not process %s: %s", file, exc)
            continue

        statements = []
        for package in file_packages:
            statements.extend(find_package_imports(content, package))
        if statements:
            changes.append(
                FileChange(
                    file=file,
                    type="modify",
                    search_replace=[SearchReplace(search=s, replace="") for s in statements],
                    diff=f"Removed imports of: {', '.join(file_packages)}",
                    reasoning="Imports of environment-only packages break the browser bundle",
                )
            )

    manifest_change = await asyncio.to_thread(_manifest_change, executor, packages)
    if manifest_change:
        changes.append(manifest_change)

    if not changes:
        return None

    suggestions = [REBUILD_SUGGESTION]
    if manifest_change:
        suggestions.insert(0, REINSTALL_SUGGESTION)
    return FixResult(
        success=True,
        changes=changes,
        reasoning=generate_reasoning(diagnosis),
        confidence=diagnosis.confidence,
        suggestion="\n".join(suggestions),
    )
