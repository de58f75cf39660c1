"""checkPackage and analyzeRuntimeError."""

import json
from pathlib import Path

from agent.models import ToolResult
from diagnosis.signatures import ENVIRONMENT_ONLY_PACKAGES, analyze_runtime_error
from .paths import PathEscapeError, resolve_in_root

MANIFEST = "package.json"


def read_manifest(root: Path) -> dict | None:
    """Parsed project manifest, or None if missing or unparsable."""
    path = root / MANIFEST
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def declared_dependencies(manifest: dict) -> dict[str, str]:
    return {
        **(manifest.get("dependencies") or {}),
        **(manifest.get("devDependencies") or {}),
    }


def check_package(root: Path, package_name: str, check_browser_compat: bool = True) -> ToolResult:
    manifest = read_manifest(root)
    if manifest is None:
        return ToolResult(False, f"{MANIFEST} not found or unreadable in project root")

    version = declared_dependencies(manifest).get(package_name)
    package_info: dict = {}
    try:
        installed_manifest = resolve_in_root(root, f"node_modules/{package_name}/{MANIFEST}")
        if installed_manifest.is_file():
            package_info = json.loads(installed_manifest.read_text(encoding="utf-8"))
    except (PathEscapeError, OSError, ValueError):
        package_info = {}

    has_browser_field = bool(package_info.get("browser"))
    has_module_field = bool(package_info.get("module"))
    has_main_field = bool(package_info.get("main"))
    engines_node = bool((package_info.get("engines") or {}).get("node"))
    is_denylisted = package_name in ENVIRONMENT_ONLY_PACKAGES
    is_environment_only = is_denylisted or (engines_node and not has_browser_field)

    if not check_browser_compat:
        recommendation = "Browser compatibility check skipped."
    elif is_environment_only:
        recommendation = (
            "This package is NOT browser-compatible. Remove it or replace it with a "
            f"browser-compatible alternative. For '{package_name}', consider the "
            "browser's native APIs instead."
        )
    elif not has_browser_field and not has_module_field and has_main_field:
        recommendation = (
            "This package may have limited browser support. Check whether it is "
            "meant for a server runtime only."
        )
    else:
        recommendation = "This package appears to be browser-compatible."

    analysis = {
        "packageName": package_name,
        "version": version or "not installed",
        "isInstalled": bool(version),
        "hasBrowserField": has_browser_field,
        "hasModuleField": has_module_field,
        "isEnvironmentOnly": is_environment_only,
        "recommendation": recommendation,
    }
    return ToolResult(True, json.dumps(analysis, indent=2), analysis)


def analyze_runtime_error_tool(error_message: str, stack_trace: str = "") -> ToolResult:
    diagnosis = analyze_runtime_error(error_message, stack_trace).to_dict()
    return ToolResult(True, json.dumps(diagnosis, indent=2), diagnosis)
