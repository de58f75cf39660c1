"""
Prompt files for the reasoning provider.

Each role has one YAML file under llm/prompts/ with a `system` prompt,
optional list entries (e.g. `constraints`) and named `templates`.
Templates use str.format fields; literal braces are written as {{ }}.
Parsed files are kept in memory until invalidate_cache() is called.
"""

import logging
import string
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).parent / "prompts"
_loaded: dict[str, dict[str, Any]] = {}


class _MarkMissing(dict):
    def __missing__(self, key: str) -> str:
        return f"<MISSING:{key}>"


def _prompt_file(role: str) -> dict[str, Any]:
    if role in _loaded:
        return _loaded[role]

    path = _PROMPTS_DIR / f"{role}.yaml"
    if not path.is_file():
        raise FileNotFoundError(
            f"No prompt file for role '{role}' at {path}. Known roles: {list_available_roles()}"
        )
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Prompt file {path} must contain a mapping, got {type(data).__name__}")

    _loaded[role] = data
    return data


def get_system_prompt(role: str) -> str:
    return str(_prompt_file(role).get("system", "")).strip()


def get_list(role: str, key: str) -> list[str]:
    """A list entry such as `constraints`; empty when the role has none."""
    return [str(item).strip() for item in _prompt_file(role).get(key) or []]


def template_fields(role: str, template_key: str) -> set[str]:
    """Names of the format fields a template expects."""
    template = _template(role, template_key)
    return {field for _, field, _, _ in string.Formatter().parse(template) if field}


def _template(role: str, template_key: str) -> str:
    templates = _prompt_file(role).get("templates") or {}
    if template_key not in templates:
        raise KeyError(
            f"Role '{role}' has no template '{template_key}'. Templates: {sorted(templates)}"
        )
    return templates[template_key]


def render_template(role: str, template_key: str, variables: dict[str, Any]) -> str:
    """
    Fill a template. A field with no value renders as '<MISSING:name>' and
    is logged, so an incomplete prompt is visible instead of raising.
    """
    missing = template_fields(role, template_key) - variables.keys()
    if missing:
        logger.warning(
            "Template %s/%s rendered without: %s", role, template_key, ", ".join(sorted(missing))
        )
    return _template(role, template_key).format_map(_MarkMissing(variables))


def list_available_roles() -> list[str]:
    return sorted(p.stem for p in _PROMPTS_DIR.glob("*.yaml"))


def invalidate_cache(role: str | None = None) -> None:
    """Forget parsed prompt files (all of them, or one role)."""
    if role is None:
        _loaded.clear()
    else:
        _loaded.pop(role, None)
