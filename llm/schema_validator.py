"""
JSON extraction and schema validation for model output.

Models embed JSON in prose and put objects where strings belong.
This module:
  1. Extracts a balanced JSON object from free text
  2. Validates it against a JSON schema and raises a typed exception
"""

import json
from typing import Any

import jsonschema
from jsonschema import ValidationError as JsonSchemaValidationError


class StructuredOutputError(Exception):
    """Raised when model output cannot be parsed or validated."""

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


def extract_json_object(text: str, start: int = 0) -> str | None:
    """
    Return the balanced {...} object beginning at the first '{' at or after
    start, or None if there is no complete object.

    String literals are tracked so braces inside values do not count.
    """
    idx = text.find("{", start)
    if idx == -1:
        return None

    depth = 0
    in_string = False
    quote_char = ""
    escape_next = False
    for i, ch in enumerate(text[idx:], start=idx):
        if escape_next:
            escape_next = False
            continue
        if ch == "\\" and in_string:
            escape_next = True
            continue
        if ch in ('"', "'"):
            # either quote opens a string; only the same quote closes it
            if not in_string:
                in_string = True
                quote_char = ch
            elif ch == quote_char:
                in_string = False
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[idx:i + 1]
    return None


def _coerce_parsed(parsed: dict[str, Any], schema: dict) -> dict[str, Any]:
    """
    Best-effort coercion before schema validation: required string fields
    that came back as objects or arrays are serialized back to JSON text.
    """
    required_string_fields = [
        name
        for name, defn in schema.get("properties", {}).items()
        if defn.get("type") == "string"
        and name in schema.get("required", [])
    ]
    for name in required_string_fields:
        value = parsed.get(name)
        if isinstance(value, (dict, list)):
            parsed[name] = json.dumps(value)
    return parsed


def validate_payload(payload: Any, schema: dict, raw_text: str = "") -> dict[str, Any]:
    """Validate an already-parsed payload. Returns the (coerced) payload."""
    if not isinstance(payload, dict):
        raise StructuredOutputError("Expected a JSON object", raw_text=raw_text)
    if not schema:
        return payload

    payload = _coerce_parsed(payload, schema)
    try:
        jsonschema.validate(instance=payload, schema=schema)
    except JsonSchemaValidationError as exc:
        location = "/".join(str(p) for p in exc.absolute_path)
        detail = f"{exc.message} (at {location})" if location else exc.message
        raise StructuredOutputError(
            f"Schema validation failed: {detail}",
            raw_text=raw_text,
        ) from exc
    return payload

