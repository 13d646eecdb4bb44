"""
Case conversion for API responses.
Uses Pydantic's alias_generators for consistency with schema validation.
"""
from typing import Any

from pydantic.alias_generators import to_camel


def to_camel_key(s: str) -> str:
    """Convert a single snake_case key to camelCase (first letter lower)."""
    return to_camel(s)


def top_level_keys_to_camel(obj: dict[str, Any]) -> dict[str, Any]:
    """
    camelCase only the outer keys. Nested maps such as incoming_data and changes_diff are keyed
    by lender field names and go back to the API unchanged (merge requests send them as-is).
    """
    return {to_camel_key(k): v for k, v in obj.items()}
