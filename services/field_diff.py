"""
Field-level diff between a stored lender and an incoming payload.
Both sides are reduced to a canonical JSON form before comparison; lists are order-sensitive.
"""
from __future__ import annotations

import json
from typing import Any, Mapping

from models.lender import COMPARABLE_FIELDS

FieldDiff = dict[str, dict[str, Any]]


def _canonical(value: Any) -> str:
    # Float and int of the same magnitude must compare equal (Float columns vs JSON ints)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = float(value)
    return json.dumps(value, sort_keys=True, default=str)


def compute_diff(existing: Mapping[str, Any], incoming: Mapping[str, Any]) -> FieldDiff | None:
    """
    Compare COMPARABLE_FIELDS of `existing` against `incoming` (missing keys count as None).
    Returns {field: {"old": ..., "new": ...}} or None when nothing differs.
    """
    diff: FieldDiff = {}
    for field in COMPARABLE_FIELDS:
        old = existing.get(field)
        new = incoming.get(field)
        if old is None and new is None:
            continue
        if _canonical(old) != _canonical(new):
            diff[field] = {"old": old, "new": new}
    return diff or None
