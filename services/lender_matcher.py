"""
Resolve an incoming Flex lender to at most one stored lender.
Flex id match wins; otherwise fall back to the normalized name.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from models.lender import MasterLender

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_name(name: str) -> str:
    """Lowercase, trim and drop everything outside [a-z0-9]: "O'Brien Capital, LLC" -> "obriencapitalllc"."""
    return _NON_ALNUM.sub("", name.lower().strip())


@dataclass(frozen=True)
class LenderSnapshot:
    """Detached copy of a stored lender, safe to keep across commits and rollbacks."""

    id: str
    name: str
    sync_source: Optional[str]
    flex_lender_id: Optional[str]
    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_model(cls, lender: MasterLender) -> "LenderSnapshot":
        return cls(
            id=lender.id,
            name=lender.name,
            sync_source=lender.sync_source,
            flex_lender_id=lender.flex_lender_id,
            values=lender.comparable_values(),
        )


class LenderIndex:
    """
    Lookup tables built once per ingestion batch.
    Two lenders sharing a normalized name collapse to whichever was indexed last.
    """

    def __init__(self, lenders: Iterable[LenderSnapshot]):
        self.by_flex_id: dict[str, LenderSnapshot] = {}
        self.by_name: dict[str, LenderSnapshot] = {}
        for lender in lenders:
            self.by_name[normalize_name(lender.name)] = lender
            if lender.flex_lender_id:
                self.by_flex_id[lender.flex_lender_id] = lender

    def match(self, flex_id: Optional[str], name: str) -> Optional[LenderSnapshot]:
        if flex_id:
            found = self.by_flex_id.get(flex_id)
            if found is not None:
                return found
        return self.by_name.get(normalize_name(name))
