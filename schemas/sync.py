from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from schemas.lender import MergeFields


class LenderSyncEvent(BaseModel):
    """
    Webhook envelope from Flex. Single-lender events carry `lender`, batch events carry `lenders`;
    both are accepted together and concatenated. Payloads stay raw dicts here so that one bad
    lender fails on its own during ingestion instead of rejecting the whole envelope.
    """
    event: Literal["lender_created", "lender_updated", "sync_lenders"]
    source: Optional[str] = None
    lender: Optional[dict[str, Any]] = None
    lenders: Optional[list[dict[str, Any]]] = None

    def payloads(self) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        if self.lender is not None:
            out.append(self.lender)
        if self.lenders:
            out.extend(self.lenders)
        return out


class SyncResult(BaseModel):
    new_lenders: int = 0
    updates: int = 0
    merge_conflicts: int = 0
    no_changes: int = 0
    # Pending requests refreshed in place (collapsed); not counted as new pending work
    refreshed: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def total_pending(self) -> int:
        return self.new_lenders + self.updates + self.merge_conflicts


class SyncResponse(BaseModel):
    success: bool
    message: str
    results: SyncResult


class ResolutionBody(BaseModel):
    notes: Optional[str] = None


class MergeBody(BaseModel):
    merged_fields: MergeFields = Field(..., alias="mergedFields")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}


class SyncRequestResponse(BaseModel):
    id: str
    source_system: str
    source_lender_id: Optional[str] = None
    request_type: str
    incoming_data: dict[str, Any]
    existing_lender_id: Optional[str] = None
    existing_lender_name: Optional[str] = None
    changes_diff: Optional[dict[str, Any]] = None
    status: str
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    processing_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
