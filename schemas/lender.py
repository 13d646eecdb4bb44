"""
Lender payload schemas.
LenderFields mirrors models.lender.COMPARABLE_FIELDS; every inbound lender shape builds on it.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class LenderFields(BaseModel):
    email: Optional[str] = None
    lender_type: Optional[str] = None
    loan_types: Optional[list[str]] = None
    sub_debt: Optional[str] = None
    cash_burn: Optional[str] = None
    sponsorship: Optional[str] = None
    min_revenue: Optional[float] = None
    ebitda_min: Optional[float] = None
    min_deal: Optional[float] = None
    max_deal: Optional[float] = None
    industries: Optional[list[str]] = None
    industries_to_avoid: Optional[list[str]] = None
    b2b_b2c: Optional[str] = None
    refinancing: Optional[str] = None
    company_requirements: Optional[str] = None
    deal_structure_notes: Optional[str] = None
    geo: Optional[str] = None
    contact_name: Optional[str] = None
    contact_title: Optional[str] = None
    relationship_owners: Optional[str] = None
    lender_one_pager_url: Optional[str] = None
    referral_lender: Optional[str] = None
    referral_fee_offered: Optional[str] = None
    referral_agreement: Optional[str] = None
    nda: Optional[str] = None
    onboarded_to_flex: Optional[str] = None
    upfront_checklist: Optional[str] = None
    post_term_sheet_checklist: Optional[str] = None
    gift_address: Optional[str] = None
    tier: Optional[str] = None
    active: Optional[bool] = None


def _require_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("name must not be empty")
    return value


class IncomingLender(LenderFields):
    """One lender as sent by Flex. Unknown keys (e.g. updated_at) are dropped."""

    id: Optional[str] = Field(None, description="Flex lender id; the stable external match key")
    name: str

    model_config = {"extra": "ignore"}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        return _require_name(v)


class MergeFields(LenderFields):
    """Reviewer-chosen values for a merge_conflict; only fields that are set get applied."""

    name: Optional[str] = None

    model_config = {"extra": "forbid"}

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _require_name(v)


class LenderCreate(LenderFields):
    """Create a lender locally (sync_source = naitive)."""

    name: str

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        return _require_name(v)


class LenderUpdate(LenderFields):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _require_name(v)


class LenderResponse(LenderFields):
    id: str
    name: str
    sync_source: Optional[str] = None
    flex_lender_id: Optional[str] = None
    last_synced_from_flex: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
