import uuid
from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, String, Text, func

from database import Base

# Descriptive fields compared during sync and overwritten when a change is applied.
# Identity (id, name), timestamps and provenance columns are deliberately absent.
COMPARABLE_FIELDS: tuple[str, ...] = (
    "email",
    "lender_type",
    "loan_types",
    "sub_debt",
    "cash_burn",
    "sponsorship",
    "min_revenue",
    "ebitda_min",
    "min_deal",
    "max_deal",
    "industries",
    "industries_to_avoid",
    "b2b_b2c",
    "refinancing",
    "company_requirements",
    "deal_structure_notes",
    "geo",
    "contact_name",
    "contact_title",
    "relationship_owners",
    "lender_one_pager_url",
    "referral_lender",
    "referral_fee_offered",
    "referral_agreement",
    "nda",
    "onboarded_to_flex",
    "upfront_checklist",
    "post_term_sheet_checklist",
    "gift_address",
    "tier",
    "active",
)


class SyncSource(str, Enum):
    NAITIVE = "naitive"
    FLEX = "flex"


def new_lender_id() -> str:
    return f"lender-{uuid.uuid4().hex[:12]}"


class MasterLender(Base):
    __tablename__ = "master_lenders"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String(64), primary_key=True, index=True, default=new_lender_id)
    user_id = Column(String(64), nullable=True, index=True)
    name = Column(String(256), nullable=False)

    email = Column(String(256), nullable=True)
    lender_type = Column(String(128), nullable=True)
    loan_types = Column(JSON, nullable=True)
    sub_debt = Column(String(128), nullable=True)
    cash_burn = Column(String(128), nullable=True)
    sponsorship = Column(String(128), nullable=True)
    min_revenue = Column(Float, nullable=True)
    ebitda_min = Column(Float, nullable=True)
    min_deal = Column(Float, nullable=True)
    max_deal = Column(Float, nullable=True)
    industries = Column(JSON, nullable=True)
    industries_to_avoid = Column(JSON, nullable=True)
    b2b_b2c = Column(String(64), nullable=True)
    refinancing = Column(String(128), nullable=True)
    company_requirements = Column(Text, nullable=True)
    deal_structure_notes = Column(Text, nullable=True)
    geo = Column(String(256), nullable=True)
    contact_name = Column(String(256), nullable=True)
    contact_title = Column(String(256), nullable=True)
    relationship_owners = Column(String(256), nullable=True)
    lender_one_pager_url = Column(String(1024), nullable=True)
    referral_lender = Column(String(128), nullable=True)
    referral_fee_offered = Column(String(128), nullable=True)
    referral_agreement = Column(String(128), nullable=True)
    nda = Column(String(128), nullable=True)
    onboarded_to_flex = Column(String(128), nullable=True)
    upfront_checklist = Column(Text, nullable=True)
    post_term_sheet_checklist = Column(Text, nullable=True)
    gift_address = Column(Text, nullable=True)
    tier = Column(String(32), nullable=True)
    active = Column(Boolean, nullable=True)

    # Provenance: "naitive" (authored here) or "flex" (created through sync)
    sync_source = Column(String(32), nullable=True, default=SyncSource.NAITIVE.value)
    flex_lender_id = Column(String(128), unique=True, nullable=True, index=True)
    last_synced_from_flex = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def comparable_values(self) -> dict:
        return {field: getattr(self, field) for field in COMPARABLE_FIELDS}
