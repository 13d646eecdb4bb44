import uuid
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, func

from database import Base


class SyncRequestType(str, Enum):
    NEW_LENDER = "new_lender"
    UPDATE_EXISTING = "update_existing"
    MERGE_CONFLICT = "merge_conflict"


class SyncRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MERGED = "merged"
    AUTO_APPROVED = "auto_approved"


def new_sync_request_id() -> str:
    return f"sync-{uuid.uuid4().hex[:12]}"


class LenderSyncRequest(Base):
    __tablename__ = "lender_sync_requests"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String(64), primary_key=True, index=True, default=new_sync_request_id)
    source_system = Column(String(32), nullable=False, default="flex")
    source_lender_id = Column(String(128), nullable=True, index=True)
    request_type = Column(String(32), nullable=False, index=True)
    # Validated IncomingLender payload as received
    incoming_data = Column(JSON, nullable=False)
    existing_lender_id = Column(
        String(64), ForeignKey("master_lenders.id", ondelete="SET NULL"), nullable=True, index=True
    )
    existing_lender_name = Column(String(256), nullable=True)
    # {field: {"old": ..., "new": ...}}; null for new_lender
    changes_diff = Column(JSON, nullable=True)
    status = Column(String(32), nullable=False, default=SyncRequestStatus.PENDING.value, index=True)
    processed_by = Column(String(64), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    processing_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def is_pending(self) -> bool:
        return self.status == SyncRequestStatus.PENDING.value
