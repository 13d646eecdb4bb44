"""
Applies a reviewer's decision to a pending lender sync request.

Every operation returns True/False instead of raising. The lender mutation and the status
transition are committed together, so a failed write leaves the request pending and retryable.
A request that is no longer pending is refused, which makes repeated clicks harmless.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models import COMPARABLE_FIELDS, LenderSyncRequest, MasterLender, SyncRequestStatus, SyncRequestType, SyncSource
from schemas.lender import MergeFields

logger = structlog.get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _load_pending(session: AsyncSession, request_id: str, action: str) -> Optional[LenderSyncRequest]:
    request = await session.get(LenderSyncRequest, request_id)
    if request is None:
        logger.warning("sync_request_not_found", request_id=request_id, action=action)
        return None
    if not request.is_pending:
        logger.warning("sync_request_not_pending", request_id=request_id, action=action, status=request.status)
        return None
    return request


async def _load_target(session: AsyncSession, request: LenderSyncRequest) -> Optional[MasterLender]:
    if not request.existing_lender_id:
        return None
    return await session.get(MasterLender, request.existing_lender_id)


def _close(request: LenderSyncRequest, status: SyncRequestStatus, user_id: str, notes: Optional[str]) -> None:
    request.status = status.value
    request.processed_by = user_id
    request.processed_at = _now()
    request.processing_notes = notes or None


def _apply_incoming(lender: MasterLender, data: Mapping[str, Any], flex_id: Optional[str]) -> None:
    """Overwrite every comparable field with the incoming payload and refresh provenance."""
    for field in COMPARABLE_FIELDS:
        setattr(lender, field, data.get(field))
    if lender.active is None:
        lender.active = True
    if flex_id:
        lender.flex_lender_id = flex_id
    lender.last_synced_from_flex = _now()


def _lender_from_request(request: LenderSyncRequest, user_id: str) -> MasterLender:
    data = request.incoming_data or {}
    lender = MasterLender(
        user_id=user_id,
        name=data["name"],
        sync_source=SyncSource.FLEX.value,
    )
    _apply_incoming(lender, data, request.source_lender_id)
    return lender


async def _commit(session: AsyncSession, request_id: str, action: str) -> bool:
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("sync_request_resolution_failed", request_id=request_id, action=action, error=str(e))
        return False
    logger.info("sync_request_resolved", request_id=request_id, action=action)
    return True


async def approve_request(
    session: AsyncSession, request_id: str, user_id: str, notes: Optional[str] = None
) -> bool:
    """Create the lender (new_lender) or overwrite it with the incoming payload (update_existing)."""
    request = await _load_pending(session, request_id, "approve")
    if request is None:
        return False

    try:
        if request.request_type == SyncRequestType.NEW_LENDER.value:
            session.add(_lender_from_request(request, user_id))
        elif request.request_type == SyncRequestType.UPDATE_EXISTING.value:
            lender = await _load_target(session, request)
            if lender is None:
                logger.warning("sync_request_lender_missing", request_id=request_id)
                return False
            _apply_incoming(lender, request.incoming_data or {}, request.source_lender_id)
        elif request.request_type == SyncRequestType.MERGE_CONFLICT.value:
            logger.warning("sync_request_needs_merge", request_id=request_id)
            return False
        else:
            logger.error("sync_request_unknown_type", request_id=request_id, request_type=request.request_type)
            return False
        await session.flush()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("sync_request_resolution_failed", request_id=request_id, action="approve", error=str(e))
        return False

    _close(request, SyncRequestStatus.APPROVED, user_id, notes)
    return await _commit(session, request_id, "approve")


async def reject_request(
    session: AsyncSession, request_id: str, user_id: str, notes: Optional[str] = None
) -> bool:
    request = await _load_pending(session, request_id, "reject")
    if request is None:
        return False
    _close(request, SyncRequestStatus.REJECTED, user_id, notes)
    return await _commit(session, request_id, "reject")


async def merge_request(
    session: AsyncSession,
    request_id: str,
    merged_fields: Union[MergeFields, Mapping[str, Any]],
    user_id: str,
    notes: Optional[str] = None,
) -> bool:
    """Apply reviewer-picked values to the lender behind a merge_conflict. Only supplied fields change."""
    if not isinstance(merged_fields, MergeFields):
        try:
            merged_fields = MergeFields.model_validate(dict(merged_fields))
        except ValidationError as e:
            logger.warning("sync_request_merge_invalid", request_id=request_id, error=str(e))
            return False

    request = await _load_pending(session, request_id, "merge")
    if request is None:
        return False
    if request.request_type != SyncRequestType.MERGE_CONFLICT.value:
        logger.warning("sync_request_not_mergeable", request_id=request_id, request_type=request.request_type)
        return False

    try:
        lender = await _load_target(session, request)
        if lender is None:
            logger.warning("sync_request_lender_missing", request_id=request_id)
            return False
        for field, value in merged_fields.model_dump(exclude_unset=True).items():
            if field == "name" and value is None:
                continue
            setattr(lender, field, value)
        if request.source_lender_id:
            lender.flex_lender_id = request.source_lender_id
        lender.last_synced_from_flex = _now()
        await session.flush()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("sync_request_resolution_failed", request_id=request_id, action="merge", error=str(e))
        return False

    _close(request, SyncRequestStatus.MERGED, user_id, notes)
    return await _commit(session, request_id, "merge")
