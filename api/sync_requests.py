from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models import LenderSyncRequest, SyncRequestStatus, SyncRequestType, UserRole
from models.user_role import ROLE_ADMIN
from schemas.sync import MergeBody, ResolutionBody, SyncRequestResponse
from services.sync_resolution import approve_request, merge_request, reject_request
from utils.case import top_level_keys_to_camel

router = APIRouter(prefix="/api/lender-sync-requests", tags=["lender-sync-requests"])

MSG_REQUEST_NOT_FOUND = "Sync request not found"
MSG_NOT_RESOLVED = "Sync request could not be resolved; it is no longer pending or the change failed to apply"


async def require_admin(
    x_user_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> str:
    """Reviewer identity comes from the upstream auth layer as X-User-Id; it must hold the admin role."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    result = await db.execute(
        select(UserRole.id).where(UserRole.user_id == x_user_id, UserRole.role == ROLE_ADMIN)
    )
    if result.first() is None:
        raise HTTPException(status_code=403, detail="Admin role required")
    return x_user_id


def _request_to_response(r: LenderSyncRequest) -> dict[str, Any]:
    return top_level_keys_to_camel(SyncRequestResponse.model_validate(r).model_dump(mode="json"))


async def _get_request(db: AsyncSession, request_id: str) -> LenderSyncRequest:
    result = await db.execute(select(LenderSyncRequest).where(LenderSyncRequest.id == request_id))
    request = result.scalar_one_or_none()
    if not request:
        raise HTTPException(status_code=404, detail=MSG_REQUEST_NOT_FOUND)
    return request


@router.get("", response_model=list[dict])
async def list_sync_requests(
    status: Optional[SyncRequestStatus] = None,
    request_type: Optional[SyncRequestType] = None,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin),
):
    query = select(LenderSyncRequest).order_by(LenderSyncRequest.created_at.desc())
    if status is not None:
        query = query.where(LenderSyncRequest.status == status.value)
    if request_type is not None:
        query = query.where(LenderSyncRequest.request_type == request_type.value)
    result = await db.execute(query)
    return [_request_to_response(r) for r in result.scalars().all()]


@router.get("/summary", response_model=dict)
async def sync_request_summary(db: AsyncSession = Depends(get_db), _: str = Depends(require_admin)):
    """Pending counts grouped by request type, for the review panel badges."""
    result = await db.execute(
        select(LenderSyncRequest.status, LenderSyncRequest.request_type, func.count())
        .group_by(LenderSyncRequest.status, LenderSyncRequest.request_type)
    )
    pending_by_type = {t.value: 0 for t in SyncRequestType}
    processed = 0
    for status, request_type, count in result.all():
        if status == SyncRequestStatus.PENDING.value:
            pending_by_type[request_type] = pending_by_type.get(request_type, 0) + count
        else:
            processed += count
    return {
        "pendingCount": sum(pending_by_type.values()),
        "pendingByType": pending_by_type,
        "processedCount": processed,
    }


@router.get("/{request_id}", response_model=dict)
async def get_sync_request(request_id: str, db: AsyncSession = Depends(get_db), _: str = Depends(require_admin)):
    return _request_to_response(await _get_request(db, request_id))


@router.post("/{request_id}/approve", response_model=dict)
async def approve_sync_request(
    request_id: str,
    body: Optional[ResolutionBody] = None,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_admin),
):
    await _get_request(db, request_id)
    ok = await approve_request(db, request_id, user_id, body.notes if body else None)
    if not ok:
        raise HTTPException(status_code=409, detail=MSG_NOT_RESOLVED)
    return {"success": True, "request": _request_to_response(await _get_request(db, request_id))}


@router.post("/{request_id}/reject", response_model=dict)
async def reject_sync_request(
    request_id: str,
    body: Optional[ResolutionBody] = None,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_admin),
):
    await _get_request(db, request_id)
    ok = await reject_request(db, request_id, user_id, body.notes if body else None)
    if not ok:
        raise HTTPException(status_code=409, detail=MSG_NOT_RESOLVED)
    return {"success": True, "request": _request_to_response(await _get_request(db, request_id))}


@router.post("/{request_id}/merge", response_model=dict)
async def merge_sync_request(
    request_id: str,
    body: MergeBody,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_admin),
):
    await _get_request(db, request_id)
    ok = await merge_request(db, request_id, body.merged_fields, user_id, body.notes)
    if not ok:
        raise HTTPException(status_code=409, detail=MSG_NOT_RESOLVED)
    return {"success": True, "request": _request_to_response(await _get_request(db, request_id))}
