"""
Ingests lender payloads pushed by Flex and turns them into reviewable sync requests.

Per payload: match against stored lenders, diff, then classify as new_lender, update_existing,
merge_conflict or no change. Each payload is committed on its own so one failure never rolls
back the rest of the batch.

Known race: the pending-request lookup and the following insert are not isolated from a
concurrent batch for the same lender, so two overlapping webhooks can leave two pending
requests for one lender.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models import LenderSyncRequest, MasterLender, SyncRequestStatus, SyncRequestType, SyncSource, UserRole
from models.user_role import ROLE_ADMIN
from schemas.lender import IncomingLender
from schemas.sync import SyncResult
from services.field_diff import FieldDiff, compute_diff
from services.lender_matcher import LenderIndex, LenderSnapshot
from services.notifications import AdminNotifier, SyncNotification

logger = structlog.get_logger(__name__)

SOURCE_SYSTEM = "flex"
MSG_MISSING_NAME = "Lender missing name field"


class _Outcome(str, Enum):
    NEW_LENDER = "new_lender"
    UPDATE_EXISTING = "update_existing"
    MERGE_CONFLICT = "merge_conflict"
    NO_CHANGES = "no_changes"
    REFRESHED = "refreshed"


def classify_change(lender: LenderSnapshot) -> SyncRequestType:
    """Locally authored lenders (or unknown provenance) need a human merge; Flex-owned ones are plain updates."""
    if lender.sync_source == SyncSource.FLEX.value:
        return SyncRequestType.UPDATE_EXISTING
    return SyncRequestType.MERGE_CONFLICT


def dominant_request_type(result: SyncResult) -> SyncRequestType:
    if result.new_lenders > 0:
        return SyncRequestType.NEW_LENDER
    if result.merge_conflicts > 0:
        return SyncRequestType.MERGE_CONFLICT
    return SyncRequestType.UPDATE_EXISTING


async def load_lender_index(session: AsyncSession) -> LenderIndex:
    lenders = (await session.execute(select(MasterLender))).scalars().all()
    return LenderIndex(LenderSnapshot.from_model(l) for l in lenders)


async def find_pending_request(session: AsyncSession, lender_id: str) -> Optional[LenderSyncRequest]:
    result = await session.execute(
        select(LenderSyncRequest)
        .where(
            LenderSyncRequest.existing_lender_id == lender_id,
            LenderSyncRequest.status == SyncRequestStatus.PENDING.value,
        )
        .order_by(LenderSyncRequest.created_at)
    )
    return result.scalars().first()


def parse_incoming(raw: Any) -> IncomingLender:
    """Validate one raw payload. Raises ValueError with a message suitable for the errors list."""
    name = raw.get("name") if isinstance(raw, dict) else None
    if not isinstance(name, str) or not name.strip():
        raise ValueError(MSG_MISSING_NAME)
    try:
        return IncomingLender.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first["loc"]) or "payload"
        raise ValueError(f"Invalid payload for {name}: {loc}: {first['msg']}") from e


async def _record_change(
    session: AsyncSession,
    incoming: IncomingLender,
    data: dict[str, Any],
    lender: LenderSnapshot,
    diff: FieldDiff,
) -> _Outcome:
    request_type = classify_change(lender)
    pending = await find_pending_request(session, lender.id)
    if pending is not None:
        pending.incoming_data = data
        if incoming.id:
            pending.source_lender_id = incoming.id
        pending.changes_diff = diff
        pending.updated_at = datetime.now(timezone.utc)
        await session.flush()
        logger.info("sync_request_refreshed", request_id=pending.id, lender_id=lender.id, fields=sorted(diff))
        return _Outcome.REFRESHED

    request = LenderSyncRequest(
        source_system=SOURCE_SYSTEM,
        source_lender_id=incoming.id,
        request_type=request_type.value,
        incoming_data=data,
        existing_lender_id=lender.id,
        existing_lender_name=lender.name,
        changes_diff=diff,
        status=SyncRequestStatus.PENDING.value,
    )
    session.add(request)
    await session.flush()
    logger.info(
        "sync_request_created",
        request_id=request.id,
        request_type=request_type.value,
        lender_id=lender.id,
        fields=sorted(diff),
    )
    return _Outcome(request_type.value)


async def _process_one(session: AsyncSession, index: LenderIndex, incoming: IncomingLender) -> _Outcome:
    data = incoming.model_dump(mode="json")
    lender = index.match(incoming.id, incoming.name)

    if lender is None:
        request = LenderSyncRequest(
            source_system=SOURCE_SYSTEM,
            source_lender_id=incoming.id,
            request_type=SyncRequestType.NEW_LENDER.value,
            incoming_data=data,
            status=SyncRequestStatus.PENDING.value,
        )
        session.add(request)
        await session.flush()
        logger.info("sync_request_created", request_id=request.id, request_type="new_lender", name=incoming.name)
        return _Outcome.NEW_LENDER

    diff = compute_diff(lender.values, data)
    if diff is None:
        return _Outcome.NO_CHANGES
    return await _record_change(session, incoming, data, lender, diff)


def _tally(result: SyncResult, outcome: _Outcome) -> None:
    if outcome is _Outcome.NEW_LENDER:
        result.new_lenders += 1
    elif outcome is _Outcome.UPDATE_EXISTING:
        result.updates += 1
    elif outcome is _Outcome.MERGE_CONFLICT:
        result.merge_conflicts += 1
    elif outcome is _Outcome.NO_CHANGES:
        result.no_changes += 1
    elif outcome is _Outcome.REFRESHED:
        result.refreshed += 1
    else:
        raise ValueError(f"Unhandled ingestion outcome: {outcome}")


async def admin_user_ids(session: AsyncSession) -> list[str]:
    result = await session.execute(select(UserRole.user_id).where(UserRole.role == ROLE_ADMIN).distinct())
    return list(result.scalars().all())


async def prepare_admin_notification(
    session: AsyncSession, payloads: list[Any], result: SyncResult
) -> Optional[tuple[list[str], SyncNotification]]:
    """Recipients and summary for a processed batch, or None when no admin needs to hear about it."""
    if result.total_pending == 0:
        return None
    try:
        recipients = await admin_user_ids(session)
    except SQLAlchemyError as e:
        logger.error("admin_lookup_failed", error=str(e))
        return None
    if not recipients:
        return None
    first = payloads[0] if payloads and isinstance(payloads[0], dict) else {}
    notification = SyncNotification(
        lender_name=first.get("name") or "Unknown",
        request_type=dominant_request_type(result),
        count=result.total_pending,
    )
    return recipients, notification


async def dispatch_admin_notification(
    notifier: AdminNotifier, recipients: list[str], notification: SyncNotification
) -> None:
    # runs after payloads are committed; a failure here must not reach the caller
    try:
        await notifier.notify_admins(recipients, notification)
    except Exception as e:
        logger.error("admin_notification_failed", recipients=len(recipients), error=str(e))


async def ingest_lenders(
    session: AsyncSession,
    payloads: list[Any],
    notifier: Optional[AdminNotifier] = None,
) -> SyncResult:
    """
    Process a batch of raw Flex lender payloads.
    Per-payload problems land in result.errors; only a failure to read the stored lenders raises.
    """
    index = await load_lender_index(session)
    result = SyncResult()

    for raw in payloads:
        try:
            incoming = parse_incoming(raw)
        except ValueError as e:
            result.errors.append(str(e))
            continue
        try:
            outcome = await _process_one(session, index, incoming)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("sync_request_write_failed", name=incoming.name, error=str(e))
            result.errors.append(f"Failed to record request for {incoming.name}: {e}")
            continue
        _tally(result, outcome)

    logger.info(
        "lender_sync_processed",
        received=len(payloads),
        new_lenders=result.new_lenders,
        updates=result.updates,
        merge_conflicts=result.merge_conflicts,
        no_changes=result.no_changes,
        refreshed=result.refreshed,
        errors=len(result.errors),
    )

    if notifier is not None:
        prepared = await prepare_admin_notification(session, payloads, result)
        if prepared is not None:
            await dispatch_admin_notification(notifier, *prepared)
    return result
