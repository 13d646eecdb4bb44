"""
Webhook receiving lender pushes from Flex.
Authenticated by the shared secret in x-sync-key; partial failures still return 200.
The admin email goes out as a background task once the response is sent, so mailer retries never hold Flex open.
"""
import hmac
from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from schemas.sync import LenderSyncEvent, SyncResponse
from services.notifications import AdminNotifier, get_notifier
from services.sync_ingestion import dispatch_admin_notification, ingest_lenders, prepare_admin_notification

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/lender-sync", tags=["lender-sync"])


def verify_sync_key(x_sync_key: Optional[str] = Header(None)) -> None:
    expected = settings.flex_sync_key
    if not expected or not x_sync_key or not hmac.compare_digest(x_sync_key, expected):
        logger.warning("lender_sync_unauthorized", key_present=bool(x_sync_key))
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("", response_model=SyncResponse, dependencies=[Depends(verify_sync_key)])
async def receive_lender_sync(
    body: LenderSyncEvent,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: AdminNotifier = Depends(get_notifier),
):
    payloads = body.payloads()
    logger.info("lender_sync_received", lender_event=body.event, source=body.source, count=len(payloads))
    if not payloads:
        raise HTTPException(status_code=400, detail="No lenders provided")

    try:
        result = await ingest_lenders(db, payloads)
    except SQLAlchemyError as e:
        logger.error("lender_sync_failed", error=str(e))
        return JSONResponse(status_code=500, content={"error": str(e)})

    prepared = await prepare_admin_notification(db, payloads, result)
    if prepared is not None:
        background_tasks.add_task(dispatch_admin_notification, notifier, *prepared)

    return SyncResponse(success=True, message=f"Processed {len(payloads)} lenders", results=result)
