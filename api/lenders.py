from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models import MasterLender, SyncSource
from schemas.lender import LenderCreate, LenderResponse, LenderUpdate
from utils.case import top_level_keys_to_camel

router = APIRouter(prefix="/api/lenders", tags=["lenders"])

MSG_LENDER_NOT_FOUND = "Lender not found"


def _lender_to_response(l: MasterLender) -> dict[str, Any]:
    return top_level_keys_to_camel(LenderResponse.model_validate(l).model_dump(mode="json"))


async def _get_lender(db: AsyncSession, lender_id: str) -> MasterLender:
    result = await db.execute(select(MasterLender).where(MasterLender.id == lender_id))
    lender = result.scalar_one_or_none()
    if not lender:
        raise HTTPException(status_code=404, detail=MSG_LENDER_NOT_FOUND)
    return lender


@router.get("", response_model=list[dict])
async def list_lenders(active_only: bool = False, db: AsyncSession = Depends(get_db)):
    query = select(MasterLender).order_by(MasterLender.name)
    if active_only:
        query = query.where(MasterLender.active.is_(True))
    result = await db.execute(query)
    return [_lender_to_response(l) for l in result.scalars().all()]


@router.get("/{lender_id}", response_model=dict)
async def get_lender(lender_id: str, db: AsyncSession = Depends(get_db)):
    return _lender_to_response(await _get_lender(db, lender_id))


@router.post("", response_model=dict, status_code=201)
async def create_lender(body: LenderCreate, db: AsyncSession = Depends(get_db)):
    values = body.model_dump()
    if values.get("active") is None:
        values["active"] = True
    lender = MasterLender(**values, sync_source=SyncSource.NAITIVE.value)
    db.add(lender)
    await db.flush()
    return _lender_to_response(lender)


@router.patch("/{lender_id}", response_model=dict)
async def update_lender(lender_id: str, body: LenderUpdate, db: AsyncSession = Depends(get_db)):
    lender = await _get_lender(db, lender_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            raise HTTPException(status_code=400, detail="name cannot be cleared")
        setattr(lender, field, value)
    await db.flush()
    return _lender_to_response(lender)
