"""
Seed a handful of locally authored lenders and one admin reviewer.
Run: python -m scripts.seed_lenders (from the project root).
"""
import asyncio
import os
import sys

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import structlog
from sqlalchemy import select

from database import AsyncSessionLocal, init_db
from models import MasterLender, SyncSource, UserRole
from models.user_role import ROLE_ADMIN
from utils.log_config import configure_logging

logger = structlog.get_logger(__name__)

ADMIN_USER_ID = os.environ.get("SEED_ADMIN_USER_ID", "admin-local")

LENDERS_DATA = [
    {
        "id": "acme-capital",
        "name": "Acme Capital",
        "email": "deals@acmecapital.com",
        "lender_type": "Non-Bank",
        "loan_types": ["Term Loan", "ABL"],
        "min_deal": 1_000_000,
        "max_deal": 15_000_000,
        "industries": ["Manufacturing", "Distribution"],
        "industries_to_avoid": ["Cannabis"],
        "b2b_b2c": "B2B",
        "geo": "US",
        "tier": "1",
    },
    {
        "id": "northbridge-credit",
        "name": "Northbridge Credit Partners",
        "email": "origination@northbridge.com",
        "lender_type": "Private Credit",
        "loan_types": ["Unitranche"],
        "ebitda_min": 3_000_000,
        "sponsorship": "Sponsored only",
        "tier": "2",
    },
    {
        "id": "harbor-bank",
        "name": "Harbor Community Bank",
        "lender_type": "Bank",
        "loan_types": ["SBA 7(a)", "Equipment"],
        "max_deal": 5_000_000,
        "geo": "Northeast",
        "tier": "3",
    },
]


async def seed():
    configure_logging()
    await init_db()
    async with AsyncSessionLocal() as session:
        for data in LENDERS_DATA:
            existing = await session.execute(select(MasterLender).where(MasterLender.id == data["id"]))
            if existing.scalar_one_or_none():
                logger.info("seed_lender_exists", lender_id=data["id"])
                continue
            session.add(
                MasterLender(**data, active=True, user_id=ADMIN_USER_ID, sync_source=SyncSource.NAITIVE.value)
            )
            logger.info("seed_lender_added", lender_id=data["id"], name=data["name"])

        role = await session.execute(
            select(UserRole).where(UserRole.user_id == ADMIN_USER_ID, UserRole.role == ROLE_ADMIN)
        )
        if role.scalar_one_or_none() is None:
            session.add(UserRole(user_id=ADMIN_USER_ID, role=ROLE_ADMIN))
        await session.commit()
    logger.info("seed_complete", lenders=len(LENDERS_DATA), admin=ADMIN_USER_ID)


if __name__ == "__main__":
    asyncio.run(seed())
