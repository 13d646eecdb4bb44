"""
Shared fixtures: an in-memory SQLite database per test case and a recording notifier.
"""
import unittest
from typing import Any, Optional, Sequence

from sqlalchemy import select

from database import build_engine, build_session_factory, init_db
from models import LenderSyncRequest, MasterLender, SyncSource, UserRole
from models.user_role import ROLE_ADMIN
from services.notifications import SyncNotification

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingNotifier:
    """Stands in for HttpNotificationDispatcher; remembers every batch it was asked to send."""

    def __init__(self):
        self.calls: list[tuple[list[str], SyncNotification]] = []

    async def notify_admins(self, recipients: Sequence[str], notification: SyncNotification) -> int:
        self.calls.append((list(recipients), notification))
        return len(recipients)


class BrokenNotifier:
    """Notifier whose transport blows up with something other than an HTTP error."""

    def __init__(self):
        self.attempts = 0

    async def notify_admins(self, recipients: Sequence[str], notification: SyncNotification) -> int:
        self.attempts += 1
        raise RuntimeError("mailer misconfigured")


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = build_engine(TEST_DATABASE_URL)
        await init_db(self.engine)
        self.Session = build_session_factory(self.engine)
        self.session = self.Session()

    async def asyncTearDown(self):
        await self.session.close()
        await self.engine.dispose()

    async def add_lender(self, name: str, sync_source: Optional[str] = SyncSource.NAITIVE.value, **fields: Any) -> str:
        async with self.Session() as s:
            lender = MasterLender(name=name, sync_source=sync_source, **fields)
            s.add(lender)
            await s.commit()
            return lender.id

    async def add_admin(self, user_id: str) -> None:
        async with self.Session() as s:
            s.add(UserRole(user_id=user_id, role=ROLE_ADMIN))
            await s.commit()

    async def fetch_requests(self, **filters: Any) -> list[LenderSyncRequest]:
        async with self.Session() as s:
            query = select(LenderSyncRequest).filter_by(**filters).order_by(LenderSyncRequest.created_at)
            return list((await s.execute(query)).scalars().all())

    async def fetch_lenders(self) -> list[MasterLender]:
        async with self.Session() as s:
            return list((await s.execute(select(MasterLender).order_by(MasterLender.name))).scalars().all())

    async def fetch_lender(self, lender_id: str) -> Optional[MasterLender]:
        async with self.Session() as s:
            return await s.get(MasterLender, lender_id)
