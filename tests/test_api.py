"""
HTTP-level tests: Flex webhook, review endpoints and lender CRUD.
Uses httpx AsyncClient over ASGITransport with get_db and get_notifier overridden.
"""
import unittest
from unittest.mock import AsyncMock, patch

from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from database import get_db
from main import app
from services.notifications import HttpNotificationDispatcher, get_notifier
from tests.support import BrokenNotifier, DatabaseTestCase, RecordingNotifier

SYNC_KEY = "test-sync-key"
ADMIN = "admin-1"


class ApiTestCase(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.notifier = RecordingNotifier()

        async def override_get_db():
            async with self.Session() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_notifier] = lambda: self.notifier
        patcher = patch.object(settings, "flex_sync_key", SYNC_KEY)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self):
        await self.client.aclose()
        app.dependency_overrides.clear()
        await super().asyncTearDown()

    async def push(self, body: dict, key: str = SYNC_KEY):
        return await self.client.post("/api/lender-sync", json=body, headers={"x-sync-key": key})

    def admin_headers(self, user_id: str = ADMIN) -> dict:
        return {"X-User-Id": user_id}


class TestLenderSyncWebhook(ApiTestCase):
    async def test_missing_key_is_unauthorized(self):
        response = await self.client.post("/api/lender-sync", json={"event": "lender_created", "lender": {"name": "A"}})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(await self.fetch_requests(), [])

    async def test_wrong_key_is_unauthorized(self):
        response = await self.push({"event": "lender_created", "lender": {"name": "A"}}, key="nope")
        self.assertEqual(response.status_code, 401)

    async def test_unconfigured_key_rejects_everything(self):
        with patch.object(settings, "flex_sync_key", ""):
            response = await self.push({"event": "lender_created", "lender": {"name": "A"}}, key="")
        self.assertEqual(response.status_code, 401)

    async def test_empty_batch_is_bad_request(self):
        response = await self.push({"event": "sync_lenders", "lenders": []})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "No lenders provided")

    async def test_unknown_event_is_rejected(self):
        response = await self.push({"event": "lender_deleted", "lender": {"name": "A"}})
        self.assertEqual(response.status_code, 422)

    async def test_single_lender_event(self):
        await self.add_admin(ADMIN)
        response = await self.push({"event": "lender_created", "source": "flex", "lender": {"id": 42, "name": "Beacon"}})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "Processed 1 lenders")
        self.assertEqual(body["results"]["new_lenders"], 1)
        self.assertEqual(body["results"]["errors"], [])
        [req] = await self.fetch_requests()
        self.assertEqual(req.source_lender_id, "42")
        self.assertEqual(len(self.notifier.calls), 1)

    async def test_batch_with_bad_payload_still_succeeds(self):
        await self.add_lender("Acme Capital", sync_source="naitive", email="old@acme.com")
        response = await self.push(
            {
                "event": "sync_lenders",
                "lenders": [
                    {"name": "Acme Capital", "email": "new@acme.com"},
                    {"name": ""},
                    {"name": "Beacon Lending"},
                ],
            }
        )

        self.assertEqual(response.status_code, 200)
        results = response.json()["results"]
        self.assertEqual(len(results["errors"]), 1)
        self.assertEqual(results["merge_conflicts"], 1)
        self.assertEqual(results["new_lenders"], 1)

    async def test_store_failure_is_server_error(self):
        failing = AsyncMock(side_effect=SQLAlchemyError("no such table: master_lenders"))
        with patch("services.sync_ingestion.load_lender_index", failing):
            response = await self.push({"event": "lender_updated", "lender": {"name": "Acme"}})
        self.assertEqual(response.status_code, 500)
        self.assertIn("no such table", response.json()["error"])
        self.assertEqual(await self.fetch_requests(), [])
        self.assertEqual(self.notifier.calls, [])

    async def test_empty_lender_object_is_a_payload_error(self):
        response = await self.push({"event": "lender_created", "lender": {}})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["results"]["errors"], ["Lender missing name field"])
        self.assertEqual(await self.fetch_requests(), [])

    async def test_notifier_crash_does_not_fail_committed_batch(self):
        await self.add_admin(ADMIN)
        broken = BrokenNotifier()
        app.dependency_overrides[get_notifier] = lambda: broken

        response = await self.push({"event": "lender_created", "lender": {"id": "F-1", "name": "Beacon"}})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["results"]["new_lenders"], 1)
        self.assertEqual(broken.attempts, 1)
        self.assertEqual(len(await self.fetch_requests()), 1)

    async def test_malformed_mailer_url_does_not_fail_committed_batch(self):
        await self.add_admin(ADMIN)
        dispatcher = HttpNotificationDispatcher(url="http://mailer.test:notaport/x", service_key="k", max_attempts=1)
        app.dependency_overrides[get_notifier] = lambda: dispatcher

        response = await self.push({"event": "lender_created", "lender": {"name": "Beacon"}})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["results"]["new_lenders"], 1)
        self.assertEqual(len(await self.fetch_requests()), 1)


class TestSyncRequestReview(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        await self.add_admin(ADMIN)

    async def test_requires_admin(self):
        self.assertEqual((await self.client.get("/api/lender-sync-requests")).status_code, 401)
        response = await self.client.get("/api/lender-sync-requests", headers=self.admin_headers("viewer-9"))
        self.assertEqual(response.status_code, 403)

    async def test_list_and_summary(self):
        await self.add_lender("Acme Capital", email="old@acme.com")
        await self.push(
            {
                "event": "sync_lenders",
                "lenders": [{"name": "Acme Capital", "email": "new@acme.com"}, {"name": "Beacon Lending"}],
            }
        )

        listed = await self.client.get(
            "/api/lender-sync-requests", params={"status": "pending"}, headers=self.admin_headers()
        )
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(len(listed.json()), 2)
        self.assertEqual({r["requestType"] for r in listed.json()}, {"new_lender", "merge_conflict"})

        summary = (await self.client.get("/api/lender-sync-requests/summary", headers=self.admin_headers())).json()
        self.assertEqual(summary["pendingCount"], 2)
        self.assertEqual(summary["pendingByType"], {"new_lender": 1, "update_existing": 0, "merge_conflict": 1})
        self.assertEqual(summary["processedCount"], 0)

    async def test_approve_then_conflict(self):
        await self.push({"event": "lender_created", "lender": {"id": "F-1", "name": "Beacon Lending"}})
        [req] = await self.fetch_requests()

        response = await self.client.post(
            f"/api/lender-sync-requests/{req.id}/approve", json={"notes": "ok"}, headers=self.admin_headers()
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["request"]["status"], "approved")
        self.assertEqual(response.json()["request"]["processedBy"], ADMIN)

        again = await self.client.post(f"/api/lender-sync-requests/{req.id}/approve", headers=self.admin_headers())
        self.assertEqual(again.status_code, 409)
        self.assertEqual(len(await self.fetch_lenders()), 1)

    async def test_unknown_request_is_not_found(self):
        response = await self.client.post("/api/lender-sync-requests/sync-nope/reject", headers=self.admin_headers())
        self.assertEqual(response.status_code, 404)

    async def test_merge_end_to_end(self):
        lender_id = await self.add_lender("Acme Capital", sync_source="naitive", email="old@acme.com")
        await self.push({"event": "lender_updated", "lender": {"name": "Acme Capital", "email": "new@acme.com"}})
        [req] = await self.fetch_requests()
        self.assertEqual(req.request_type, "merge_conflict")
        self.assertEqual(req.changes_diff, {"email": {"old": "old@acme.com", "new": "new@acme.com"}})

        response = await self.client.post(
            f"/api/lender-sync-requests/{req.id}/merge",
            json={"mergedFields": {"email": "new@acme.com"}, "notes": "take Flex email"},
            headers=self.admin_headers(),
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["request"]["status"], "merged")
        lender = await self.fetch_lender(lender_id)
        self.assertEqual(lender.email, "new@acme.com")
        self.assertIsNotNone(lender.last_synced_from_flex)

    async def test_merge_with_unknown_field_is_unprocessable(self):
        await self.add_lender("Acme Capital", email="old@acme.com")
        await self.push({"event": "lender_updated", "lender": {"name": "Acme Capital", "email": "new@acme.com"}})
        [req] = await self.fetch_requests()
        response = await self.client.post(
            f"/api/lender-sync-requests/{req.id}/merge",
            json={"mergedFields": {"flex_lender_id": "hijack"}},
            headers=self.admin_headers(),
        )
        self.assertEqual(response.status_code, 422)

    async def test_reject(self):
        await self.push({"event": "lender_created", "lender": {"name": "Beacon Lending"}})
        [req] = await self.fetch_requests()
        response = await self.client.post(f"/api/lender-sync-requests/{req.id}/reject", headers=self.admin_headers())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["request"]["status"], "rejected")
        self.assertEqual(await self.fetch_lenders(), [])


class TestLendersApi(ApiTestCase):
    async def test_create_is_native_and_active(self):
        response = await self.client.post("/api/lenders", json={"name": "Harbor Bank", "tier": "3"})
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["syncSource"], "naitive")
        self.assertTrue(body["active"])
        self.assertIsNone(body["flexLenderId"])

    async def test_blank_name_rejected(self):
        response = await self.client.post("/api/lenders", json={"name": "  "})
        self.assertEqual(response.status_code, 422)

    async def test_patch_and_get(self):
        lender_id = await self.add_lender("Harbor Bank", tier="3")
        response = await self.client.patch(f"/api/lenders/{lender_id}", json={"tier": "2"})
        self.assertEqual(response.status_code, 200)
        fetched = (await self.client.get(f"/api/lenders/{lender_id}")).json()
        self.assertEqual(fetched["tier"], "2")
        self.assertEqual(fetched["name"], "Harbor Bank")

    async def test_missing_lender(self):
        self.assertEqual((await self.client.get("/api/lenders/lender-nope")).status_code, 404)


if __name__ == "__main__":
    unittest.main()
