"""
Admin notifications for new lender sync requests.

The ingestion handler hands over the whole recipient list once; delivery policy (retries,
per-recipient failure isolation) lives here. Delivery is best-effort: a recipient whose send
still fails after the last retry is logged and skipped.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import settings
from models.sync_request import SyncRequestType

logger = structlog.get_logger(__name__)

NOTIFICATION_TYPE = "flex_lender_sync"
NOTIFICATION_SUBJECT = "New Lender Sync Requests from Flex"

_TYPE_LABELS = {
    SyncRequestType.NEW_LENDER: "new lender",
    SyncRequestType.MERGE_CONFLICT: "merge conflict",
    SyncRequestType.UPDATE_EXISTING: "update",
}


@dataclass(frozen=True)
class SyncNotification:
    lender_name: str
    request_type: SyncRequestType
    count: int

    def message(self) -> str:
        if self.count <= 1:
            label = _TYPE_LABELS[self.request_type]
            return (
                f'A {label} request for "{self.lender_name}" has been received from Flex '
                "and is awaiting your review."
            )
        return f"{self.count} lender sync requests have been received from Flex and are awaiting your review."

    def payload_for(self, user_id: str) -> dict:
        return {
            "type": NOTIFICATION_TYPE,
            "user_id": user_id,
            "lender_name": self.lender_name,
            "sync_request_type": self.request_type.value,
            "sync_count": self.count,
            "subject": NOTIFICATION_SUBJECT,
            "message": self.message(),
        }


class AdminNotifier(Protocol):
    async def notify_admins(self, recipients: Sequence[str], notification: SyncNotification) -> int:
        """Send to every recipient; return how many sends succeeded. Must not raise."""
        ...


class HttpNotificationDispatcher:
    """Posts one notification per recipient to the mailer endpoint, retrying transport/HTTP errors."""

    def __init__(
        self,
        url: str,
        service_key: str = "",
        timeout: float = 10.0,
        max_attempts: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        wait=None,
    ):
        self.url = url
        self.service_key = service_key
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self._transport = transport
        self._wait = wait if wait is not None else wait_exponential(multiplier=0.5, min=0.5, max=5)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.service_key:
            headers["Authorization"] = f"Bearer {self.service_key}"
        return headers

    async def _send(self, client: httpx.AsyncClient, body: dict) -> None:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(httpx.HTTPError),
            reraise=True,
        ):
            with attempt:
                response = await client.post(self.url, json=body, headers=self._headers())
                response.raise_for_status()

    async def notify_admins(self, recipients: Sequence[str], notification: SyncNotification) -> int:
        if not recipients:
            return 0
        if not self.url:
            logger.info("admin_notification_skipped", reason="notification_url not configured")
            return 0

        sent = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for user_id in recipients:
                try:
                    await self._send(client, notification.payload_for(user_id))
                    sent += 1
                except Exception as e:
                    logger.error("admin_notification_failed", user_id=user_id, error=str(e))
        logger.info("admin_notifications_sent", sent=sent, recipients=len(recipients))
        return sent


def get_notifier() -> AdminNotifier:
    """FastAPI dependency; tests override it with a recording fake."""
    return HttpNotificationDispatcher(
        url=settings.notification_url,
        service_key=settings.notification_service_key,
        timeout=settings.notification_timeout,
        max_attempts=settings.notification_max_attempts,
    )
