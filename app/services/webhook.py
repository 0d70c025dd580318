"""
Webhook delivery for approval status changes.

Delivery is advisory: a standard JSON POST is tried first; if the request
itself fails, a best-effort plain-text POST is sent whose response is not
inspected. Nothing here raises to the caller.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from app.config import settings
from app.models.schemas import Approver, ApprovalStatus, WebhookPayload
from app.utils.helpers import is_http_url, utc_now

logger = logging.getLogger(__name__)

APPROVAL_EVENT = "prd_approval_status_changed"


def build_approval_payload(
    prd_id: str,
    status: ApprovalStatus,
    title: str,
    comment: Optional[str] = None,
    approver_name: Optional[str] = None,
    approver_email: Optional[str] = None,
) -> WebhookPayload:
    """Approval event body; blank approver fields fall back to placeholders."""
    return WebhookPayload(
        event=APPROVAL_EVENT,
        prd_id=prd_id,
        title=title,
        status=status,
        approver=Approver(
            name=approver_name or "Anonymous",
            email=approver_email or "Not provided",
        ),
        comment=comment or "",
        timestamp=utc_now().isoformat(),
    )


def build_test_payload() -> WebhookPayload:
    """Same shape as a real approval event so receivers can check their schema."""
    return WebhookPayload(
        event=APPROVAL_EVENT,
        prd_id="test_prd_id_12345",
        title="Test Product Requirements Document",
        status=ApprovalStatus.APPROVED,
        approver=Approver(name="Test Approver", email="approver@example.com"),
        comment="This is a test event to verify webhook payload structure and connectivity.",
        timestamp=utc_now().isoformat(),
        is_test=True,
    )


class WebhookNotifier:
    """Delivers webhook payloads with a timeout and a fallback attempt."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = httpx.Timeout(timeout if timeout is not None else settings.WEBHOOK_TIMEOUT)
        self._transport = transport

    async def deliver(self, url: str, payload: Dict[str, Any]) -> bool:
        """
        POST *payload* to *url*.

        Returns:
            True on a 2xx response, or when the fallback request went out
            without raising (its outcome cannot be confirmed). False otherwise.
        """
        body = json.dumps(payload)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    url, content=body, headers={"Content-Type": "application/json"}
                )
            return resp.is_success
        except Exception as exc:
            logger.info("[Webhook] Standard delivery to %s failed (%s), trying fallback", url, exc)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                await client.post(
                    url, content=body, headers={"Content-Type": "text/plain"}
                )
            return True
        except Exception as exc:
            logger.warning("[Webhook] Failed to send to %s: %s", url, exc)
            return False

    async def trigger_approval(
        self,
        webhook_url: Optional[str],
        prd_id: str,
        status: ApprovalStatus,
        title: str,
        comment: Optional[str] = None,
        approver_name: Optional[str] = None,
        approver_email: Optional[str] = None,
    ) -> bool:
        """Send the approval event when a usable webhook URL is configured."""
        payload = build_approval_payload(
            prd_id, status, title, comment, approver_name, approver_email
        )
        logger.info("[Webhook] Triggering approval event for PRD %s (%s)", prd_id, payload.status.value)

        if not is_http_url(webhook_url or ""):
            logger.info("[Webhook] No valid Webhook URL configured.")
            return False

        delivered = await self.deliver(
            webhook_url, payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        )
        logger.info("[Webhook] Event sent (delivered=%s).", delivered)
        return delivered

    async def test_connection(self, webhook_url: str) -> bool:
        if not is_http_url(webhook_url):
            return False
        payload = build_test_payload()
        return await self.deliver(
            webhook_url, payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        )
