"""
App settings endpoints (Gemini model/key, webhook URL, contact email).

GET  /api/settings               - current settings (defaults when none saved)
PUT  /api/settings               - replace settings
POST /api/settings/webhook/test  - send a test approval event to a URL
"""
import logging

from fastapi import APIRouter, Depends

from app.dependencies.gateways import get_notifier, get_persistence
from app.models.schemas import AppSettings, WebhookTestRequest, WebhookTestResponse
from app.services.persistence import PersistenceGateway
from app.services.webhook import WebhookNotifier

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=AppSettings)
async def get_settings(
    persistence: PersistenceGateway = Depends(get_persistence),
) -> AppSettings:
    return await persistence.get_settings()


@router.put("", response_model=AppSettings)
async def save_settings(
    body: AppSettings,
    persistence: PersistenceGateway = Depends(get_persistence),
) -> AppSettings:
    await persistence.save_settings(body)
    logger.info("Settings saved (model=%s, webhook=%s)", body.gemini_model, bool(body.webhook_url))
    return body


@router.post("/webhook/test", response_model=WebhookTestResponse)
async def test_webhook(
    body: WebhookTestRequest,
    notifier: WebhookNotifier = Depends(get_notifier),
) -> WebhookTestResponse:
    """Deliver a sample payload (``isTest: true``) so the receiver can be checked."""
    delivered = await notifier.test_connection(body.url)
    return WebhookTestResponse(delivered=delivered)
