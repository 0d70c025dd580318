"""
Gateway dependencies for FastAPI routes.

Each route receives its persistence / generation / webhook collaborators
through ``Depends`` so tests can swap them with ``app.dependency_overrides``.
"""
from __future__ import annotations

import logging

from fastapi import Depends

from app.database import AsyncSessionLocal
from app.models.schemas import AppSettings
from app.services.generation import GeminiGenerationService, GenerationGateway
from app.services.persistence import DatabasePersistenceGateway, PersistenceGateway
from app.services.webhook import WebhookNotifier

logger = logging.getLogger(__name__)


async def get_persistence() -> PersistenceGateway:
    """PRD store on the application's database engine."""
    return DatabasePersistenceGateway(AsyncSessionLocal)


async def get_app_settings(
    persistence: PersistenceGateway = Depends(get_persistence),
) -> AppSettings:
    """Persisted user settings; defaults when they cannot be loaded."""
    try:
        return await persistence.get_settings()
    except Exception as exc:
        logger.error("Failed to load settings, using defaults: %s", exc)
        return AppSettings()


async def get_generator(
    app_settings: AppSettings = Depends(get_app_settings),
) -> GenerationGateway:
    """Gemini client keyed by the saved settings, then by configuration."""
    return GeminiGenerationService(settings_source=lambda: app_settings)


async def get_notifier() -> WebhookNotifier:
    return WebhookNotifier()
