"""Database and schema models for Propel PRD."""
from app.models.database_models import (
    PRDRecord,
    CommentRecord,
    SettingsRecord,
)
from app.models.schemas import (
    PRD,
    Section,
    Comment,
    PublicSettings,
    AppSettings,
    GenerationContext,
    ApprovalDetails,
    WebhookPayload,
    ViewState,
    PRDStatus,
    ApprovalStatus,
    ExportFormat,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "PRDRecord",
    "CommentRecord",
    "SettingsRecord",
    # Pydantic schemas
    "PRD",
    "Section",
    "Comment",
    "PublicSettings",
    "AppSettings",
    "GenerationContext",
    "ApprovalDetails",
    "WebhookPayload",
    "ViewState",
    "PRDStatus",
    "ApprovalStatus",
    "ExportFormat",
    "HealthCheckResponse",
]
