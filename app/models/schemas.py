"""
Pydantic schemas for the PRD domain and for request/response validation.

Field names are snake_case in Python and serialize with camelCase aliases
(``productName``, ``isEnabled`` ...) so that exported JSON keeps the shape the
browser client reads and writes. Both spellings are accepted on input.
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict
from datetime import datetime, timezone
from enum import Enum

from app.utils.helpers import utc_now


class CamelModel(BaseModel):
    """Base model serializing to camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Enums
class ViewState(str, Enum):
    """Screens of the editor workflow."""

    LANDING = "landing"
    CONFIG = "config"
    EDIT = "edit"
    PREVIEW = "preview"
    PUBLIC = "public"


class PRDStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class ApprovalStatus(str, Enum):
    """Tri-state approval flag, settable only from the public view."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ExportFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "markdown"
    TEXT = "text"
    HTML = "html"


# Document Schemas
class Section(CamelModel):
    """One named, independently toggled/editable block of a PRD."""

    id: str
    title: str
    description: str = ""
    content: str = ""
    is_enabled: bool = True
    placeholder: str = ""


class PublicSettings(CamelModel):
    """What visitors of the public view may do. No cross-constraints."""

    allow_comments: bool = True
    allow_upvotes: bool = True
    enable_approval_flow: bool = False


class Comment(CamelModel):
    """Immutable once created; prepended to the PRD's comment list."""

    id: str
    author: str
    avatar: str = ""
    text: str
    date: str


class AppSettings(CamelModel):
    """Process-wide user settings, persisted independently of any PRD."""

    gemini_model: str = "gemini-2.5-flash"
    gemini_api_key: str = ""
    webhook_url: str = ""
    email: str = ""


class PRD(CamelModel):
    """A Product Requirements Document."""

    id: str
    title: str = "New PRD"
    product_name: str = ""
    short_description: str = ""
    sections: List[Section] = []
    is_public: bool = False
    public_settings: PublicSettings = Field(default_factory=PublicSettings)
    upvotes: int = Field(0, ge=0)
    comments: List[Comment] = []
    last_updated: datetime = Field(default_factory=utc_now)
    status: PRDStatus = PRDStatus.DRAFT
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None

    @field_validator("last_updated", "created_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # naive timestamps come back from SQLite and older exports
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def get_section(self, section_id: str) -> Optional[Section]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def enabled_sections(self) -> List[Section]:
        return [s for s in self.sections if s.is_enabled]

    def has_meaningful_content(self) -> bool:
        """True when the PRD is worth persisting (a product name or any written section)."""
        return bool(self.product_name.strip()) or any(s.content for s in self.sections)


class GenerationContext(CamelModel):
    """Product name, description and filled-in sections passed to the generator."""

    product_name: str
    short_description: str = ""
    existing_sections: Dict[str, str] = {}


class ApprovalDetails(CamelModel):
    """Approver metadata supplied alongside a status change."""

    title: Optional[str] = None
    comment: str = ""
    approver_name: str = ""
    approver_email: str = ""


# Webhook Schemas
class Approver(CamelModel):
    name: str = "Anonymous"
    email: str = "Not provided"


class WebhookPayload(CamelModel):
    """Body delivered to the user's webhook on approval status changes."""

    event: str = "prd_approval_status_changed"
    prd_id: str
    title: str
    status: ApprovalStatus
    approver: Approver = Field(default_factory=Approver)
    comment: str = ""
    timestamp: str
    is_test: Optional[bool] = None


# API Schemas
class UpvoteRequest(CamelModel):
    increment: bool = True


class UpvoteResponse(CamelModel):
    upvotes: int


class StatusUpdateRequest(CamelModel):
    status: ApprovalStatus


class StatusUpdateResponse(CamelModel):
    prd_id: str
    approval_status: ApprovalStatus


class WebhookTestRequest(CamelModel):
    url: str = Field(..., min_length=1)


class WebhookTestResponse(CamelModel):
    delivered: bool


class GenerateSectionRequest(CamelModel):
    title: str = Field(..., min_length=1)
    context: GenerationContext


class GenerateDescriptionRequest(CamelModel):
    product_name: str = Field(..., min_length=1)


class EnhanceRequest(CamelModel):
    text: str = Field(..., min_length=1)
    instruction: str = Field(..., min_length=1)


class GenerationResponse(CamelModel):
    text: str


# Health Check Schema
class HealthCheckResponse(BaseModel):
    """Schema for health check endpoint."""

    status: str
    database: str
    gemini: str
    timestamp: datetime
    version: str = "0.1.0"
