"""
Section catalog and load-time normalization of PRD records.

The catalog is the authoritative source for section ``title``,
``description``, ``placeholder`` and ordering. Stored or imported PRDs may
only contribute ``content`` and ``isEnabled``.

Public API
----------
DEFAULT_SECTIONS              -> ordered catalog of Section definitions
DEFAULT_PUBLIC_SETTINGS       -> PublicSettings defaults
create_default_prd()          -> fresh draft PRD with every catalog section
merge_sections(stored)        -> catalog-ordered sections with stored user data
normalize_prd(record)         -> PRD built from an untrusted stored/fetched record
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from app.models.schemas import (
    PRD,
    ApprovalStatus,
    Comment,
    PRDStatus,
    PublicSettings,
    Section,
)
from app.utils.helpers import generate_id, utc_now

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

DEFAULT_SECTIONS: List[Section] = [
    Section(
        id="executive_summary",
        title="Executive Summary",
        description="A high-level overview of the product vision and business value.",
        is_enabled=True,
        placeholder="Summarize the entire PRD in one paragraph...",
    ),
    Section(
        id="problem_statement",
        title="Problem Statement",
        description="The specific user problem or gap in the market this product addresses.",
        is_enabled=True,
        placeholder="What pain point are we solving?",
    ),
    Section(
        id="goals_objectives",
        title="Goals & Objectives",
        description="Measurable business and product goals.",
        is_enabled=True,
        placeholder="List key objectives (e.g., Increase user retention by 20%)...",
    ),
    Section(
        id="target_audience",
        title="Target Audience",
        description="Who is this product for? User personas and segments.",
        is_enabled=True,
        placeholder="Primary and secondary user personas...",
    ),
    Section(
        id="user_stories",
        title="User Stories",
        description="Specific scenarios from the user's perspective.",
        is_enabled=True,
        placeholder="As a [user], I want to [action], so that [benefit]...",
    ),
    Section(
        id="features_requirements",
        title="Features & Requirements",
        description="Detailed functional requirements.",
        is_enabled=True,
        placeholder="List specific features and functionality...",
    ),
    Section(
        id="technical_requirements",
        title="Technical Requirements",
        description="Tech stack, constraints, and architecture notes.",
        is_enabled=False,
        placeholder="API requirements, database schema, performance constraints...",
    ),
    Section(
        id="design_requirements",
        title="Design Requirements",
        description="UI/UX guidelines and constraints.",
        is_enabled=False,
        placeholder="Mobile-first, brand colors, accessibility standards...",
    ),
    Section(
        id="timeline_milestones",
        title="Timeline & Milestones",
        description="Key dates and delivery phases.",
        is_enabled=False,
        placeholder="Phase 1 launch date, beta testing window...",
    ),
    Section(
        id="success_metrics",
        title="Success Metrics",
        description="KPIs to measure product success.",
        is_enabled=True,
        placeholder="DAU/MAU, conversion rates, NPS score...",
    ),
    Section(
        id="risks",
        title="Risk Assessment",
        description="Potential pitfalls and mitigation strategies.",
        is_enabled=False,
        placeholder="Technical risks, market risks, regulatory concerns...",
    ),
]

DEFAULT_PUBLIC_SETTINGS = PublicSettings(
    allow_comments=True,
    allow_upvotes=True,
    enable_approval_flow=False,
)

# Top-level PRD fields a stored record may overwrite, keyed by both spellings.
_FIELD_NAMES: Dict[str, str] = {}
for _name, _field in PRD.model_fields.items():
    _FIELD_NAMES[_name] = _name
    if _field.alias:
        _FIELD_NAMES[_field.alias] = _name

_PUBLIC_SETTINGS_NAMES: Dict[str, str] = {}
for _name, _field in PublicSettings.model_fields.items():
    _PUBLIC_SETTINGS_NAMES[_name] = _name
    if _field.alias:
        _PUBLIC_SETTINGS_NAMES[_field.alias] = _name

# Handled separately by the merge rules below.
_MERGED_FIELDS = frozenset(
    {"sections", "comments", "upvotes", "approval_status", "status", "public_settings"}
)


def create_default_prd() -> PRD:
    """Return a fresh draft PRD holding every catalog section with empty content."""
    return PRD(
        id=generate_id(),
        sections=[s.model_copy(deep=True) for s in DEFAULT_SECTIONS],
        public_settings=DEFAULT_PUBLIC_SETTINGS.model_copy(),
        last_updated=utc_now(),
    )


# ---------------------------------------------------------------------------
# Merge rules
# ---------------------------------------------------------------------------

def _stored_value(entry: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in entry:
            return entry[key]
    return None


def merge_sections(stored: Any) -> List[Section]:
    """
    Rebuild the section list in catalog order.

    Catalog metadata always wins; ``content`` and ``isEnabled`` come from the
    stored entry with the same id when they are well-typed. Catalog ids with no
    stored entry get defaults, and stored ids unknown to the catalog are dropped.

    Args:
        stored: The ``sections`` value of an untrusted record (any type)

    Returns:
        One Section per catalog entry, in catalog order
    """
    by_id: Dict[str, Mapping[str, Any]] = {}
    if isinstance(stored, list):
        for entry in stored:
            if isinstance(entry, Section):
                entry = entry.model_dump(by_alias=True)
            if isinstance(entry, Mapping) and isinstance(entry.get("id"), str):
                # first occurrence wins
                by_id.setdefault(entry["id"], entry)

    merged: List[Section] = []
    for definition in DEFAULT_SECTIONS:
        section = definition.model_copy(deep=True)
        saved = by_id.get(definition.id)
        if saved is not None:
            content = _stored_value(saved, "content")
            enabled = _stored_value(saved, "isEnabled", "is_enabled")
            update: Dict[str, Any] = {}
            if isinstance(content, str):
                update["content"] = content
            if isinstance(enabled, bool):
                update["is_enabled"] = enabled
            section = section.model_copy(update=update)
        merged.append(section)
    return merged


def _coerce_comments(value: Any) -> List[Comment]:
    if not isinstance(value, list):
        return []
    comments: List[Comment] = []
    for item in value:
        if isinstance(item, Comment):
            comments.append(item)
            continue
        try:
            comments.append(Comment.model_validate(item))
        except ValidationError:
            logger.warning("Dropping malformed comment: %r", item)
    return comments


def _coerce_upvotes(value: Any) -> int:
    # bool is an int subclass but never a meaningful count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value):
        return 0
    return max(0, int(value))


def _coerce_enum(enum_cls, value: Any, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _coerce_public_settings(value: Any) -> PublicSettings:
    merged = DEFAULT_PUBLIC_SETTINGS.model_dump()
    if isinstance(value, PublicSettings):
        value = value.model_dump()
    if isinstance(value, Mapping):
        for key, raw in value.items():
            name = _PUBLIC_SETTINGS_NAMES.get(key)
            if name is not None and isinstance(raw, bool):
                merged[name] = raw
    return PublicSettings(**merged)


def normalize_prd(record: Mapping[str, Any], base: Optional[PRD] = None) -> PRD:
    """
    Build a well-formed PRD from an untrusted record.

    This is the single load-boundary normalization, applied to everything that
    comes back from the store, the API or an import:

    1. start from a fresh default PRD (or *base*)
    2. shallow-overwrite every known top-level field present in *record*
    3. rebuild sections with :func:`merge_sections`
    4. non-list comments become ``[]``
    5. non-numeric upvotes become ``0``
    6. missing/invalid approval status becomes ``pending``
    7. public settings are merged key-wise over the defaults

    Never raises for malformed input; fields that still fail validation fall
    back to their defaults.
    """
    if isinstance(record, PRD):
        record = record.model_dump(by_alias=True)

    prd = base.model_copy(deep=True) if base is not None else create_default_prd()
    data: Dict[str, Any] = prd.model_dump()

    overrides: Dict[str, Any] = {}
    for key, value in record.items():
        name = _FIELD_NAMES.get(key)
        if name is None or name in _MERGED_FIELDS or value is None:
            continue
        overrides[name] = value

    data["sections"] = merge_sections(_stored_value(record, "sections"))
    data["comments"] = _coerce_comments(_stored_value(record, "comments"))
    data["upvotes"] = _coerce_upvotes(_stored_value(record, "upvotes"))
    data["approval_status"] = _coerce_enum(
        ApprovalStatus, _stored_value(record, "approvalStatus", "approval_status"), ApprovalStatus.PENDING
    )
    data["status"] = _coerce_enum(
        PRDStatus, _stored_value(record, "status"), PRDStatus.DRAFT
    )
    data["public_settings"] = _coerce_public_settings(
        _stored_value(record, "publicSettings", "public_settings")
    )

    # Validate overridden scalars one by one so a single bad field cannot sink the load.
    for name, value in overrides.items():
        candidate = {**data, name: value}
        try:
            PRD.model_validate(candidate)
        except ValidationError:
            logger.warning("Ignoring invalid stored value for %s: %r", name, value)
            continue
        data[name] = value

    if not isinstance(data.get("id"), str) or not data["id"]:
        data["id"] = prd.id

    return PRD.model_validate(data)
