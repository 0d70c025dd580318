"""Tests for the section catalog, default PRD and load-time normalization."""
import math

from app.models.schemas import PRD, ApprovalStatus, PRDStatus
from app.services.section_catalog import (
    DEFAULT_SECTIONS,
    create_default_prd,
    merge_sections,
    normalize_prd,
)

CATALOG_IDS = [s.id for s in DEFAULT_SECTIONS]


def test_catalog_has_eleven_unique_sections():
    assert len(CATALOG_IDS) == 11
    assert len(set(CATALOG_IDS)) == 11
    assert CATALOG_IDS[0] == "executive_summary"
    assert CATALOG_IDS[-1] == "risks"


def test_default_prd_is_empty_draft():
    prd = create_default_prd()
    assert prd.id
    assert prd.product_name == ""
    assert prd.short_description == ""
    assert prd.status == PRDStatus.DRAFT
    assert prd.approval_status == ApprovalStatus.PENDING
    assert prd.upvotes == 0
    assert prd.comments == []
    assert prd.is_public is False
    assert [s.id for s in prd.sections] == CATALOG_IDS
    assert all(s.content == "" for s in prd.sections)
    disabled = {s.id for s in prd.sections if not s.is_enabled}
    assert disabled == {"technical_requirements", "design_requirements", "timeline_milestones", "risks"}


def test_default_prds_get_distinct_ids_and_independent_sections():
    a = create_default_prd()
    b = create_default_prd()
    assert a.id != b.id
    a.sections[0].content = "changed"
    assert b.sections[0].content == ""
    assert DEFAULT_SECTIONS[0].content == ""


def test_merge_restores_catalog_metadata_and_order():
    stored = [
        {"id": "risks", "title": "Hacked title", "content": "Risky", "isEnabled": True},
        {"id": "executive_summary", "content": "Summary", "placeholder": "nope"},
    ]
    sections = merge_sections(stored)

    assert [s.id for s in sections] == CATALOG_IDS
    risks = sections[-1]
    assert risks.title == "Risk Assessment"
    assert risks.content == "Risky"
    assert risks.is_enabled is True
    summary = sections[0]
    assert summary.content == "Summary"
    assert summary.placeholder == DEFAULT_SECTIONS[0].placeholder


def test_merge_drops_unknown_sections():
    sections = merge_sections([{"id": "legacy_appendix", "content": "old", "isEnabled": True}])
    assert "legacy_appendix" not in [s.id for s in sections]
    assert len(sections) == 11


def test_merge_first_duplicate_wins():
    sections = merge_sections(
        [
            {"id": "user_stories", "content": "first"},
            {"id": "user_stories", "content": "second"},
        ]
    )
    assert sections[CATALOG_IDS.index("user_stories")].content == "first"


def test_merge_ignores_ill_typed_fields():
    sections = merge_sections(
        [{"id": "problem_statement", "content": 42, "isEnabled": "yes"}]
    )
    problem = sections[CATALOG_IDS.index("problem_statement")]
    assert problem.content == ""
    assert problem.is_enabled is True


def test_merge_handles_non_list_input():
    for stored in (None, "sections", {"id": "risks"}, 7):
        assert [s.id for s in merge_sections(stored)] == CATALOG_IDS


def test_normalize_full_record():
    prd = normalize_prd(
        {
            "id": "abc",
            "productName": "Acme",
            "shortDescription": "Rockets",
            "sections": [{"id": "success_metrics", "content": "DAU", "isEnabled": False}],
            "isPublic": True,
            "publicSettings": {"allowComments": False},
            "upvotes": 4,
            "comments": [{"id": "c1", "author": "Ann", "avatar": "", "text": "Nice", "date": "2024-01-02"}],
            "approvalStatus": "approved",
            "status": "published",
            "lastUpdated": "2024-01-02T03:04:05",
        }
    )
    assert prd.id == "abc"
    assert prd.product_name == "Acme"
    assert prd.is_public is True
    assert prd.public_settings.allow_comments is False
    assert prd.public_settings.allow_upvotes is True
    assert prd.upvotes == 4
    assert prd.comments[0].author == "Ann"
    assert prd.approval_status == ApprovalStatus.APPROVED
    assert prd.status == PRDStatus.PUBLISHED
    assert prd.last_updated.tzinfo is not None
    metrics = prd.get_section("success_metrics")
    assert metrics.content == "DAU"
    assert metrics.is_enabled is False


def test_normalize_defaults_bad_values():
    prd = normalize_prd(
        {
            "id": "abc",
            "comments": "not a list",
            "upvotes": "many",
            "approvalStatus": "maybe",
            "status": 3,
            "publicSettings": "all",
            "productName": ["bad"],
        }
    )
    assert prd.comments == []
    assert prd.upvotes == 0
    assert prd.approval_status == ApprovalStatus.PENDING
    assert prd.status == PRDStatus.DRAFT
    assert prd.public_settings.allow_comments is True
    assert prd.product_name == ""


def test_normalize_upvote_edge_values():
    assert normalize_prd({"upvotes": -5}).upvotes == 0
    assert normalize_prd({"upvotes": 2.7}).upvotes == 2
    assert normalize_prd({"upvotes": True}).upvotes == 0
    assert normalize_prd({"upvotes": math.nan}).upvotes == 0
    assert normalize_prd({"upvotes": math.inf}).upvotes == 0


def test_normalize_keeps_fresh_id_when_missing():
    prd = normalize_prd({"productName": "NoId"})
    assert prd.id
    assert prd.product_name == "NoId"

    blank = normalize_prd({"id": ""})
    assert blank.id


def test_normalize_accepts_snake_case_and_prd_instances():
    prd = normalize_prd({"id": "x", "product_name": "Snake", "approval_status": "rejected"})
    assert prd.product_name == "Snake"
    assert prd.approval_status == ApprovalStatus.REJECTED

    again = normalize_prd(prd)
    assert isinstance(again, PRD)
    assert again.model_dump() == prd.model_dump()


def test_normalize_is_idempotent():
    once = normalize_prd({"id": "i", "productName": "Acme", "sections": [{"id": "risks", "content": "R"}]})
    twice = normalize_prd(once.model_dump(by_alias=True))
    assert twice.model_dump() == once.model_dump()
