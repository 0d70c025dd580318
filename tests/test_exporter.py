"""Tests for PRD export formats and JSON import validation."""
import json
from datetime import datetime, timezone

import pytest

from app.models.schemas import ExportFormat
from app.services.exporter import (
    ImportValidationError,
    export_prd,
    parse_import,
    to_html,
    to_json,
    to_markdown,
    to_text,
    validate_import,
)
from app.services.section_catalog import create_default_prd


@pytest.fixture
def prd():
    doc = create_default_prd().model_copy(
        update={
            "product_name": "Acme <Rockets>",
            "short_description": "Fast & loud.",
            "last_updated": datetime(2024, 3, 9, 12, 0, tzinfo=timezone.utc),
        }
    )
    doc.sections[0].content = "First paragraph.\n\nSecond line one\nline two"
    return doc


def test_markdown_lists_enabled_sections_only(prd):
    md = to_markdown(prd)

    assert md.startswith("# Acme <Rockets>\n")
    assert "> Fast & loud." in md
    assert "**Last Updated:** 2024-03-09" in md
    assert "## Executive Summary\n\nFirst paragraph." in md
    assert "## Problem Statement\n\n(No content)" in md
    assert "Risk Assessment" not in md
    assert md.rstrip().endswith("*Generated with Propel PRD*")


def test_text_export_underlines_titles(prd):
    text = to_text(prd)
    lines = text.splitlines()

    assert lines[0] == "Acme <Rockets>"
    assert lines[1] == "=" * (len("Acme <Rockets>") + 1)
    assert "EXECUTIVE SUMMARY" in lines
    assert "-" * len("Executive Summary") in lines
    assert "TECHNICAL REQUIREMENTS" not in text


def test_html_escapes_and_splits_paragraphs(prd):
    page = to_html(prd)

    assert "<title>Acme &lt;Rockets&gt; - PRD</title>" in page
    assert "Fast &amp; loud." in page
    assert "<p>First paragraph.</p><p>Second line one<br>line two</p>" in page
    assert "<p><em>(No content)</em></p>" in page
    assert page.count("<section>") == len(prd.enabled_sections())
    assert "Generated with Propel PRD" in page


def test_untitled_product_fallback():
    doc = create_default_prd()
    assert to_markdown(doc).startswith("# Untitled Product")
    assert to_text(doc).startswith("Untitled Product\n")


def test_export_prd_returns_media_type_and_filename(prd):
    content, media_type, filename = export_prd(prd, "markdown")
    assert media_type == "text/markdown"
    assert filename == "acme-rockets-prd.md"
    assert content == to_markdown(prd)

    _, media_type, filename = export_prd(prd, ExportFormat.JSON)
    assert (media_type, filename) == ("application/json", "acme-rockets-prd.json")


def test_export_prd_rejects_unknown_format(prd):
    with pytest.raises(ValueError):
        export_prd(prd, "pdf")


def test_json_export_import_round_trip(prd):
    exported = to_json(prd)
    data = json.loads(exported)
    assert data["productName"] == "Acme <Rockets>"
    assert data["sections"][0]["isEnabled"] is True

    restored = parse_import(exported)
    assert restored.model_dump() == prd.model_dump()


def test_parse_import_accepts_bytes_and_dicts(prd):
    exported = to_json(prd)
    assert parse_import(exported.encode()).id == prd.id
    assert parse_import(json.loads(exported)).id == prd.id


@pytest.mark.parametrize(
    "raw, message",
    [
        ("{oops", "Invalid JSON file"),
        ("[1, 2]", "expected a JSON object"),
        (json.dumps({"sections": [{"id": "risks"}]}), "missing productName"),
        (json.dumps({"productName": 5, "sections": [{}]}), "missing productName"),
        (json.dumps({"productName": "Acme"}), "missing sections"),
    ],
)
def test_parse_import_rejects_invalid_documents(raw, message):
    with pytest.raises(ImportValidationError, match=message):
        parse_import(raw)


def test_import_validation_error_is_value_error():
    with pytest.raises(ValueError):
        validate_import({"productName": ""})


def test_import_normalizes_foreign_sections():
    prd = parse_import(
        {
            "productName": "Legacy",
            "sections": [
                {"id": "risks", "title": "Renamed", "content": "R", "isEnabled": True},
                {"id": "unknown", "content": "?"},
            ],
            "upvotes": "lots",
        }
    )
    assert prd.get_section("risks").title == "Risk Assessment"
    assert prd.get_section("unknown") is None
    assert prd.upvotes == 0


def test_import_accepts_empty_sections_list():
    prd = parse_import({"productName": "Blank slate", "sections": []})

    assert prd.product_name == "Blank slate"
    assert len(prd.sections) == 11
    assert all(s.content == "" for s in prd.sections)

    with pytest.raises(ImportValidationError, match="missing sections"):
        parse_import({"productName": "Blank slate", "sections": None})
