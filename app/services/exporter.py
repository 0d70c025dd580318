"""
Export a PRD to flat formats and import previously exported JSON.

Only enabled sections are exported, in catalog order. JSON is the only format
that can be imported back; PDF is left to the host's print-to-PDF.
"""
from __future__ import annotations

import html
import json
import logging
from typing import Any, Dict, Mapping, Tuple, Union

from app.models.schemas import PRD, ExportFormat
from app.services.section_catalog import normalize_prd
from app.utils.helpers import slugify, split_paragraphs

logger = logging.getLogger(__name__)

PRODUCT_LABEL = "Propel PRD"
DOCUMENT_VERSION = "1.0"
UNTITLED = "Untitled Product"
NO_CONTENT = "(No content)"

_MEDIA_TYPES = {
    ExportFormat.JSON: ("application/json", "json"),
    ExportFormat.MARKDOWN: ("text/markdown", "md"),
    ExportFormat.TEXT: ("text/plain", "txt"),
    ExportFormat.HTML: ("text/html", "html"),
}


class ImportValidationError(ValueError):
    """Imported data is not a PRD export. Nothing was applied."""


def _updated_label(prd: PRD) -> str:
    return prd.last_updated.date().isoformat()


# ---------------------------------------------------------------------------
# Exporters
# ---------------------------------------------------------------------------

def to_json(prd: PRD) -> str:
    """Full serialization; the only format accepted back by :func:`parse_import`."""
    return prd.model_dump_json(by_alias=True, indent=2)


def to_markdown(prd: PRD) -> str:
    lines = [f"# {prd.product_name or UNTITLED}", ""]
    if prd.short_description:
        lines += [f"> {prd.short_description}", ""]
    lines += [
        f"**Version:** {DOCUMENT_VERSION}  ",
        f"**Last Updated:** {_updated_label(prd)}",
        "",
        "---",
        "",
    ]
    for section in prd.enabled_sections():
        lines += [f"## {section.title}", "", section.content or NO_CONTENT, ""]
    lines += ["", "---", f"*Generated with {PRODUCT_LABEL}*"]
    return "\n".join(lines)


def to_text(prd: PRD) -> str:
    title = prd.product_name or UNTITLED
    # underline covers the title and its line break
    lines = [title, "=" * (len(title) + 1), ""]
    if prd.short_description:
        lines += [prd.short_description, ""]
    lines += [
        f"Version: {DOCUMENT_VERSION}",
        f"Last Updated: {_updated_label(prd)}",
        "",
    ]
    for section in prd.enabled_sections():
        lines += [
            "",
            section.title.upper(),
            "-" * len(section.title),
            section.content or NO_CONTENT,
        ]
    return "\n".join(lines) + "\n"


_HTML_STYLE = """\
        body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #333; max-width: 800px; margin: 0 auto; padding: 2rem; }
        h1 { font-size: 2.5rem; margin-bottom: 0.5rem; color: #111; }
        .meta { color: #666; font-size: 0.9rem; margin-bottom: 2rem; border-bottom: 1px solid #eee; padding-bottom: 1rem; }
        h2 { margin-top: 2rem; border-bottom: 1px solid #eee; padding-bottom: 0.5rem; color: #111; }
        .description { font-size: 1.2rem; color: #555; margin-bottom: 2rem; font-weight: 300; }
        footer { margin-top: 4rem; text-align: center; color: #888; font-size: 0.8rem; }"""


def _section_html(content: str) -> str:
    paragraphs = split_paragraphs(content)
    if not paragraphs:
        return f"<p><em>{NO_CONTENT}</em></p>"
    return "".join(
        "<p>{}</p>".format(html.escape(p).replace("\n", "<br>")) for p in paragraphs
    )


def to_html(prd: PRD) -> str:
    """Minimal standalone document with inline styles."""
    title = html.escape(prd.product_name or UNTITLED)
    sections = "".join(
        f"""
        <section>
            <h2>{html.escape(s.title)}</h2>
            <div>{_section_html(s.content)}</div>
        </section>"""
        for s in prd.enabled_sections()
    )
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title} - PRD</title>
    <style>
{_HTML_STYLE}
    </style>
</head>
<body>
    <header>
        <h1>{title}</h1>
        <div class="description">{html.escape(prd.short_description)}</div>
        <div class="meta">
            <span>Version {DOCUMENT_VERSION}</span> &bull;
            <span>Last Updated: {_updated_label(prd)}</span>
        </div>
    </header>
    <main>{sections}
    </main>
    <footer>
        Generated with {PRODUCT_LABEL}
    </footer>
</body>
</html>"""


_RENDERERS = {
    ExportFormat.JSON: to_json,
    ExportFormat.MARKDOWN: to_markdown,
    ExportFormat.TEXT: to_text,
    ExportFormat.HTML: to_html,
}


def export_prd(prd: PRD, fmt: Union[ExportFormat, str]) -> Tuple[str, str, str]:
    """
    Render *prd* in *fmt*.

    Returns:
        (content, media_type, filename)

    Raises:
        ValueError: unknown format
    """
    fmt = ExportFormat(fmt)
    media_type, extension = _MEDIA_TYPES[fmt]
    filename = f"{slugify(prd.product_name)}-prd.{extension}"
    return _RENDERERS[fmt](prd), media_type, filename


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def validate_import(data: Any) -> Mapping[str, Any]:
    """
    Minimal shape check for an imported PRD: a non-empty product name and a
    ``sections`` field must be present.
    """
    if not isinstance(data, Mapping):
        raise ImportValidationError("Invalid PRD format: expected a JSON object.")
    product_name = data.get("productName", data.get("product_name"))
    if not product_name or not isinstance(product_name, str):
        raise ImportValidationError("Invalid PRD format: missing productName.")
    if data.get("sections") is None:
        raise ImportValidationError("Invalid PRD format: missing sections.")
    return data


def parse_import(raw: Union[str, bytes, Mapping[str, Any]]) -> PRD:
    """
    Validate and normalize an exported PRD (JSON text or an already-parsed dict).

    Raises:
        ImportValidationError: malformed JSON or missing required fields
    """
    if isinstance(raw, (str, bytes)):
        try:
            data: Dict[str, Any] = json.loads(raw)
        except ValueError as exc:
            raise ImportValidationError(
                "Invalid JSON file. Please check the file format and try again."
            ) from exc
    else:
        data = dict(raw)

    validate_import(data)
    prd = normalize_prd(data)
    logger.info("Imported PRD %s (%s)", prd.id, prd.product_name)
    return prd
