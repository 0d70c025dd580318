"""
Common utility functions and helpers.
"""
from datetime import datetime, timezone
from typing import List
import re
import unicodedata
import uuid


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_id() -> str:
    """
    Generate a new opaque identifier for PRDs and comments.

    Returns:
        Random UUID4 string
    """
    return str(uuid.uuid4())


def is_http_url(url: str) -> bool:
    """Webhook URLs are only honoured when they look like http(s) URLs."""
    return bool(url) and url.startswith("http")


def split_paragraphs(text: str) -> List[str]:
    """
    Split text into paragraphs on blank lines.

    Args:
        text: Raw section content

    Returns:
        List of non-empty paragraphs
    """
    return [p for p in text.split("\n\n") if p.strip()]


def slugify(text: str, default: str = "prd") -> str:
    """
    Turn a product name into a filesystem-friendly slug.

    Args:
        text: Product name
        default: Returned when nothing usable remains

    Returns:
        Lowercase, hyphen-separated slug
    """
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^\w\s-]", "", text.lower())
    text = re.sub(r"[\s_-]+", "-", text).strip("-")
    return text or default
