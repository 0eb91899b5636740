#!/usr/bin/env python3
"""
slugify.py
----------
String slugification for mirror filenames.

Usage:
    from muninn.utils.slugify import slugify, entry_filename

    slugify("Morning Walk (again)")            # "morning-walk-again"
    entry_filename("1700000000000-abc", None)  # "1700000000000-abc.md"
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import re
import unicodedata
from typing import Optional


def slugify(text: str, max_length: int = 80) -> str:
    """
    Convert text to a filesystem-safe slug.

    Args:
        text: Input text to slugify
        max_length: Maximum slug length (default 80)

    Returns:
        Lowercase ASCII slug of letters, digits and single hyphens

    Examples:
        >>> slugify("María José")
        'maria-jose'
        >>> slugify("Rain & coffee / Tuesday")
        'rain-and-coffee-tuesday'
        >>> slugify("!!!")
        ''
    """
    if not text:
        return ""

    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = text.replace("'", "")
    text = re.sub(r"[(){}\[\]]", " ", text)
    text = text.replace("&", "and")
    text = text.replace("/", "-")
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"[^a-z0-9-]", "", text)
    text = re.sub(r"-+", "-", text)
    text = text.strip("-")

    if len(text) > max_length:
        text = text[:max_length].rstrip("-")

    return text


def entry_filename(entry_id: str, title: Optional[str], analyzed: bool = True) -> str:
    """
    Derive the mirror filename for an entry.

    `{id}.md` until the entry is analyzed with a title that slugifies to
    something non-empty, then `{slug}--{id}.md`. The id suffix keeps names
    unique when two titles collapse to the same slug.

    Examples:
        >>> entry_filename("1700000000000-abc", "Test")
        'test--1700000000000-abc.md'
        >>> entry_filename("1700000000000-abc", "Test", analyzed=False)
        '1700000000000-abc.md'
    """
    slug = slugify(title or "") if analyzed else ""
    if slug:
        return f"{slug}--{entry_id}.md"
    return f"{entry_id}.md"
