#!/usr/bin/env python3
"""
validators.py
--------------------
Data validation and normalization utilities for journal operations.

Everything here runs before a side effect: a failing check raises
ValidationError and nothing has been written yet.
"""
from __future__ import annotations

import re
import secrets
import string
import time
from typing import Any, Iterable, Optional

from .exceptions import (
    InvalidEntryIdError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
    ValidationError,
)


ENTRY_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")
ENTRY_ID_MAX_LENGTH = 100
LIKE_ESCAPE = "\\"

_BASE36 = string.digits + string.ascii_lowercase

# MIME prefix -> file extension, checked in order
_EXTENSIONS = (
    ("audio/webm", "webm"),
    ("video/webm", "webm"),
    ("audio/ogg", "ogg"),
    ("audio/mp3", "mp3"),
    ("audio/mpeg", "mp3"),
    ("audio/mp4", "m4a"),
    ("audio/x-m4a", "m4a"),
)


class DataValidator:
    """Centralized data validation for journal operations."""

    @staticmethod
    def normalize_string(value: Any) -> Optional[str]:
        """
        Normalize a string value by trimming whitespace.

        Returns:
            Stripped string, or None for empty/None input
        """
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @staticmethod
    def normalize_tag(value: Any) -> Optional[str]:
        """
        Normalize a tag name: trimmed and lowercased.

        Examples:
            >>> DataValidator.normalize_tag("  Work ")
            'work'
            >>> DataValidator.normalize_tag("   ") is None
            True
        """
        text = DataValidator.normalize_string(value)
        return text.lower() if text else None

    @staticmethod
    def normalize_tags(values: Iterable[Any]) -> list[str]:
        """Normalize a list of tag names, dropping empties and duplicates, keeping order."""
        seen: dict[str, None] = {}
        for value in values or []:
            tag = DataValidator.normalize_tag(value)
            if tag:
                seen.setdefault(tag, None)
        return list(seen)

    @staticmethod
    def validate_entry_id(entry_id: Any) -> str:
        """
        Validate an entry id from untrusted input.

        Raises:
            InvalidEntryIdError: If the id is not 1-100 letters, digits or hyphens
        """
        if (
            not isinstance(entry_id, str)
            or not entry_id
            or len(entry_id) > ENTRY_ID_MAX_LENGTH
            or not ENTRY_ID_PATTERN.match(entry_id)
        ):
            raise InvalidEntryIdError("Invalid entry ID")
        return entry_id

    @staticmethod
    def generate_entry_id(now_ms: Optional[int] = None) -> str:
        """
        Allocate a fresh, time-sortable entry id.

        Format: `{milliseconds}-{9 random base36 chars}`.

        Examples:
            >>> DataValidator.generate_entry_id(1700000000000)[:14]
            '1700000000000-'
        """
        millis = now_ms if now_ms is not None else int(time.time() * 1000)
        suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
        return f"{millis}-{suffix}"

    @staticmethod
    def validate_mime_type(mime_type: Any, allowed_prefixes: Iterable[str]) -> str:
        """
        Check a declared MIME type against the allow-list of prefixes.

        Raises:
            UnsupportedMediaTypeError: If the type is missing or not allowed
        """
        if not isinstance(mime_type, str) or not mime_type:
            raise UnsupportedMediaTypeError("Unsupported audio format")
        lowered = mime_type.strip().lower()
        if not any(lowered.startswith(prefix) for prefix in allowed_prefixes):
            raise UnsupportedMediaTypeError("Unsupported audio format")
        return lowered

    @staticmethod
    def validate_size(size: int, ceiling: int) -> None:
        """
        Raises:
            PayloadTooLargeError: If size exceeds the ceiling
        """
        if size > ceiling:
            raise PayloadTooLargeError(
                f"File too large (max {ceiling // (1024 * 1024)}MB)"
            )

    @staticmethod
    def extension_for(mime_type: Optional[str]) -> str:
        """
        Derive the audio file extension from a MIME type.

        Examples:
            >>> DataValidator.extension_for("audio/mpeg")
            'mp3'
            >>> DataValidator.extension_for("audio/webm;codecs=opus")
            'webm'
            >>> DataValidator.extension_for(None)
            'webm'
        """
        lowered = (mime_type or "").lower()
        for prefix, ext in _EXTENSIONS:
            if lowered.startswith(prefix):
                return ext
        return "webm"

    @staticmethod
    def escape_like(query: str) -> str:
        """
        Escape LIKE metacharacters so the query matches literally.

        Use with `column.like(pattern, escape=LIKE_ESCAPE)`.

        Examples:
            >>> DataValidator.escape_like("100%")
            '100\\\\%'
            >>> DataValidator.escape_like("snake_case")
            'snake\\\\_case'
        """
        return (
            query.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
            .replace("%", LIKE_ESCAPE + "%")
            .replace("_", LIKE_ESCAPE + "_")
        )

    @staticmethod
    def validate_search_query(query: Any) -> str:
        """
        Raises:
            ValidationError: If the query is empty
        """
        if not isinstance(query, str) or not query:
            raise ValidationError("Query required")
        return query

    @staticmethod
    def validate_pagination(limit: Any, offset: Any = 0, max_limit: int = 500) -> tuple[int, int]:
        """
        Clamp pagination parameters.

        Raises:
            ValidationError: If either value is not an integer
        """
        try:
            limit = int(limit)
            offset = int(offset)
        except (TypeError, ValueError) as e:
            raise ValidationError("limit and offset must be integers") from e
        return max(1, min(limit, max_limit)), max(0, offset)
